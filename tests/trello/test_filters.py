"""Tests for card selection and time-window helpers."""

from datetime import datetime, timedelta

import pytest

from src.trello.filters import (
    end_of_day,
    in_window,
    is_assigned_to,
    is_blacklisted,
    is_done_list,
    is_older_than,
    is_past_due_but_not_today,
    last_n_days_window,
    rolling_cutoff,
    sort_by_timestamp,
    start_of_day,
    week_range,
)
from src.trello.models import Card, Member


def local(*args) -> datetime:
    return datetime(*args).astimezone()


NOW = local(2024, 8, 7, 10, 30)  # a Wednesday


class TestPastDue:
    def test_yesterday_is_past_due(self):
        assert is_past_due_but_not_today(local(2024, 8, 6, 23, 59), NOW)

    def test_earlier_today_is_not_past_due(self):
        assert not is_past_due_but_not_today(local(2024, 8, 7, 0, 1), NOW)

    def test_later_today_is_not_past_due(self):
        assert not is_past_due_but_not_today(local(2024, 8, 7, 23, 0), NOW)

    def test_future_is_not_past_due(self):
        assert not is_past_due_but_not_today(local(2024, 8, 9, 9, 0), NOW)

    def test_missing_due(self):
        assert not is_past_due_but_not_today(None, NOW)


class TestOlderThan:
    def test_more_than_seven_days(self):
        assert is_older_than(local(2024, 7, 30, 12, 0), NOW, 7)

    def test_exactly_seven_days_is_not_older(self):
        assert not is_older_than(local(2024, 7, 31, 12, 0), NOW, 7)

    def test_missing_due(self):
        assert not is_older_than(None, NOW, 7)


class TestWindows:
    def test_start_and_end_of_day(self):
        assert start_of_day(NOW) == local(2024, 8, 7, 0, 0)
        end = end_of_day(NOW)
        assert (end.hour, end.minute, end.second, end.microsecond) == (23, 59, 59, 999999)
        assert end.date() == NOW.date()

    def test_last_n_days_window(self):
        start, end = last_n_days_window(NOW, 4)
        assert start == local(2024, 8, 3, 0, 0)
        assert end.date() == NOW.date()

    @pytest.mark.parametrize("days", [0, -3])
    def test_last_n_days_window_at_least_one_day(self, days):
        start, end = last_n_days_window(NOW, days)
        assert start == last_n_days_window(NOW, 1)[0]
        assert start < end

    def test_week_range_monday_to_sunday(self):
        start, end = week_range(NOW)
        assert start == local(2024, 8, 5, 0, 0)
        assert start.weekday() == 0
        assert end.date() == local(2024, 8, 11, 0, 0).date()
        assert end.weekday() == 6

    def test_week_range_on_monday(self):
        start, _ = week_range(local(2024, 8, 5, 0, 0))
        assert start == local(2024, 8, 5, 0, 0)

    def test_rolling_cutoff(self):
        assert rolling_cutoff(NOW, 30) == NOW - timedelta(hours=30)

    def test_in_window_is_inclusive(self):
        start, end = local(2024, 8, 1, 0, 0), local(2024, 8, 2, 0, 0)
        assert in_window(start, start, end)
        assert in_window(end, start, end)
        assert not in_window(end + timedelta(seconds=1), start, end)
        assert not in_window(None, start, end)


class TestCardPredicates:
    def test_assigned_by_member_ids(self):
        assert is_assigned_to(Card(id="c1", member_ids=["me"]), "me")

    def test_assigned_by_expanded_members(self):
        assert is_assigned_to(Card(id="c1", members=[Member(id="me")]), "me")

    def test_not_assigned(self):
        assert not is_assigned_to(Card(id="c1", member_ids=["other"]), "me")

    def test_blacklist_is_case_insensitive_substring(self):
        assert is_blacklisted("Sprint 42 planning", ["sprint"])
        assert is_blacklisted("weekly SPRINT", ["Sprint"])
        assert not is_blacklisted("Fix login", ["sprint"])
        assert not is_blacklisted("anything", [""])

    def test_done_list(self):
        assert is_done_list("Code Review", ["done", "review"])
        assert is_done_list("DONE this week", ["done"])
        assert not is_done_list("Doing", ["done", "review"])


class TestSortByTimestamp:
    def test_newest_first_with_undated_last(self):
        old = Card(id="a", date_last_activity=local(2024, 8, 1, 0, 0))
        new = Card(id="b", date_last_activity=local(2024, 8, 6, 0, 0))
        undated = Card(id="c")
        assert [c.id for c in sort_by_timestamp([undated, old, new])] == ["b", "a", "c"]

    def test_oldest_first(self):
        old = Card(id="a", due=local(2024, 8, 1, 0, 0))
        new = Card(id="b", due=local(2024, 8, 6, 0, 0))
        result = sort_by_timestamp([new, old], "due", newest_first=False)
        assert [c.id for c in result] == ["a", "b"]

    def test_stable_for_equal_timestamps(self):
        ts = local(2024, 8, 1, 0, 0)
        cards = [Card(id=str(i), date_last_activity=ts) for i in range(5)]
        assert [c.id for c in sort_by_timestamp(cards)] == ["0", "1", "2", "3", "4"]
