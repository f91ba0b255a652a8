"""Tests for the activity, daily and post report commands."""

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

import src.commands.reports as reports
from src.commands.reports import (
    REPORT_FOOTER,
    CardActivity,
    TicketLine,
    cmd_activity_report,
    cmd_daily_report,
    cmd_post_report,
    describe_action,
    find_interactions,
    format_activity_report,
    format_daily_report,
    load_time_entries,
    parse_report_sections,
)
from src.trello.models import Action, Card, TrelloList
from src.utils.duration import TimeEntry

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)
CUTOFF = NOW - timedelta(hours=30)


def make_card(**overrides) -> Card:
    values = {
        "id": "c1",
        "name": "Fix login",
        "short_url": "https://trello.com/c/abc",
        "list_id": "l1",
        "member_ids": ["me"],
        "date_last_activity": NOW - timedelta(hours=1),
    }
    values.update(overrides)
    return Card(**values)


class TestDescribeAction:
    def test_long_comment_is_truncated(self):
        action = Action(id="a", type="commentCard", data={"text": "x" * 60})
        assert describe_action(action) == "Comment: " + "x" * 50 + "..."

    def test_short_comment(self):
        action = Action(id="a", type="commentCard", data={"text": "LGTM"})
        assert describe_action(action) == "Comment: LGTM"

    def test_move(self):
        action = Action(id="a", type="updateCard", data={"listAfter": {"name": "Review"}})
        assert describe_action(action) == "Moved card to Review"

    def test_known_and_unknown_types(self):
        assert describe_action(Action(id="a", type="createCard")) == "Created this card"
        assert describe_action(Action(id="a", type="addMemberToCard")) == "Added member to card"
        assert describe_action(Action(id="a", type="addLabelToCard")) == "addLabelToCard"


class TestFindInteractions:
    def test_only_my_recent_actions(self):
        actions = [
            Action(
                id="1",
                type="commentCard",
                date=NOW - timedelta(hours=2),
                member_creator_id="me",
                data={"text": "done"},
            ),
            Action(
                id="2", type="createCard", date=CUTOFF - timedelta(hours=1), member_creator_id="me"
            ),
            Action(
                id="3", type="commentCard", date=NOW, member_creator_id="bob", data={"text": "hi"}
            ),
        ]

        interactions = find_interactions(make_card(), "me", CUTOFF, actions)

        assert [i.kind for i in interactions] == ["card_activity", "commentCard", "assigned"]
        assert interactions[1].description == "Comment: done"
        assert interactions[2].time == "current"

    def test_unassigned_stale_card_has_no_interactions(self):
        card = make_card(member_ids=[], date_last_activity=CUTOFF - timedelta(days=1))
        assert find_interactions(card, "me", CUTOFF, []) == []


class TestFormatActivityReport:
    def test_empty(self):
        report = format_activity_report([], "Ada Lovelace", CUTOFF, NOW)
        assert report.startswith("TRELLO ACTIVITY REPORT - LAST 30 HOURS\n")
        assert "User: Ada Lovelace\n" in report
        assert report.endswith("No interactions found in the last 30 hours.\n")

    def test_cards_are_numbered(self):
        card = make_card()
        activity = CardActivity(
            card=card,
            list_name="Doing",
            interactions=find_interactions(card, "me", CUTOFF, []),
        )

        report = format_activity_report([activity], "Ada", CUTOFF, NOW, hours=12)

        assert "LAST 12 HOURS" in report
        assert "Found 1 cards with recent activity:" in report
        assert "1. Fix login\n   URL: https://trello.com/c/abc\n   List: Doing\n" in report
        assert "• current - Currently assigned to this card" in report


class TestDailyReportFormat:
    def test_exact_layout(self, me):
        tickets = [TicketLine(card=make_card(), list_name="Review", minutes=82)]
        entries = [TimeEntry("Fix login", 82), TimeEntry("Standup", 30)]

        report = format_daily_report(me, tickets, entries)

        assert report == (
            "\nAda Lovelace: update 8h | tracked 1h 52m\n"
            "\n## tickets:\n"
            "- [Fix login](https://trello.com/c/abc) - Review | 1h 22m\n"
            "\n---\n" + REPORT_FOOTER
        )

    def test_load_time_entries_requires_list(self, tmp_path: Path):
        path = tmp_path / "today.json"
        path.write_text('{"name": "x"}')
        with pytest.raises(ValueError, match="JSON list"):
            load_time_entries(path)

        path.write_text('[{"name": "x", "time": "5m"}]')
        assert load_time_entries(path) == [{"name": "x", "time": "5m"}]


class TestParseReportSections:
    def test_round_trip_of_generated_report(self, me):
        tickets = [TicketLine(card=make_card(), list_name="Review", minutes=82)]
        sections = parse_report_sections(format_daily_report(me, tickets, []))

        assert sections.summary == "Ada Lovelace: update 8h | tracked 0h 0m"
        assert sections.tickets == ["- [Fix login](https://trello.com/c/abc) - Review | 1h 22m"]
        assert sections.screenshot is None

    def test_screenshot_section_and_separator(self):
        markdown = (
            "Summary line\n\n"
            "## tickets:\n- one\n\n- two\n"
            "## screenshot:\n![today](shots/today.png)\n"
            "---\n- ignored\n"
        )
        sections = parse_report_sections(markdown)
        assert sections.summary == "Summary line"
        assert sections.tickets == ["- one", "- two"]
        assert sections.screenshot == "shots/today.png"

    def test_empty(self):
        assert parse_report_sections("---\nfooter").empty


class TestActivityReportCommand:
    def test_writes_report_for_recent_cards(self, trello_env, patch_client, me, tmp_path: Path):
        client = patch_client("src.commands.reports.TrelloClient")
        client.get_me.return_value = me
        client.get_board_lists.return_value = [TrelloList(id="l1", name="Doing")]
        client.get_board_cards.return_value = [
            make_card(),
            make_card(id="c2", name="Old", date_last_activity=CUTOFF - timedelta(days=2)),
        ]
        client.get_card_actions.return_value = []

        assert cmd_activity_report(now=NOW) == 0

        client.get_card_actions.assert_called_once_with("c1")
        saved = list((tmp_path / "reports").glob("trello-activity-report-*.txt"))
        assert len(saved) == 1
        content = saved[0].read_text()
        assert "1. Fix login" in content
        assert "Old" not in content

    def test_missing_board(self, monkeypatch, patch_client):
        monkeypatch.setenv("TRELLO_API_KEY", "k")
        monkeypatch.setenv("TRELLO_TOKEN", "t")
        patch_client("src.commands.reports.TrelloClient")
        assert cmd_activity_report(now=NOW) == 1


class TestDailyReportCommand:
    @pytest.fixture
    def entries_file(self, tmp_path: Path) -> Path:
        path = tmp_path / "today.json"
        entries = [
            {"date": "2026-10-19", "name": "Fix login", "time": "1h 22m"},
            {"date": "2026-10-19", "name": "Fix login", "time": "30m"},
            {"date": "2026-10-19", "name": "Sprint planning", "time": "45m"},
            {"date": "2026-10-19", "name": "Not on the board", "time": "10m"},
        ]
        path.write_text(json.dumps(entries))
        return path

    @pytest.fixture
    def client(self, trello_env, patch_client, me):
        client = patch_client("src.commands.reports.TrelloClient")
        client.get_me.return_value = me
        client.get_board_lists.return_value = [TrelloList(id="l1", name="Review")]
        client.get_board_cards.return_value = [
            make_card(),
            make_card(id="c2", name="Sprint planning"),
            make_card(id="c3", name="Someone else's", member_ids=["bob"]),
        ]
        return client

    def test_writes_markdown_report(self, client, entries_file: Path, tmp_path: Path):
        assert cmd_daily_report(entries_file=entries_file, now=NOW) == 0

        report = (tmp_path / "reports" / "daily-report-2026-10-19-12.md").read_text()
        assert "Ada Lovelace: update 8h | tracked 2h 47m" in report
        assert "- [Fix login](https://trello.com/c/abc) - Review | 1h 52m" in report
        assert "Sprint planning" not in report
        assert (tmp_path / "cache" / "trello-summary-2026-10-19-12.json").exists()

    def test_uses_hourly_snapshot(self, client, entries_file: Path, tmp_path: Path):
        cache = tmp_path / "cache" / "trello-summary-2026-10-19-12.json"
        cache.parent.mkdir(parents=True)
        cache.write_text(
            json.dumps(
                {
                    "lists": [{"id": "l1", "name": "Done", "closed": False}],
                    "cards": [
                        {
                            "id": "c1",
                            "name": "Fix login",
                            "shortUrl": "https://trello.com/c/abc",
                            "idList": "l1",
                            "idMembers": ["me"],
                            "dateLastActivity": "2026-10-19T11:00:00.000Z",
                        }
                    ],
                }
            )
        )

        assert cmd_daily_report(entries_file=entries_file, now=NOW) == 0

        client.get_board_lists.assert_not_called()
        client.get_board_cards.assert_not_called()
        report = (tmp_path / "reports" / "daily-report-2026-10-19-12.md").read_text()
        assert "- [Fix login](https://trello.com/c/abc) - Done | 1h 52m" in report

    def test_snapshot_with_unexpected_entries(self, client, entries_file: Path, tmp_path: Path):
        cache = tmp_path / "cache" / "trello-summary-2026-10-19-12.json"
        cache.parent.mkdir(parents=True)
        cache.write_text(json.dumps({"lists": [], "cards": [{"name": "Fix login"}]}))

        assert cmd_daily_report(entries_file=entries_file, now=NOW) == 1

    def test_missing_entries_file(self, client, tmp_path: Path):
        assert cmd_daily_report(entries_file=tmp_path / "nope.json", now=NOW) == 1
        client.get_me.assert_not_called()


class TestPostReportCommand:
    REPORT = (
        "\nAda: update 8h | tracked 1h 0m\n"
        "\n## tickets:\n- [A](https://trello.com/c/a) - Review | 0h 30m\n"
        "- [B](https://trello.com/c/b) - Doing | 0h 30m\n"
        "## screenshot:\n![shot](shot.png)\n"
        "\n---\nfooter\n"
    )

    @pytest.fixture
    def report_file(self, tmp_path: Path) -> Path:
        path = tmp_path / "daily.md"
        path.write_text(self.REPORT)
        (tmp_path / "shot.png").write_bytes(b"\x89PNG")
        return path

    @pytest.fixture
    def chat(self, patch_client, monkeypatch):
        monkeypatch.setattr("src.commands.reports.time.sleep", lambda _: None)
        chat = patch_client("src.commands.reports.MattermostClient")
        chat.upload_file.return_value = "file1"
        return chat

    def test_posts_summary_then_tickets(self, chat, report_file: Path, tmp_path: Path):
        assert cmd_post_report(report_file, channel="chan", yes=True) == 0

        reports.MattermostClient.assert_called_once()
        assert reports.MattermostClient.call_args.kwargs["channel_id"] == "chan"
        chat.upload_file.assert_called_once_with(tmp_path / "shot.png")
        calls = chat.post_message.call_args_list
        assert calls[0].args == ("Ada: update 8h | tracked 1h 0m",)
        assert calls[0].kwargs == {"file_ids": ["file1"]}
        assert [c.args[0] for c in calls[1:]] == [
            "- [A](https://trello.com/c/a) - Review | 0h 30m",
            "- [B](https://trello.com/c/b) - Doing | 0h 30m",
        ]

    def test_dry_run_sends_nothing(self, chat, report_file: Path):
        assert cmd_post_report(report_file, dry_run=True) == 0
        reports.MattermostClient.assert_not_called()

    def test_declined(self, chat, report_file: Path, monkeypatch):
        monkeypatch.setattr("src.commands.reports.confirm", lambda *a, **kw: False)
        assert cmd_post_report(report_file) == 0
        chat.post_message.assert_not_called()

    def test_invalid_config_file(self, chat, report_file: Path, isolated_config: Path):
        isolated_config.parent.mkdir(parents=True, exist_ok=True)
        isolated_config.write_text("[mattermost\n")

        assert cmd_post_report(report_file, yes=True) == 1
        reports.MattermostClient.assert_not_called()

    def test_missing_report(self, chat, tmp_path: Path):
        assert cmd_post_report(tmp_path / "missing.md", yes=True) == 1

    def test_empty_report(self, chat, tmp_path: Path):
        path = tmp_path / "empty.md"
        path.write_text("\n---\nfooter\n")
        assert cmd_post_report(path, yes=True) == 0
        chat.post_message.assert_not_called()
