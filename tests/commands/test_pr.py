"""Tests for the pull request workflows."""

from datetime import UTC, datetime

import httpx
import pytest

from src.commands.pr import (
    build_pr_comment,
    cmd_pr_to_card,
    cmd_sync_rejected,
    collect_linked_prs,
    rejection_message,
)
from src.github.client import PullRequest
from src.trello.models import Action, Card, TrelloList
from src.utils.github import PullRequestRef

REF = PullRequestRef("acme", "web", 42)

PR_BODY = """\
Card: https://trello.com/c/AbC123/12-fix-login

## How to test
1. Open http://localhost:3000/login
![after](https://user-images.example.com/after.png)
"""


def make_pr(body: str = PR_BODY, author: str = "ada", labels: list[str] | None = None) -> PullRequest:
    return PullRequest(
        number=42,
        title="Fix login",
        body=body,
        html_url="https://github.com/acme/web/pull/42",
        author=author,
        labels=labels or [],
    )


def status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://api.example.com/x")
    return httpx.HTTPStatusError(
        f"HTTP {status}", request=request, response=httpx.Response(status, request=request)
    )


class TestBuildPrComment:
    def test_rewrites_localhost_and_lists_screenshots(self):
        comment = build_pr_comment(make_pr(), staging_base_url="https://staging.example.com")
        assert "How to test:\n1. Open https://staging.example.com/login\n" in comment
        assert "Screenshots:\n- https://user-images.example.com/after.png\n" in comment
        assert "![after]" not in comment.split("Screenshots:")[0]

    def test_inline_images(self):
        comment = build_pr_comment(make_pr(), inline_images=True)
        assert "![after](https://user-images.example.com/after.png)" in comment

    def test_nothing_to_post(self):
        assert build_pr_comment(make_pr(body="Just a refactor")) is None


class TestPrToCard:
    @pytest.fixture
    def clients(self, trello_env, patch_client):
        github = patch_client("src.commands.pr.GitHubClient")
        trello = patch_client("src.commands.pr.TrelloClient")
        github.get_pull_request.return_value = make_pr()
        trello.get_list_by_name.return_value = TrelloList(id="review", name="Review")
        return github, trello

    def test_posts_comment_without_moving(self, clients):
        github, trello = clients
        assert cmd_pr_to_card(REF, yes=True) == 0

        github.get_pull_request.assert_called_once_with("acme", "web", 42)
        card_id, comment = trello.add_comment.call_args.args
        assert card_id == "AbC123"
        assert comment.startswith("Converted from GitHub PR (autogenerated)")
        trello.move_card_to_list.assert_not_called()

    def test_review_moves_and_completes(self, clients):
        _, trello = clients
        assert cmd_pr_to_card(REF, yes=True, review=True) == 0
        trello.move_card_to_list.assert_called_once_with("AbC123", "review")
        trello.set_card_due_complete.assert_called_once_with("AbC123", True)

    def test_interactive_confirmations(self, clients, monkeypatch):
        _, trello = clients
        answers = iter([True, True])
        monkeypatch.setattr("src.commands.pr.confirm", lambda *a, **k: next(answers))
        assert cmd_pr_to_card(REF) == 0
        trello.add_comment.assert_called_once()
        trello.move_card_to_list.assert_called_once()

    def test_declined_preview_posts_nothing(self, clients, monkeypatch):
        _, trello = clients
        monkeypatch.setattr("src.commands.pr.confirm", lambda *a, **k: False)
        assert cmd_pr_to_card(REF) == 0
        trello.add_comment.assert_not_called()

    def test_without_testing_notes(self, clients):
        _, trello = clients
        assert cmd_pr_to_card(REF, yes=True, include_testing=False) == 0
        comment = trello.add_comment.call_args.args[1]
        assert "How to test" not in comment
        assert "Screenshots:" in comment

    def test_pr_not_found(self, clients, capsys):
        github, trello = clients
        github.get_pull_request.side_effect = status_error(404)
        assert cmd_pr_to_card(REF, yes=True) == 1
        trello.add_comment.assert_not_called()
        assert "PR #42 not found in acme/web" in capsys.readouterr().out

    def test_no_card_url(self, clients):
        github, trello = clients
        github.get_pull_request.return_value = make_pr(body="## How to test\nclick it")
        assert cmd_pr_to_card(REF, yes=True) == 1
        trello.add_comment.assert_not_called()

    def test_no_testing_or_screenshots(self, clients):
        github, trello = clients
        github.get_pull_request.return_value = make_pr(body="https://trello.com/c/AbC123")
        assert cmd_pr_to_card(REF, yes=True) == 0
        trello.add_comment.assert_not_called()

    def test_card_not_found(self, clients, capsys):
        _, trello = clients
        trello.add_comment.side_effect = status_error(404)
        assert cmd_pr_to_card(REF, yes=True) == 1
        assert "Card not found" in capsys.readouterr().out

    def test_move_failure_exits_one(self, clients):
        _, trello = clients
        trello.move_card_to_list.side_effect = status_error(500)
        assert cmd_pr_to_card(REF, yes=True, review=True) == 1
        trello.add_comment.assert_called_once()


class TestSyncRejected:
    CARD = Card(
        id="c1",
        name="Fix login",
        short_url="https://trello.com/c/AbC123",
        member_ids=["me"],
        date_last_activity=datetime(2024, 8, 5, 12, 0, tzinfo=UTC),
    )

    @pytest.fixture
    def clients(self, trello_env, patch_client, me):
        github = patch_client("src.commands.pr.GitHubClient")
        trello = patch_client("src.commands.pr.TrelloClient")
        trello.get_me.return_value = me
        trello.get_board_lists.return_value = [
            TrelloList(id="doing", name="Doing"),
            TrelloList(id="rej", name="Rejected by QA"),
        ]
        trello.get_cards_in_lists.return_value = [
            self.CARD,
            Card(id="c2", name="Not mine", member_ids=["bob"]),
        ]
        trello.get_card_comments.return_value = [
            Action(id="a1", type="commentCard", data={"text": "PR: https://github.com/acme/web/pull/42"})
        ]
        github.get_authenticated_user.return_value = "ada"
        github.get_pull_request.return_value = make_pr()
        github.list_issue_comments.return_value = []
        return github, trello

    def test_rejection_message(self):
        assert rejection_message([self.CARD]) == (
            "Marked as rejected per Trello card(s): Fix login (https://trello.com/c/AbC123) "
            "[last activity 2024-08-05T12:00:00.000Z]"
        )

    def test_collect_linked_prs(self, clients):
        _, trello = clients
        linked = collect_linked_prs(trello, [self.CARD])
        assert [item.ref for item in linked] == [REF]
        assert linked[0].cards == [self.CARD]

    def test_labels_and_comments(self, clients):
        github, trello = clients
        assert cmd_sync_rejected() == 0

        assert list(trello.get_cards_in_lists.call_args.args[0]) == ["rej"]
        trello.get_card_comments.assert_called_once_with("c1")
        github.add_labels.assert_called_once_with("acme", "web", 42, ["rejected"])
        message = github.create_issue_comment.call_args.args[3]
        assert message == rejection_message([self.CARD])

    def test_idempotent(self, clients):
        github, _ = clients
        github.get_pull_request.return_value = make_pr(labels=["rejected"])
        github.list_issue_comments.return_value = [{"body": rejection_message([self.CARD])}]
        assert cmd_sync_rejected() == 0
        github.add_labels.assert_not_called()
        github.create_issue_comment.assert_not_called()

    def test_other_authors_ignored(self, clients):
        github, _ = clients
        github.get_pull_request.return_value = make_pr(author="someone-else")
        assert cmd_sync_rejected() == 0
        github.add_labels.assert_not_called()

    def test_dry_run(self, clients):
        github, _ = clients
        assert cmd_sync_rejected(dry_run=True) == 0
        github.add_labels.assert_not_called()
        github.create_issue_comment.assert_not_called()

    def test_failure_exits_one(self, clients):
        github, _ = clients
        github.add_labels.side_effect = status_error(403)
        assert cmd_sync_rejected() == 1

    def test_no_rejected_cards(self, clients):
        github, trello = clients
        trello.get_cards_in_lists.return_value = []
        assert cmd_sync_rejected() == 0
        github.get_authenticated_user.assert_not_called()
