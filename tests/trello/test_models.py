"""Tests for board data models."""

from datetime import UTC, datetime

from src.trello.models import (
    Action,
    Attachment,
    Card,
    Checklist,
    Member,
    id_to_datetime,
    parse_trello_datetime,
    to_trello_datetime,
)


class TestDatetimes:
    def test_parse_z_suffix(self):
        assert parse_trello_datetime("2024-08-05T12:00:00.000Z") == datetime(
            2024, 8, 5, 12, 0, tzinfo=UTC
        )

    def test_parse_invalid_or_missing(self):
        assert parse_trello_datetime(None) is None
        assert parse_trello_datetime("") is None
        assert parse_trello_datetime("yesterday") is None

    def test_format_utc_milliseconds(self):
        value = datetime(2024, 8, 5, 12, 0, 1, 500000, tzinfo=UTC)
        assert to_trello_datetime(value) == "2024-08-05T12:00:01.500Z"

    def test_id_to_datetime(self):
        # 0x66b0b8c0 == 1722857664
        assert id_to_datetime("66b0b8c0aaaaaaaaaaaaaaaa") == datetime.fromtimestamp(1722857664, tz=UTC)
        assert id_to_datetime("zz") is None
        assert id_to_datetime("zzzzzzzzaaaa") is None
        assert id_to_datetime(None) is None


class TestCard:
    def test_from_api(self):
        card = Card.from_api(
            {
                "id": "c1",
                "name": "Fix login",
                "shortUrl": "https://trello.com/c/abc",
                "url": "https://trello.com/c/abc/12-fix-login",
                "due": "2024-08-05T12:00:00.000Z",
                "dueComplete": True,
                "idList": "l1",
                "idMembers": ["m1"],
                "labels": [{"name": "bug"}, "ignored"],
                "idShort": 12,
                "members": [{"id": "m1", "fullName": "Ada Lovelace"}],
            }
        )
        assert card.link == "https://trello.com/c/abc"
        assert card.due_complete is True
        assert card.labels == ["bug"]
        assert card.id_short == 12
        assert card.members[0].display_name == "Ada Lovelace"

    def test_sparse_projection(self):
        card = Card.from_api({"id": "c1"})
        assert card.name == ""
        assert card.due is None
        assert card.member_ids == []
        assert card.link == ""


class TestOtherModels:
    def test_member_display_name_fallbacks(self):
        assert Member(id="m1", username="ada").display_name == "ada"
        assert Member(id="m1").display_name == "m1"

    def test_attachment_image_detection(self):
        assert Attachment(id="a", url="https://x/y/Shot.PNG").is_image
        assert Attachment(id="a", url="https://x/y/file", mime_type="image/jpeg").is_image
        assert not Attachment(id="a", url="https://x/y/notes.pdf").is_image

    def test_attachment_preview_fallback(self):
        attachment = Attachment.from_api(
            {"id": "a", "previews": [{"url": "https://x/preview.jpg"}]}
        )
        assert attachment.source_url == "https://x/preview.jpg"
        assert attachment.extension == ".jpg"

    def test_checklist_progress(self):
        checklist = Checklist.from_api(
            {
                "id": "cl",
                "name": "Dev",
                "checkItems": [
                    {"name": "a", "state": "complete"},
                    {"name": "b", "state": "incomplete"},
                ],
            }
        )
        assert checklist.completed_count == 1
        assert [i.complete for i in checklist.items] == [True, False]

    def test_action_fields(self):
        action = Action.from_api(
            {
                "id": "a1",
                "type": "createCard",
                "date": "2024-08-05T12:00:00.000Z",
                "idMemberCreator": "m1",
                "data": {"card": {"id": "c1"}},
            }
        )
        assert action.card_id == "c1"
        assert action.member_creator_id == "m1"
        assert action.author == "Unknown"
        assert action.text == ""
