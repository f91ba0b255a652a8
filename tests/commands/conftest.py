"""Fixtures for command tests: patched API clients."""

from unittest.mock import MagicMock

import pytest

from src.trello.models import Member


@pytest.fixture
def patch_client(monkeypatch):
    """Replace a client class in a command module.

    Returns a function taking the dotted target (e.g.
    ``"src.commands.cards.TrelloClient"``) and returning the mock instance
    the command will talk to, whether or not it is used as a context manager.
    """

    def _patch(target: str) -> MagicMock:
        client = MagicMock()
        client.__enter__.return_value = client
        monkeypatch.setattr(target, MagicMock(return_value=client))
        return client

    return _patch


@pytest.fixture
def me() -> Member:
    return Member(id="me", username="ada", full_name="Ada Lovelace")
