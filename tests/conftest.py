"""Shared pytest fixtures: an in-memory chat transport and wired-up bot components."""

from __future__ import annotations

import itertools
from collections.abc import Iterator
from typing import Dict, List, Optional

import pytest

import settings
from chatter import Chatter
from links import encode_link
from registry import Registry
from tak import Board, SearchOutcome
from transport import ChatChannel, ChatMessage
from worker import EngineWorker

BOT_ID = "bot-id"
BOT_NAME = "topazbot"
TAKBOT = "TakBot"


class FakeTransport:
    """Records everything the bot sends; transcripts are seeded oldest first."""

    def __init__(self) -> None:
        self.user_id = BOT_ID
        self.channels: List[ChatChannel] = []
        self.history: Dict[str, List[ChatMessage]] = {}
        self.sent: List[tuple] = []
        self.files: List[tuple] = []
        self.reactions: List[tuple] = []

    def send_message(self, channel_id: str, text: str) -> Optional[str]:
        self.sent.append((channel_id, text))
        return str(len(self.sent))

    def send_file(self, channel_id: str, filename: str, data: bytes, text: str = "") -> Optional[str]:
        self.files.append((channel_id, filename, data, text))
        return str(len(self.files))

    def get_messages(self, channel_id: str, limit: int) -> List[ChatMessage]:
        return list(reversed(self.history.get(channel_id, [])[-limit:]))

    def react(self, channel_id: str, message_id: str, emoji: str) -> None:
        self.reactions.append((channel_id, message_id, emoji))

    def list_channels(self) -> List[ChatChannel]:
        return list(self.channels)

    def texts(self, channel_id: str) -> List[str]:
        return [t for c, t in self.sent if c == channel_id]


_ids = itertools.count(1)


def chat(author: str, text: str, channel: str = "chan", mentions=(), msg_id: Optional[str] = None) -> ChatMessage:
    author_id = BOT_ID if author == BOT_NAME else f"{author.lower()}-id"
    return ChatMessage(msg_id or f"m{next(_ids)}", channel, author_id, author, text, tuple(mentions))


def link_message(ptn_text: str, channel: str = "chan") -> ChatMessage:
    return chat(TAKBOT, f"<{encode_link(ptn_text)}>", channel)


def first_legal(board: Board, time_budget: float) -> SearchOutcome:
    return SearchOutcome(board.legal_moves()[0], 0, 1, 1)


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    """Re-read settings from the real environment after every test."""
    yield
    settings.refresh()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def chatter(transport: FakeTransport) -> Chatter:
    return Chatter(transport, min_interval=0.0)


@pytest.fixture
def registry() -> Registry:
    return Registry()


@pytest.fixture
def worker() -> Iterator[EngineWorker]:
    w = EngineWorker("test-engine")
    yield w
    w.shutdown(wait=True)
