# transport.py — the chat transport the bot talks through, and the message model it hands us
from __future__ import annotations

import itertools
import sys
import threading
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple


@dataclass(frozen=True)
class ChatMessage:
    id: str
    channel_id: str
    author_id: str
    author_name: str
    content: str
    mentions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ChatChannel:
    id: str
    name: str


class Transport(Protocol):
    """What the bot needs from a chat client. get_messages is most recent first."""

    user_id: str

    def send_message(self, channel_id: str, text: str) -> Optional[str]: ...

    def send_file(self, channel_id: str, filename: str, data: bytes, text: str = "") -> Optional[str]: ...

    def get_messages(self, channel_id: str, limit: int) -> List[ChatMessage]: ...

    def react(self, channel_id: str, message_id: str, emoji: str) -> None: ...

    def list_channels(self) -> List[ChatChannel]: ...


@dataclass
class ConsoleTransport:
    """
    Single-channel transport over stdin/stdout, for running the bot locally.
    Every input line becomes a message from `user_name`.
    """
    user_id: str = "topazbot"
    user_name: str = "you"
    channel: ChatChannel = ChatChannel("console", "console")
    history: List[ChatMessage] = field(default_factory=list)

    def __post_init__(self):
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _record(self, author_id: str, author_name: str, text: str) -> ChatMessage:
        with self._lock:
            msg = ChatMessage(str(next(self._ids)), self.channel.id, author_id, author_name, text)
            self.history.append(msg)
        return msg

    def send_message(self, channel_id: str, text: str) -> Optional[str]:
        print(f"<{self.user_id}> {text}")
        sys.stdout.flush()
        return self._record(self.user_id, self.user_id, text).id

    def send_file(self, channel_id: str, filename: str, data: bytes, text: str = "") -> Optional[str]:
        print(f"<{self.user_id}> {text} [{filename}]\n{data.decode('utf-8', 'replace')}")
        sys.stdout.flush()
        return self._record(self.user_id, self.user_id, text).id

    def get_messages(self, channel_id: str, limit: int) -> List[ChatMessage]:
        with self._lock:
            return list(reversed(self.history[-limit:]))

    def react(self, channel_id: str, message_id: str, emoji: str) -> None:
        print(f"  ({emoji} on #{message_id})")

    def list_channels(self) -> List[ChatChannel]:
        return [self.channel]

    def read_line(self, line: str) -> ChatMessage:
        """'text' comes from user_name; 'Name: text' is posted as Name."""
        line = line.rstrip("\n")
        author, sep, rest = line.partition(": ")
        if sep and author and " " not in author:
            return self._record(author.lower(), author, rest)
        return self._record("console-user", self.user_name, line)


def channel_players(name: str, separator: str = "-🆚-") -> Optional[Tuple[str, str]]:
    """'alice-🆚-bob' -> ('alice', 'bob'); None for any other channel name."""
    parts = (name or "").split(separator)
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


def names_match(a: str, b: str) -> bool:
    return (a or "").strip().lower() == (b or "").strip().lower()
