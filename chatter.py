# chatter.py — tiny, safe chat helper for topaz_bot.py
from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

import yaml

from botlog import log


@dataclass
class Messages:
    tinue_report: str = "Sure thing, {user}! Completed in {ms} ms.\nTinue: {tinue}\nRoad: {road}\nTimeout: {timeout}"
    puzzle_start: str = "Puzzle #{id} ({difficulty}): {side} to play and win.\n{tps}\n{link}"
    puzzle_exact: str = "Correct!"
    puzzle_valid: str = "That wins too!"
    puzzle_poor: str = "That doesn't force a win."
    puzzle_unclear: str = "I couldn't tell whether that wins."
    puzzle_reply: str = "I play {reply}."
    puzzle_road: str = "Road! Puzzle #{id} solved. 🎉"
    puzzle_no_threats: str = "No road threats left, puzzle #{id} is over. Try !puzzle for another."
    puzzle_rejected: str = "{move} isn't legal here, try again."
    puzzle_superseded: str = "Your puzzle changed while I was checking {move}, send it again if you still want it."
    puzzle_hint: str = "Try one of: {moves}"
    puzzle_undo: str = "Took back your last move.\n{tps}"
    puzzle_missing: str = "You have no puzzle running, start one with !puzzle."
    position: str = "{tps}\n{link}"
    analysis: str = "Best move {move} (score {score}, depth {depth})"
    error: str = "Sorry {user}: {error}"

    @staticmethod
    def _clean(val: Optional[str]) -> Optional[str]:
        if not isinstance(val, str):
            return None
        v = val.strip()
        return v if v else None

    @classmethod
    def from_yaml(cls, path: str) -> "Messages":
        """
        Load from the `messages:` section of a YAML file. For each template:
        - use the YAML value if it's a non-empty string
        - else keep the default in this class
        """
        base = cls()
        if not os.path.exists(path):
            return base
        try:
            with open(path, "r", encoding="utf-8") as f:
                cfg = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            log(f"could not read messages from {path}: {e}", "💬")
            return base
        msg = cfg.get("messages") or {}
        for f in fields(cls):
            val = cls._clean(msg.get(f.name))
            if val:
                setattr(base, f.name, val)
        return base


def _render(tmpl: str, context: Dict[str, Any]) -> str:
    if not tmpl:
        return ""
    try:
        return tmpl.format(**context)
    except (KeyError, IndexError, ValueError) as e:
        log(f"bad message template {tmpl!r}: {e}", "💬")
        return tmpl


class Chatter:
    """
    - Templates from config.yml (fallback to defaults only if absent/blank)
    - Lightweight rate limiting (min_interval seconds, shared by all channels)
    - Safe: swallows transport errors so it never crashes the bot
    """
    def __init__(self, transport, min_interval: float = 1.0, max_len: int = 2000):
        self.transport = transport
        self.min_interval = float(min_interval)
        self.max_len = int(max_len)
        self._next_ok = 0.0
        self._rate_lock = threading.Lock()
        self.messages = Messages()

    def load_messages(self, path: str = "config.yml"):
        self.messages = Messages.from_yaml(path)

    def render(self, name: str, **context) -> str:
        return _render(getattr(self.messages, name), context)

    def _wait_rate(self):
        with self._rate_lock:
            now = time.time()
            if now < self._next_ok:
                time.sleep(self._next_ok - now)
            self._next_ok = time.time() + self.min_interval

    def _clip(self, text: str) -> str:
        text = (text or "").strip()
        if len(text) > self.max_len:
            text = text[: self.max_len - 1] + "…"
        return text

    def say(self, channel_id: str, text: str, tag: Optional[str] = None) -> Optional[str]:
        text = self._clip(text)
        if not text:
            return None
        try:
            self._wait_rate()
            return self.transport.send_message(channel_id, text)
        except Exception as e:
            log(f"chat post failed: {e}", "💬", tag=tag)
            return None

    def send_file(self, channel_id: str, filename: str, data: bytes, text: str = "",
                  tag: Optional[str] = None) -> Optional[str]:
        try:
            self._wait_rate()
            return self.transport.send_file(channel_id, filename, data, self._clip(text))
        except Exception as e:
            log(f"file post failed ({filename}): {e}", "💬", tag=tag)
            return None

    def react(self, channel_id: str, message_id: str, emoji: str, tag: Optional[str] = None):
        try:
            self.transport.react(channel_id, message_id, emoji)
        except Exception as e:
            log(f"reaction failed ({emoji}): {e}", "💬", tag=tag)
