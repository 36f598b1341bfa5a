#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
topaz_bot.py — Tak chat bot: async games, tinue reports and tinue puzzles

Commands:
  !tinue <playtak id | ptn.ninja link | PTN>   which plies of a game were tinue
  !puzzle [easy|medium|hard|insane|<id>]       start a tinue puzzle
  !move <ptn> / !m <ptn>                       answer the current puzzle
  !undo                                        take back your last puzzle move
  !hint                                        list the moves that keep the win going
  !topaz position|analyze|undo|redraw          in a `<p1>-🆚-<p2>` game channel

Async games in `<p1>-🆚-<p2>` channels are followed through the game keeper's
links and prompts (see sync.py).

Environment variables (common, see settings.py for all):
  TOPAZ_BOT_NAME    : the bot's chat name (default topazbot)
  TAKBOT_NAME       : the game keeper bot's name (default TakBot)
  PUZZLE_DATA_PATH  : puzzle dataset (default tinue_data.csv)
  TOPAZ_CONFIG      : YAML config with the same settings + message templates
"""

import argparse
import os
import sys
from concurrent.futures import Future
from datetime import datetime

import settings
from botlog import log, log_exc
from chatter import Chatter
from errors import TopazError
from links import encode_link
from puzzle import PuzzleBook, PuzzleSession, PuzzleVerifier, TinueResponse
from registry import Registry
from sync import GameSynchronizer
from tinue_report import TinueStatus, tinue_report
from transport import ChatChannel, ChatMessage, ConsoleTransport
from worker import EngineWorker, OrderedDispatcher

ACCEPTED, REJECTED = "✅", "❌"
MAX_HINTS = 12
PUZZLE_COMMANDS = ("!puzzle", "!move", "!m", "!undo", "!hint")

RESPONSE_TEMPLATES = {
    TinueResponse.EXACT: "puzzle_exact",
    TinueResponse.VALID: "puzzle_valid",
    TinueResponse.POOR: "puzzle_poor",
    TinueResponse.UNCLEAR: "puzzle_unclear",
    TinueResponse.ROAD: "puzzle_road",
    TinueResponse.NO_THREATS: "puzzle_no_threats",
}


def print_banner():
    stamp = datetime.now().strftime("%Y%m%d")
    print(f"TOPAZ BOT {stamp}")


class TopazBot:
    """Routes chat events to the tinue report, the puzzle verifier and the game synchronizer."""

    def __init__(self, transport, registry=None, worker=None, analysis=None, book=None, search=None):
        self.transport = transport
        self.registry = registry or Registry()
        # Game moves have their own pool, apart from reports and puzzles.
        self.worker = worker or EngineWorker("games", settings.ENGINE_THREADS)
        self.analysis = analysis or EngineWorker("analysis", settings.ENGINE_THREADS)
        self.lanes = OrderedDispatcher("lane")
        self.chatter = Chatter(transport, settings.CHAT_MIN_INTERVAL, settings.CHAT_MAX_LEN)
        self.sync = GameSynchronizer(self.chatter, self.registry, self.worker, search=search)
        if book is None:
            book = PuzzleBook.load(settings.PUZZLE_DATA_PATH)
        self.puzzles = PuzzleVerifier(book, self.registry, run=self.analysis.run)

    def start(self):
        self.chatter.load_messages(settings.CONFIG_PATH)
        self.sync.start()
        log(f"{settings.BOT_NAME} ready ({len(self.puzzles.book)} puzzles)", "🛰️")

    # ---------- dispatch ----------

    def lane_for(self, msg: ChatMessage) -> str:
        word = msg.content.strip().partition(" ")[0].lower()
        if self.sync.is_bot(msg):
            return f"chan:{msg.channel_id}"
        if word in PUZZLE_COMMANDS:
            return f"user:{msg.author_id}"
        if word == "!tinue":
            return f"tinue:{msg.author_id}"
        return f"chan:{msg.channel_id}"

    def dispatch(self, msg: ChatMessage) -> Future:
        """Queue one event behind the earlier events of its channel or puzzle user."""
        return self.lanes.submit(self.lane_for(msg), self.handle_message, msg)

    def on_channel(self, channel: ChatChannel):
        try:
            self.sync.on_channel(channel)
        except Exception as e:
            log_exc("on_channel", e, tag=channel.name)

    def on_channel_removed(self, channel_id: str):
        self.sync.on_channel_removed(channel_id)
        self.lanes.forget(f"chan:{channel_id}")

    def shutdown(self, wait: bool = False):
        self.lanes.shutdown(wait=wait)
        self.worker.shutdown(wait=wait)
        self.analysis.shutdown(wait=wait)

    def handle_message(self, msg: ChatMessage):
        text = msg.content.strip()
        word, _, arg = text.partition(" ")
        word, arg = word.lower(), arg.strip()
        try:
            if self.sync.is_bot(msg):
                self.sync.handle(msg)
            elif word == "!tinue":
                self.tinue(msg, arg)
            elif word == "!puzzle":
                self.puzzle_start(msg, arg)
            elif word in ("!move", "!m"):
                self.puzzle_move(msg, arg)
            elif word == "!undo":
                self.puzzle_undo(msg)
            elif word == "!hint":
                self.puzzle_hint(msg)
            else:
                self.sync.handle(msg)
        except TopazError as e:
            self.chatter.say(msg.channel_id, self.chatter.render("error", user=msg.author_name, error=e),
                             tag=msg.channel_id)
        except Exception as e:
            log_exc("handle_message", e, tag=msg.channel_id)

    # ---------- !tinue ----------

    def tinue(self, msg: ChatMessage, query: str):
        if not query:
            raise TopazError("Give me a playtak id, a ptn.ninja link or some PTN.")
        log(f"tinue report for {msg.author_name}: {query[:60]}", "🔎", tag=msg.channel_id)
        report = tinue_report(query, run=self.analysis.run)
        self.chatter.say(msg.channel_id, self.chatter.render(
            "tinue_report",
            user=msg.author_name,
            ms=report.elapsed_ms,
            tinue=report.labels(TinueStatus.TINUE),
            road=report.labels(TinueStatus.ROAD),
            timeout=report.labels(TinueStatus.TIMEOUT),
        ), tag=msg.channel_id)

    # ---------- puzzles ----------

    def _show(self, msg: ChatMessage, session: PuzzleSession, text: str):
        ptn_text = session.ptn_text()
        board = session.board()
        body = f"{text}\n{board.tps()}\n{encode_link(ptn_text)}"
        self.chatter.send_file(msg.channel_id, f"puzzle_{session.puzzle.puzzle_id}.ptn",
                               ptn_text.encode("utf-8"), body, tag=msg.channel_id)

    def puzzle_start(self, msg: ChatMessage, arg: str):
        session = self.puzzles.start(msg.author_id, arg)
        board = session.board()
        ptn_text = session.ptn_text()
        text = self.chatter.render(
            "puzzle_start",
            id=session.puzzle.puzzle_id,
            difficulty=session.puzzle.difficulty.label,
            side=board.side_to_move.name.capitalize(),
            tps=board.tps(),
            link=encode_link(ptn_text),
        )
        self.chatter.send_file(msg.channel_id, f"puzzle_{session.puzzle.puzzle_id}.ptn",
                               ptn_text.encode("utf-8"), text, tag=msg.channel_id)

    def puzzle_move(self, msg: ChatMessage, arg: str):
        session, verdict = self.puzzles.submit(msg.author_id, arg)
        if session is None:
            self.chatter.say(msg.channel_id, self.chatter.render("puzzle_missing"), tag=msg.channel_id)
            return
        if verdict is None:
            self.chatter.react(msg.channel_id, msg.id, REJECTED, tag=msg.channel_id)
            self.chatter.say(msg.channel_id, self.chatter.render("puzzle_rejected", move=arg or "That"),
                             tag=msg.channel_id)
            return
        if verdict.response is TinueResponse.SUPERSEDED:
            self.chatter.say(msg.channel_id, self.chatter.render("puzzle_superseded", move=arg),
                             tag=msg.channel_id)
            return
        self.chatter.react(msg.channel_id, msg.id, ACCEPTED, tag=msg.channel_id)
        text = self.chatter.render(RESPONSE_TEMPLATES[verdict.response], id=session.puzzle.puzzle_id)
        if verdict.reply:
            text += " " + self.chatter.render("puzzle_reply", reply=verdict.reply)
        if verdict.response.is_terminal:
            self.chatter.say(msg.channel_id, text, tag=msg.channel_id)
        else:
            self._show(msg, session, text)

    def puzzle_undo(self, msg: ChatMessage):
        session = self.puzzles.session(msg.author_id)
        if session is None:
            self.chatter.say(msg.channel_id, self.chatter.render("puzzle_missing"), tag=msg.channel_id)
            return
        if not session.undo():
            self.chatter.say(msg.channel_id, "Nothing to take back.", tag=msg.channel_id)
            return
        self.chatter.say(msg.channel_id, self.chatter.render("puzzle_undo", tps=session.board().tps()),
                         tag=msg.channel_id)

    def puzzle_hint(self, msg: ChatMessage):
        session = self.puzzles.session(msg.author_id)
        if session is None:
            self.chatter.say(msg.channel_id, self.chatter.render("puzzle_missing"), tag=msg.channel_id)
            return
        moves = self.analysis.run(session.legal_moves)
        shown = ", ".join(moves[:MAX_HINTS]) + (" …" if len(moves) > MAX_HINTS else "")
        self.chatter.say(msg.channel_id, self.chatter.render("puzzle_hint", moves=shown or "none"),
                         tag=msg.channel_id)


# =====================
# MAIN
# =====================

def main(argv=None):
    ap = argparse.ArgumentParser(description="Run the Topaz Tak bot on a console transport.")
    ap.add_argument("--config", default=os.getenv("TOPAZ_CONFIG", "config.yml"))
    ap.add_argument("--channel", default="console",
                    help="console channel name, e.g. 'alice-🆚-topazbot' to follow an async game")
    args = ap.parse_args(argv)

    settings.apply_config_to_env(settings.load_config(args.config))
    settings.setenv("TOPAZ_CONFIG", args.config)
    settings.refresh()

    print_banner()
    transport = ConsoleTransport(user_id=settings.BOT_NAME, channel=ChatChannel("console", args.channel))
    bot = TopazBot(transport)
    bot.start()
    try:
        for line in sys.stdin:
            if line.strip():
                bot.handle_message(transport.read_line(line))
    except KeyboardInterrupt:
        log("Shutting down by user request.", "👋")
    finally:
        bot.shutdown()


if __name__ == "__main__":
    main()
