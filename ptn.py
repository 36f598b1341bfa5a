# ptn.py — PTN (Portable Tak Notation) text -> GameRecord, and back
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from errors import EngineRejection, MalformedInput
from tak import Board, Color, Move

HEADER_RE = re.compile(r'\[\s*(\w+)\s+"([^"]*)"\s*\]')
MOVE_NUMBER_RE = re.compile(r"^\d+\.+$")
NUMBERED_MOVE_RE = re.compile(r"^\d+\.+(\S+)$")
TOKEN_RE = re.compile(r"^(?:[SCsc]|[1-8])?[a-hA-H][1-8](?:[+\-<>][1-8]*)?\*?['\"!?]*$")
SKIP_TOKENS = {"R-0", "0-R", "F-0", "0-F", "1/2-1/2", "1-0", "0-1", "0-0", "--"}
ANNOTATIONS = "'\"!?"


@dataclass(frozen=True)
class Ply:
    ptn: str
    color: Color   # the side that made the move
    move: Move


@dataclass
class GameRecord:
    size: int
    komi: int                      # half-points
    tps: Optional[str]             # None = empty starting board
    plies: List[Ply] = field(default_factory=list)
    meta: Dict[str, str] = field(default_factory=dict)

    def start_board(self) -> Board:
        if self.tps:
            return Board.from_tps(self.tps, self.komi)
        return Board(self.size, self.komi)

    def replay(self, upto: Optional[int] = None) -> Board:
        """Board after the first `upto` plies (all of them by default)."""
        board = self.start_board()
        for ply in self.plies[:upto]:
            board.do_move(ply.move)
        return board

    def ptn_text(self) -> str:
        return format_ptn(self.start_board(), [p.move for p in self.plies], self.meta)


def normalize_token(token: str) -> str:
    token = token.rstrip(ANNOTATIONS)
    if not token:
        return token
    head = token[0]
    if head in "Ss":
        return "S" + token[1:].lower()
    if head in "Cc":
        if len(token) > 1 and token[1].isalpha():
            return "C" + token[1:].lower()
        return token.lower()
    return token.lower()


def parse_komi(value: str) -> int:
    """Komi field ("1.5", "2", ...) -> half-point units."""
    try:
        komi = float(value)
    except (TypeError, ValueError):
        raise MalformedInput(f"Unparseable komi {value!r}")
    if not math.isfinite(komi) or komi < 0 or komi * 2 != int(komi * 2):
        raise MalformedInput(f"Unsupported komi {value!r}")
    return int(komi * 2)


def parse_move(text: str, board: Board) -> Move:
    """
    One chat token -> legal Move on `board`.
    MalformedInput if it is not move-shaped, EngineRejection if it is illegal here.
    """
    token = text.strip()
    if not TOKEN_RE.match(token):
        raise MalformedInput(f"{token!r} is not a move")
    return board.parse_move(normalize_token(token))


def _start_board(meta: Dict[str, str], komi: int) -> Board:
    if meta.get("TPS"):
        try:
            return Board.from_tps(meta["TPS"], komi)
        except (ValueError, EngineRejection) as e:
            raise MalformedInput(f"Bad TPS {meta['TPS']!r}: {e}") from e
    raw = meta.get("Size")
    if not raw:
        raise MalformedInput("PTN has neither a Size nor a TPS header")
    try:
        size = int(raw)
    except ValueError:
        raise MalformedInput(f"Unparseable size {raw!r}")
    try:
        return Board(size, komi)
    except EngineRejection as e:
        raise MalformedInput(str(e)) from e


def parse_game(text: str) -> GameRecord:
    """
    Parse PTN into a GameRecord. Every token must be a legal move in sequence;
    anything unparseable fails the whole parse with MalformedInput.
    """
    meta: Dict[str, str] = {}
    for key, value in HEADER_RE.findall(text):
        meta[key] = value
    komi = parse_komi(meta["Komi"]) if meta.get("Komi", "").strip() else 0
    board = _start_board(meta, komi)
    start_tps = board.tps() if meta.get("TPS") else None

    body = HEADER_RE.sub(" ", text).split("{", 1)[0]
    plies: List[Ply] = []
    for raw in body.split():
        if raw in SKIP_TOKENS or MOVE_NUMBER_RE.match(raw):
            continue
        m = NUMBERED_MOVE_RE.match(raw)
        token = m.group(1) if m else raw
        if token in SKIP_TOKENS:
            continue
        if not TOKEN_RE.match(token):
            raise MalformedInput(f"Unrecognized token {raw!r}")
        color = board.side_to_move
        try:
            move = board.parse_move(normalize_token(token))
        except EngineRejection as e:
            raise MalformedInput(f"Illegal move {raw!r} at ply {len(plies) + 1}: {e}") from e
        board.do_move(move)
        plies.append(Ply(move.ptn(board.size), color, move))

    return GameRecord(board.size, komi, start_tps, plies, meta)


def format_ptn(start: Board, moves: Iterable[Move], meta: Optional[Dict[str, str]] = None) -> str:
    """PTN text for `moves` played from `start` (headers first, one move pair per line)."""
    headers = dict(meta or {})
    headers["Size"] = str(start.size)
    if start.ply > 0 or any(start.stacks):
        headers["TPS"] = start.tps()
    if start.komi:
        headers["Komi"] = f"{start.komi / 2:g}"
    lines = [f'[{k} "{v}"]' for k, v in headers.items()]

    number, row = start.ply // 2 + 1, []
    if start.side_to_move == Color.BLACK:
        row = [f"{number}.", "--"]
    for move in moves:
        if not row:
            row = [f"{number}."]
        row.append(move.ptn(start.size))
        if len(row) == 3:
            lines.append(" ".join(row))
            row, number = [], number + 1
    if row:
        lines.append(" ".join(row))
    return "\n".join(lines) + "\n"
