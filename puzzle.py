# puzzle.py — tinue puzzles: dataset, difficulty bands and per-user verification sessions
from __future__ import annotations

import math
import os
import random
import threading
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Callable, Dict, List, Optional, Tuple

import settings
from botlog import log
from errors import TopazError
from ptn import format_ptn, parse_move
from tak import Board, Move, TinueOutcome, TinueSearch

# =====================
# DATASET
# =====================


class Difficulty(IntEnum):
    EASY = 0
    MEDIUM = 1
    HARD = 2
    INSANE = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @classmethod
    def from_score(cls, score: float) -> "Difficulty":
        if score < 8:
            return cls.EASY
        if score < 12:
            return cls.MEDIUM
        if score < 16:
            return cls.HARD
        return cls.INSANE

    @classmethod
    def parse(cls, word: str) -> Optional["Difficulty"]:
        return cls.__members__.get((word or "").strip().upper())


@dataclass(frozen=True)
class Puzzle:
    puzzle_id: int
    game_id: int
    tps: str
    pv: Tuple[str, ...]
    nodes: float
    root_nodes: Optional[float] = None

    @property
    def score(self) -> float:
        return math.log2(max(self.nodes, 1.0))

    @property
    def difficulty(self) -> Difficulty:
        return Difficulty.from_score(self.score)


class PuzzleBook:
    """Puzzles loaded once from a `;`-separated file, indexed by id and by band."""

    def __init__(self, puzzles: List[Puzzle]):
        self.puzzles = puzzles
        self.bands: Dict[Difficulty, List[int]] = {d: [] for d in Difficulty}
        for p in puzzles:
            self.bands[p.difficulty].append(p.puzzle_id)

    @classmethod
    def parse(cls, text: str) -> "PuzzleBook":
        puzzles = []
        for n, line in enumerate(text.splitlines()[1:], start=2):
            if not line.strip():
                continue
            parts = line.split(";")
            try:
                puzzles.append(Puzzle(
                    puzzle_id=len(puzzles),
                    game_id=int(parts[0]),
                    tps=parts[1].strip(),
                    pv=tuple(parts[2].split()),
                    nodes=float(parts[3]),
                    root_nodes=float(parts[4]) if len(parts) > 4 and parts[4].strip() else None,
                ))
            except (IndexError, ValueError) as e:
                log(f"skipping puzzle line {n}: {e}", "🧩")
        return cls(puzzles)

    @classmethod
    def load(cls, path: str) -> "PuzzleBook":
        if not os.path.exists(path):
            log(f"no puzzle file at {path}", "🧩")
            return cls([])
        with open(path, "r", encoding="utf-8") as f:
            book = cls.parse(f.read())
        log(f"loaded {len(book)} puzzles from {path}", "🧩")
        return book

    def __len__(self) -> int:
        return len(self.puzzles)

    def get(self, puzzle_id: int) -> Optional[Puzzle]:
        if 0 <= puzzle_id < len(self.puzzles):
            return self.puzzles[puzzle_id]
        return None

    def random(self, band: Difficulty, rng=random) -> Puzzle:
        if not self.puzzles:
            raise TopazError("No puzzles are loaded.")
        ids = self.bands[band] or [0]
        return self.puzzles[rng.choice(ids)]


# =====================
# SESSIONS
# =====================


class TinueResponse(Enum):
    EXACT = "exact"
    VALID = "valid"
    UNCLEAR = "unclear"
    POOR = "poor"
    ROAD = "road"
    NO_THREATS = "no-threats"
    SUPERSEDED = "superseded"      # session moved on while the search ran

    @property
    def is_terminal(self) -> bool:
        return self in (TinueResponse.ROAD, TinueResponse.NO_THREATS)


@dataclass(frozen=True)
class Verdict:
    response: TinueResponse
    reply: Optional[str] = None   # engine reply already played, PTN


Runner = Callable[..., object]


def _direct(fn, *args, **kwargs):
    return fn(*args, **kwargs)


@dataclass
class PuzzleSession:
    """
    One user's attempt at one puzzle. The user plays the attacker; the
    engine answers every accepted move with the defender's reply.
    """
    user_id: str
    puzzle: Puzzle
    turns: List[Tuple[str, Optional[str]]] = field(default_factory=list)
    active_pv: List[str] = field(default_factory=list)
    is_tinue: bool = True
    node_limit: int = 0
    version: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __post_init__(self):
        if not self.turns and not self.active_pv:
            self.active_pv = list(self.puzzle.pv)
        if not self.node_limit:
            self.node_limit = settings.PUZZLE_NODE_LIMIT

    # ---------- positions ----------

    def start_board(self) -> Board:
        return Board.from_tps(self.puzzle.tps)

    @property
    def attacker(self):
        return self.start_board().side_to_move

    def history(self) -> List[str]:
        out = []
        for user_move, reply in self.turns:
            out.append(user_move)
            if reply:
                out.append(reply)
        return out

    def board(self) -> Board:
        board = self.start_board()
        for text in self.history():
            board.do_move(board.parse_move(text))
        return board

    def ptn_text(self) -> str:
        board, moves = self.start_board(), []
        for text in self.history():
            move = board.parse_move(text)
            moves.append(move)
            board.do_move(move)
        return format_ptn(self.start_board(), moves, {"Event": f"Puzzle {self.puzzle.puzzle_id}"})

    # ---------- verification ----------

    def submit(self, move_text: str, run: Runner = _direct) -> Optional[Verdict]:
        """
        Check one user move. None = not a legal move here (nothing changes);
        SUPERSEDED = an undo or another move landed during the search.
        `run` executes the fallback tinue search (e.g. on the engine worker).
        """
        with self.lock:
            board = self.board()
            try:
                move = parse_move(move_text, board)
            except TopazError:
                return None
            pv_head = _pv_move(self.active_pv[0], board) if self.is_tinue and self.active_pv else None
            board.do_move(move)
            user_ptn = move.ptn(board.size)

            if board.is_over():
                won = board.road(self.attacker)
                self.turns.append((user_ptn, None))
                self.version += 1
                return Verdict(TinueResponse.ROAD if won else TinueResponse.NO_THREATS)

            board.null_move()
            threat = board.can_make_road()
            board.undo_move()
            if threat is None:
                self.turns.append((user_ptn, None))
                self.version += 1
                return Verdict(TinueResponse.NO_THREATS)

            if pv_head is not None and pv_head == move:
                self.active_pv.pop(0)
                reply = _pv_move(self.active_pv[0], board) if self.active_pv else None
                if reply is not None:
                    self.active_pv.pop(0)
                else:
                    reply = _fallback_reply(board)
                reply_ptn = reply.ptn(board.size) if reply else None
                self.turns.append((user_ptn, reply_ptn))
                self.version += 1
                return Verdict(TinueResponse.EXACT, reply_ptn)

            version = self.version
            node_limit = self.node_limit

        outcome, pv = run(_defence_search, board, node_limit)

        with self.lock:
            if self.version != version:
                log(f"discarding stale puzzle search for {self.user_id}", "🗑️", tag="puzzle")
                return Verdict(TinueResponse.SUPERSEDED)
            self.is_tinue = outcome is TinueOutcome.WON
            self.active_pv = [m.ptn(board.size).rstrip("*") for m in pv[1:]] if self.is_tinue else []
            reply = pv[0] if pv else _fallback_reply(board)
            reply_ptn = reply.ptn(board.size) if reply else None
            self.turns.append((user_ptn, reply_ptn))
            self.version += 1
        response = {
            TinueOutcome.WON: TinueResponse.VALID,
            TinueOutcome.NOT_WON: TinueResponse.POOR,
            TinueOutcome.ABORTED: TinueResponse.UNCLEAR,
        }[outcome]
        return Verdict(response, reply_ptn)

    def legal_moves(self) -> List[str]:
        """The immediate road if there is one, else every move that keeps a road threat."""
        with self.lock:
            board = self.board()
        road = board.can_make_road()
        if road is not None:
            return [road.ptn(board.size)]
        return [m.ptn(board.size) for m in board.tak_threats()]

    def undo(self) -> bool:
        with self.lock:
            if not self.turns:
                return False
            self.turns.pop()
            self.version += 1
            if not self.turns:
                self.active_pv = list(self.puzzle.pv)
                self.is_tinue = True
            else:
                self.active_pv = []
            return True


def _pv_move(text: str, board: Board) -> Optional[Move]:
    try:
        return parse_move(text, board)
    except TopazError:
        return None


def _defence_search(board: Board, node_limit: int):
    search = TinueSearch(board, node_limit=node_limit, attacker_to_move=False)
    outcome = search.run()
    return outcome, search.principal_variation()


def _fallback_reply(board: Board) -> Optional[Move]:
    """A defender move that stops the attacker's immediate road, else any move."""
    moves = board.legal_moves()
    for move in moves:
        board.do_move(move)
        blocked = board.result() is None and board.can_make_road() is None
        board.undo_move()
        if blocked:
            return move
    return moves[0] if moves else None


# =====================
# VERIFIER
# =====================


class PuzzleVerifier:
    """Puzzle sessions keyed by user, over a shared PuzzleBook."""

    def __init__(self, book: PuzzleBook, registry, run: Runner = _direct):
        self.book = book
        self.table = registry.puzzles
        self.run = run

    def start(self, user_id: str, request: str = "") -> PuzzleSession:
        """request: '', a band name, or a puzzle id."""
        request = (request or "").strip()
        if request.isdigit():
            puzzle = self.book.get(int(request))
            if puzzle is None:
                raise TopazError(f"There is no puzzle #{request} (I have {len(self.book)}).")
        else:
            band = Difficulty.parse(request) if request else Difficulty.EASY
            if band is None:
                raise TopazError(f"Unknown difficulty {request!r}, try easy, medium, hard or insane.")
            puzzle = self.book.random(band)
        session = PuzzleSession(user_id, puzzle)
        self.table.put(user_id, session)
        log(f"puzzle #{puzzle.puzzle_id} ({puzzle.difficulty.label}) for {user_id}", "🧩", tag="puzzle")
        return session

    def session(self, user_id: str) -> Optional[PuzzleSession]:
        return self.table.get(user_id)

    def submit(self, user_id: str, move_text: str) -> Tuple[Optional[PuzzleSession], Optional[Verdict]]:
        session = self.table.get(user_id)
        if session is None:
            return None, None
        verdict = session.submit(move_text, run=self.run)
        if verdict is not None and verdict.response.is_terminal and self.table.is_current(user_id, session):
            self.table.pop(user_id)
        return session, verdict
