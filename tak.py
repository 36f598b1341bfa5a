# tak.py — Tak rules, TPS/PTN move model and the bounded searches the bot calls
from __future__ import annotations

import re
import time
from dataclasses import dataclass, replace
from enum import Enum, IntEnum
from functools import lru_cache
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple

from errors import EngineRejection

# =====================
# CONSTANTS
# =====================

# size -> (stones, capstones)
RESERVES = {5: (21, 1), 6: (30, 1), 7: (40, 2)}
SUPPORTED_SIZES = tuple(sorted(RESERVES))

FILES = "abcdefgh"
FLAT, WALL, CAP = "F", "S", "C"
DIRECTIONS = "+-<>"
_STEP = {"+": (0, 1), "-": (0, -1), ">": (1, 0), "<": (-1, 0)}

MAX_TINUE_DEPTH = 11
MAX_SEARCH_DEPTH = 8
WIN_SCORE = 100_000

_MOVE_RE = re.compile(
    r"^(?P<lead>[SC]|[1-8])?(?P<file>[a-h])(?P<rank>[1-8])"
    r"(?:(?P<dir>[+\-<>])(?P<drops>[1-8]*))?(?P<crush>\*)?$"
)


class Color(IntEnum):
    WHITE = 0
    BLACK = 1

    @property
    def other(self) -> "Color":
        return Color(1 - self)

    @property
    def letter(self) -> str:
        return "W" if self == Color.WHITE else "B"


class Piece(NamedTuple):
    color: Color
    kind: str


@dataclass(frozen=True)
class GameResult:
    winner: Optional[Color]  # None = draw
    kind: str                # "road" | "flat"


def square_index(name: str, size: int) -> int:
    file, rank = FILES.index(name[0]), int(name[1:]) - 1
    if not (0 <= file < size and 0 <= rank < size):
        raise ValueError(f"square {name} is off a {size}x{size} board")
    return rank * size + file


def square_name(index: int, size: int) -> str:
    return f"{FILES[index % size]}{index // size + 1}"


@lru_cache(maxsize=None)
def _compositions(total: int, parts: int) -> Tuple[Tuple[int, ...], ...]:
    """All ways to drop `total` stones over exactly `parts` squares, one or more each."""
    if parts == 1:
        return ((total,),) if total >= 1 else ()
    out = []
    for first in range(1, total - parts + 2):
        for rest in _compositions(total - first, parts - 1):
            out.append((first,) + rest)
    return tuple(out)


@lru_cache(maxsize=None)
def _rays(size: int) -> Dict[Tuple[int, str], Tuple[int, ...]]:
    rays = {}
    for sq in range(size * size):
        for d, (df, dr) in _STEP.items():
            f, r = sq % size + df, sq // size + dr
            path = []
            while 0 <= f < size and 0 <= r < size:
                path.append(r * size + f)
                f += df
                r += dr
            rays[sq, d] = tuple(path)
    return rays


@lru_cache(maxsize=None)
def _neighbours(size: int) -> Tuple[Tuple[int, ...], ...]:
    return tuple(
        tuple(ray[0] for d in DIRECTIONS for ray in [_rays(size)[sq, d]] if ray)
        for sq in range(size * size)
    )


# =====================
# MOVES
# =====================

@dataclass(frozen=True)
class Move:
    square: int
    kind: str = FLAT               # placement piece, "" for spreads
    direction: str = ""            # "" for placements
    drops: Tuple[int, ...] = ()
    crush: bool = False

    @classmethod
    def place(cls, square: int, kind: str = FLAT) -> "Move":
        return cls(square, kind)

    @classmethod
    def spread(cls, square: int, direction: str, drops: Tuple[int, ...], crush: bool = False) -> "Move":
        return cls(square, "", direction, tuple(drops), crush)

    @property
    def is_spread(self) -> bool:
        return bool(self.direction)

    @property
    def count(self) -> int:
        return sum(self.drops)

    def path(self, size: int) -> Tuple[int, ...]:
        return _rays(size)[self.square, self.direction][: len(self.drops)]

    def ptn(self, size: int) -> str:
        sq = square_name(self.square, size)
        if not self.is_spread:
            return ("" if self.kind == FLAT else self.kind) + sq
        text = (str(self.count) if self.count > 1 else "") + sq + self.direction
        if len(self.drops) > 1:
            text += "".join(str(d) for d in self.drops)
        return text + ("*" if self.crush else "")

    @classmethod
    def from_ptn(cls, text: str, size: int) -> "Move":
        """
        Parse one canonical PTN move (sigil upper case, squares lower case).
        Raises ValueError for anything that is not a well-formed move on this size.
        """
        m = _MOVE_RE.match(text)
        if not m:
            raise ValueError(f"not a PTN move: {text!r}")
        lead, direction = m["lead"], m["dir"]
        square = square_index(m["file"] + m["rank"], size)
        if not direction:
            if lead and lead.isdigit():
                raise ValueError(f"carry count without a direction: {text!r}")
            if m["crush"]:
                raise ValueError(f"placement cannot crush: {text!r}")
            return cls.place(square, lead or FLAT)
        if lead in (WALL, CAP):
            raise ValueError(f"placement sigil on a spread: {text!r}")
        count = int(lead) if lead else 1
        drops = tuple(int(c) for c in m["drops"]) or (count,)
        if sum(drops) != count or count > size:
            raise ValueError(f"drop counts do not add up: {text!r}")
        if len(drops) > len(_rays(size)[square, direction]):
            raise ValueError(f"spread runs off the board: {text!r}")
        return cls.spread(square, direction, drops, bool(m["crush"]))


# =====================
# BOARD
# =====================

class Board:
    """
    A Tak position for one of the supported sizes.

    Squares are indexed rank-major from a1 (a1 = 0, b1 = 1, ...). Each square
    holds a stack listed bottom to top. Komi is in half-points and goes to Black.
    """

    def __init__(self, size: int, komi: int = 0):
        if size not in RESERVES:
            raise EngineRejection(f"Unsupported board size {size}")
        self.size = size
        self.komi = komi
        self.stacks: List[List[Piece]] = [[] for _ in range(size * size)]
        self.ply = 0
        stones, caps = RESERVES[size]
        self.reserves = {Color.WHITE: [stones, caps], Color.BLACK: [stones, caps]}
        self._result: Optional[GameResult] = None
        self._history: list = []

    # ---------- TPS ----------

    @classmethod
    def from_tps(cls, tps: str, komi: int = 0) -> "Board":
        parts = tps.strip().split()
        if len(parts) != 3:
            raise ValueError(f"TPS needs board, side and move number: {tps!r}")
        rows = parts[0].split("/")
        board = cls(len(rows), komi)
        size = board.size
        for r, row in enumerate(rows):
            rank, file = size - 1 - r, 0
            for cell in row.split(","):
                cell = cell.strip()
                if cell[:1] in ("x", "X"):
                    file += int(cell[1:] or 1)
                    continue
                kind = FLAT
                if cell[-1:] in (WALL, CAP):
                    kind, cell = cell[-1], cell[:-1]
                if not cell or file >= size:
                    raise ValueError(f"bad TPS row {row!r}")
                stack = []
                for i, ch in enumerate(cell):
                    if ch not in "12":
                        raise ValueError(f"bad TPS stack {cell!r}")
                    piece = Piece(Color(int(ch) - 1), kind if i == len(cell) - 1 else FLAT)
                    reserve = board.reserves[piece.color]
                    slot = 1 if piece.kind == CAP else 0
                    reserve[slot] -= 1
                    if reserve[slot] < 0:
                        raise ValueError(f"too many pieces for a {size}x{size} board")
                    stack.append(piece)
                board.stacks[rank * size + file] = stack
                file += 1
            if file != size:
                raise ValueError(f"TPS row {row!r} does not have {size} squares")
        side, move_number = int(parts[1]), int(parts[2])
        if side not in (1, 2) or move_number < 1:
            raise ValueError(f"bad TPS side/move number: {tps!r}")
        board.ply = (move_number - 1) * 2 + side - 1
        board._result = board._evaluate(board.side_to_move.other)
        return board

    def tps(self) -> str:
        n, rows = self.size, []
        for rank in reversed(range(n)):
            cells, empty = [], 0
            for file in range(n):
                stack = self.stacks[rank * n + file]
                if not stack:
                    empty += 1
                    continue
                if empty:
                    cells.append("x" if empty == 1 else f"x{empty}")
                    empty = 0
                cell = "".join("1" if p.color == Color.WHITE else "2" for p in stack)
                if stack[-1].kind != FLAT:
                    cell += stack[-1].kind
                cells.append(cell)
            if empty:
                cells.append("x" if empty == 1 else f"x{empty}")
            rows.append(",".join(cells))
        return f"{'/'.join(rows)} {self.side_to_move + 1} {self.ply // 2 + 1}"

    def __repr__(self) -> str:
        return f"<Board {self.size}s {self.tps()}>"

    def copy(self) -> "Board":
        other = Board.__new__(Board)
        other.size = self.size
        other.komi = self.komi
        other.stacks = [list(s) for s in self.stacks]
        other.ply = self.ply
        other.reserves = {c: list(r) for c, r in self.reserves.items()}
        other._result = self._result
        other._history = []
        return other

    def key(self) -> tuple:
        return (
            tuple(tuple(s) for s in self.stacks),
            self.ply % 2,
            self.ply < 2,
            tuple(tuple(r) for r in self.reserves.values()),
        )

    # ---------- state ----------

    @property
    def side_to_move(self) -> Color:
        return Color(self.ply % 2)

    @property
    def placement_color(self) -> Color:
        # The first two plies place the opponent's flat.
        return self.side_to_move.other if self.ply < 2 else self.side_to_move

    def top(self, square: int) -> Optional[Piece]:
        stack = self.stacks[square]
        return stack[-1] if stack else None

    def result(self) -> Optional[GameResult]:
        return self._result

    def is_over(self) -> bool:
        return self._result is not None

    def flat_counts(self) -> Tuple[int, int]:
        white = black = 0
        for stack in self.stacks:
            if stack and stack[-1].kind == FLAT:
                if stack[-1].color == Color.WHITE:
                    white += 1
                else:
                    black += 1
        return white, black

    def road(self, color: Color) -> bool:
        n = self.size
        nodes = {i for i, s in enumerate(self.stacks) if s and s[-1].color == color and s[-1].kind != WALL}
        if len(nodes) < n:
            return False
        seen = set()
        for start in nodes:
            if start in seen:
                continue
            group, todo = {start}, [start]
            while todo:
                sq = todo.pop()
                for nb in _neighbours(n)[sq]:
                    if nb in nodes and nb not in group:
                        group.add(nb)
                        todo.append(nb)
            seen |= group
            files = {sq % n for sq in group}
            ranks = {sq // n for sq in group}
            if (0 in files and n - 1 in files) or (0 in ranks and n - 1 in ranks):
                return True
        return False

    def _evaluate(self, mover: Color) -> Optional[GameResult]:
        roads = [c for c in Color if self.road(c)]
        if roads:
            return GameResult(mover if mover in roads else roads[0], "road")
        if all(self.stacks) or any(sum(r) == 0 for r in self.reserves.values()):
            white, black = self.flat_counts()
            white2, black2 = white * 2, black * 2 + self.komi
            if white2 == black2:
                return GameResult(None, "flat")
            return GameResult(Color.WHITE if white2 > black2 else Color.BLACK, "flat")
        return None

    # ---------- move generation ----------

    def legal_moves(self) -> List[Move]:
        if self.is_over():
            return []
        empties = [i for i, s in enumerate(self.stacks) if not s]
        if self.ply < 2:
            return [Move.place(i) for i in empties]
        stones, caps = self.reserves[self.side_to_move]
        moves = []
        for sq in empties:
            if stones:
                moves.append(Move.place(sq, FLAT))
                moves.append(Move.place(sq, WALL))
            if caps:
                moves.append(Move.place(sq, CAP))
        moves.extend(self.spreads())
        return moves

    def spreads(self) -> Iterator[Move]:
        if self.ply < 2:
            return
        color, rays = self.side_to_move, _rays(self.size)
        for sq, stack in enumerate(self.stacks):
            if not stack or stack[-1].color != color:
                continue
            top = stack[-1]
            carry = min(len(stack), self.size)
            for d in DIRECTIONS:
                free, crush_sq = 0, None
                for nxt in rays[sq, d]:
                    dest = self.top(nxt)
                    if dest is not None and dest.kind == CAP:
                        break
                    if dest is not None and dest.kind == WALL:
                        if top.kind == CAP:
                            crush_sq = nxt
                        break
                    free += 1
                for count in range(1, carry + 1):
                    for length in range(1, min(free, count) + 1):
                        for drops in _compositions(count, length):
                            yield Move.spread(sq, d, drops)
                    if crush_sq is not None and count - 1 >= free:
                        prefixes = _compositions(count - 1, free) if free else ((),) if count == 1 else ()
                        for prefix in prefixes:
                            yield Move.spread(sq, d, prefix + (1,), crush=True)

    def resolve(self, move: Move) -> Move:
        """Tag a spread as a crush when its single last stone lands on a wall."""
        if not move.is_spread:
            return move
        dest = self.top(move.path(self.size)[-1])
        crush = dest is not None and dest.kind == WALL and move.drops[-1] == 1
        return replace(move, crush=crush)

    def is_legal(self, move: Move) -> bool:
        return move in self.legal_moves()

    def parse_move(self, text: str) -> Move:
        """Canonical PTN text -> legal Move for this position, or EngineRejection."""
        try:
            move = self.resolve(Move.from_ptn(text, self.size))
        except ValueError as e:
            raise EngineRejection(str(e)) from e
        if not self.is_legal(move):
            raise EngineRejection(f"{text} is not legal in {self.tps()}")
        return move

    # ---------- make / unmake ----------

    def play(self, move: Move) -> None:
        if not self.is_legal(move):
            raise EngineRejection(f"{move.ptn(self.size)} is not legal in {self.tps()}")
        self.do_move(move)

    def do_move(self, move: Move) -> None:
        """Apply `move` without a legality check. Reverse with undo_move()."""
        mover = self.side_to_move
        touched = (move.square,) + (move.path(self.size) if move.is_spread else ())
        self._history.append((
            [(sq, list(self.stacks[sq])) for sq in touched],
            {c: list(r) for c, r in self.reserves.items()},
            self._result,
        ))
        if move.is_spread:
            stack = self.stacks[move.square]
            carried = stack[-move.count:]
            del stack[-move.count:]
            i = 0
            for sq, drop in zip(move.path(self.size), move.drops):
                dest = self.stacks[sq]
                if dest and dest[-1].kind == WALL:
                    dest[-1] = Piece(dest[-1].color, FLAT)
                dest.extend(carried[i:i + drop])
                i += drop
        else:
            color = self.placement_color
            self.reserves[color][1 if move.kind == CAP else 0] -= 1
            self.stacks[move.square].append(Piece(color, move.kind))
        self.ply += 1
        self._result = self._evaluate(mover)

    def null_move(self) -> None:
        """Pass the turn (search only). Reverse with undo_move()."""
        self._history.append(([], {c: list(r) for c, r in self.reserves.items()}, self._result))
        self.ply += 1

    def undo_move(self) -> None:
        saved, reserves, result = self._history.pop()
        for sq, stack in saved:
            self.stacks[sq] = stack
        self.reserves = reserves
        self._result = result
        self.ply -= 1

    # ---------- roads and threats ----------

    def placement_road(self) -> Optional[Move]:
        """A placement that completes a road for the side to move, without making moves."""
        if self.ply < 2 or self.is_over():
            return None
        color = self.side_to_move
        stones, caps = self.reserves[color]
        if not (stones or caps):
            return None
        n = self.size
        label: Dict[int, int] = {}
        edges: List[int] = []
        for start, stack in enumerate(self.stacks):
            if start in label or not stack or stack[-1].color != color or stack[-1].kind == WALL:
                continue
            gid, mask, todo = len(edges), 0, [start]
            label[start] = gid
            while todo:
                sq = todo.pop()
                mask |= _edge_mask(sq, n)
                for nb in _neighbours(n)[sq]:
                    top = self.top(nb)
                    if nb not in label and top is not None and top.color == color and top.kind != WALL:
                        label[nb] = gid
                        todo.append(nb)
            edges.append(mask)
        for sq, stack in enumerate(self.stacks):
            if stack:
                continue
            mask = _edge_mask(sq, n)
            for gid in {label[nb] for nb in _neighbours(n)[sq] if nb in label}:
                mask |= edges[gid]
            if _spans(mask):
                return Move.place(sq, FLAT if stones else CAP)
        return None

    def can_make_road(self) -> Optional[Move]:
        """A move that wins by road for the side to move right now, if any."""
        move = self.placement_road()
        if move is not None:
            return move
        mover = self.side_to_move
        for move in list(self.spreads()):
            self.do_move(move)
            won = self.road(mover)
            self.undo_move()
            if won:
                return move
        return None

    def tak_threats(self) -> List[Move]:
        """Moves after which the side to move would threaten a road on its next turn."""
        threats = []
        for move in self.legal_moves():
            if move.kind == WALL:
                continue
            self.do_move(move)
            if not self.is_over():
                self.null_move()
                if self.can_make_road() is not None:
                    threats.append(move)
                self.undo_move()
            self.undo_move()
        return threats


_NORTH, _SOUTH, _EAST, _WEST = 1, 2, 4, 8


def _edge_mask(sq: int, n: int) -> int:
    file, rank = sq % n, sq // n
    mask = 0
    if rank == n - 1:
        mask |= _NORTH
    if rank == 0:
        mask |= _SOUTH
    if file == n - 1:
        mask |= _EAST
    if file == 0:
        mask |= _WEST
    return mask


def _spans(mask: int) -> bool:
    return (mask & _NORTH and mask & _SOUTH) or (mask & _EAST and mask & _WEST)


# =====================
# TINUE SEARCH
# =====================

class TinueOutcome(Enum):
    WON = "won"
    NOT_WON = "not-won"
    ABORTED = "aborted"


class _Aborted(Exception):
    """Raised inside a search once its node or time bound is used up."""


class TinueSearch:
    """
    Bounded forced-win search over road threats.

    The attacker only plays moves that keep a road threat (tak) on the board;
    every defender reply is tried. Iterative deepening on ply depth, shared
    node budget. Running out of nodes or depth gives ABORTED, never an error.

    attacker_to_move=False asks whether the side that just moved still has
    tinue with the opponent to play.
    """

    def __init__(self, board: Board, node_limit: int = 100_000,
                 attacker_to_move: bool = True, max_depth: int = MAX_TINUE_DEPTH):
        self.board = board.copy()
        self.node_limit = int(node_limit)
        self.max_depth = int(max_depth)
        self.attacker = board.side_to_move if attacker_to_move else board.side_to_move.other
        self.nodes = 0
        self.outcome: Optional[TinueOutcome] = None
        self._best: Dict[tuple, Move] = {}
        self._escape: Optional[Move] = None

    def run(self) -> TinueOutcome:
        if self.outcome is not None:
            return self.outcome
        root_attacks = self.board.side_to_move == self.attacker
        depth = 1 if root_attacks else 2
        self.outcome = TinueOutcome.ABORTED
        try:
            while depth <= self.max_depth:
                res = self._attack(depth) if root_attacks else self._defend(depth, root=True)
                if res is False:
                    self.outcome = TinueOutcome.NOT_WON
                    break
                if res is not None:
                    self.outcome = TinueOutcome.WON
                    break
                depth += 2
        except _Aborted:
            pass
        return self.outcome

    def is_tinue(self) -> Optional[bool]:
        outcome = self.run()
        return None if outcome is TinueOutcome.ABORTED else outcome is TinueOutcome.WON

    def principal_variation(self) -> List[Move]:
        outcome = self.run()
        if outcome is TinueOutcome.NOT_WON:
            return [self._escape] if self._escape else []
        if outcome is not TinueOutcome.WON:
            return []
        board, pv = self.board.copy(), []
        while len(pv) <= self.max_depth:
            move = self._best.get(board.key())
            if move is None:
                break
            pv.append(move)
            board.do_move(move)
            if board.is_over():
                break
        return pv

    def _play(self, move: Move) -> None:
        self.nodes += 1
        if self.nodes > self.node_limit:
            raise _Aborted()
        self.board.do_move(move)

    def _road_move(self) -> Optional[Move]:
        board = self.board
        move = board.placement_road()
        if move is not None:
            return move
        mover = board.side_to_move
        for move in list(board.spreads()):
            self._play(move)
            won = board.road(mover)
            board.undo_move()
            if won:
                return move
        return None

    def _threatens(self) -> bool:
        self.board.null_move()
        try:
            return self._road_move() is not None
        finally:
            self.board.undo_move()

    # Results: None = unknown at this depth, False = refuted, int = plies to the road.
    def _attack(self, depth: int):
        board = self.board
        key = board.key()
        road = self._road_move()
        if road is not None:
            self._best[key] = road
            return 1
        if depth < 3:
            return None
        unknown = False
        for move in board.legal_moves():
            if move.kind == WALL:
                continue
            self._play(move)
            try:
                if board.is_over() or not self._threatens():
                    continue
                res = self._defend(depth - 1)
            finally:
                board.undo_move()
            if res is None:
                unknown = True
            elif res is not False:
                self._best[key] = move
                return res + 1
        return None if unknown else False

    def _defend(self, depth: int, root: bool = False):
        board = self.board
        key = board.key()
        unknown, longest, best = False, 0, None
        for reply in board.legal_moves():
            self._play(reply)
            try:
                result = board.result()
                if result is not None:
                    res = 0 if result.winner == self.attacker else False
                else:
                    res = self._attack(depth - 1)
            finally:
                board.undo_move()
            if res is False:
                if root:
                    self._escape = reply
                return False
            if res is None:
                unknown = True
            elif res + 1 > longest:
                longest, best = res + 1, reply
        if unknown:
            return None
        if best is not None:
            self._best[key] = best
        return longest


# =====================
# POSITIONAL SEARCH
# =====================

@dataclass
class SearchOutcome:
    best_move: Optional[Move]
    score: int
    depth: int
    nodes: int

    def describe(self, size: int) -> str:
        mv = self.best_move.ptn(size) if self.best_move else "none"
        return f"Best move {mv} | score {self.score} | depth {self.depth} | nodes {self.nodes}"


def evaluate(board: Board) -> int:
    """Static score from the side to move's point of view."""
    n, me = board.size, board.side_to_move
    score = 0
    for color in Color:
        sign = 1 if color == me else -1
        part = 0
        rows, cols = [0] * n, [0] * n
        for sq, stack in enumerate(board.stacks):
            if not stack or stack[-1].color != color:
                continue
            top = stack[-1]
            part += {FLAT: 100, WALL: 40, CAP: 70}[top.kind]
            part += 10 * sum(1 for p in stack[:-1] if p.color == color)
            if top.kind != WALL:
                rows[sq // n] += 1
                cols[sq % n] += 1
        part += 6 * sum(c * c for c in rows + cols)
        if color == Color.BLACK:
            part += 50 * board.komi
        score += sign * part
    return score


def _ordered(board: Board, first: Optional[Move]) -> List[Move]:
    moves = board.legal_moves()
    if first is not None and first in moves:
        moves.remove(first)
        moves.insert(0, first)
    return moves


def best_move(board: Board, time_budget: float = 20.0, max_depth: int = MAX_SEARCH_DEPTH) -> SearchOutcome:
    """
    Iterative-deepening alpha-beta bounded by `time_budget` seconds.
    Depth 1 always completes, later depths are dropped if the budget runs out.
    """
    board = board.copy()
    road = board.can_make_road()
    if road is not None:
        return SearchOutcome(road, WIN_SCORE, 1, 1)
    deadline = time.monotonic() + max(0.0, float(time_budget))
    nodes = [0]

    def negamax(depth: int, alpha: int, beta: int, timed: bool) -> int:
        result = board.result()
        if result is not None:
            if result.winner is None:
                return 0
            return WIN_SCORE + depth if result.winner == board.side_to_move else -(WIN_SCORE + depth)
        if depth == 0:
            return evaluate(board)
        if timed and time.monotonic() > deadline:
            raise _Aborted()
        best = -WIN_SCORE * 2
        for move in board.legal_moves():
            board.do_move(move)
            nodes[0] += 1
            try:
                score = -negamax(depth - 1, -beta, -alpha, timed)
            finally:
                board.undo_move()
            if score > best:
                best = score
            if score > alpha:
                alpha = score
            if alpha >= beta:
                break
        return best

    outcome = SearchOutcome(None, 0, 0, 0)
    for depth in range(1, max_depth + 1):
        timed = depth > 1
        alpha, beta = -WIN_SCORE * 2, WIN_SCORE * 2
        best, best_score = None, -WIN_SCORE * 2
        try:
            for move in _ordered(board, outcome.best_move):
                board.do_move(move)
                nodes[0] += 1
                try:
                    score = -negamax(depth - 1, -beta, -alpha, timed)
                finally:
                    board.undo_move()
                if best is None or score > best_score:
                    best, best_score = move, score
                if score > alpha:
                    alpha = score
        except _Aborted:
            break
        outcome = SearchOutcome(best, best_score, depth, nodes[0])
        if best is None or abs(best_score) >= WIN_SCORE or time.monotonic() > deadline:
            break
    outcome.nodes = nodes[0]
    return outcome
