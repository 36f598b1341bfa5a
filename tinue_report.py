# tinue_report.py — which plies of a finished game were tinue (forced road wins)
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

import settings
from botlog import log
from errors import MalformedInput
from links import get_ptn_string
from ptn import GameRecord, parse_game
from tak import TinueOutcome, TinueSearch

MIN_PLIES = 6


class TinueStatus(Enum):
    TINUE = "Tinue"
    ROAD = "Road"
    TIMEOUT = "Timeout"


@dataclass(frozen=True)
class PlyStatus:
    status: TinueStatus
    label: str   # "<move number><W|B>" of the side to move


@dataclass
class TinueReport:
    plies: List[PlyStatus] = field(default_factory=list)
    elapsed_ms: int = 0

    def labels(self, status: TinueStatus) -> str:
        found = [p.label for p in self.plies if p.status is status]
        return ", ".join(found) if found else "None"

    def summary(self) -> str:
        return "\n".join(f"{s.value}: {self.labels(s)}" for s in TinueStatus)


def ply_label(board) -> str:
    return f"{board.ply // 2 + 1}{board.side_to_move.letter}"


def find_all_tinue(record: GameRecord, node_limit: Optional[int] = None,
                   skip: Optional[int] = None) -> List[PlyStatus]:
    """
    Search the position before every ply after the opening for a forced
    road win by the side to move. Non-tinue plies are left out.
    """
    node_limit = node_limit or settings.NODE_LIMIT
    skip = settings.SKIP_OPENING_PLIES if skip is None else skip
    board = record.start_board()
    found = []
    for idx, ply in enumerate(record.plies):
        if idx >= skip:
            label = ply_label(board)
            outcome = TinueSearch(board, node_limit=node_limit).run()
            if outcome is TinueOutcome.WON:
                status = TinueStatus.ROAD if board.can_make_road() is not None else TinueStatus.TINUE
                found.append(PlyStatus(status, label))
            elif outcome is TinueOutcome.ABORTED:
                found.append(PlyStatus(TinueStatus.TIMEOUT, label))
                log(f"{label}: timeout at {board.tps()}", "⏱️", tag="tinue")
        board.do_move(ply.move)
    return found


def tinue_report(query: str, run: Optional[Callable] = None) -> TinueReport:
    """Resolve a query (id, link or PTN), parse it and report every tinue ply."""
    started = time.monotonic()
    record = parse_game(get_ptn_string(query))
    if len(record.plies) < MIN_PLIES:
        raise MalformedInput(f"Need a game of at least {MIN_PLIES} plies, single tinue not supported")
    plies = run(find_all_tinue, record) if run else find_all_tinue(record)
    return TinueReport(plies, int((time.monotonic() - started) * 1000))
