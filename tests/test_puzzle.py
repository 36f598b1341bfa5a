"""Tests for the puzzle dataset, difficulty bands and verification sessions."""

from __future__ import annotations

import random

import pytest

from errors import TopazError
from puzzle import Difficulty, Puzzle, PuzzleBook, PuzzleSession, PuzzleVerifier, TinueResponse
from registry import Registry

# White to play: b3 threatens d3, the stored line answers with a capstone there.
PUZZLE_TPS = "2,x3,2/x5/1,x,1,x,1/x2,1,x2/2,x,1,x2 1 5"
ROAD_TPS = "x5/x5/1,1,1,1,x/x5/2,2,x3 1 3"

DATASET = """game_id;tps;pv;nodes;root_nodes
101;{puzzle};b3 Cd3;40;12
102;{road};e3;3000
bad line without fields
103;{puzzle};b3 Cd3;70000;
104;{puzzle};b3 Cd3;not-a-number
""".format(puzzle=PUZZLE_TPS, road=ROAD_TPS)


def _puzzle(tps: str = PUZZLE_TPS, pv=("b3", "Cd3"), nodes: float = 40) -> Puzzle:
    return Puzzle(0, 1, tps, tuple(pv), nodes)


class TestDifficulty:
    def test_bands_follow_node_count(self) -> None:
        counts = [1, 100, 255, 256, 4095, 4096, 65535, 65536, 10 ** 7]
        bands = [_puzzle(nodes=n).difficulty for n in counts]
        assert bands == sorted(bands)
        assert _puzzle(nodes=255).difficulty is Difficulty.EASY
        assert _puzzle(nodes=256).difficulty is Difficulty.MEDIUM
        assert _puzzle(nodes=4096).difficulty is Difficulty.HARD
        assert _puzzle(nodes=65536).difficulty is Difficulty.INSANE

    def test_parse(self) -> None:
        assert Difficulty.parse("Hard") is Difficulty.HARD
        assert Difficulty.parse("impossible") is None
        assert Difficulty.INSANE.label == "Insane"


class TestPuzzleBook:
    def test_parse_skips_header_and_bad_lines(self) -> None:
        book = PuzzleBook.parse(DATASET)
        assert len(book) == 3
        assert [p.game_id for p in book.puzzles] == [101, 102, 103]
        assert [p.puzzle_id for p in book.puzzles] == [0, 1, 2]
        assert book.get(0).pv == ("b3", "Cd3")
        assert book.get(0).root_nodes == 12
        assert book.get(2).root_nodes is None
        assert book.get(3) is None

    def test_random_stays_in_band(self) -> None:
        book = PuzzleBook.parse(DATASET)
        rng = random.Random(7)
        for _ in range(10):
            assert book.random(Difficulty.EASY, rng).difficulty is Difficulty.EASY
        assert book.random(Difficulty.INSANE, rng).game_id == 103

    def test_empty_band_falls_back_to_first_puzzle(self) -> None:
        book = PuzzleBook.parse(DATASET)
        assert book.random(Difficulty.HARD).puzzle_id == 0

    def test_empty_book(self) -> None:
        with pytest.raises(TopazError):
            PuzzleBook([]).random(Difficulty.EASY)

    def test_load_missing_file(self, tmp_path) -> None:
        assert len(PuzzleBook.load(str(tmp_path / "missing.csv"))) == 0

    def test_load(self, tmp_path) -> None:
        path = tmp_path / "tinue.csv"
        path.write_text(DATASET, encoding="utf-8")
        assert len(PuzzleBook.load(str(path))) == 3


class TestPuzzleSession:
    def test_stored_line_is_exact(self) -> None:
        session = PuzzleSession("u1", _puzzle())
        verdict = session.submit("b3")
        assert verdict.response is TinueResponse.EXACT
        assert verdict.reply == "Cd3"
        assert session.active_pv == []
        assert session.turns == [("b3", "Cd3")]
        assert session.history() == ["b3", "Cd3"]

    def test_move_case_and_marks_are_forgiven(self) -> None:
        verdict = PuzzleSession("u1", _puzzle()).submit("B3'")
        assert verdict.response is TinueResponse.EXACT

    def test_deviation_runs_a_search(self) -> None:
        session = PuzzleSession("u1", _puzzle(), node_limit=2000)
        verdict = session.submit("c4")
        assert verdict.response in (TinueResponse.VALID, TinueResponse.POOR, TinueResponse.UNCLEAR)
        assert verdict.reply is not None
        if verdict.response is not TinueResponse.VALID:
            assert session.active_pv == []
            assert not session.is_tinue
        assert session.board().ply == session.start_board().ply + 2

    def test_search_overtaken_by_another_move_is_superseded(self) -> None:
        session = PuzzleSession("u1", _puzzle(), node_limit=500)

        def overtaken(fn, *args):
            assert session.submit("b3").response is TinueResponse.EXACT
            return fn(*args)

        verdict = session.submit("c4", run=overtaken)
        assert verdict.response is TinueResponse.SUPERSEDED
        assert verdict.reply is None
        assert not verdict.response.is_terminal
        assert session.turns == [("b3", "Cd3")]
        assert session.active_pv == []

    def test_illegal_moves_change_nothing(self) -> None:
        session = PuzzleSession("u1", _puzzle())
        assert session.submit("a1") is None
        assert session.submit("not a move") is None
        assert session.turns == []
        assert session.active_pv == ["b3", "Cd3"]

    def test_move_without_threat_ends_the_puzzle(self) -> None:
        verdict = PuzzleSession("u1", _puzzle()).submit("e1")
        assert verdict.response is TinueResponse.NO_THREATS
        assert verdict.response.is_terminal

    def test_road_solves_the_puzzle(self) -> None:
        session = PuzzleSession("u1", _puzzle(ROAD_TPS, ("e3",)))
        verdict = session.submit("e3")
        assert verdict.response is TinueResponse.ROAD
        assert verdict.reply is None
        assert session.board().is_over()

    def test_undo_restores_the_stored_line(self) -> None:
        session = PuzzleSession("u1", _puzzle(), node_limit=500)
        session.submit("b3")
        session.submit("c4")
        assert len(session.turns) == 2
        assert session.undo()
        assert session.turns == [("b3", "Cd3")]
        assert session.active_pv == []
        assert session.undo()
        assert session.active_pv == ["b3", "Cd3"]
        assert session.is_tinue
        assert not session.undo()

    def test_legal_moves(self) -> None:
        moves = PuzzleSession("u1", _puzzle()).legal_moves()
        assert "b3" in moves
        assert "c4" in moves
        assert "e1" not in moves
        assert PuzzleSession("u1", _puzzle(ROAD_TPS, ("e3",))).legal_moves() == ["e3"]

    def test_ptn_text_replays(self) -> None:
        session = PuzzleSession("u1", _puzzle())
        session.submit("b3")
        text = session.ptn_text()
        assert '[Event "Puzzle 0"]' in text
        assert "5. b3 Cd3" in text


class TestPuzzleVerifier:
    def _verifier(self) -> PuzzleVerifier:
        return PuzzleVerifier(PuzzleBook.parse(DATASET), Registry())

    def test_start_by_id_and_band(self) -> None:
        verifier = self._verifier()
        assert verifier.start("u1", "1").puzzle.game_id == 102
        assert verifier.start("u1", "easy").puzzle.difficulty is Difficulty.EASY
        assert verifier.session("u1").puzzle.difficulty is Difficulty.EASY

    def test_start_errors(self) -> None:
        verifier = self._verifier()
        with pytest.raises(TopazError):
            verifier.start("u1", "99")
        with pytest.raises(TopazError):
            verifier.start("u1", "impossible")

    def test_submit_without_session(self) -> None:
        assert self._verifier().submit("u1", "b3") == (None, None)

    def test_terminal_verdict_ends_session(self) -> None:
        verifier = self._verifier()
        verifier.start("u1", "1")
        session, verdict = verifier.submit("u1", "e3")
        assert verdict.response is TinueResponse.ROAD
        assert session is not None
        assert verifier.session("u1") is None

    def test_sessions_are_per_user(self) -> None:
        verifier = self._verifier()
        verifier.start("u1", "0")
        verifier.start("u2", "0")
        verifier.submit("u1", "b3")
        assert verifier.session("u1").turns == [("b3", "Cd3")]
        assert verifier.session("u2").turns == []
