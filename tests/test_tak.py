"""Tests for the Tak rules, move notation and the bounded searches."""

from __future__ import annotations

import pytest

from errors import EngineRejection
from tak import (
    CAP,
    FLAT,
    WALL,
    Board,
    Color,
    GameResult,
    Move,
    Piece,
    TinueOutcome,
    TinueSearch,
    WIN_SCORE,
    best_move,
    square_index,
    square_name,
)

MIDGAME = "x,2,x3/x,21,1,x2/x,1C,12S,x2/x5/2,x4 1 6"
ONE_ROAD = "x5/x5/1,1,1,1,x/x5/2,2,x3 1 3"
DOUBLE_THREAT = "2,2,x3/1,1,1,1,x/x5/1,1,1,1,x/2,2,x3 2 5"
QUIET = "1,x4/x5/x5/x5/x4,2 1 2"
CHECKERBOARD = "1,2,1,2,1/2,1,2,1,2/1,2,1,2,1/2,1,2,1,2/1,2,1,2,1 1 13"


class TestSquares:
    def test_index_is_rank_major_from_a1(self) -> None:
        assert square_index("a1", 5) == 0
        assert square_index("b1", 5) == 1
        assert square_index("a2", 5) == 5
        assert square_index("e5", 5) == 24
        assert square_name(21, 6) == "d4"

    def test_off_board_square(self) -> None:
        with pytest.raises(ValueError):
            square_index("f1", 5)


class TestBoard:
    def test_empty_board_tps(self) -> None:
        assert Board(5).tps() == "x5/x5/x5/x5/x5 1 1"

    def test_unsupported_size(self) -> None:
        with pytest.raises(EngineRejection):
            Board(9)

    def test_opening_places_opponent_flat(self) -> None:
        board = Board(5)
        board.do_move(board.parse_move("a1"))
        board.do_move(board.parse_move("e5"))
        assert board.top(0) == Piece(Color.BLACK, FLAT)
        assert board.top(24) == Piece(Color.WHITE, FLAT)
        assert board.tps() == "x4,1/x5/x5/x5/2,x4 1 2"

    def test_opening_allows_flats_only(self) -> None:
        board = Board(5)
        assert len(board.legal_moves()) == 25
        with pytest.raises(EngineRejection):
            board.parse_move("Ca1")

    def test_tps_round_trip(self) -> None:
        assert Board.from_tps(MIDGAME).tps() == MIDGAME

    def test_bad_tps(self) -> None:
        with pytest.raises(ValueError):
            Board.from_tps("x5/x5/x5/x5/x4 1 1")
        with pytest.raises(ValueError):
            Board.from_tps("x5/x5/x5/x5/x5 3 1")

    def test_undo_restores_position(self) -> None:
        board = Board.from_tps(MIDGAME)
        for move in board.legal_moves():
            board.do_move(move)
            board.undo_move()
        assert board.tps() == MIDGAME

    def test_notation_round_trip_for_every_legal_move(self) -> None:
        board = Board.from_tps(MIDGAME)
        moves = board.legal_moves()
        assert any(m.crush for m in moves)
        for move in moves:
            assert board.parse_move(move.ptn(5)) == move

    def test_capstone_crushes_wall(self) -> None:
        board = Board.from_tps("x5/x5/x5/x5/1C,2S,x3 1 3")
        move = board.parse_move("a1>*")
        assert move == Move.spread(0, ">", (1,), crush=True)
        board.do_move(move)
        assert board.stacks[1] == [Piece(Color.BLACK, FLAT), Piece(Color.WHITE, CAP)]
        assert board.tps() == "x5/x5/x5/x5/x,21C,x3 2 3"

    def test_flat_cannot_move_onto_wall(self) -> None:
        board = Board.from_tps("x5/x5/x5/x5/1,2S,x3 1 3")
        with pytest.raises(EngineRejection):
            board.parse_move("a1>")

    def test_road_ends_the_game(self) -> None:
        board = Board.from_tps("x5/x5/x5/x5/1,1,1,1,x 1 3")
        board.do_move(board.parse_move("e1"))
        assert board.result() == GameResult(Color.WHITE, "road")
        assert board.legal_moves() == []

    def test_wall_is_not_part_of_a_road(self) -> None:
        board = Board.from_tps("x5/x5/x5/x5/1,1,1,1,1S 2 3")
        assert not board.road(Color.WHITE)

    def test_full_board_flat_count(self) -> None:
        assert Board.from_tps(CHECKERBOARD).result() == GameResult(Color.WHITE, "flat")

    def test_komi_counts_for_black(self) -> None:
        assert Board.from_tps(CHECKERBOARD, komi=2).result() == GameResult(None, "flat")
        assert Board.from_tps(CHECKERBOARD, komi=3).result() == GameResult(Color.BLACK, "flat")


class TestRoads:
    def test_can_make_road(self) -> None:
        board = Board.from_tps(ONE_ROAD)
        move = board.can_make_road()
        assert move == Move.place(square_index("e3", 5))
        assert move.ptn(5) == "e3"

    def test_no_road_available(self) -> None:
        assert Board.from_tps(QUIET).can_make_road() is None

    def test_tak_threats(self) -> None:
        board = Board.from_tps("x5/x5/1,1,1,x2/x5/2,2,x3 1 3")
        threats = board.tak_threats()
        assert Move.place(square_index("d3", 5)) in threats
        assert all(m.kind != WALL for m in threats)


class TestTinueSearch:
    def test_immediate_road_is_won(self) -> None:
        search = TinueSearch(Board.from_tps(ONE_ROAD))
        assert search.run() is TinueOutcome.WON
        assert search.principal_variation() == [Move.place(square_index("e3", 5))]

    def test_double_threat_is_tinue_for_side_that_moved(self) -> None:
        board = Board.from_tps(DOUBLE_THREAT)
        search = TinueSearch(board, attacker_to_move=False)
        assert search.is_tinue() is True
        pv = search.principal_variation()
        assert len(pv) == 2
        replay = board.copy()
        for move in pv:
            replay.do_move(move)
        assert replay.result() == GameResult(Color.WHITE, "road")

    def test_defender_has_no_tinue(self) -> None:
        board = Board.from_tps(DOUBLE_THREAT)
        assert TinueSearch(board).run() is TinueOutcome.NOT_WON

    def test_quiet_position_is_not_won(self) -> None:
        search = TinueSearch(Board.from_tps(QUIET))
        assert search.run() is TinueOutcome.NOT_WON
        assert search.is_tinue() is False

    def test_node_limit_aborts(self) -> None:
        search = TinueSearch(Board.from_tps(QUIET), node_limit=5)
        assert search.run() is TinueOutcome.ABORTED
        assert search.is_tinue() is None
        assert search.principal_variation() == []

    def test_search_leaves_caller_board_alone(self) -> None:
        board = Board.from_tps(DOUBLE_THREAT)
        TinueSearch(board, attacker_to_move=False).run()
        assert board.tps() == DOUBLE_THREAT


class TestBestMove:
    def test_takes_the_road(self) -> None:
        outcome = best_move(Board.from_tps(ONE_ROAD), time_budget=5.0)
        assert outcome.best_move == Move.place(square_index("e3", 5))
        assert outcome.score == WIN_SCORE

    def test_depth_one_always_completes(self) -> None:
        board = Board.from_tps(QUIET)
        outcome = best_move(board, time_budget=0.0)
        assert outcome.depth >= 1
        assert outcome.best_move in board.legal_moves()
        assert "depth" in outcome.describe(5)
