# sync.py — keeps a Tak position in step with an async game played in a chat channel
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Set, Tuple

import settings
from botlog import log, log_exc
from errors import Ambiguous, TopazError
from links import encode_link, get_ptn_string, strip_link_brackets
from ptn import format_ptn, parse_game, parse_move
from tak import Board, Color, Move, SearchOutcome, best_move
from transport import ChatChannel, ChatMessage, channel_players, names_match

# Commands understood by the game-keeper bot
LINK_REQUEST = "!tak link"
REDRAW_REQUEST = "!tak redraw"
UNDO_REQUEST = "!tak undo"
PROMPT_PREFIX = "Your turn"
CONTROL_PREFIXES = (UNDO_REQUEST, "!tak rematch", "Invalid move.", "You are not")


class Belief(Enum):
    UNKNOWN = "unknown"
    OWN_TURN = "own-turn"
    OPPONENT_TURN = "opponent-turn"


class EventKind(Enum):
    LINK = "link"
    PROMPT = "prompt"
    CONTROL = "control"
    COMMAND = "command"
    BARE_MOVE = "bare-move"
    CHAT = "chat"


@dataclass
class ChannelGameState:
    channel_id: str
    name: str
    player1: str               # plays White
    player2: str
    bot_color: Color
    board: Optional[Board] = None
    belief: Belief = Belief.UNKNOWN
    dirty: bool = False
    undo_pending: bool = False
    generation: int = 0
    link_requests: int = 0
    applied: Set[str] = field(default_factory=set)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def opponent(self) -> str:
        return self.player2 if self.bot_color is Color.WHITE else self.player1

    def belief_from_board(self) -> Belief:
        if self.board is None:
            return Belief.UNKNOWN
        return Belief.OWN_TURN if self.board.side_to_move == self.bot_color else Belief.OPPONENT_TURN

    def snapshot(self, board: Board):
        self.board = board
        self.belief = self.belief_from_board()
        self.dirty = False
        self.applied.clear()
        self.link_requests = 0
        self.generation += 1

    def drop_board(self):
        self.board = None
        self.belief = Belief.UNKNOWN
        self.generation += 1


SearchFn = Callable[[Board, float], SearchOutcome]


def default_search(board: Board, time_budget: float) -> SearchOutcome:
    return best_move(board, time_budget, settings.SEARCH_MAX_DEPTH)


class GameSynchronizer:
    """
    One ChannelGameState per `<p1>-🆚-<p2>` channel the bot plays in.

    Every chat message is classified (first match wins): link from the game
    keeper, prompt for the bot's move, control message, !topaz command, bare
    move. Per-channel locks guard state; the search runs on the engine
    worker and its move is only committed if the channel's generation did
    not move on in the meantime.
    """

    def __init__(self, chatter, registry, worker, bot_id: Optional[str] = None,
                 bot_name: Optional[str] = None, search: Optional[SearchFn] = None):
        self.chatter = chatter
        self.transport = chatter.transport
        self.table = registry.channels
        self.worker = worker
        self.bot_name = bot_name or settings.BOT_NAME
        self.bot_id = bot_id or getattr(self.transport, "user_id", "")
        self.search = search or default_search

    # ---------- classification ----------

    def is_bot(self, msg: ChatMessage) -> bool:
        return msg.author_id == self.bot_id or names_match(msg.author_name, self.bot_name)

    def is_takbot(self, msg: ChatMessage) -> bool:
        return names_match(msg.author_name, settings.TAKBOT_NAME)

    def mentions_bot(self, msg: ChatMessage) -> bool:
        return self.bot_id in msg.mentions or self.bot_name.lower() in msg.content.lower()

    def is_opponent(self, state: ChannelGameState, msg: ChatMessage) -> bool:
        return not self.is_bot(msg) and names_match(msg.author_name, state.opponent)

    def classify(self, msg: ChatMessage) -> EventKind:
        text = msg.content.strip()
        takbot = self.is_takbot(msg)
        if takbot and settings.LINK_MARKER in text:
            return EventKind.LINK
        if takbot and text.startswith(PROMPT_PREFIX) and self.mentions_bot(msg):
            return EventKind.PROMPT
        if text.startswith(CONTROL_PREFIXES):
            return EventKind.CONTROL
        if text.lower().startswith("!topaz"):
            return EventKind.COMMAND
        if not takbot and not self.is_bot(msg) and _single_token(text):
            return EventKind.BARE_MOVE
        return EventKind.CHAT

    # ---------- membership ----------

    def start(self):
        for channel in self.transport.list_channels():
            try:
                self.on_channel(channel)
            except Exception as e:
                log_exc("sync/start", e, tag=channel.name)

    def on_channel(self, channel: ChatChannel) -> Optional[ChannelGameState]:
        """A channel was created or renamed; start or stop tracking it."""
        players = channel_players(channel.name)
        if not players or not any(names_match(p, self.bot_name) for p in players):
            if self.table.pop(channel.id) is not None:
                log(f"no longer tracking #{channel.name}", "👋", tag=channel.name)
            return None

        def fresh() -> ChannelGameState:
            color = Color.WHITE if names_match(players[0], self.bot_name) else Color.BLACK
            return ChannelGameState(channel.id, channel.name, players[0], players[1], color)

        state, created = self.table.claim(channel.id, fresh)
        if not created and (state.player1, state.player2) != players:
            state = fresh()
            self.table.put(channel.id, state)
            created = True
        if created:
            log(f"tracking #{channel.name} as {state.bot_color.name.lower()}", "🎲", tag=channel.name)
            self.reconcile(state)
        return state

    def on_channel_removed(self, channel_id: str):
        state = self.table.pop(channel_id)
        if state is not None:
            log(f"channel #{state.name} gone", "👋", tag=state.name)

    # ---------- events ----------

    def handle(self, msg: ChatMessage):
        state = self.table.get(msg.channel_id)
        if state is None:
            return
        kind = self.classify(msg)
        if kind is EventKind.LINK:
            self._on_link(state, msg)
        elif kind is EventKind.PROMPT:
            self._on_prompt(state)
        elif kind is EventKind.CONTROL:
            self._on_control(state, msg)
        elif kind is EventKind.COMMAND:
            self._on_command(state, msg)
        elif kind is EventKind.BARE_MOVE:
            self._on_bare_move(state, msg)

    def _on_link(self, state: ChannelGameState, msg: ChatMessage):
        try:
            board = self._board_from_link(msg.content)
        except TopazError as e:
            log(f"link did not replay: {e}", "🔗", tag=state.name)
            with state.lock:
                state.drop_board()
                ask = self._count_link_request(state)
            if ask:
                self.chatter.say(state.channel_id, LINK_REQUEST, tag=state.name)
            return
        with state.lock:
            state.snapshot(board)
            play = self._should_play(state)
        log(f"snapshot {board.tps()} ({state.belief.value})", "🔗", tag=state.name)
        if play:
            self._play_turn(state)

    def _on_prompt(self, state: ChannelGameState):
        with state.lock:
            play = self._should_play(state)
            ask = False
            if not play:
                state.belief = Belief.UNKNOWN
                ask = self._count_link_request(state)
        if play:
            self._play_turn(state)
        elif ask:
            self.chatter.say(state.channel_id, LINK_REQUEST, tag=state.name)

    def _on_control(self, state: ChannelGameState, msg: ChatMessage):
        text = msg.content.strip()
        with state.lock:
            state.drop_board()
            if text.startswith(UNDO_REQUEST):
                # Our own undo request stays pending until someone else answers it.
                state.undo_pending = self.is_bot(msg)
        log(f"position dropped after {text[:30]!r}", "↩️", tag=state.name)

    def _on_bare_move(self, state: ChannelGameState, msg: ChatMessage):
        if not self.is_opponent(state, msg):
            return
        with state.lock:
            if msg.id in state.applied or state.board is None:
                return
            if state.board.side_to_move == state.bot_color:
                return
            try:
                move = parse_move(msg.content, state.board)
            except TopazError:
                return
            state.board.do_move(move)
            state.applied.add(msg.id)
            state.dirty = True
            state.generation += 1
            state.belief = state.belief_from_board()
            played = move.ptn(state.board.size)
        log(f"{msg.author_name} played {played}", "♟️", tag=state.name)

    def _on_command(self, state: ChannelGameState, msg: ChatMessage):
        words = msg.content.strip().lower().split()
        sub = words[1] if len(words) > 1 else ""
        if sub == "position":
            with state.lock:
                board = state.board.copy() if state.board is not None else None
            if board is None:
                self.chatter.say(state.channel_id, "Sorry, I don't know the board state right now.", tag=state.name)
                return
            link = encode_link(format_ptn(board, []))
            self.chatter.say(state.channel_id, self.chatter.render("position", tps=board.tps(), link=link),
                             tag=state.name)
        elif sub in ("search", "analyze", "analyse"):
            with state.lock:
                board = state.board.copy() if state.board is not None else None
            if board is None:
                self.chatter.say(state.channel_id, "Sorry, I don't know the board state right now.", tag=state.name)
                return
            outcome = self.worker.run(self.search, board, settings.SEARCH_TIME_SEC)
            log(outcome.describe(board.size), "🔎", tag=state.name)
            mv = outcome.best_move.ptn(board.size) if outcome.best_move else "none"
            self.chatter.say(state.channel_id, self.chatter.render(
                "analysis", move=mv, score=outcome.score, depth=outcome.depth), tag=state.name)
        elif sub == "undo":
            with state.lock:
                state.undo_pending = True
            self.chatter.say(state.channel_id, UNDO_REQUEST, tag=state.name)
        elif sub == "redraw":
            self.chatter.say(state.channel_id, REDRAW_REQUEST, tag=state.name)

    # ---------- playing ----------

    def _should_play(self, state: ChannelGameState) -> bool:
        return (
            settings.AUTO_PLAY
            and state.belief is Belief.OWN_TURN
            and not state.undo_pending
            and state.board is not None
            and not state.board.is_over()
        )

    def _choose(self, board: Board) -> Tuple[Optional[Move], str]:
        outcome = self.search(board, settings.SEARCH_TIME_SEC)
        move = outcome.best_move
        if move is None:
            return None, ""
        text = move.ptn(board.size)
        board.do_move(move)
        if not board.is_over():
            board.null_move()
            if board.can_make_road() is not None:
                text += "'"
            board.undo_move()
        board.undo_move()
        return move, text

    def _play_turn(self, state: ChannelGameState):
        with state.lock:
            if not self._should_play(state):
                return
            board = state.board.copy()
            generation = state.generation
        try:
            move, text = self.worker.run(self._choose, board)
        except Exception as e:
            log_exc("sync/search", e, tag=state.name)
            return
        if move is None:
            log("search found no move", "🤷", tag=state.name)
            return
        with state.lock:
            if not self.table.is_current(state.channel_id, state) or state.generation != generation:
                log(f"discarding stale move {text}", "🗑️", tag=state.name)
                return
            state.board.do_move(move)
            state.dirty = True
            state.generation += 1
            state.belief = state.belief_from_board()
        log(f"playing {text}", "🤖", tag=state.name)
        self.chatter.say(state.channel_id, text, tag=state.name)

    # ---------- reconciliation ----------

    def _count_link_request(self, state: ChannelGameState) -> bool:
        """Call with the state lock held. False once the retry budget is spent."""
        if state.link_requests >= settings.MAX_LINK_REQUESTS:
            log(f"giving up: {Ambiguous('no usable link after %d requests' % state.link_requests)}",
                "❓", tag=state.name)
            return False
        state.link_requests += 1
        return True

    def _board_from_link(self, content: str) -> Board:
        return parse_game(get_ptn_string(strip_link_brackets(content))).replay()

    def scan(self, state: ChannelGameState,
             messages: List[ChatMessage]) -> Tuple[Optional[ChatMessage], List[ChatMessage]]:
        """
        Fold over a transcript, most recent first. Returns the newest link (or
        None if a control message or the start came first) and the move
        messages seen before reaching it, most recent first. Only the
        opponent's and the bot's own single-token messages count as moves.
        """
        moves: List[ChatMessage] = []
        for msg in messages:
            kind = self.classify(msg)
            if kind is EventKind.LINK:
                return msg, moves
            if kind is EventKind.CONTROL:
                return None, moves
            if kind is EventKind.BARE_MOVE and self.is_opponent(state, msg):
                moves.append(msg)
            elif self.is_bot(msg) and _single_token(msg.content.strip()):
                moves.append(msg)
        return None, moves

    def reconcile(self, state: ChannelGameState):
        messages = self.transport.get_messages(state.channel_id, settings.TRANSCRIPT_LIMIT)
        link, moves = self.scan(state, messages)
        board, applied = None, set()
        if link is not None:
            try:
                board = self._board_from_link(link.content)
            except TopazError as e:
                log(f"transcript link did not replay: {e}", "🔗", tag=state.name)
        if board is not None:
            for msg in reversed(moves):
                try:
                    board.do_move(parse_move(msg.content, board))
                except TopazError:
                    continue
                applied.add(msg.id)
        with state.lock:
            if board is None:
                state.drop_board()
                ask, play = self._count_link_request(state), False
            else:
                state.snapshot(board)
                state.applied |= applied
                state.dirty = bool(applied)
                ask, play = False, self._should_play(state)
        if ask:
            self.chatter.say(state.channel_id, LINK_REQUEST, tag=state.name)
        elif play:
            self._play_turn(state)


def _single_token(text: str) -> bool:
    return len(text.split()) == 1 and not text.startswith("!")
