# errors.py


class TopazError(Exception):
    """Base for every error the bot reports back to a chat user."""


class MalformedInput(TopazError):
    """PTN text that cannot become a game record (bad size, bad token, illegal move)."""


class MalformedLink(MalformedInput):
    """A ptn.ninja link whose compressed payload does not decode."""


class UnknownQueryShape(TopazError):
    """A query that is neither an archive id, a link, nor PTN."""


class NetworkFailure(TopazError):
    """The game archive could not be reached or returned nothing usable."""


class EngineRejection(TopazError):
    """The engine refused a move or a position (illegal move, unsupported size)."""


class Ambiguous(TopazError):
    """A channel's position could not be pinned down, even after asking for links."""
