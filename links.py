# links.py — turn a chat query (archive id, ptn.ninja link, raw PTN) into PTN text
from __future__ import annotations

import re
import threading
import time
from typing import Optional

import requests
from bs4 import BeautifulSoup
from lzstring import LZString
from requests.exceptions import ChunkedEncodingError, ConnectionError, ReadTimeout

import settings
from botlog import log
from errors import MalformedLink, NetworkFailure, UnknownQueryShape
from ptn import HEADER_RE, TOKEN_RE

_http_lock = threading.Lock()
_BRACKETED_URL_RE = re.compile(r"<(https?://[^>\s]+)>")


def strip_link_brackets(text: str) -> str:
    """Chat clients wrap links in <...> to suppress previews; drop the wrapping."""
    return _BRACKETED_URL_RE.sub(r"\1", text or "")


def looks_like_ptn(text: str) -> bool:
    if HEADER_RE.search(text):
        return True
    return any(TOKEN_RE.match(tok) for tok in text.split())


def get_ptn_string(query: str) -> str:
    """
    Classify and resolve a query:
    - non-negative integer -> playtak archive id (fetched)
    - contains the link marker -> ptn.ninja payload (decompressed)
    - PTN-shaped text -> returned unchanged
    - anything else -> UnknownQueryShape
    """
    q = strip_link_brackets((query or "").strip())
    if q.isdigit():
        return fetch_playtak(int(q))
    if settings.LINK_MARKER in q:
        return decode_link(q)
    if q and looks_like_ptn(q):
        return q
    raise UnknownQueryShape(f"Not a playtak id, ptn.ninja link or PTN: {query[:60]!r}")


def link_payload(text: str) -> str:
    after = text.split(settings.LINK_MARKER, 1)[1]
    words = after.split()
    payload = words[0] if words else ""
    return payload.split("&name", 1)[0].split("&", 1)[0].rstrip(">")


def decode_link(text: str) -> str:
    payload = link_payload(text)
    if not payload:
        raise MalformedLink("Link has no game data after the marker")
    try:
        ptn_text = LZString().decompressFromEncodedURIComponent(payload)
    except Exception as e:
        raise MalformedLink(f"Could not decompress link payload: {e}") from e
    if not ptn_text:
        raise MalformedLink("Link payload decompressed to nothing")
    return ptn_text


def encode_link(ptn_text: str) -> str:
    return settings.PTN_NINJA_URL + LZString().compressToEncodedURIComponent(ptn_text)


# =====================
# ARCHIVE FETCH
# =====================

def _is_transient_net_err(e: Exception) -> bool:
    s = str(e).lower()
    return any([
        isinstance(e, (ConnectionError, ReadTimeout, ChunkedEncodingError)),
        "connection aborted" in s,
        "connection reset" in s,
        "temporarily unavailable" in s,
        "gateway timeout" in s,
        "bad gateway" in s,
    ])


def _retry_call(desc: str, fn, *args, tag: Optional[str] = None, **kwargs):
    """Retry transient network errors a bounded number of times, one request at a time."""
    attempt = 0
    while True:
        try:
            with _http_lock:
                return fn(*args, **kwargs)
        except Exception as e:
            if not _is_transient_net_err(e):
                raise
            attempt += 1
            if attempt > settings.MAX_NET_RETRIES:
                raise NetworkFailure(f"{desc}: exceeded retries ({settings.MAX_NET_RETRIES})") from e
            log(f"{desc}: transient net error; retry {attempt}/{settings.MAX_NET_RETRIES} "
                f"after {settings.RECONNECT_DELAY_SEC:.0f}s", "🔁", tag=tag)
            time.sleep(settings.RECONNECT_DELAY_SEC)


def fetch_playtak(game_id: int) -> str:
    url = settings.PLAYTAK_URL.format(id=game_id)
    try:
        resp = _retry_call(f"fetch {game_id}", requests.get, url,
                           timeout=settings.HTTP_TIMEOUT_SEC, tag="playtak")
    except NetworkFailure:
        raise
    except requests.RequestException as e:
        raise NetworkFailure(f"Could not fetch game {game_id}: {e}") from e
    if resp.status_code != 200:
        raise NetworkFailure(f"Archive returned HTTP {resp.status_code} for game {game_id}")
    text = resp.text or ""
    if "html" in (resp.headers.get("Content-Type") or "").lower() or text.lstrip().startswith("<"):
        soup = BeautifulSoup(text, "html.parser")
        node = soup.find("pre") or soup
        text = node.get_text("\n")
    text = text.strip()
    if not text:
        raise NetworkFailure(f"Archive returned an empty game for {game_id}")
    return text
