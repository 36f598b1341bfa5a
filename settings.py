# settings.py — env-driven configuration for topaz_bot.py (optionally filled from config.yml)
import os
from typing import Any, Dict

import yaml


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "y", "on")


def refresh():
    """(Re)read every setting from the environment into module globals."""
    global BOT_NAME, TAKBOT_NAME, LINK_MARKER, PTN_NINJA_URL, PLAYTAK_URL
    global HTTP_TIMEOUT_SEC, MAX_NET_RETRIES, RECONNECT_DELAY_SEC
    global NODE_LIMIT, PUZZLE_NODE_LIMIT, SKIP_OPENING_PLIES, SEARCH_TIME_SEC, SEARCH_MAX_DEPTH, ENGINE_THREADS
    global MAX_LINK_REQUESTS, TRANSCRIPT_LIMIT, AUTO_PLAY
    global PUZZLE_DATA_PATH, CHAT_MIN_INTERVAL, CHAT_MAX_LEN, CONFIG_PATH

    # ---------- Identities ----------
    BOT_NAME    = os.getenv("TOPAZ_BOT_NAME", "topazbot").strip()
    TAKBOT_NAME = os.getenv("TAKBOT_NAME", "TakBot").strip()

    # ---------- Links / archive ----------
    LINK_MARKER         = os.getenv("LINK_MARKER", "ptn.ninja/").strip()
    PTN_NINJA_URL       = os.getenv("PTN_NINJA_URL", "https://ptn.ninja/").strip()
    PLAYTAK_URL         = os.getenv("PLAYTAK_URL", "https://www.playtak.com/games/{id}/view").strip()
    HTTP_TIMEOUT_SEC    = float(os.getenv("HTTP_TIMEOUT_SEC", "10.0"))
    MAX_NET_RETRIES     = int(os.getenv("MAX_NET_RETRIES", "3"))
    RECONNECT_DELAY_SEC = float(os.getenv("RECONNECT_DELAY_SEC", "2.0"))

    # ---------- Engine budgets ----------
    NODE_LIMIT         = int(os.getenv("NODE_LIMIT", "100000"))          # per-ply tinue report search
    PUZZLE_NODE_LIMIT  = int(os.getenv("PUZZLE_NODE_LIMIT", "250000"))   # puzzle fallback search
    SKIP_OPENING_PLIES = int(os.getenv("SKIP_OPENING_PLIES", "6"))
    SEARCH_TIME_SEC    = float(os.getenv("SEARCH_TIME_SEC", "20.0"))     # async game move / !topaz analyze
    SEARCH_MAX_DEPTH   = int(os.getenv("SEARCH_MAX_DEPTH", "8"))
    ENGINE_THREADS     = int(os.getenv("ENGINE_THREADS", "2"))           # per pool: games, analysis

    # ---------- Async games ----------
    MAX_LINK_REQUESTS = int(os.getenv("MAX_LINK_REQUESTS", "3"))   # per channel, reset by a fresh link
    TRANSCRIPT_LIMIT  = int(os.getenv("TRANSCRIPT_LIMIT", "100"))
    AUTO_PLAY         = _flag("AUTO_PLAY", "true")

    # ---------- Puzzles / chat ----------
    PUZZLE_DATA_PATH  = os.getenv("PUZZLE_DATA_PATH", "tinue_data.csv").strip()
    CHAT_MIN_INTERVAL = float(os.getenv("CHAT_MIN_INTERVAL", "1.0"))
    CHAT_MAX_LEN      = int(os.getenv("CHAT_MAX_LEN", "2000"))
    CONFIG_PATH       = os.getenv("TOPAZ_CONFIG", "config.yml").strip()


refresh()


def setenv(k, v):
    if v is None:
        return
    if isinstance(v, bool):
        v = "true" if v else "false"
    os.environ[k] = str(v)


def load_config(path: str) -> Dict[str, Any]:
    """Read config.yml; a missing file is an empty config."""
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def apply_config_to_env(cfg: Dict[str, Any]):
    # Explicit environment variables win over the file.
    def put(k, v):
        if os.getenv(k) is None:
            setenv(k, v)

    bot = cfg.get("bot") or {}
    put("TOPAZ_BOT_NAME", bot.get("name"))
    put("TAKBOT_NAME", bot.get("takbot"))
    put("AUTO_PLAY", bot.get("auto_play"))

    links = cfg.get("links") or {}
    put("LINK_MARKER", links.get("marker"))
    put("PTN_NINJA_URL", links.get("ptn_ninja_url"))
    put("PLAYTAK_URL", links.get("playtak_url"))
    put("HTTP_TIMEOUT_SEC", links.get("timeout"))
    put("MAX_NET_RETRIES", links.get("retries"))

    eng = cfg.get("engine") or {}
    put("NODE_LIMIT", eng.get("node_limit"))
    put("PUZZLE_NODE_LIMIT", eng.get("puzzle_node_limit"))
    put("SEARCH_TIME_SEC", eng.get("search_time"))
    put("SEARCH_MAX_DEPTH", eng.get("search_depth"))
    put("ENGINE_THREADS", eng.get("threads"))

    sync = cfg.get("sync") or {}
    put("MAX_LINK_REQUESTS", sync.get("max_link_requests"))
    put("TRANSCRIPT_LIMIT", sync.get("transcript_limit"))

    put("PUZZLE_DATA_PATH", (cfg.get("puzzles") or {}).get("path"))

    chat = cfg.get("chat") or {}
    put("CHAT_MIN_INTERVAL", chat.get("min_interval"))
    put("CHAT_MAX_LEN", chat.get("max_len"))

    refresh()
