# botlog.py
import sys
import traceback
from datetime import datetime
from typing import Optional


def log(msg: str, emoji: str = "", tag: Optional[str] = None):
    now = datetime.now().strftime("[%H:%M:%S]")
    prefix = f" [{tag}]" if tag else ""
    try:
        print(f"{now}{prefix} {emoji} {msg}")
    except UnicodeEncodeError:
        print(f"{now}{prefix} {msg}")
    sys.stdout.flush()


def log_exc(where: str, e: Exception, tag: Optional[str] = None):
    tb = traceback.format_exc(limit=8)
    log(f"[!] {where}: {e}\n{tb}", "⚠️", tag=tag)
