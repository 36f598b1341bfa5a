#!/usr/bin/env python3
# topaz_local.py — run the tinue report from a terminal
import argparse
import sys

import settings
from botlog import log
from errors import TopazError
from tak import Board
from tinue_report import tinue_report


def is_tps(text: str) -> bool:
    try:
        Board.from_tps(text)
    except (ValueError, TopazError):
        return False
    return True


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Report every tinue ply of a Tak game.")
    ap.add_argument("query", nargs="*", help="playtak id, ptn.ninja link, PTN file contents or TPS")
    ap.add_argument("--file", help="read PTN from this file instead")
    ap.add_argument("--nodes", type=int, help="node limit per ply (default NODE_LIMIT)")
    ap.add_argument("--config", default="config.yml")
    args = ap.parse_args(argv)

    settings.apply_config_to_env(settings.load_config(args.config))
    if args.nodes:
        settings.setenv("NODE_LIMIT", args.nodes)
        settings.refresh()

    if args.file:
        with open(args.file, "r", encoding="utf-8") as f:
            user_input = f.read()
    else:
        user_input = " ".join(args.query).strip()
    if not user_input:
        print("User input in the format of a playtak id, link, PTN or TPS required.")
        return 2
    log(f"User input {user_input[:80]}", "📥")

    if is_tps(user_input):
        print("Single tinue not supported")
        return 1
    try:
        report = tinue_report(user_input)
    except TopazError as e:
        print(f"Error: {e}")
        return 1
    print(f"Sure thing! Completed in {report.elapsed_ms} ms.\n{report.summary()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
