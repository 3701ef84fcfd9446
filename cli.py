from __future__ import annotations

import argparse
import dataclasses
import json
import sqlite3
import sys

from dhp import journal
from dhp.bootstrap import run_controller, run_reaper
from dhp.settings import settings


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Dynamic Hostports controller")
    p.add_argument("--namespace", default=None, help="Namespace to manage (default: all, or $DHP_NAMESPACE)")
    p.add_argument("--kubeconfig", default=None, help="Path to a kubeconfig file (default: in-cluster config)")
    sub = p.add_subparsers(dest="cmd")

    sub.add_parser("run", help="Sweep stale services, then watch pods (default)")
    sub.add_parser("reap", help="Delete services whose pod is gone, then exit")

    s_ev = sub.add_parser("events", help="Show the latest journal events")
    s_ev.add_argument("--limit", type=int, default=20)
    s_ev.add_argument("--db", default=None, help="Journal path (default: $DHP_DB_PATH)")

    args = p.parse_args(argv)

    overrides = {}
    if args.namespace is not None:
        overrides["namespace"] = args.namespace
    if args.kubeconfig is not None:
        overrides["kubeconfig"] = args.kubeconfig
    cfg = dataclasses.replace(settings, **overrides)

    if args.cmd == "events":
        path = args.db or cfg.db_path
        if not path:
            print("No journal configured; pass --db or set DHP_DB_PATH.", file=sys.stderr)
            return 1
        try:
            rows = journal.latest_events(args.limit, path=path)
        except (FileNotFoundError, sqlite3.OperationalError) as e:
            print(f"Cannot read journal: {e}", file=sys.stderr)
            return 1
        _print(rows)
        return 0

    if args.cmd == "reap":
        _print(run_reaper(cfg))
        return 0

    run_controller(cfg)
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
