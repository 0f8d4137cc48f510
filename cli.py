from __future__ import annotations

import argparse
import json
import sys

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _run_headless() -> int:
    from lsr.db import init_db
    from lsr.docker_ops import connect_runtime
    from lsr.reconciler import Reconciler
    from lsr.runtime import DesiredState
    from lsr.settings import settings

    init_db()
    desired = DesiredState(service=settings.service, image=settings.image, replicas=settings.replicas)
    runtime = connect_runtime()
    try:
        Reconciler(runtime, desired).run_forever()
    except KeyboardInterrupt:
        return 130
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Label-scoped Service Reconciler CLI")
    p.add_argument("--api", default="http://localhost:8000", help="API base URL")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("status", help="Show desired state, backoff and the last tick")

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)

    sub.add_parser("reconcile", help="Run one reconciliation tick now")

    sub.add_parser("run", help="Run the reconciler in the foreground without the API (settings from LSR_* env)")

    args = p.parse_args(argv)

    if args.cmd == "run":
        return _run_headless()

    base = args.api.rstrip("/")

    if args.cmd == "status":
        _print(requests.get(f"{base}/status", timeout=10).json())
        return 0

    if args.cmd == "events":
        _print(requests.get(f"{base}/events", params={"limit": args.limit}, timeout=10).json())
        return 0

    if args.cmd == "reconcile":
        r = requests.post(f"{base}/reconcile", timeout=300)
        _print(r.json())
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
