from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import threading

import requests
from docker.errors import DockerException

from vdr.config import load_config
from vdr.errors import ConfigError
from vdr.reconciler import OutcomeKind
from vdr.scheduler import build_fleet
from vdr.settings import settings


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False, default=str))


def _setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _auth():
    if settings.api_password:
        return (settings.api_user, settings.api_password)
    return None


def _run(config_path: str | None, once: bool) -> int:
    _setup_logging()
    try:
        fleet = build_fleet(load_config(config_path, settings), settings)
    except (ConfigError, DockerException) as e:
        logging.getLogger("vdr").error("Startup failed: %s", e)
        return 2

    if once:
        results = fleet.scheduler.tick()
        _print({name: {"outcome": o.kind.value, "version": o.version, "reason": o.reason} for name, o in results.items()})
        return 1 if any(o.kind is OutcomeKind.FAILED for o in results.values()) else 0

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    fleet.scheduler.start()
    while not stop.wait(1.0):
        if not fleet.scheduler.running:
            break
    # Finish the in-flight tick; nothing is saved until an action succeeded.
    fleet.scheduler.stop()
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Version Drift Reconciler CLI")
    p.add_argument("--api", default="http://localhost:8000", help="API base URL")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_run = sub.add_parser("run", help="Run the watcher in the foreground (no API)")
    s_run.add_argument("config", nargs="?", help="Config file (default: $VDR_CONFIG_PATH or ./config.yml)")

    s_once = sub.add_parser("once", help="Run a single reconciliation pass and exit")
    s_once.add_argument("config", nargs="?", help="Config file (default: $VDR_CONFIG_PATH or ./config.yml)")

    sub.add_parser("containers", help="List watched containers")

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)
    s_ev.add_argument("--container")

    s_rec = sub.add_parser("reconcile", help="Reconcile one container now")
    s_rec.add_argument("name")

    args = p.parse_args(argv)

    if args.cmd in {"run", "once"}:
        return _run(args.config, once=args.cmd == "once")

    base = args.api.rstrip("/")

    if args.cmd == "containers":
        r = requests.get(f"{base}/containers", auth=_auth(), timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "events":
        params = {"limit": args.limit}
        if args.container:
            params["container"] = args.container
        r = requests.get(f"{base}/events", params=params, auth=_auth(), timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "reconcile":
        # An action (pull/build) can take a while.
        r = requests.post(f"{base}/containers/{args.name}/reconcile", auth=_auth(), timeout=600)
        _print(r.json())
        return 0 if r.ok and r.json().get("outcome") != "failed" else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
