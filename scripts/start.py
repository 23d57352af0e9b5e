#!/usr/bin/env python3
"""
Container entrypoint: release, then hand the process over to gunicorn.

Environment:
  PORT             listen port (default 3000)
  WEB_CONCURRENCY  gunicorn workers (default 2)
  SKIP_RELEASE     set to 1 when migrations run in a separate job
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _env_int(name: str, default: int, *, lo: int, hi: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        value = lo - 1
    if not lo <= value <= hi:
        sys.exit(f"ERROR: {name}={raw!r} must be an integer between {lo} and {hi}.")
    return value


def gunicorn_argv(port: int, workers: int) -> list[str]:
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(workers),
        "--timeout", "30",
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    port = _env_int("PORT", 3000, lo=1, hi=65535)
    workers = _env_int("WEB_CONCURRENCY", 2, lo=1, hi=64)

    if (os.environ.get("SKIP_RELEASE") or "").strip() != "1":
        from scripts.release import run_release

        try:
            run_release()
        except Exception as e:
            sys.exit(f"Release failed: {e}")

    print(f"[start] gunicorn on 0.0.0.0:{port} with {workers} workers", flush=True)
    # exec so gunicorn becomes PID 1 and receives signals directly
    argv = gunicorn_argv(port, workers)
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
