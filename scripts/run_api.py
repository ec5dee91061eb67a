#!/usr/bin/env python3
"""
Start the chat API server.

Usage:
  python scripts/run_api.py
  python scripts/run_api.py --port 8001 --host 0.0.0.0
  python scripts/run_api.py --workers 2   # model calls block a worker thread for up to perf_llm.timeout_seconds
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def main() -> None:
    from config.settings import settings
    parser = argparse.ArgumentParser(description="Run Mitra AI Chat API")
    parser.add_argument("--host", default=settings.api.host, help="Bind host")
    parser.add_argument("--port", type=int, default=settings.api.port, help="Bind port")
    parser.add_argument("--reload", action="store_true", help="Enable reload (dev)")
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of worker processes (default 1). Ignored when --reload.",
    )
    args = parser.parse_args()

    import uvicorn
    from src.log import cleanup_logs, init_logging

    init_logging()
    report = cleanup_logs()
    if report.get("deleted_by_age") or report.get("deleted_by_size"):
        print(f"Log cleanup: {report}")
    settings.print_info()
    if args.reload or args.workers > 1:
        # reload / multi-worker need an import string rather than the app object
        kwargs = {"host": args.host, "port": args.port, "reload": args.reload}
        if not args.reload:
            kwargs["workers"] = args.workers
        uvicorn.run("src.api.server:app", **kwargs)
        return

    from src.api.server import app
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
