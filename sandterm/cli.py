from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from sandterm import telemetry
from sandterm.server.config import get_settings


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Serve persistent terminal sessions over isolated sandboxes."
    )
    parser.add_argument("--host", default=settings.host, help="Bind address.")
    parser.add_argument("--port", type=int, default=settings.port, help="Bind port.")
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Log level for sandterm and uvicorn.",
    )
    parser.add_argument(
        "--reload", action="store_true", help="Reload on code changes (development only)."
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    telemetry.configure()

    import uvicorn

    try:
        uvicorn.run(
            "sandterm.server:app",
            host=args.host,
            port=args.port,
            log_level=args.log_level,
            reload=args.reload,
        )
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
