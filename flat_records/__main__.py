"""Serve the record store over HTTP."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import timedelta
from pathlib import Path
from typing import Sequence

import uvicorn

from .errors import TableParseError
from .server.http import create_store_app
from .server.settings import DEFAULT_TABLES, StoreSettings, TableSpec

logger = logging.getLogger("flat_records")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--data-root",
        type=Path,
        default=Path("."),
        help="Directory holding the <table>.csv files",
    )
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=3000)
    parser.add_argument(
        "--ttl", type=float, default=60.0, help="Seconds a list response stays cached"
    )
    parser.add_argument(
        "--table",
        dest="tables",
        action="append",
        help="Table to serve; repeat for several (default: users, products)",
    )
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    try:
        settings = StoreSettings(
            data_root=args.data_root,
            tables=tuple(TableSpec(name) for name in (args.tables or DEFAULT_TABLES)),
            ttl=timedelta(seconds=args.ttl),
        )
        app = create_store_app(settings)
    except (TableParseError, ValueError) as exc:
        logger.error("Cannot start server: %s", exc)
        return 1
    logger.info("Server running on http://%s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
