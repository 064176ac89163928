"""Entry point for the sprite review editor service."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

import uvicorn

from .core.config import load_config
from .web.server import create_app


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="[%(levelname)s] %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pokebar-editor",
        description="Serve the sprite geometry review API.",
    )
    parser.add_argument("--sprite-root", type=Path, help="SpriteCollab sprite directory (env POKEBAR_SPRITE_ROOT)")
    parser.add_argument("--offsets", type=Path, help="Adjustments JSON file (env POKEBAR_OFFSETS_PATH)")
    parser.add_argument("--config", type=Path, help="Optional loader settings JSON")
    parser.add_argument("--host", default=os.environ.get("POKEBAR_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("POKEBAR_PORT", "8000")))
    return parser


def run(argv: list[str] | None = None) -> int:
    """Start the editor under uvicorn."""

    args = build_parser().parse_args(argv)
    configure_logging()
    config = load_config(args.config) if args.config else None
    app = create_app(args.sprite_root, args.offsets, config)
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(run())
