"""Command-line entry point for the offline sprite analysis pipeline."""

import argparse
import json
import logging
import sys
from pathlib import Path

from pokebar_sprites.core import BoundingBox, FrameSize, PipelineSettings, SpriteGrid
from pokebar_sprites.core.anim_data import declared_frame_for_sheet
from pokebar_sprites.core.errors import ProcessingError, ValidationError
from pokebar_sprites.core.frame_resolver import resolve_frame
from pokebar_sprites.core.offsets import compute_geometry
from pokebar_sprites.core.pipeline import run_pipeline
from pokebar_sprites.core.pixel_buffer import PixelBuffer, load_sheet
from pokebar_sprites.core.sprite_files import WALK, AnimationType, prefers_standard_grid
from pokebar_sprites.main import configure_logging
from pokebar_sprites.utils import validators
from pokebar_sprites.web import image_tools

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pokebar-pipeline",
        description="Detect sprite-sheet grids and offsets and write raw metadata plus runtime offsets.",
    )
    parser.add_argument("sprite_root", type=Path, nargs="?", help="SpriteCollab 'sprite' directory")
    parser.add_argument("output_dir", type=Path, nargs="?", help="Destination for raw JSON files")
    parser.add_argument(
        "--final-dir",
        type=Path,
        help="Directory holding pokemon_offsets_final.json and receiving the runtime file (default: output dir)",
    )
    parser.add_argument("--workers", type=int, default=1, help="Parallel analysis workers (default: 1)")
    parser.add_argument(
        "--rows",
        default="2,6",
        help="Walk sheet rows sampled for offsets, 0-based and comma separated (default: 2,6)",
    )
    parser.add_argument(
        "--sheet",
        type=Path,
        help="Analyse a single sheet and print its grid and offsets as JSON",
    )
    parser.add_argument(
        "--preview",
        type=Path,
        help="With --sheet, also write an annotated PNG (grid, ground line, center line, hitbox)",
    )
    parser.add_argument(
        "--no-standard",
        action="store_true",
        help="With --sheet, skip the 8-direction layout preference",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Analyse without writing any output",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def analyze_single_sheet(path: Path, prefer_standard: bool, rows) -> dict:
    buffer = PixelBuffer.from_image(load_sheet(path))
    resolution = resolve_frame(
        buffer,
        AnimationType.IDLE,
        declared_frame=declared_frame_for_sheet(path),
        prefer_standard=prefer_standard,
    )
    geometry = compute_geometry(buffer, resolution.grid, resolution.frame, rows)
    return {
        "file": path.name,
        "grid": {"columns": resolution.grid.columns, "rows": resolution.grid.rows},
        "frame": {"width": resolution.frame.width, "height": resolution.frame.height},
        "source": resolution.source,
        "groundOffsetY": geometry.offsets.ground_offset_y,
        "centerOffsetX": geometry.offsets.center_offset_x,
        "hitbox": {
            "x": geometry.hitbox.x,
            "y": geometry.hitbox.y,
            "width": geometry.hitbox.width,
            "height": geometry.hitbox.height,
        },
    }


def write_preview(sheet: Path, result: dict, destination: Path) -> Path:
    hitbox = result["hitbox"]
    rendered = image_tools.draw_analysis_overlay(
        image_tools.load_image(sheet),
        SpriteGrid(result["grid"]["columns"], result["grid"]["rows"]),
        FrameSize(result["frame"]["width"], result["frame"]["height"]),
        ground_offset_y=result["groundOffsetY"],
        center_offset_x=result["centerOffsetX"],
        hitbox=BoundingBox(hitbox["x"], hitbox["y"], hitbox["width"], hitbox["height"]),
        scale=2,
    )
    image_tools.save_image(rendered, destination)
    logger.info("Preview written to %s", destination)
    return destination


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        rows = validators.parse_index_list(args.rows, "Rows")
        if args.sheet is not None:
            prefer_standard = prefers_standard_grid(args.sheet.name) and not args.no_standard
            sheet_rows = rows if args.sheet.name.lower() == WALK.lower() else None
            result = analyze_single_sheet(args.sheet, prefer_standard, sheet_rows)
            if args.preview is not None:
                write_preview(args.sheet, result, args.preview)
            print(json.dumps(result, indent=2))
            return 0

        if args.sprite_root is None or args.output_dir is None:
            parser.error("sprite_root and output_dir are required unless --sheet is given")
        sprite_root = validators.validate_sprite_root(args.sprite_root)
        settings = PipelineSettings(
            sprite_root=sprite_root,
            output_dir=args.output_dir,
            final_dir=args.final_dir,
            workers=validators.validate_workers(args.workers),
            walk_offset_rows=tuple(rows) if rows else (),
            dry_run=args.dry_run,
        )
    except (ValidationError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        return 2
    except ProcessingError as exc:
        logger.error("%s", exc)
        return 1

    report = run_pipeline(settings)
    logger.info(
        "Done: %s generated, %s anomalies, %s errors",
        report.generated,
        len(report.anomalies),
        len(report.errors),
    )
    return 1 if report.errors else 0


if __name__ == "__main__":
    sys.exit(main())
