"""Batch analysis of a SpriteCollab tree into raw metadata and runtime offsets."""

from __future__ import annotations

import csv
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from . import BoundingBox, FrameSize, PipelineSettings, SpriteGeometry, SpriteGrid
from .anim_data import declared_frame_for_sheet
from .errors import ProcessingError
from .frame_resolver import resolve_frame
from .offsets import compute_geometry
from .offsets_store import OffsetAdjustment, load_adjustments, merge_detected, save_adjustments
from .pixel_buffer import PixelBuffer, load_sheet
from .sprite_files import (
    ATTACK_ANIMATIONS,
    EMOTE_ANIMATIONS,
    IDLE,
    MAX_DEX,
    MIN_DEX,
    SLEEP,
    WALK,
    AnimationType,
    SpriteFolder,
    enumerate_sprite_folders,
)
from ..utils import file_tools

logger = logging.getLogger(__name__)

FRAME_DIFF_RATIO = 0.25
EXTREME_OFFSET_RATIO = 0.6
MISSING_FOLDER_NOTE = "Sprite folder missing in SpriteCollab clone."
ANALYSIS_FAILED_NOTE = "Sprite folder present but every variant failed to analyse."
SUMMARY_COLUMNS = (
    "totalDex",
    "present",
    "placeholders",
    "anomalies",
    "avgFrameWidth",
    "avgFrameHeight",
    "avgGroundOffset",
    "avgCenterOffset",
)


class BodyType(str, Enum):
    UNKNOWN = "unknown"
    SMALL = "small"
    MEDIUM = "medium"
    TALL = "tall"
    LONG = "long"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrameModel(_CamelModel):
    width: int
    height: int


class GridModel(_CamelModel):
    columns: int
    rows: int


class SpriteSheetInfo(_CamelModel):
    file_name: Optional[str] = None
    frame: Optional[FrameModel] = None
    grid: Optional[GridModel] = None


class AnimationSummary(_CamelModel):
    has_walk: bool = False
    has_idle: bool = False
    has_sleep: bool = False
    emotes: list[str] = Field(default_factory=list)


class OffsetsModel(_CamelModel):
    ground_offset_y: int = 0
    center_offset_x: int = 0


class PokemonSpriteMetadata(_CamelModel):
    """Contents of one ``pokemon_<id>_raw.json`` file."""

    dex_number: int
    species: str
    form: Optional[str] = None
    walk: SpriteSheetInfo = Field(default_factory=SpriteSheetInfo)
    idle: SpriteSheetInfo = Field(default_factory=SpriteSheetInfo)
    sleep: SpriteSheetInfo = Field(default_factory=SpriteSheetInfo)
    animations: AnimationSummary = Field(default_factory=AnimationSummary)
    offsets: OffsetsModel = Field(default_factory=OffsetsModel)
    body_type: BodyType = BodyType.UNKNOWN
    notes: list[str] = Field(default_factory=list)


class PipelineSummary(_CamelModel):
    total_dex: int
    present: int
    placeholders: int
    anomalies: int
    avg_frame_width: float = 0.0
    avg_frame_height: float = 0.0
    avg_ground_offset: float = 0.0
    avg_center_offset: float = 0.0


@dataclass
class _SheetAnalysis:
    file_name: Optional[str] = None
    grid: Optional[SpriteGrid] = None
    frame: Optional[FrameSize] = None
    buffer: Optional[PixelBuffer] = None

    def to_info(self) -> SpriteSheetInfo:
        if self.file_name is None or self.grid is None or self.frame is None:
            return SpriteSheetInfo(file_name=self.file_name)
        return SpriteSheetInfo(
            file_name=self.file_name,
            frame=FrameModel(width=self.frame.width, height=self.frame.height),
            grid=GridModel(columns=self.grid.columns, rows=self.grid.rows),
        )


@dataclass
class VariantResult:
    folder: SpriteFolder
    metadata: Optional[PokemonSpriteMetadata] = None
    geometry: SpriteGeometry = field(default_factory=SpriteGeometry.empty)
    primary_sheet_size: Optional[tuple[int, int]] = None
    fight_file: Optional[str] = None
    anomalies: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def unique_id(self) -> str:
        return self.folder.variant.unique_id


@dataclass
class PipelineReport:
    results: list[VariantResult]
    placeholders: list[int]
    summary: PipelineSummary
    anomalies: list[str]
    errors: list[str]
    runtime_path: Optional[Path] = None

    @property
    def generated(self) -> int:
        return sum(1 for r in self.results if r.metadata is not None) + len(self.placeholders)


def suggest_body_type(frame: Optional[FrameSize]) -> BodyType:
    if frame is None:
        return BodyType.UNKNOWN
    if frame.height <= 40:
        return BodyType.SMALL
    if frame.height <= 64:
        return BodyType.MEDIUM
    if frame.height <= 96:
        return BodyType.TALL
    return BodyType.LONG


def diff_ratio(a: int, b: int) -> float:
    largest = max(a, b)
    if largest == 0:
        return 0.0
    return (largest - min(a, b)) / largest


def analyze_sheet(
    directory: Path, file_name: Optional[str], animation_type: AnimationType, prefer_standard: bool
) -> _SheetAnalysis:
    """Decode one sheet and resolve its grid from ``AnimData.xml`` or detection."""

    if file_name is None:
        return _SheetAnalysis()
    path = directory / file_name
    if not path.is_file():
        return _SheetAnalysis()

    buffer = PixelBuffer.from_image(load_sheet(path))
    resolution = resolve_frame(
        buffer,
        animation_type,
        declared_frame=declared_frame_for_sheet(path),
        prefer_standard=prefer_standard,
    )
    if resolution.is_degenerate:
        logger.debug("%s: degenerate 1x1 grid", path)
    return _SheetAnalysis(file_name, resolution.grid, resolution.frame, buffer)


def _find_emotes(directory: Path) -> list[str]:
    known = {name.lower() for name in EMOTE_ANIMATIONS}
    files = file_tools.list_files_with_extensions(directory, {".png"})
    return sorted(p.name for p in files if p.name.lower() in known or p.name.startswith("Emote-"))


def _variant_anomalies(
    unique_id: str,
    walk: _SheetAnalysis,
    idle: _SheetAnalysis,
    sleep: _SheetAnalysis,
    reference: Optional[FrameSize],
    geometry: SpriteGeometry,
) -> list[str]:
    anomalies: list[str] = []
    for name, sheet in ((WALK, walk), (IDLE, idle), (SLEEP, sleep)):
        if sheet.file_name is None:
            anomalies.append(f"{unique_id}: {name} missing")

    if walk.frame is not None and idle.frame is not None:
        if (
            diff_ratio(walk.frame.width, idle.frame.width) > FRAME_DIFF_RATIO
            or diff_ratio(walk.frame.height, idle.frame.height) > FRAME_DIFF_RATIO
        ):
            anomalies.append(
                f"{unique_id}: walk frame {walk.frame.width}x{walk.frame.height} "
                f"differs from idle {idle.frame.width}x{idle.frame.height}"
            )

    if walk.grid is not None and idle.grid is not None and walk.grid != idle.grid:
        if walk.grid.cell_count > 1 or idle.grid.cell_count > 1:
            anomalies.append(
                f"{unique_id}: walk grid {walk.grid.columns}x{walk.grid.rows} "
                f"differs from idle {idle.grid.columns}x{idle.grid.rows}"
            )

    if reference is not None:
        offsets = geometry.offsets
        if offsets.ground_offset_y > reference.height * EXTREME_OFFSET_RATIO:
            anomalies.append(
                f"{unique_id}: high ground offset ({offsets.ground_offset_y}) for {reference.height}px frame"
            )
        if abs(offsets.center_offset_x) > reference.width * EXTREME_OFFSET_RATIO:
            anomalies.append(
                f"{unique_id}: extreme center offset ({offsets.center_offset_x}) for {reference.width}px frame"
            )
    return anomalies


def analyze_variant(folder: SpriteFolder, settings: PipelineSettings) -> VariantResult:
    """Analyse every main sheet of one variant. Failures are captured in the result."""

    result = VariantResult(folder=folder)
    variant = folder.variant
    directory = folder.path
    try:
        walk = analyze_sheet(directory, file_tools.find_file(directory, WALK), AnimationType.WALK, True)
        idle = analyze_sheet(directory, file_tools.find_file(directory, IDLE), AnimationType.IDLE, True)
        sleep = analyze_sheet(directory, file_tools.find_file(directory, SLEEP), AnimationType.SLEEP, False)

        source = next((s for s in (walk, idle, sleep) if s.frame is not None), None)
        if source is not None:
            rows = settings.walk_offset_rows if source is walk else None
            result.geometry = compute_geometry(
                source.buffer,
                source.grid,
                source.frame,
                rows,
                hitbox_shrink=settings.hitbox_shrink_factor,
                min_hitbox_size=settings.min_hitbox_size,
            )
            result.primary_sheet_size = (source.buffer.width, source.buffer.height)

        offsets = result.geometry.offsets
        result.metadata = PokemonSpriteMetadata(
            dex_number=variant.dex_number,
            species=f"{variant.dex_number:04d}",
            form=None if variant.form_id == "0000" else variant.form_id,
            walk=walk.to_info(),
            idle=idle.to_info(),
            sleep=sleep.to_info(),
            animations=AnimationSummary(
                has_walk=walk.file_name is not None,
                has_idle=idle.file_name is not None,
                has_sleep=sleep.file_name is not None,
                emotes=_find_emotes(directory),
            ),
            offsets=OffsetsModel(ground_offset_y=offsets.ground_offset_y, center_offset_x=offsets.center_offset_x),
            body_type=suggest_body_type(source.frame if source else None),
        )
        result.fight_file = file_tools.find_first_file(directory, ATTACK_ANIMATIONS)
        result.anomalies = _variant_anomalies(
            variant.unique_id, walk, idle, sleep, source.frame if source else None, result.geometry
        )
    except Exception as exc:
        logger.exception("Failed to analyse %s", directory)
        result.metadata = None
        result.error = f"Dex {variant.dex_number:04d} Form {variant.form_id}: {exc}"
    return result


def placeholder_metadata(dex: int, note: str = MISSING_FOLDER_NOTE) -> PokemonSpriteMetadata:
    return PokemonSpriteMetadata(dex_number=dex, species=f"{dex:04d}", notes=[note])


def detected_adjustment(result: VariantResult) -> OffsetAdjustment:
    """Offsets record built purely from a variant's analysis."""

    metadata = result.metadata
    sheets = (metadata.walk, metadata.idle, metadata.sleep) if metadata else ()
    frame = next((s.frame for s in sheets if s.frame is not None), None)
    grid = next((s.grid for s in sheets if s.grid is not None), None)
    primary = next((s.file_name for s in sheets if s.file_name is not None), None)

    geometry = result.geometry
    if geometry.hitbox.is_valid:
        hitbox = geometry.hitbox
    elif frame is not None:
        hitbox = BoundingBox(0, 0, frame.width, frame.height)
    else:
        hitbox = BoundingBox.empty()

    return OffsetAdjustment(
        unique_id=result.unique_id,
        ground_offset_y=geometry.offsets.ground_offset_y,
        center_offset_x=geometry.offsets.center_offset_x,
        reviewed=False,
        hitbox_x=hitbox.x,
        hitbox_y=hitbox.y,
        hitbox_width=hitbox.width,
        hitbox_height=hitbox.height,
        frame_width=frame.width if frame else None,
        frame_height=frame.height if frame else None,
        grid_columns=grid.columns if grid else None,
        grid_rows=grid.rows if grid else None,
        primary_sprite_file=primary,
        walk_sprite_file=metadata.walk.file_name if metadata else None,
        idle_sprite_file=metadata.idle.file_name if metadata else None,
        fight_sprite_file=result.fight_file,
        has_attack_animation=bool(result.fight_file),
    )


def _mean(values: list[int]) -> float:
    return sum(values) / len(values) if values else 0.0


def build_summary(results: list[VariantResult], placeholders: list[int], anomaly_count: int) -> PipelineSummary:
    widths: list[int] = []
    heights: list[int] = []
    grounds: list[int] = []
    centers: list[int] = []
    present: set[int] = set()
    for result in results:
        if result.metadata is None:
            continue
        present.add(result.folder.variant.dex_number)
        if result.geometry.frame_width > 0:
            widths.append(result.geometry.frame_width)
            heights.append(result.geometry.frame_height)
            grounds.append(result.geometry.offsets.ground_offset_y)
            centers.append(result.geometry.offsets.center_offset_x)
    return PipelineSummary(
        total_dex=MAX_DEX - MIN_DEX + 1,
        present=len(present),
        placeholders=len(placeholders),
        anomalies=anomaly_count,
        avg_frame_width=_mean(widths),
        avg_frame_height=_mean(heights),
        avg_ground_offset=_mean(grounds),
        avg_center_offset=_mean(centers),
    )


def _format_number(value: float) -> str:
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return text or "0"


def write_summary(output_dir: Path, summary: PipelineSummary) -> tuple[Path, Path]:
    json_path = output_dir / "summary.json"
    json_path.write_text(summary.model_dump_json(by_alias=True, indent=2), encoding="utf-8")

    data = summary.model_dump(by_alias=True)
    csv_path = output_dir / "summary.csv"
    with csv_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(SUMMARY_COLUMNS)
        writer.writerow(
            [data[name] if isinstance(data[name], int) else _format_number(data[name]) for name in SUMMARY_COLUMNS]
        )
    return json_path, csv_path


def _write_metadata(path: Path, metadata: PokemonSpriteMetadata) -> None:
    path.write_text(
        json.dumps(metadata.model_dump(mode="json", by_alias=True), indent=2),
        encoding="utf-8",
    )


def write_runtime_offsets(settings: PipelineSettings, results: list[VariantResult]) -> Path:
    """Merge detected values with ``pokemon_offsets_final.json`` into the runtime file.

    Stored records of variants that failed or were not analysed pass through unchanged.
    """

    final_dir = settings.final_dir or settings.output_dir
    file_tools.ensure_directory(final_dir)
    try:
        adjustments = load_adjustments(final_dir / file_tools.FINAL_OFFSETS_FILE)
    except ProcessingError as exc:
        logger.error("Ignoring unreadable final adjustments: %s", exc)
        adjustments = {}

    merged: dict[str, OffsetAdjustment] = {}
    for result in results:
        existing = adjustments.get(result.unique_id)
        if result.metadata is not None:
            merged[result.unique_id] = merge_detected(existing, detected_adjustment(result), result.primary_sheet_size)
        elif existing is not None:
            logger.warning("Keeping stored offsets for %s: analysis failed", result.unique_id)
            merged[result.unique_id] = existing

    for unique_id, record in adjustments.items():
        if unique_id not in merged:
            logger.debug("Carrying forward stored offsets for unanalysed %s", unique_id)
            merged[unique_id] = record
    return save_adjustments(final_dir / file_tools.RUNTIME_OFFSETS_FILE, merged.values())


def run_pipeline(settings: PipelineSettings) -> PipelineReport:
    """Analyse every variant below ``settings.sprite_root`` and write the outputs.

    With ``settings.dry_run`` nothing is written; the report is still complete.
    """

    folders = list(enumerate_sprite_folders(settings.sprite_root))
    logger.info("Found %s variants (including forms) in %s", len(folders), settings.sprite_root)

    workers = max(1, settings.workers)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        results = list(executor.map(lambda folder: analyze_variant(folder, settings), folders))

    found = {r.folder.variant.dex_number for r in results if r.metadata is not None}
    placeholders = [dex for dex in range(MIN_DEX, MAX_DEX + 1) if dex not in found]

    anomalies = [anomaly for r in results for anomaly in r.anomalies]
    errors = [r.error for r in results if r.error]
    summary = build_summary(results, placeholders, len(anomalies))
    report = PipelineReport(results, placeholders, summary, anomalies, errors)

    for anomaly in anomalies:
        logger.warning("Anomaly: %s", anomaly)
    for error in errors:
        logger.error("Failed variant: %s", error)

    if settings.dry_run:
        logger.info("Dry run: %s variants analysed, nothing written", len(results))
        return report

    file_tools.ensure_directory(settings.output_dir)
    for result in results:
        if result.metadata is not None:
            _write_metadata(file_tools.raw_metadata_path(settings.output_dir, result.unique_id), result.metadata)
    folder_dex = {folder.variant.dex_number for folder in folders}
    for dex in placeholders:
        note = ANALYSIS_FAILED_NOTE if dex in folder_dex else MISSING_FOLDER_NOTE
        _write_metadata(file_tools.raw_metadata_path(settings.output_dir, f"{dex:04d}"), placeholder_metadata(dex, note))
    logger.info(
        "Generated %s raw files (present: %s, placeholders: %s)",
        report.generated,
        summary.present,
        len(placeholders),
    )

    if anomalies:
        anomalies_path = settings.output_dir / "anomalies.txt"
        anomalies_path.write_text("\n".join(anomalies) + "\n", encoding="utf-8")
        logger.info("Anomaly list saved to %s", anomalies_path)

    write_summary(settings.output_dir, summary)

    try:
        report.runtime_path = write_runtime_offsets(settings, results)
    except (OSError, ProcessingError) as exc:
        logger.error("Failed to write runtime offsets: %s", exc)
    return report
