"""FastAPI surface for reviewing detected sprite geometry and storing adjustments."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from starlette.concurrency import run_in_threadpool

from ..core import BoundingBox, FrameSize, SpriteGrid
from ..core.config import LoaderConfig
from ..core.errors import ProcessingError, ValidationError
from ..core.offsets import compute_geometry
from ..core.offsets_store import OffsetAdjustment, load_adjustments, remove_adjustment, update_adjustment
from ..core.pixel_buffer import PixelBuffer
from ..core.sprite_files import (
    WALK,
    AnimationType,
    PokemonVariant,
    enumerate_sprite_folders,
    resolve_variant_dir,
)
from ..core.sprite_loader import SpriteLoader
from ..utils import file_tools, validators
from . import image_tools

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parents[2]
DEFAULT_SPRITE_ROOT = BASE_DIR / "SpriteCollab" / "sprite"
DEFAULT_OFFSETS_PATH = BASE_DIR / "Assets" / "Final" / file_tools.FINAL_OFFSETS_FILE
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("POKEBAR_ALLOWED_ORIGINS", "http://localhost:8000").split(",")
    if origin.strip()
]

_STORE_LOCK = threading.Lock()


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SubjectSummary(_CamelModel):
    unique_id: str
    dex_number: int
    form_id: str
    reviewed: bool = False
    has_adjustment: bool = False


class GridPayload(_CamelModel):
    columns: int
    rows: int


class FramePayload(_CamelModel):
    width: int
    height: int


class HitboxPayload(_CamelModel):
    x: int
    y: int
    width: int
    height: int


class AnalysisResponse(_CamelModel):
    unique_id: str
    sheet: AnimationType
    file_name: str
    sheet_width: int
    sheet_height: int
    grid: GridPayload
    frame: FramePayload
    source: str
    ground_offset_y: int
    center_offset_x: int
    hitbox: HitboxPayload
    frames_analyzed: int
    frames_with_pixels: int
    adjustment: Optional[dict] = None


class AdjustmentRequest(_CamelModel):
    """Human-reviewed placement for one subject."""

    ground_offset_y: int = Field(0, ge=0)
    center_offset_x: int = 0
    reviewed: bool = True
    hitbox_x: Optional[int] = Field(None, ge=0)
    hitbox_y: Optional[int] = Field(None, ge=0)
    hitbox_width: Optional[int] = Field(None, ge=1)
    hitbox_height: Optional[int] = Field(None, ge=1)
    frame_width: Optional[int] = Field(None, ge=1)
    frame_height: Optional[int] = Field(None, ge=1)
    grid_columns: Optional[int] = Field(None, ge=1)
    grid_rows: Optional[int] = Field(None, ge=1)

    @field_validator("frame_width", "frame_height", "grid_columns", "grid_rows", mode="before")
    @classmethod
    def _zero_is_unset(cls, value):
        if value in (0, "", None):
            return None
        return value

    def hitbox(self) -> Optional[BoundingBox]:
        values = (self.hitbox_x, self.hitbox_y, self.hitbox_width, self.hitbox_height)
        if all(v is None for v in values):
            return None
        if any(v is None for v in values):
            raise ValidationError("Provide all hitbox fields or none")
        return BoundingBox(*values)


def _resolve_paths(sprite_root: Optional[Path], offsets_path: Optional[Path]) -> tuple[Path, Path]:
    root = sprite_root or Path(os.environ.get("POKEBAR_SPRITE_ROOT", DEFAULT_SPRITE_ROOT))
    offsets = offsets_path or Path(os.environ.get("POKEBAR_OFFSETS_PATH", DEFAULT_OFFSETS_PATH))
    return root, offsets


def _parse_subject(unique_id: str) -> PokemonVariant:
    try:
        return PokemonVariant.parse(validators.validate_unique_id(unique_id))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def create_app(
    sprite_root: Optional[Path] = None,
    offsets_path: Optional[Path] = None,
    config: Optional[LoaderConfig] = None,
) -> FastAPI:
    sprite_root, offsets_path = _resolve_paths(sprite_root, offsets_path)
    config = config or LoaderConfig()
    logger.info("Editor serving sprites from %s, adjustments in %s", sprite_root, offsets_path)

    app = FastAPI(title="Pokebar Sprite Editor", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.sprite_root = sprite_root
    app.state.offsets_path = offsets_path

    def _records() -> dict[str, OffsetAdjustment]:
        try:
            return load_adjustments(offsets_path)
        except ProcessingError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc

    def _loader(records: dict[str, OffsetAdjustment]) -> SpriteLoader:
        return SpriteLoader(offsets_path, sprite_root, config, offsets=records)

    def _sheet_path(variant: PokemonVariant, sheet: AnimationType) -> Path:
        if resolve_variant_dir(sprite_root, variant) is None:
            raise HTTPException(status_code=404, detail=f"Unknown subject {variant.unique_id}")
        loader = _loader(_records())
        stored = loader.try_get_offset(variant.unique_id)
        if sheet == AnimationType.FIGHT:
            path = loader.resolve_fight_sprite_path(variant, stored)
        else:
            path = loader.resolve_sprite_path(variant, stored, sheet)
        if path is None:
            raise HTTPException(status_code=404, detail=f"No {sheet.value} sheet for {variant.unique_id}")
        return path

    def _analyze(variant: PokemonVariant, sheet: AnimationType) -> AnalysisResponse:
        path = _sheet_path(variant, sheet)
        records = _records()
        loader = _loader(records)
        stored = records.get(variant.unique_id)

        image = image_tools.load_image(path)
        buffer = PixelBuffer.from_image(image)
        resolution = loader.resolve_geometry(path, buffer, stored, sheet)
        rows = None
        if path.name.lower() == WALK.lower():
            rows = [config.sprite.walk_row_right, config.sprite.walk_row_left]
        geometry = compute_geometry(
            buffer,
            resolution.grid,
            resolution.frame,
            rows,
            hitbox_shrink=config.hitbox_shrink_factor,
            min_hitbox_size=config.min_hitbox_size,
        )
        hitbox = geometry.hitbox
        return AnalysisResponse(
            unique_id=variant.unique_id,
            sheet=sheet,
            file_name=path.name,
            sheet_width=buffer.width,
            sheet_height=buffer.height,
            grid=GridPayload(columns=resolution.grid.columns, rows=resolution.grid.rows),
            frame=FramePayload(width=resolution.frame.width, height=resolution.frame.height),
            source=resolution.source,
            ground_offset_y=geometry.offsets.ground_offset_y,
            center_offset_x=geometry.offsets.center_offset_x,
            hitbox=HitboxPayload(x=hitbox.x, y=hitbox.y, width=hitbox.width, height=hitbox.height),
            frames_analyzed=geometry.frames_analyzed,
            frames_with_pixels=geometry.frames_with_pixels,
            adjustment=stored.to_json_dict() if stored else None,
        )

    def _preview(variant: PokemonVariant, sheet: AnimationType, scale: int, mask: bool) -> bytes:
        analysis = _analyze(variant, sheet)
        image = image_tools.load_image(_sheet_path(variant, sheet))
        if mask:
            image = image_tools.to_mask(image)

        ground, center = analysis.ground_offset_y, analysis.center_offset_x
        hitbox = BoundingBox(analysis.hitbox.x, analysis.hitbox.y, analysis.hitbox.width, analysis.hitbox.height)
        if analysis.adjustment:
            stored = OffsetAdjustment.model_validate(analysis.adjustment)
            ground, center = stored.ground_offset_y, stored.center_offset_x
            stored_box = BoundingBox(stored.hitbox_x, stored.hitbox_y, stored.hitbox_width, stored.hitbox_height)
            if stored_box.is_valid:
                hitbox = stored_box

        rendered = image_tools.draw_analysis_overlay(
            image,
            SpriteGrid(analysis.grid.columns, analysis.grid.rows),
            FrameSize(analysis.frame.width, analysis.frame.height),
            ground_offset_y=ground,
            center_offset_x=center,
            hitbox=hitbox,
            scale=scale,
        )
        return image_tools.encode_png(rendered)

    def _save(variant: PokemonVariant, request: AdjustmentRequest) -> OffsetAdjustment:
        hitbox = request.hitbox()
        frame = None
        if request.frame_width and request.frame_height:
            frame = FrameSize(request.frame_width, request.frame_height)
        if hitbox is not None:
            validators.validate_hitbox(hitbox, frame)

        with _STORE_LOCK:
            existing = _records().get(variant.unique_id)
            base = existing.model_dump() if existing else {"unique_id": variant.unique_id}
            changes = request.model_dump(exclude_none=True)
            for key in ("hitbox_x", "hitbox_y", "hitbox_width", "hitbox_height"):
                changes.pop(key, None)
            if hitbox is not None:
                changes.update(
                    hitbox_x=hitbox.x, hitbox_y=hitbox.y, hitbox_width=hitbox.width, hitbox_height=hitbox.height
                )
            record = OffsetAdjustment.model_validate({**base, **changes, "unique_id": variant.unique_id})
            update_adjustment(offsets_path, record)
        logger.info("Stored adjustment for %s (reviewed=%s)", record.unique_id, record.reviewed)
        return record

    def _delete(variant: PokemonVariant) -> bool:
        with _STORE_LOCK:
            return remove_adjustment(offsets_path, variant.unique_id)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/subjects", response_model=list[SubjectSummary], response_model_by_alias=True)
    async def list_subjects() -> list[SubjectSummary]:
        records = await run_in_threadpool(_records)
        folders = await run_in_threadpool(lambda: list(enumerate_sprite_folders(sprite_root)))
        subjects = []
        for folder in folders:
            record = records.get(folder.variant.unique_id)
            subjects.append(
                SubjectSummary(
                    unique_id=folder.variant.unique_id,
                    dex_number=folder.variant.dex_number,
                    form_id=folder.variant.form_id,
                    reviewed=bool(record and record.reviewed),
                    has_adjustment=record is not None,
                )
            )
        return subjects

    @app.get("/api/subjects/{unique_id}/analysis", response_model=AnalysisResponse, response_model_by_alias=True)
    async def analyze_subject(unique_id: str, sheet: AnimationType = Query(AnimationType.WALK)) -> AnalysisResponse:
        variant = _parse_subject(unique_id)
        try:
            return await run_in_threadpool(_analyze, variant, sheet)
        except ProcessingError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc

    @app.get("/api/subjects/{unique_id}/preview")
    async def preview_subject(
        unique_id: str,
        sheet: AnimationType = Query(AnimationType.WALK),
        scale: int = Query(2, ge=1, le=image_tools.MAX_PREVIEW_SCALE),
        mask: bool = False,
    ) -> Response:
        variant = _parse_subject(unique_id)
        try:
            content = await run_in_threadpool(_preview, variant, sheet, scale, mask)
        except ProcessingError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return Response(content=content, media_type="image/png")

    @app.put("/api/subjects/{unique_id}/adjustment")
    async def put_adjustment(unique_id: str, request: AdjustmentRequest) -> dict:
        variant = _parse_subject(unique_id)
        try:
            record = await run_in_threadpool(_save, variant, request)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ProcessingError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return record.to_json_dict()

    @app.delete("/api/subjects/{unique_id}/adjustment")
    async def delete_adjustment(unique_id: str) -> dict[str, str]:
        variant = _parse_subject(unique_id)
        try:
            removed = await run_in_threadpool(_delete, variant)
        except ProcessingError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        if not removed:
            raise HTTPException(status_code=404, detail=f"No adjustment stored for {unique_id}")
        return {"status": "deleted"}

    return app
