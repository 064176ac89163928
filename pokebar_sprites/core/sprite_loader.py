"""Build animation clips for one subject from its sheets on disk."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence

from . import AnimationClip
from .anim_data import declared_frame_for_sheet
from .config import LoaderConfig
from .errors import ProcessingError
from .frame_resolver import FrameResolution, resolve_frame
from .frame_slicer import build_clip
from .offsets_store import OffsetAdjustment, load_adjustments
from .pixel_buffer import PixelBuffer, load_sheet
from .sprite_files import (
    ATTACK_ANIMATIONS,
    IDLE,
    SLEEP,
    WALK,
    AnimationType,
    PokemonVariant,
    prefers_standard_grid,
    resolve_variant_dir,
)

logger = logging.getLogger(__name__)

_SHEET_ORDER = {
    AnimationType.WALK: (WALK, IDLE, SLEEP),
    AnimationType.IDLE: (IDLE, WALK, SLEEP),
    AnimationType.SLEEP: (SLEEP, IDLE, WALK),
    AnimationType.FIGHT: (WALK, IDLE, SLEEP),
}

# Row selections tried in order on the attack sheet: facing right, front, first row.
FIGHT_SHEET_ROWS = ((2,), (3,), (0,))
FIGHT_WALK_ROWS = (3,)
FIGHT_WALK_COLUMNS = (1, 2, 3)


def _first_existing(directory: Path, names: Iterable[Optional[str]]) -> Optional[Path]:
    seen: set[str] = set()
    for name in names:
        if not name or not name.strip() or name.lower() in seen:
            continue
        seen.add(name.lower())
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


class SpriteLoader:
    """Resolve, decode and slice sheets into :class:`AnimationClip` objects.

    The offsets file is read once. A broken file is logged and treated as
    empty so the loader keeps working with detected geometry.
    """

    def __init__(
        self,
        offsets_path: Path,
        sprite_root: Path,
        config: Optional[LoaderConfig] = None,
        offsets: Optional[Mapping[str, OffsetAdjustment]] = None,
    ) -> None:
        self.sprite_root = sprite_root
        self.config = config or LoaderConfig()
        if offsets is not None:
            self._offsets = dict(offsets)
            return
        try:
            self._offsets = load_adjustments(offsets_path)
        except ProcessingError as exc:
            logger.error("Ignoring unreadable offsets file %s: %s", offsets_path, exc)
            self._offsets = {}

    def try_get_offset(self, unique_id: str) -> Optional[OffsetAdjustment]:
        return self._offsets.get(unique_id)

    def frame_time_for(self, animation_type: AnimationType) -> float:
        timings = self.config.animation
        return {
            AnimationType.WALK: timings.walk_frame_time_seconds,
            AnimationType.IDLE: timings.idle_frame_time_seconds,
            AnimationType.SLEEP: timings.sleep_frame_time_seconds,
            AnimationType.FIGHT: timings.attack_frame_time_seconds,
        }.get(animation_type, timings.default_frame_time_seconds)

    def load_animation(
        self,
        dex: int,
        form_id: str,
        animation_type: AnimationType,
        rows: Optional[Sequence[int]] = None,
        columns: Optional[Sequence[int]] = None,
        require_selection: bool = False,
        frame_time: Optional[float] = None,
    ) -> Optional[AnimationClip]:
        variant = PokemonVariant(dex, form_id)
        offset = self._offsets.get(variant.unique_id)
        if animation_type == AnimationType.FIGHT:
            return self._load_fight(variant, offset, frame_time)

        sheet_path = self.resolve_sprite_path(variant, offset, animation_type)
        return self.load_clip_from_path(
            variant.unique_id,
            sheet_path,
            offset,
            animation_type,
            rows,
            columns,
            require_selection,
            frame_time=frame_time,
        )

    def _load_fight(
        self, variant: PokemonVariant, offset: Optional[OffsetAdjustment], frame_time: Optional[float]
    ) -> Optional[AnimationClip]:
        fight_path = self.resolve_fight_sprite_path(variant, offset)
        if fight_path is not None:
            for rows in FIGHT_SHEET_ROWS:
                clip = self.load_clip_from_path(
                    variant.unique_id, fight_path, offset, AnimationType.FIGHT, rows, frame_time=frame_time
                )
                if clip is not None:
                    return clip

        walk_path = self.resolve_sprite_path(variant, offset, AnimationType.WALK)
        clip = self.load_clip_from_path(
            variant.unique_id,
            walk_path,
            offset,
            AnimationType.FIGHT,
            FIGHT_WALK_ROWS,
            FIGHT_WALK_COLUMNS,
            require_selection=True,
            frame_time=frame_time,
        )
        if clip is not None:
            logger.debug("Fight clip for %s borrowed from the walk sheet", variant.unique_id)
            return clip

        logger.debug("Fight clip for %s falls back to idle", variant.unique_id)
        return self.load_animation(variant.dex_number, variant.form_id, AnimationType.IDLE, frame_time=frame_time)

    def resolve_sprite_path(
        self, variant: PokemonVariant, offset: Optional[OffsetAdjustment], animation_type: AnimationType
    ) -> Optional[Path]:
        """First existing sheet for ``animation_type``, preferring file names stored in ``offset``."""

        directory = resolve_variant_dir(self.sprite_root, variant)
        if directory is None:
            return None
        order: list[Optional[str]] = []
        if offset is not None:
            if animation_type == AnimationType.WALK:
                order.append(offset.walk_sprite_file)
            if animation_type == AnimationType.IDLE:
                order.append(offset.idle_sprite_file)
            order.append(offset.primary_sprite_file)
        order.extend(_SHEET_ORDER[animation_type])
        return _first_existing(directory, order)

    def resolve_fight_sprite_path(
        self, variant: PokemonVariant, offset: Optional[OffsetAdjustment]
    ) -> Optional[Path]:
        directory = resolve_variant_dir(self.sprite_root, variant)
        if directory is None:
            return None
        order: list[Optional[str]] = [offset.fight_sprite_file if offset else None]
        order.extend(ATTACK_ANIMATIONS)
        return _first_existing(directory, order)

    def resolve_geometry(
        self, sheet_path: Path, buffer: PixelBuffer, offset: Optional[OffsetAdjustment], animation_type: AnimationType
    ) -> FrameResolution:
        return resolve_frame(
            buffer,
            animation_type,
            declared_frame=declared_frame_for_sheet(sheet_path),
            stored=offset,
            prefer_standard=prefers_standard_grid(sheet_path.name),
        )

    def load_clip_from_path(
        self,
        unique_id: str,
        sheet_path: Optional[Path],
        offset: Optional[OffsetAdjustment],
        animation_type: AnimationType,
        rows: Optional[Sequence[int]] = None,
        columns: Optional[Sequence[int]] = None,
        require_selection: bool = False,
        *,
        frame_time: Optional[float] = None,
    ) -> Optional[AnimationClip]:
        if sheet_path is None or not sheet_path.is_file():
            return None

        try:
            image = load_sheet(sheet_path)
        except ProcessingError as exc:
            logger.warning("Skipping %s: %s", sheet_path, exc)
            return None

        buffer = PixelBuffer.from_image(image)
        resolution = self.resolve_geometry(sheet_path, buffer, offset, animation_type)
        logger.debug(
            "%s: %sx%s grid of %sx%s frames (%s)",
            sheet_path.name,
            resolution.grid.columns,
            resolution.grid.rows,
            resolution.frame.width,
            resolution.frame.height,
            resolution.source,
        )

        return build_clip(
            f"{animation_type.value}-{unique_id}",
            image,
            resolution.grid,
            resolution.frame,
            rows,
            columns,
            required=require_selection,
            ground_offset_y=offset.ground_offset_y if offset else 0,
            frame_time=frame_time if frame_time is not None else self.frame_time_for(animation_type),
            loop=animation_type != AnimationType.FIGHT,
        )
