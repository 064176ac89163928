"""SpriteCollab file names, subject identifiers and folder layout."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, Optional

logger = logging.getLogger(__name__)

MIN_DEX = 1
MAX_DEX = 1025
BASE_FORM = "0000"

WALK = "Walk-Anim.png"
IDLE = "Idle-Anim.png"
SLEEP = "Sleep.png"
ANIM_DATA = "AnimData.xml"

# Priority order.
ATTACK_ANIMATIONS = (
    "Attack-Anim.png",
    "Strike-Anim.png",
    "QuickStrike-Anim.png",
    "MultiStrike-Anim.png",
    "MultiScratch-Anim.png",
    "Scratch-Anim.png",
)

EMOTE_ANIMATIONS = (
    "Hurt.png",
    "Charge.png",
    "Shoot.png",
    "Roar.png",
    "Swing.png",
    "Double.png",
    "Bite.png",
    "Pound.png",
    "Hop.png",
    "Appeal.png",
    "Dance.png",
    "EventSleep.png",
)

_ANIM_NAMES = {
    WALK.lower(): ["Walk"],
    IDLE.lower(): ["Idle"],
    SLEEP.lower(): ["Sleep"],
    "attack-anim.png": ["Attack"],
    "strike-anim.png": ["Strike"],
    "quickstrike-anim.png": ["QuickStrike"],
    "multistrike-anim.png": ["MultiStrike", "MultiScratch"],
    "multiscratch-anim.png": ["MultiScratch", "MultiStrike"],
    "scratch-anim.png": ["Scratch"],
}


class AnimationType(str, Enum):
    WALK = "walk"
    IDLE = "idle"
    SLEEP = "sleep"
    FIGHT = "fight"


def is_valid_dex(dex: int) -> bool:
    return MIN_DEX <= dex <= MAX_DEX


def is_attack_animation(file_name: str) -> bool:
    return file_name.lower() in {name.lower() for name in ATTACK_ANIMATIONS}


def prefers_standard_grid(file_name: str) -> bool:
    """Walk and idle sheets follow the 8-direction row layout."""

    return file_name.lower() in {WALK.lower(), IDLE.lower()}


def anim_names_for_file(file_name: str) -> list[str]:
    """Animation names in ``AnimData.xml`` that may describe ``file_name``.

    Attack sheets fall back to the generic ``Attack`` entry.
    """

    names = list(_ANIM_NAMES.get(Path(file_name).name.lower(), []))
    if is_attack_animation(file_name) and "attack" not in {n.lower() for n in names}:
        names.append("Attack")
    return names


def find_first(available: Iterable[str], candidates: Iterable[str]) -> Optional[str]:
    """First of ``candidates`` present in ``available`` (case-insensitive), as spelled in ``available``."""

    lookup = {name.lower(): name for name in available}
    for candidate in candidates:
        match = lookup.get(candidate.lower())
        if match is not None:
            return match
    return None


@dataclass(frozen=True)
class PokemonVariant:
    """A species plus one of its forms."""

    dex_number: int
    form_id: str = BASE_FORM

    @property
    def unique_id(self) -> str:
        if self.form_id == BASE_FORM:
            return f"{self.dex_number:04d}"
        return f"{self.dex_number:04d}_{self.form_id}"

    @classmethod
    def parse(cls, unique_id: str) -> "PokemonVariant":
        dex, _, form = unique_id.partition("_")
        return cls(int(dex), form or BASE_FORM)


@dataclass(frozen=True)
class SpriteFolder:
    variant: PokemonVariant
    path: Path


def enumerate_sprite_folders(sprite_root: Path) -> Iterator[SpriteFolder]:
    """Yield every variant folder below a SpriteCollab ``sprite`` directory.

    Dex folders with numeric form subfolders yield one entry per form; a dex
    folder without subfolders is its own base form.
    """

    if not sprite_root.is_dir():
        return

    dex_dirs = sorted(p for p in sprite_root.iterdir() if p.is_dir() and p.name.isdigit())
    for dex_dir in dex_dirs:
        dex = int(dex_dir.name)
        if not is_valid_dex(dex):
            logger.debug("Skipping folder outside dex range: %s", dex_dir)
            continue

        form_dirs = sorted(p for p in dex_dir.iterdir() if p.is_dir())
        if not form_dirs:
            yield SpriteFolder(PokemonVariant(dex, BASE_FORM), dex_dir)
            continue
        for form_dir in form_dirs:
            if form_dir.name.isdigit():
                yield SpriteFolder(PokemonVariant(dex, form_dir.name), form_dir)


def resolve_variant_dir(sprite_root: Path, variant: PokemonVariant) -> Optional[Path]:
    """Folder holding the sheets of ``variant``; a missing form folder falls back to the dex folder."""

    dex_dir = sprite_root / f"{variant.dex_number:04d}"
    if not dex_dir.is_dir():
        return None
    form_dir = dex_dir / variant.form_id
    if form_dir.is_dir():
        return form_dir
    return dex_dir
