"""Frame sizes declared by a sheet folder's ``AnimData.xml``."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from . import FrameSize
from .errors import UnresolvedReference
from .sprite_files import ANIM_DATA, anim_names_for_file

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnimDeclaration:
    """One ``<Anim>`` entry: an explicit frame size, a ``CopyOf`` reference, or neither."""

    name: str
    frame: Optional[FrameSize] = None
    copy_of: Optional[str] = None


AnimDocument = Mapping[str, AnimDeclaration]


def _child_text(element: ET.Element, tag: str) -> Optional[str]:
    child = element.find(tag)
    if child is None or child.text is None:
        return None
    text = child.text.strip()
    return text or None


def _parse_frame(element: ET.Element) -> Optional[FrameSize]:
    try:
        width = int(_child_text(element, "FrameWidth") or "")
        height = int(_child_text(element, "FrameHeight") or "")
    except ValueError:
        return None
    if width <= 0 or height <= 0:
        return None
    return FrameSize(width, height)


def parse_anim_data(text: str) -> dict[str, AnimDeclaration]:
    """Parse an ``AnimData.xml`` document, keyed by lower-cased animation name.

    The first ``<Anim>`` of a given name wins. Malformed XML yields an empty
    document.
    """

    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        logger.warning("Ignoring malformed AnimData document: %s", exc)
        return {}

    anims: dict[str, AnimDeclaration] = {}
    for element in root.iter("Anim"):
        name = _child_text(element, "Name")
        if not name:
            continue
        declaration = AnimDeclaration(
            name=name,
            frame=_parse_frame(element),
            copy_of=_child_text(element, "CopyOf"),
        )
        anims.setdefault(name.lower(), declaration)
    return anims


def load_anim_data(path: Path) -> dict[str, AnimDeclaration]:
    if not path.is_file():
        return {}
    return parse_anim_data(path.read_text(encoding="utf-8"))


def resolve_declared_frame(anims: AnimDocument, name: str) -> FrameSize:
    """Follow ``CopyOf`` references from ``name`` until a frame size is found.

    Raises ``UnresolvedReference`` for a missing animation, a chain that ends
    without a frame size, or a cycle.
    """

    visited: set[str] = set()
    current = name
    while True:
        key = current.lower()
        if key in visited:
            raise UnresolvedReference(f"CopyOf cycle through '{current}' while resolving '{name}'")
        visited.add(key)

        declaration = anims.get(key)
        if declaration is None:
            raise UnresolvedReference(f"Animation '{current}' not declared (resolving '{name}')")
        if declaration.frame is not None:
            return declaration.frame
        if not declaration.copy_of:
            raise UnresolvedReference(f"Animation '{current}' declares no frame size")
        current = declaration.copy_of


def declared_frame_for_file(anims: AnimDocument, file_name: str) -> Optional[FrameSize]:
    """Declared frame size for a sheet file, or ``None`` when nothing resolves."""

    for name in anim_names_for_file(file_name):
        if name.lower() not in anims:
            continue
        try:
            return resolve_declared_frame(anims, name)
        except UnresolvedReference as exc:
            logger.debug("No declared frame for %s: %s", file_name, exc)
    return None


def declared_frame_for_sheet(sheet_path: Path) -> Optional[FrameSize]:
    """Look up ``AnimData.xml`` beside ``sheet_path`` and resolve its frame size."""

    anims = load_anim_data(sheet_path.parent / ANIM_DATA)
    if not anims:
        return None
    return declared_frame_for_file(anims, sheet_path.name)
