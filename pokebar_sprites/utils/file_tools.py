"""Filesystem helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

RAW_METADATA_PATTERN = "pokemon_{unique_id}_raw.json"
FINAL_OFFSETS_FILE = "pokemon_offsets_final.json"
RUNTIME_OFFSETS_FILE = "pokemon_offsets_runtime.json"


def ensure_directory(path: Path) -> Path:
    """Create a directory if it does not exist."""

    path.mkdir(parents=True, exist_ok=True)
    logger.debug("Ensured directory exists: %s", path)
    return path


def raw_metadata_path(output_dir: Path, unique_id: str) -> Path:
    return output_dir / RAW_METADATA_PATTERN.format(unique_id=unique_id)


def find_file(directory: Path, file_name: str) -> Optional[str]:
    """Return ``file_name`` when it exists inside ``directory``."""

    return file_name if (directory / file_name).is_file() else None


def find_first_file(directory: Path, candidates: Iterable[str]) -> Optional[str]:
    for name in candidates:
        if (directory / name).is_file():
            return name
    return None


def list_files_with_extensions(root: Path, extensions: set[str]) -> list[Path]:
    """Return sorted list of files in root with given extensions."""

    if not root.exists():
        return []
    files = [p for p in root.iterdir() if p.is_file() and p.suffix.lower() in extensions]
    return sorted(files)
