import pytest

from pokebar_sprites.core import FrameSize, SpriteGrid
from pokebar_sprites.core.anim_data import (
    declared_frame_for_file,
    declared_frame_for_sheet,
    parse_anim_data,
    resolve_declared_frame,
)
from pokebar_sprites.core.errors import UnresolvedReference
from pokebar_sprites.core.frame_resolver import (
    SOURCE_DECLARED,
    SOURCE_DETECTED,
    SOURCE_STORED,
    SOURCE_STORED_FRAME,
    grid_from_frame,
    resolve_frame,
)
from pokebar_sprites.core.offsets_store import OffsetAdjustment
from pokebar_sprites.core.sprite_files import AnimationType

ANIM_XML = """<?xml version="1.0" encoding="utf-8"?>
<AnimData>
  <Anims>
    <Anim><Name>Walk</Name><FrameWidth>32</FrameWidth><FrameHeight>40</FrameHeight></Anim>
    <Anim><Name>Idle</Name><CopyOf>Walk</CopyOf></Anim>
    <Anim><Name>Sleep</Name><CopyOf>Missing</CopyOf></Anim>
    <Anim><Name>Strike</Name><CopyOf>Attack</CopyOf></Anim>
    <Anim><Name>Attack</Name><CopyOf>Strike</CopyOf></Anim>
    <Anim><Name>Walk</Name><FrameWidth>8</FrameWidth><FrameHeight>8</FrameHeight></Anim>
  </Anims>
</AnimData>
"""


def _stored(**fields):
    return OffsetAdjustment(unique_id="0001", **fields)


def test_stored_grid_wins_over_detection_when_it_tiles_the_sheet(sheets):
    buffer = sheets.to_buffer(sheets.tiled(8, 8, 16, 32, (1, 1, 14, 30)))
    assert (buffer.width, buffer.height) == (128, 256)
    stored = _stored(frame_width=32, frame_height=32, grid_columns=4, grid_rows=8)

    resolution = resolve_frame(buffer, AnimationType.IDLE, stored=stored)

    assert resolution.source == SOURCE_STORED
    assert resolution.grid == SpriteGrid(4, 8)
    assert resolution.frame == FrameSize(32, 32)


def test_stored_grid_ignored_for_walk_sheets(sheets):
    buffer = sheets.to_buffer(sheets.tiled(8, 8, 16, 32, (1, 1, 14, 30)))
    stored = _stored(frame_width=32, frame_height=32, grid_columns=4, grid_rows=8)

    resolution = resolve_frame(buffer, AnimationType.WALK, stored=stored)

    assert resolution.source == SOURCE_DETECTED


def test_stored_grid_with_wrong_total_size_is_ignored(sheets):
    buffer = sheets.to_buffer(sheets.tiled(4, 2, 6, 8, (2, 4, 3, 5)))
    stored = _stored(frame_width=12, frame_height=8, grid_columns=4, grid_rows=2)

    resolution = resolve_frame(buffer, AnimationType.IDLE, stored=stored)

    assert resolution.source == SOURCE_DETECTED
    assert resolution.grid == SpriteGrid(4, 2)


def test_declared_frame_takes_precedence(sheets):
    buffer = sheets.to_buffer(sheets.tiled(4, 2, 6, 8, (2, 4, 3, 5)))
    stored = _stored(frame_width=6, frame_height=8, grid_columns=4, grid_rows=2)

    resolution = resolve_frame(buffer, AnimationType.IDLE, declared_frame=FrameSize(12, 8), stored=stored)

    assert resolution.source == SOURCE_DECLARED
    assert resolution.grid == SpriteGrid(2, 2)


def test_declared_frame_that_does_not_tile_is_skipped(sheets):
    buffer = sheets.to_buffer(sheets.tiled(4, 2, 6, 8, (2, 4, 3, 5)))
    resolution = resolve_frame(buffer, AnimationType.IDLE, declared_frame=FrameSize(7, 8))
    assert resolution.source == SOURCE_DETECTED


def test_degenerate_detection_uses_stored_frame_size(sheets):
    buffer = sheets.to_buffer(sheets.blank(64, 32))
    stored = _stored(frame_width=32, frame_height=32)

    resolution = resolve_frame(buffer, AnimationType.WALK, stored=stored)

    assert resolution.source == SOURCE_STORED_FRAME
    assert resolution.grid == SpriteGrid(2, 1)


def test_degenerate_detection_without_fallback(sheets):
    resolution = resolve_frame(sheets.to_buffer(sheets.blank(64, 32)), AnimationType.IDLE)
    assert resolution.is_degenerate
    assert resolution.frame == FrameSize(64, 32)


def test_grid_from_frame():
    assert grid_from_frame(64, 32, FrameSize(16, 16)) == SpriteGrid(4, 2)
    assert grid_from_frame(64, 32, FrameSize(15, 16)) is None
    assert grid_from_frame(64, 32, None) is None


def test_anim_data_first_entry_wins_and_copy_of_resolves():
    anims = parse_anim_data(ANIM_XML)
    assert resolve_declared_frame(anims, "Walk") == FrameSize(32, 40)
    assert resolve_declared_frame(anims, "idle") == FrameSize(32, 40)


def test_copy_of_cycle_and_missing_target_raise():
    anims = parse_anim_data(ANIM_XML)
    with pytest.raises(UnresolvedReference):
        resolve_declared_frame(anims, "Strike")
    with pytest.raises(UnresolvedReference):
        resolve_declared_frame(anims, "Sleep")
    with pytest.raises(UnresolvedReference):
        resolve_declared_frame(anims, "Unknown")


def test_declared_frame_for_file_swallows_unresolved_chains():
    anims = parse_anim_data(ANIM_XML)
    assert declared_frame_for_file(anims, "Idle-Anim.png") == FrameSize(32, 40)
    assert declared_frame_for_file(anims, "Strike-Anim.png") is None
    assert declared_frame_for_file(anims, "Sleep.png") is None


def test_malformed_anim_data_is_empty():
    assert parse_anim_data("<AnimData><Anims>") == {}


def test_declared_frame_for_sheet_reads_sibling_file(tmp_path):
    (tmp_path / "AnimData.xml").write_text(ANIM_XML, encoding="utf-8")
    assert declared_frame_for_sheet(tmp_path / "Walk-Anim.png") == FrameSize(32, 40)
    assert declared_frame_for_sheet(tmp_path / "nested" / "Walk-Anim.png") is None
