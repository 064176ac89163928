import json

import pytest

from pokebar_sprites.core.errors import ProcessingError
from pokebar_sprites.core.offsets_store import (
    OffsetAdjustment,
    load_adjustments,
    merge_detected,
    parse_adjustments,
    remove_adjustment,
    save_adjustments,
    update_adjustment,
)


def test_parse_accepts_any_key_case_and_legacy_dex_number():
    records = parse_adjustments(
        json.dumps(
            [
                {"UniqueId": "0004", "GroundOffsetY": 3, "REVIEWED": True},
                {"dexNumber": 7, "centerOffsetX": -2},
            ]
        )
    )
    assert records["0004"].ground_offset_y == 3
    assert records["0004"].reviewed is True
    assert records["0007"].center_offset_x == -2


def test_parse_last_duplicate_wins():
    records = parse_adjustments(
        json.dumps([{"uniqueId": "0001", "groundOffsetY": 1}, {"uniqueId": "0001", "groundOffsetY": 9}])
    )
    assert records["0001"].ground_offset_y == 9


def test_parse_rejects_bad_documents():
    with pytest.raises(ProcessingError):
        parse_adjustments("{not json")
    with pytest.raises(ProcessingError):
        parse_adjustments('{"uniqueId": "0001"}')
    assert parse_adjustments("null") == {}


def test_save_writes_sorted_camel_case(tmp_path):
    path = tmp_path / "nested" / "offsets.json"
    save_adjustments(path, [OffsetAdjustment(unique_id="0002"), OffsetAdjustment(unique_id="0001", frame_width=8)])

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert [item["uniqueId"] for item in payload] == ["0001", "0002"]
    assert payload[0]["frameWidth"] == 8
    assert "hitboxWidth" in payload[1]
    assert load_adjustments(path)["0001"].frame_width == 8


def test_missing_file_loads_empty(tmp_path):
    assert load_adjustments(tmp_path / "absent.json") == {}


def test_update_and_remove(tmp_path):
    path = tmp_path / "offsets.json"
    update_adjustment(path, OffsetAdjustment(unique_id="0001", ground_offset_y=4))
    update_adjustment(path, OffsetAdjustment(unique_id="0001", ground_offset_y=5))
    assert load_adjustments(path)["0001"].ground_offset_y == 5

    assert remove_adjustment(path, "0001") is True
    assert remove_adjustment(path, "0001") is False
    assert load_adjustments(path) == {}


def test_stored_grid_requires_all_positive_fields():
    record = OffsetAdjustment(unique_id="0001", frame_width=32, frame_height=32, grid_columns=4, grid_rows=0)
    assert not record.has_frame_grid
    assert record.stored_grid is None
    assert not record.matches_sheet(128, 0)


def test_merge_keeps_reviewed_placement():
    existing = OffsetAdjustment(unique_id="0001", ground_offset_y=7, reviewed=True, hitbox_width=10, hitbox_height=10)
    detected = OffsetAdjustment(
        unique_id="0001",
        ground_offset_y=2,
        hitbox_width=20,
        hitbox_height=20,
        frame_width=8,
        frame_height=8,
        grid_columns=4,
        grid_rows=8,
        fight_sprite_file="Attack-Anim.png",
    )

    merged = merge_detected(existing, detected)

    assert merged.reviewed is True
    assert merged.ground_offset_y == 7
    assert merged.hitbox_width == 10
    assert merged.frame_width == 8
    assert merged.has_attack_animation is True


def test_merge_replaces_unreviewed_placement_and_stale_grid():
    existing = OffsetAdjustment(
        unique_id="0001", ground_offset_y=7, frame_width=16, frame_height=16, grid_columns=4, grid_rows=8
    )
    detected = OffsetAdjustment(unique_id="0001", ground_offset_y=2, frame_width=8, frame_height=8, grid_columns=4, grid_rows=8)

    merged = merge_detected(existing, detected, sheet_size=(32, 64))

    assert merged.ground_offset_y == 2
    assert merged.reviewed is False
    assert (merged.frame_width, merged.frame_height) == (8, 8)


def test_merge_without_existing_returns_detected():
    detected = OffsetAdjustment(unique_id="0001", ground_offset_y=2)
    assert merge_detected(None, detected) is detected
