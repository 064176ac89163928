import csv
import json

from pokebar_sprites.core import FrameSize, PipelineSettings
from pokebar_sprites.core.offsets_store import OffsetAdjustment, load_adjustments, save_adjustments
from pokebar_sprites.core.pipeline import (
    ANALYSIS_FAILED_NOTE,
    MISSING_FOLDER_NOTE,
    BodyType,
    analyze_variant,
    diff_ratio,
    run_pipeline,
    suggest_body_type,
)
from pokebar_sprites.core.sprite_files import enumerate_sprite_folders


def test_suggest_body_type_thresholds():
    assert suggest_body_type(None) is BodyType.UNKNOWN
    assert suggest_body_type(FrameSize(32, 40)) is BodyType.SMALL
    assert suggest_body_type(FrameSize(32, 64)) is BodyType.MEDIUM
    assert suggest_body_type(FrameSize(32, 96)) is BodyType.TALL
    assert suggest_body_type(FrameSize(32, 97)) is BodyType.LONG


def test_diff_ratio():
    assert diff_ratio(0, 0) == 0.0
    assert diff_ratio(40, 30) == 0.25


def test_analyze_variant_reads_walk_and_idle(sprite_root, tmp_path):
    folder = next(iter(enumerate_sprite_folders(sprite_root)))
    result = analyze_variant(folder, PipelineSettings(sprite_root=sprite_root, output_dir=tmp_path / "out"))

    assert result.error is None
    metadata = result.metadata
    assert metadata.walk.grid.columns == 4 and metadata.walk.grid.rows == 8
    assert metadata.walk.frame.width == 8
    assert metadata.animations.has_sleep is False
    assert metadata.body_type is BodyType.SMALL
    assert result.geometry.offsets.ground_offset_y == 1
    assert result.primary_sheet_size == (32, 64)
    assert result.anomalies == ["0001: Sleep.png missing"]


def test_analyze_variant_captures_decode_failures(tmp_path):
    root = tmp_path / "sprite"
    (root / "0004").mkdir(parents=True)
    (root / "0004" / "Walk-Anim.png").write_bytes(b"not a png")
    folder = next(iter(enumerate_sprite_folders(root)))

    result = analyze_variant(folder, PipelineSettings(sprite_root=root, output_dir=tmp_path / "out"))

    assert result.metadata is None
    assert result.error.startswith("Dex 0004 Form 0000")


def test_run_pipeline_writes_all_outputs(sprite_root, tmp_path):
    out = tmp_path / "out"
    report = run_pipeline(PipelineSettings(sprite_root=sprite_root, output_dir=out, workers=2))

    assert report.errors == []
    assert report.summary.present == 2
    assert len(report.placeholders) == 1023
    assert 1 not in report.placeholders and 25 not in report.placeholders
    assert report.generated == 1025

    raw = json.loads((out / "pokemon_0025_0001_raw.json").read_text(encoding="utf-8"))
    assert raw["dexNumber"] == 25
    assert raw["form"] == "0001"
    assert raw["idle"]["grid"] == {"columns": 2, "rows": 8}
    assert raw["walk"]["fileName"] is None
    assert raw["offsets"]["groundOffsetY"] == 2

    placeholder = json.loads((out / "pokemon_0002_raw.json").read_text(encoding="utf-8"))
    assert placeholder["notes"] == [MISSING_FOLDER_NOTE]
    assert placeholder["bodyType"] == "unknown"

    anomalies = (out / "anomalies.txt").read_text(encoding="utf-8").splitlines()
    assert "0025_0001: Walk-Anim.png missing" in anomalies

    summary = json.loads((out / "summary.json").read_text(encoding="utf-8"))
    assert summary["totalDex"] == 1025
    with (out / "summary.csv").open(newline="", encoding="utf-8") as handle:
        header, values = list(csv.reader(handle))
    assert header[0] == "totalDex" and values[0] == "1025"

    runtime = load_adjustments(report.runtime_path)
    assert report.runtime_path == out / "pokemon_offsets_runtime.json"
    assert set(runtime) == {"0001", "0025_0001"}
    assert runtime["0001"].grid_columns == 4
    assert runtime["0001"].walk_sprite_file == "Walk-Anim.png"
    assert runtime["0001"].reviewed is False


def test_run_pipeline_keeps_reviewed_final_placement(sprite_root, tmp_path):
    out = tmp_path / "out"
    final_dir = tmp_path / "final"
    save_adjustments(
        final_dir / "pokemon_offsets_final.json",
        [OffsetAdjustment(unique_id="0001", ground_offset_y=7, center_offset_x=-3, reviewed=True)],
    )

    report = run_pipeline(PipelineSettings(sprite_root=sprite_root, output_dir=out, final_dir=final_dir))

    assert report.runtime_path == final_dir / "pokemon_offsets_runtime.json"
    record = load_adjustments(report.runtime_path)["0001"]
    assert record.reviewed is True
    assert (record.ground_offset_y, record.center_offset_x) == (7, -3)
    assert record.frame_width == 8


def test_dry_run_writes_nothing(sprite_root, tmp_path):
    out = tmp_path / "out"
    report = run_pipeline(PipelineSettings(sprite_root=sprite_root, output_dir=out, dry_run=True))

    assert report.summary.present == 2
    assert report.runtime_path is None
    assert not out.exists()


def test_reviewed_record_survives_failed_analysis(sprite_root, tmp_path):
    out = tmp_path / "out"
    (sprite_root / "0004").mkdir()
    (sprite_root / "0004" / "Walk-Anim.png").write_bytes(b"not a png")
    save_adjustments(
        out / "pokemon_offsets_final.json",
        [
            OffsetAdjustment(unique_id="0004", ground_offset_y=5, center_offset_x=2, reviewed=True),
            OffsetAdjustment(unique_id="0150", ground_offset_y=3, reviewed=True),
        ],
    )

    report = run_pipeline(PipelineSettings(sprite_root=sprite_root, output_dir=out))

    assert len(report.errors) == 1
    runtime = load_adjustments(report.runtime_path)
    assert set(runtime) == {"0001", "0004", "0025_0001", "0150"}
    assert (runtime["0004"].ground_offset_y, runtime["0004"].center_offset_x) == (5, 2)
    assert runtime["0004"].reviewed is True
    assert runtime["0150"].ground_offset_y == 3

    failed = json.loads((out / "pokemon_0004_raw.json").read_text(encoding="utf-8"))
    assert failed["notes"] == [ANALYSIS_FAILED_NOTE]
    missing = json.loads((out / "pokemon_0150_raw.json").read_text(encoding="utf-8"))
    assert missing["notes"] == [MISSING_FOLDER_NOTE]
