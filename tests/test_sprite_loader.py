import json

from pokebar_sprites.core.config import LoaderConfig
from pokebar_sprites.core.sprite_files import AnimationType, PokemonVariant
from pokebar_sprites.core.sprite_loader import SpriteLoader


def _write_offsets(path, records):
    path.write_text(json.dumps(records), encoding="utf-8")
    return path


def test_walk_row_selection_and_stored_ground_offset(sprite_root, tmp_path):
    offsets = _write_offsets(tmp_path / "offsets.json", [{"uniqueId": "0001", "groundOffsetY": 1}])
    loader = SpriteLoader(offsets, sprite_root)

    clip = loader.load_animation(1, "0000", AnimationType.WALK, rows=[2], require_selection=True)

    assert clip.name == "walk-0001"
    assert clip.frame_count == 4
    assert clip.frames[0].image.size == (8, 8)
    assert clip.frames[0].ground_line_y == 7
    assert clip.frame_time == LoaderConfig().animation.walk_frame_time_seconds


def test_required_rows_outside_grid_return_none(sprite_root, tmp_path):
    loader = SpriteLoader(tmp_path / "absent.json", sprite_root)
    assert loader.load_animation(1, "0000", AnimationType.WALK, rows=[12], require_selection=True) is None


def test_fight_falls_back_to_walk_front_row(sprite_root, tmp_path):
    loader = SpriteLoader(tmp_path / "absent.json", sprite_root)

    clip = loader.load_animation(1, "0000", AnimationType.FIGHT)

    assert clip.name == "fight-0001"
    assert clip.frame_count == 3
    assert clip.loop is False


def test_fight_prefers_attack_sheet(sprite_root, tmp_path, sheets):
    sheets.save_png(sheets.tiled(5, 8, 8, 8, (1, 1, 6, 6)), sprite_root / "0001" / "Attack-Anim.png")
    loader = SpriteLoader(tmp_path / "absent.json", sprite_root)

    clip = loader.load_animation(1, "0000", AnimationType.FIGHT, frame_time=0.05)

    assert clip.frame_count == 5
    assert clip.frame_time == 0.05


def test_fight_without_walk_sheet_borrows_idle_front_row(sprite_root, tmp_path):
    # The idle sheet stands in for walk; only column 1 of columns 1-3 exists.
    loader = SpriteLoader(tmp_path / "absent.json", sprite_root)
    clip = loader.load_animation(25, "0001", AnimationType.FIGHT)
    assert clip.name == "fight-0025_0001"
    assert clip.frame_count == 1


def test_fight_falls_back_to_idle_clip_when_front_row_missing(tmp_path, sheets):
    root = tmp_path / "sprite"
    # 32x10 resolves to the 4x2 convention, so row 3 does not exist.
    sheets.save_png(sheets.tiled(4, 1, 8, 10, (1, 1, 6, 8)), root / "0004" / "Idle-Anim.png")
    loader = SpriteLoader(tmp_path / "absent.json", root)

    clip = loader.load_animation(4, "0000", AnimationType.FIGHT)

    assert clip.name == "idle-0004"


def test_sheet_resolution_prefers_stored_hint(sprite_root, tmp_path, sheets):
    sheets.save_png(sheets.tiled(1, 1, 8, 8, (1, 1, 6, 6)), sprite_root / "0001" / "Custom.png")
    offsets = _write_offsets(tmp_path / "offsets.json", [{"uniqueId": "0001", "walkSpriteFile": "Custom.png"}])
    loader = SpriteLoader(offsets, sprite_root)
    variant = PokemonVariant(1)

    assert loader.resolve_sprite_path(variant, loader.try_get_offset("0001"), AnimationType.WALK).name == "Custom.png"
    assert loader.resolve_sprite_path(variant, None, AnimationType.SLEEP).name == "Idle-Anim.png"
    assert loader.resolve_sprite_path(PokemonVariant(3), None, AnimationType.WALK) is None


def test_broken_offsets_file_is_tolerated(sprite_root, tmp_path):
    broken = tmp_path / "offsets.json"
    broken.write_text("{oops", encoding="utf-8")
    loader = SpriteLoader(broken, sprite_root)

    assert loader.try_get_offset("0001") is None
    assert loader.load_animation(1, "0000", AnimationType.IDLE) is not None


def test_missing_subject_returns_none(sprite_root, tmp_path):
    loader = SpriteLoader(tmp_path / "absent.json", sprite_root)
    assert loader.load_animation(2, "0000", AnimationType.IDLE) is None
