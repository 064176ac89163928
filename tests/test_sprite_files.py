from pokebar_sprites.core.sprite_files import (
    PokemonVariant,
    anim_names_for_file,
    enumerate_sprite_folders,
    find_first,
    is_attack_animation,
    prefers_standard_grid,
    resolve_variant_dir,
)


def test_unique_id_round_trip():
    assert PokemonVariant(25).unique_id == "0025"
    assert PokemonVariant(25, "0001").unique_id == "0025_0001"
    assert PokemonVariant.parse("0025_0001") == PokemonVariant(25, "0001")
    assert PokemonVariant.parse("0006") == PokemonVariant(6)


def test_file_name_helpers():
    assert prefers_standard_grid("walk-anim.png")
    assert not prefers_standard_grid("Sleep.png")
    assert is_attack_animation("QuickStrike-Anim.png")
    assert anim_names_for_file("Strike-Anim.png") == ["Strike", "Attack"]
    assert anim_names_for_file("Walk-Anim.png") == ["Walk"]
    assert find_first(["idle-anim.png", "Sleep.png"], ["Walk-Anim.png", "Idle-Anim.png"]) == "idle-anim.png"


def test_enumerate_sprite_folders(sprite_root, tmp_path):
    (sprite_root / "9999").mkdir()
    (sprite_root / "notes").mkdir()

    folders = list(enumerate_sprite_folders(sprite_root))

    assert [f.variant.unique_id for f in folders] == ["0001", "0025_0001"]
    assert folders[1].path == sprite_root / "0025" / "0001"
    assert list(enumerate_sprite_folders(tmp_path / "missing")) == []


def test_resolve_variant_dir_falls_back_to_dex_folder(sprite_root):
    assert resolve_variant_dir(sprite_root, PokemonVariant(25, "0001")) == sprite_root / "0025" / "0001"
    assert resolve_variant_dir(sprite_root, PokemonVariant(1, "0003")) == sprite_root / "0001"
    assert resolve_variant_dir(sprite_root, PokemonVariant(2)) is None
