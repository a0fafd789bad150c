import dataclasses
import json

import pytest

from freeqr.config import (
    CornerDotType,
    CornerSquareType,
    DotType,
    ErrorCorrectionLevel,
    LiveConfig,
    StyleConfig,
    load_preset,
    save_preset,
)


def test_defaults():
    config = StyleConfig()
    assert config.data == "https://google.com"
    assert config.margin == 10
    assert config.dots.type is DotType.ROUNDED
    assert config.corners_square.type is CornerSquareType.EXTRA_ROUNDED
    assert config.corners_dot.type is CornerDotType.DOT
    assert config.qr.error_correction is ErrorCorrectionLevel.Q
    assert config.frame.width == 0
    assert config.frame.radius == 20
    assert config.download.resolution == 2048


def test_config_is_immutable():
    config = StyleConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.margin = 3
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.frame.width = 3


def test_setters_return_new_snapshot():
    config = StyleConfig()
    updated = config.with_dots(color="#ff0000").with_frame(width=12, radius=0)
    assert config.dots.color == "#000000"
    assert config.frame.width == 0
    assert updated.dots.color == "#ff0000"
    assert updated.dots.type is DotType.ROUNDED
    assert updated.frame.width == 12
    assert updated.frame.radius == 0
    assert updated.frame.color == config.frame.color


def test_enum_values_are_coerced_from_strings():
    config = StyleConfig().with_dots(type="classy-rounded").with_error_correction("H")
    assert config.dots.type is DotType.CLASSY_ROUNDED
    assert config.qr.error_correction is ErrorCorrectionLevel.H


@pytest.mark.parametrize(
    "change",
    [
        lambda c: c.with_dots(color="not-a-color"),
        lambda c: c.with_background("#12"),
        lambda c: c.with_frame(color=""),
        lambda c: c.with_margin(-1),
        lambda c: c.with_frame(width=-0.5),
        lambda c: c.with_frame(radius=-2),
        lambda c: c.with_resolution(0),
        lambda c: c.with_resolution(-10),
        lambda c: c.with_margin(float("nan")),
        lambda c: c.with_frame(width=float("nan")),
        lambda c: c.with_frame(radius=float("inf")),
        lambda c: c.with_image_options(margin=float("nan")),
        lambda c: c.with_data("   "),
        lambda c: c.with_dots(type="hexagon"),
        lambda c: c.with_image_options(size=0),
    ],
)
def test_invalid_values_are_rejected(change):
    with pytest.raises(ValueError):
        change(StyleConfig())


def test_frame_must_leave_room_for_symbol():
    with pytest.raises(ValueError):
        StyleConfig().with_resolution(100).with_frame(width=50)
    assert StyleConfig().with_resolution(100).with_frame(width=49).frame.width == 49


def test_named_colors_are_accepted():
    config = StyleConfig().with_background("white").with_dots(color="rgb(10, 20, 30)")
    assert config.background.color == "white"


def test_disabled_frame_has_zero_effective_width():
    frame = StyleConfig().with_frame(width=10, enabled=False).frame
    assert frame.width == 10
    assert frame.effective_width == 0


def test_dict_round_trip():
    config = (
        StyleConfig(data="hello", margin=4, image="logo.png")
        .with_dots(color="#112233", type="dots")
        .with_corners_square(type="square")
        .with_corners_dot(color="#445566", type="square")
        .with_error_correction("L")
        .with_image_options(margin=2, hide_background_dots=False)
        .with_frame(enabled=False, color="#abcdef", width=8, radius=0)
        .with_resolution(1024)
    )
    assert StyleConfig.from_dict(config.to_dict()) == config


def test_from_dict_fills_missing_keys_with_defaults():
    config = StyleConfig.from_dict({"data": "abc", "frameOptions": {"width": 5}})
    assert config.data == "abc"
    assert config.frame.width == 5
    assert config.frame.radius == 20
    assert config.dots == StyleConfig().dots


def test_preset_save_and_load(tmp_path):
    path = str(tmp_path / "presets" / "brand.json")
    config = StyleConfig(data="brand").with_frame(width=6)
    assert save_preset(config, path) == path
    with open(path, encoding="utf-8") as f:
        assert json.load(f)["frameOptions"]["width"] == 6
    assert load_preset(path) == config


def test_load_missing_preset(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_preset(str(tmp_path / "missing.json"))


def test_load_malformed_preset(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        load_preset(str(path))


def test_live_config_setters_replace_snapshot():
    live = LiveConfig()
    before = live.snapshot()
    live.set_data("changed")
    live.set_frame(width=3, color="#00ff00")
    live.set_dots(type="square")
    live.set_resolution(512)
    after = live.snapshot()

    assert before.data == "https://google.com"
    assert before.frame.width == 0
    assert after.data == "changed"
    assert after.frame.width == 3
    assert after.frame.color == "#00ff00"
    assert after.dots.type is DotType.SQUARE
    assert after.download.resolution == 512


def test_live_config_rejects_invalid_update_and_keeps_snapshot():
    live = LiveConfig()
    with pytest.raises(ValueError):
        live.set_margin(-5)
    assert live.snapshot().margin == 10


def test_large_resolution_is_accepted():
    config = StyleConfig().with_resolution(100000)
    assert config.download.resolution == 100000
