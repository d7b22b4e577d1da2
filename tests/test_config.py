import pytest

from app.converter.config import ConversionConfig, normalize_format, settings
from app.converter.errors import InvalidInputError


def test_defaults_come_from_settings():
    config = ConversionConfig()
    assert config.image_format == settings.default_format
    assert config.image_quality == settings.default_quality
    assert config.render_scale == settings.default_scale


def test_jpg_is_an_alias_for_jpeg():
    assert normalize_format("JPG") == "jpeg"
    assert ConversionConfig(image_format="jpg").image_format == "jpeg"


def test_png_is_lossless():
    assert ConversionConfig(image_format="png").is_lossless
    assert not ConversionConfig(image_format="webp").is_lossless


@pytest.mark.parametrize(
    "kwargs",
    [
        {"image_format": "gif"},
        {"image_quality": -0.1},
        {"image_quality": 1.5},
        {"render_scale": 0},
        {"render_scale": -2},
        {"render_scale": 1000},
    ],
)
def test_invalid_options_are_rejected(kwargs):
    with pytest.raises(InvalidInputError):
        ConversionConfig(**kwargs)


def test_config_is_frozen():
    config = ConversionConfig()
    with pytest.raises(AttributeError):
        config.render_scale = 2.0


def test_largest_allowed_scale_is_accepted():
    assert ConversionConfig(render_scale=settings.max_render_scale).render_scale == settings.max_render_scale
