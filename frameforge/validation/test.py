"""Tests for request validation."""

import pytest

from frameforge.wireframe.models import Dimensions, WireframeComponent

from .lib import (
    validate_asset_dimensions,
    validate_image_dimensions,
    validate_layout_proportions,
)


class TestImageDimensions:
    @pytest.mark.unit
    @pytest.mark.parametrize(("w", "h"), [(64, 64), (512, 768), (2048, 2048)])
    def test_accepts_bounds(self, w, h):
        assert validate_image_dimensions(w, h).valid

    @pytest.mark.unit
    def test_rejects_small_width(self):
        check = validate_image_dimensions(32, 512)
        assert not check.valid
        assert "width" in check.reason

    @pytest.mark.unit
    def test_rejects_large_height(self):
        check = validate_image_dimensions(512, 4096)
        assert "height" in check.reason


class TestAssetDimensions:
    @pytest.mark.unit
    def test_square_icon(self):
        assert validate_asset_dimensions("icon", 256, 256).valid

    @pytest.mark.unit
    def test_icon_out_of_range(self):
        check = validate_asset_dimensions("icon", 1024, 1024)
        assert "between 64px and 512px" in check.reason
        assert check.recommended == (256, 256)

    @pytest.mark.unit
    def test_icon_not_square(self):
        check = validate_asset_dimensions("icon", 512, 256)
        assert "roughly square" in check.reason

    @pytest.mark.unit
    def test_banner(self):
        assert validate_asset_dimensions("banner", 1200, 400).valid
        check = validate_asset_dimensions("banner", 1000, 500)
        assert not check.valid
        assert check.recommended == (1200, 400)

    @pytest.mark.unit
    def test_mockup(self):
        assert validate_asset_dimensions("mockup", 1920, 1080).valid
        assert not validate_asset_dimensions("mockup", 300, 1080).valid

    @pytest.mark.unit
    def test_unknown_type(self):
        with pytest.raises(ValueError):
            validate_asset_dimensions("poster", 100, 100)


def _component(cid, kind, width=0.0, height=0.0):
    return WireframeComponent(
        id=cid, type=kind, dimensions=Dimensions(width=width, height=height)
    )


class TestLayoutProportions:
    @pytest.mark.unit
    def test_balanced_layout(self):
        check = validate_layout_proportions(
            1200, 800,
            [_component("s", "sidebar", 240, 800), _component("h", "header", 960, 64)],
        )
        assert check.valid
        assert check.warnings == []

    @pytest.mark.unit
    def test_sidebar_wider_than_canvas(self):
        check = validate_layout_proportions(1200, 800, [_component("s", "sidebar", 1300, 800)])
        assert not check.valid
        assert "exceeds canvas width" in check.errors[0]

    @pytest.mark.unit
    def test_tall_header_footer_warns(self):
        check = validate_layout_proportions(
            1200, 800,
            [_component("h", "header", 1200, 200), _component("f", "footer", 1200, 200)],
        )
        assert check.valid
        assert check.warnings == ["Header and footer occupy more than 40% of canvas height"]
