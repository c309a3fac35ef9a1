"""Tests for wireframe models, templates and tree helpers."""

import pytest
from pydantic import ValidationError

from .edits import (
    ProportionAdjustment,
    Refinement,
    adjust_proportions,
    apply_refinement,
    parse_refinement,
    shift_following,
)
from .lib import (
    apply_component_update,
    describe_component,
    find_component,
    find_components_by_type,
    iter_components,
    render_outline,
    replace_component,
)
from .models import ComponentType, Wireframe, WireframeComponent, WireframeMetadata
from .templates import (
    WIREFRAME_TEMPLATES,
    build_wireframe,
    get_template,
    layout_template,
    list_templates,
    match_template,
)

# =============================================================================
# Models
# =============================================================================


class TestModels:
    @pytest.mark.unit
    def test_enum_values_are_stored(self):
        component = WireframeComponent(id="h", type=ComponentType.HEADER)
        assert component.type == "header"

    @pytest.mark.unit
    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            WireframeComponent(id="x", type="navbar")

    @pytest.mark.unit
    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate component id"):
            Wireframe(
                id="wf",
                session_id="s",
                components=[
                    WireframeComponent(
                        id="a",
                        type="container",
                        children=[WireframeComponent(id="a", type="card")],
                    )
                ],
                metadata=WireframeMetadata(width=100, height=100),
            )

    @pytest.mark.unit
    def test_json_round_trip(self):
        wireframe, _ = build_wireframe("dashboard", session_id="s1")
        restored = Wireframe.model_validate_json(wireframe.model_dump_json())
        assert restored == wireframe


# =============================================================================
# Templates
# =============================================================================


class TestMatchTemplate:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "description, expected",
        [
            ("Analytics DASHBOARD with sidebar", "dashboard"),
            ("split comparison view", "split-view"),
            ("card grid of products", "card-grid"),
            ("a simple landing page", "minimal"),
            ("sidebar and header with content", "sidebar-header-content"),
            ("settings page with sidebar", "full-sidebar"),
            ("marketing page with header and footer", "header-footer"),
        ],
    )
    def test_keyword_rules(self, description, expected):
        assert match_template(description) is WIREFRAME_TEMPLATES[expected]

    @pytest.mark.unit
    def test_dashboard_wins_over_split(self):
        assert match_template("split dashboard").name == "Dashboard"

    @pytest.mark.unit
    def test_no_match(self):
        assert match_template("a login form") is None

    @pytest.mark.unit
    def test_lookup(self):
        assert get_template("Minimal").name == "Minimal"
        assert get_template("unknown") is None
        assert len(list_templates()) == 7


class TestLayout:
    @pytest.mark.unit
    def test_dashboard_layout(self):
        components = layout_template(WIREFRAME_TEMPLATES["dashboard"], 1200, 800)
        by_id = {c.id: c for c in components}

        sidebar, header, grid = by_id["sidebar-1"], by_id["header-1"], by_id["grid-1"]
        assert (sidebar.position.x, sidebar.dimensions.width) == (0, 240)
        assert sidebar.dimensions.height == 800
        assert (header.position.x, header.dimensions.width) == (240, 960)
        assert (grid.position.y, grid.dimensions.height) == (64, 736)
        assert len(grid.children) == 6
        assert all(child.type == "card" for child in grid.children)

    @pytest.mark.unit
    def test_split_view_halves(self):
        components = layout_template(WIREFRAME_TEMPLATES["split-view"], 1000, 600)
        left, right = components[1], components[2]
        assert left.dimensions.width == right.dimensions.width == 500
        assert right.position.x == 500

    @pytest.mark.unit
    def test_footer_sits_at_bottom(self):
        components = layout_template(WIREFRAME_TEMPLATES["header-footer"])
        footer = components[2]
        assert footer.position.y == 800 - 48
        assert components[1].dimensions.height == 800 - 64 - 48

    @pytest.mark.unit
    def test_build_falls_back_to_minimal(self):
        wireframe, template = build_wireframe("a login form", "s1", 640, 480)
        assert template.name == "Minimal"
        assert [c.type for c in wireframe.components] == ["content"]
        assert wireframe.metadata.width == 640
        assert wireframe.session_id == "s1"


# =============================================================================
# Tree helpers
# =============================================================================


@pytest.fixture
def dashboard():
    wireframe, _ = build_wireframe("dashboard", "s1")
    return wireframe


class TestTreeHelpers:
    @pytest.mark.unit
    def test_iter_is_depth_first(self, dashboard):
        ids = [c.id for c in iter_components(dashboard.components)]
        assert ids[:4] == ["sidebar-1", "header-1", "grid-1", "grid-1-card-1"]

    @pytest.mark.unit
    def test_find_nested(self, dashboard):
        assert find_component(dashboard, "grid-1-card-4").type == "card"
        assert find_component(dashboard, "missing") is None

    @pytest.mark.unit
    def test_find_by_type(self, dashboard):
        assert len(find_components_by_type(dashboard, "card")) == 6
        assert find_components_by_type(dashboard, ComponentType.FOOTER) == []

    @pytest.mark.unit
    def test_replace_nested(self, dashboard):
        card = find_component(dashboard, "grid-1-card-2")
        updated = apply_component_update(card, properties={"title": "Revenue"})

        assert replace_component(dashboard, updated) is True
        assert find_component(dashboard, "grid-1-card-2").properties["title"] == "Revenue"

    @pytest.mark.unit
    def test_replace_unknown(self, dashboard):
        stray = WireframeComponent(id="nope", type="card")
        assert replace_component(dashboard, stray) is False


class TestApplyUpdate:
    @pytest.mark.unit
    def test_returns_copy(self, dashboard):
        sidebar = find_component(dashboard, "sidebar-1")
        updated = apply_component_update(sidebar, dimensions={"width": 300})

        assert updated.dimensions.width == 300
        assert updated.dimensions.height == 800
        assert sidebar.dimensions.width == 240

    @pytest.mark.unit
    def test_none_removes_property(self):
        component = WireframeComponent(id="g", type="grid", properties={"columns": 3})
        updated = apply_component_update(component, properties={"columns": None})
        assert "columns" not in updated.properties

    @pytest.mark.unit
    def test_incomplete_position_rejected(self):
        component = WireframeComponent(id="c", type="content")
        with pytest.raises(ValueError):
            apply_component_update(component, position={"x": 10})

    @pytest.mark.unit
    def test_negative_dimension_rejected(self, dashboard):
        sidebar = find_component(dashboard, "sidebar-1")
        with pytest.raises(ValueError):
            apply_component_update(sidebar, dimensions={"width": -1})


class TestDescribe:
    @pytest.mark.unit
    def test_describe_component(self, dashboard):
        text = describe_component(find_component(dashboard, "grid-1"))
        assert "Component: grid" in text
        assert "ID: grid-1" in text
        assert "  - columns: 3" in text
        assert "Children: 6 component(s)" in text

    @pytest.mark.unit
    def test_render_outline(self, dashboard):
        outline = render_outline(dashboard)
        assert outline.splitlines()[0].endswith("(1200x800)")
        assert "  - sidebar-1 [sidebar] 240x800" in outline
        assert "    - grid-1-card-1 [card]" in outline


# =============================================================================
# Proportions and Refinements
# =============================================================================


class TestAdjustProportions:
    @pytest.mark.unit
    def test_width_delta(self, dashboard):
        sidebar = find_component(dashboard, "sidebar-1")
        adjusted = adjust_proportions(sidebar, ProportionAdjustment(width_delta=60), 1200, 800)

        assert adjusted.dimensions.width == 300
        assert adjusted.dimensions.height == 800
        assert sidebar.dimensions.width == 240

    @pytest.mark.unit
    def test_delta_is_clamped(self, dashboard):
        sidebar = find_component(dashboard, "sidebar-1")
        adjusted = adjust_proportions(
            sidebar, ProportionAdjustment(width_delta=-500, height_delta=-900), 1200, 800
        )
        assert (adjusted.dimensions.width, adjusted.dimensions.height) == (50, 50)

    @pytest.mark.unit
    def test_percent_overrides_and_is_remembered(self, dashboard):
        sidebar = find_component(dashboard, "sidebar-1")
        adjusted = adjust_proportions(
            sidebar, ProportionAdjustment(width_delta=10, width_percent=25), 1200, 800
        )
        assert adjusted.dimensions.width == 300
        assert adjusted.properties["width_percent"] == 25

    @pytest.mark.unit
    def test_percent_out_of_range(self, dashboard):
        sidebar = find_component(dashboard, "sidebar-1")
        with pytest.raises(ValueError, match="width_percent must be between 0 and 100"):
            adjust_proportions(sidebar, ProportionAdjustment(width_percent=150), 1200, 800)

    @pytest.mark.unit
    def test_spacing_delta(self, dashboard):
        grid = find_component(dashboard, "grid-1")

        wider = adjust_proportions(grid, ProportionAdjustment(spacing_delta=8), 1200, 800)
        collapsed = adjust_proportions(grid, ProportionAdjustment(spacing_delta=-100), 1200, 800)

        assert wider.properties["spacing"] == 24
        assert collapsed.properties["spacing"] == 0
        assert wider.dimensions == grid.dimensions

    @pytest.mark.unit
    def test_missing_dimensions_start_from_zero(self):
        content = WireframeComponent(id="c", type="content")
        adjusted = adjust_proportions(content, ProportionAdjustment(height_delta=120), 1200, 800)
        assert (adjusted.dimensions.width, adjusted.dimensions.height) == (0, 120)

    @pytest.mark.unit
    def test_empty_adjustment(self):
        assert ProportionAdjustment().is_empty()
        assert not ProportionAdjustment(spacing_delta=0).is_empty()


class TestShiftFollowing:
    @pytest.mark.unit
    def test_moves_components_to_the_right_with_children(self, dashboard):
        shifted = {c.id: c for c in shift_following(dashboard, "sidebar-1", 60)}

        assert set(shifted) == {"header-1", "grid-1"}
        assert shifted["header-1"].position.x == 300
        assert shifted["grid-1"].children[0].position.x == 316
        assert find_component(dashboard, "grid-1").position.x == 240

    @pytest.mark.unit
    def test_zero_delta_or_unknown_component(self, dashboard):
        assert shift_following(dashboard, "sidebar-1", 0) == []
        assert shift_following(dashboard, "missing", 60) == []

    @pytest.mark.unit
    def test_nested_target_moves_nothing(self, dashboard):
        assert shift_following(dashboard, "grid-1-card-1", 60) == []


class TestRefinement:
    @pytest.mark.unit
    def test_parse_size_and_section(self):
        refinement = parse_refinement("Make it narrower and add a profile section at the top")

        assert refinement.dimensions == {"width": 200}
        assert refinement.new_slots == ["profile"]
        assert refinement.properties == {}

    @pytest.mark.unit
    def test_parse_columns_and_spacing(self):
        refinement = parse_refinement("change to 4 columns with spacing: 24")
        assert refinement.properties == {"columns": 4, "spacing": 24}
        assert refinement.describe() == ["columns -> 4", "spacing -> 24"]

    @pytest.mark.unit
    def test_parse_unknown_is_empty(self):
        assert parse_refinement("make it feel friendlier").is_empty()

    @pytest.mark.unit
    def test_section_is_added_once(self, dashboard):
        sidebar = find_component(dashboard, "sidebar-1")
        refinement = Refinement(new_slots=["profile"])

        once = apply_refinement(sidebar, refinement)
        twice = apply_refinement(once, refinement)

        assert [c.id for c in twice.children] == ["sidebar-1-profile"]
        assert twice.children[0].type == "content"
        assert twice.children[0].properties == {"slot": "profile"}
        assert sidebar.children == []

    @pytest.mark.unit
    def test_dimensions_merge(self, dashboard):
        sidebar = find_component(dashboard, "sidebar-1")
        refined = apply_refinement(sidebar, parse_refinement("wider"))
        assert (refined.dimensions.width, refined.dimensions.height) == (300, 800)

        bare = WireframeComponent(id="c", type="content")
        taller = apply_refinement(bare, parse_refinement("taller"))
        assert (taller.dimensions.width, taller.dimensions.height) == (0, 800)
