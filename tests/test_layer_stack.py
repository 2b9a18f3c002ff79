"""Tests for layer stacks, floor layers and wall layers."""
from dataclasses import dataclass
from typing import ClassVar

import pytest

from construction_model import (
    TAG_FLOOR_LAYER_CEILING,
    TAG_FLOOR_LAYER_TOP,
    TAG_WALL_LAYER_INSIDE,
    TAG_WALL_LAYER_OUTSIDE,
    ConstructionGroup,
    iter_elements,
    make_issue,
    warning_result,
)
from geometry_primitives import Plane3D
from layer_stack import (
    FloorLayersConfig,
    LayerStack,
    Opening,
    StackDirection,
    WallLayersConfig,
    build_layer_group,
    construct_ceiling_layers,
    construct_floor_layers,
    construct_top_layers,
    construct_wall_layers,
    wall_layer_polygons,
)
from layers import (
    LAYER_CONSTRUCTIONS,
    MonolithicLayerConfig,
    StripeDirection,
    StripedLayerConfig,
    construct_monolithic_layer,
)
from solid_kernel import KernelError

SQUARE = [(0, 0), (1000, 0), (1000, 1000), (0, 1000)]

SCREED = (
    MonolithicLayerConfig("impact_sound_insulation", 25),
    MonolithicLayerConfig("cement_screed", 35),
)
PLASTER = (
    MonolithicLayerConfig("clay_plaster_base", 20),
    MonolithicLayerConfig("clay_plaster_fine", 10),
)


class TestLayerStackOffsets:
    """Cumulative offsets in stack order."""

    @pytest.mark.parametrize("thicknesses, start", [
        ([10.0], 0.0),
        ([25.0, 35.0], 100.0),
        ([1.0, 24.0, 25.0, 0.5], -40.0),
    ])
    def test_outer_face_is_start_plus_total(self, thicknesses, start):
        stack = LayerStack(tuple(MonolithicLayerConfig("x", t) for t in thicknesses), start)
        offsets = stack.offsets()
        assert offsets[0] == pytest.approx(start)
        assert offsets[-1] + thicknesses[-1] == pytest.approx(start + sum(thicknesses))
        assert stack.outer_offset == pytest.approx(start + sum(thicknesses))

    def test_offsets_accumulate(self):
        stack = LayerStack(SCREED, 500.0)
        assert stack.offsets() == pytest.approx([500.0, 525.0])

    def test_downward_offsets(self):
        stack = LayerStack(PLASTER, 2500.0, StackDirection.DOWN)
        assert stack.offsets() == pytest.approx([2480.0, 2470.0])
        assert stack.outer_offset == pytest.approx(2470.0)

    def test_zero_thickness_layer_is_skipped(self, kernel, square_polygon):
        stack = LayerStack((MonolithicLayerConfig("a", 10), MonolithicLayerConfig("b", 0)), 0.0)
        assert len(stack.construct(square_polygon, Plane3D.XY, kernel)) == 1


class TestBuildLayerGroup:

    def test_empty_stack_contributes_nothing(self, kernel, square_polygon):
        assert build_layer_group(LayerStack(()), [square_polygon], Plane3D.XY, "t", kernel) is None

    def test_zero_thickness_stack_contributes_nothing(self, kernel, square_polygon):
        stack = LayerStack((MonolithicLayerConfig("a", 0),))
        assert build_layer_group(stack, [square_polygon], Plane3D.XY, "t", kernel) is None

    def test_single_tagged_group(self, kernel, square_polygon):
        model = build_layer_group(LayerStack(SCREED), [square_polygon], Plane3D.XY, "tag", kernel)
        assert len(model.elements) == 1
        group = model.elements[0]
        assert isinstance(group, ConstructionGroup)
        assert group.tags == ("tag",)
        assert len(group.children) == 2


class TestFloorLayers:

    def test_top_layers_end_at_reference_offset(self, kernel, square_polygon):
        model = construct_top_layers(square_polygon, SCREED, 300.0, kernel)
        assert model.elements[0].tags == (TAG_FLOOR_LAYER_TOP,)
        assert model.bounds.max[2] == pytest.approx(300.0)
        assert model.bounds.min[2] == pytest.approx(240.0)

    def test_ceiling_layers_hang_down(self, kernel, square_polygon):
        model = construct_ceiling_layers(square_polygon, PLASTER, 2500.0, kernel)
        assert model.elements[0].tags == (TAG_FLOOR_LAYER_CEILING,)
        assert model.bounds.max[2] == pytest.approx(2500.0)
        assert model.bounds.min[2] == pytest.approx(2470.0)
        first, second = model.elements[0].children
        assert first.material == "clay_plaster_base"
        assert first.bounds.max[2] == pytest.approx(2500.0)
        assert second.bounds.max[2] == pytest.approx(2480.0)

    def test_floor_with_next_floor(self, kernel):
        model = construct_floor_layers(
            SQUARE,
            FloorLayersConfig(top_layers=SCREED),
            FloorLayersConfig(bottom_layers=PLASTER),
            floor_top_offset=0.0,
            ceiling_start_height=2500.0,
            kernel=kernel,
        )
        tags = [g.tags for g in model.elements]
        assert tags == [(TAG_FLOOR_LAYER_TOP,), (TAG_FLOOR_LAYER_CEILING,)]
        assert model.bounds.min[2] == pytest.approx(-60.0)
        assert model.bounds.max[2] == pytest.approx(2500.0)

    def test_floor_without_layers_is_none(self, kernel):
        model = construct_floor_layers(SQUARE, FloorLayersConfig(), FloorLayersConfig(), 0.0, 2500.0, kernel=kernel)
        assert model is None

    def test_top_holes_reduce_volume(self, kernel):
        hole = [(400, 400), (600, 400), (600, 600), (400, 600)]
        model = construct_floor_layers(
            SQUARE, FloorLayersConfig(top_layers=SCREED), None, 0.0, 2500.0, top_holes=[hole], kernel=kernel,
        )
        volume = sum(e.shape.volume for e in iter_elements(model.elements))
        assert volume == pytest.approx((1000 * 1000 - 200 * 200) * 60, rel=1e-6)

    def test_striped_floor_layer(self, kernel, square_polygon):
        battens = StripedLayerConfig("battens", 40, stripe_width=60, gap_width=500, direction=StripeDirection.COLINEAR)
        model = construct_top_layers(square_polygon, (battens,), 0.0, kernel)
        assert len(model.elements[0].children) == 2


class TestWallLayers:

    def test_opening_cut_from_face(self):
        polygons = wall_layer_polygons(3000, 0, 2500, [Opening(1000, 1000, 1200, sill_height=900)])
        assert len(polygons) == 1
        assert len(polygons[0].interiors) == 1
        assert polygons[0].area == pytest.approx(3000 * 2500 - 1000 * 1200)

    def test_door_splits_face(self):
        polygons = wall_layer_polygons(3000, 0, 2500, [Opening(1000, 900, 2500, kind="door")])
        assert len(polygons) == 2

    def test_inside_and_outside_stacks(self, kernel):
        layers = WallLayersConfig(inside_layers=PLASTER, outside_layers=PLASTER)
        model = construct_wall_layers(3000, 2500, 420, layers, kernel=kernel)
        inside, outside = model.elements
        assert inside.tags == (TAG_WALL_LAYER_INSIDE,)
        assert outside.tags == (TAG_WALL_LAYER_OUTSIDE,)
        assert inside.bounds.min[1] == pytest.approx(0.0)
        assert inside.bounds.max[1] == pytest.approx(30.0)
        assert outside.bounds.min[1] == pytest.approx(390.0)
        assert outside.bounds.max[1] == pytest.approx(420.0)
        assert model.bounds.max[2] == pytest.approx(2500.0)

    def test_no_layers_gives_empty_model(self, kernel):
        model = construct_wall_layers(3000, 2500, 420, WallLayersConfig(), kernel=kernel)
        assert model.is_empty
        assert model.bounds is None


@dataclass(frozen=True)
class NotedLayer:
    """Monolithic layer that also reports a warning."""
    material: str
    thickness: float

    layer_type: ClassVar[str] = "noted"

    def validate(self):
        pass


def _construct_noted_layer(polygon, offset, plane, config, kernel):
    slab = MonolithicLayerConfig(config.material, config.thickness)
    results = construct_monolithic_layer(polygon, offset, plane, slab, kernel)
    results.append(warning_result(make_issue(f"{config.material} needs a second coat")))
    return results


class TestLayerValidation:

    def test_negative_thickness_rejected(self):
        with pytest.raises(ValueError):
            LayerStack((MonolithicLayerConfig("a", 30), MonolithicLayerConfig("b", -10), MonolithicLayerConfig("c", 20)))

    def test_negative_thickness_rejected_for_floor(self, kernel, square_polygon):
        with pytest.raises(ValueError):
            construct_top_layers(square_polygon, [MonolithicLayerConfig("a", -5)], 100.0, kernel)

    @pytest.mark.parametrize("stripe_width, gap_width", [(0, 0), (-50, 50), (50, -60)])
    def test_degenerate_stripes_rejected(self, kernel, square_polygon, stripe_width, gap_width):
        layer = StripedLayerConfig("battens", 20, stripe_width=stripe_width, gap_width=gap_width)
        with pytest.raises(ValueError):
            construct_top_layers(square_polygon, [layer], 100.0, kernel)


class TestSideResults:

    def test_layer_warnings_kept_next_to_group(self, kernel, square_polygon, monkeypatch):
        monkeypatch.setitem(LAYER_CONSTRUCTIONS, NotedLayer.layer_type, _construct_noted_layer)
        stack = LayerStack((NotedLayer("reed", 9), MonolithicLayerConfig("gypsum", 30)))
        model = build_layer_group(stack, [square_polygon], Plane3D.XY, "tag", kernel)
        assert len(model.elements) == 1
        assert len(model.elements[0].children) == 2
        assert [w.description for w in model.warnings] == ["reed needs a second coat"]


class TestKernelFailures:

    def test_kernel_error_propagates_from_top_layers(self, failing_kernel, square_polygon):
        with pytest.raises(KernelError):
            construct_top_layers(square_polygon, SCREED, 100.0, failing_kernel)

    def test_kernel_error_propagates_from_wall_layers(self, failing_kernel):
        layers = WallLayersConfig(inside_layers=PLASTER)
        with pytest.raises(KernelError):
            construct_wall_layers(3000, 2500, 420, layers, kernel=failing_kernel)
