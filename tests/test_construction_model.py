"""Tests for construction_model: elements, groups and result aggregation."""
import pytest

from construction_model import (
    ConstructionModel,
    Measurement,
    ResultKind,
    aggregate_results,
    create_element,
    create_group,
    cuboid_shape,
    element_result,
    empty_model,
    error_result,
    iter_elements,
    make_issue,
    measurement_result,
    merge_models,
    model_results,
    transform_model,
    warning_result,
)
from geometry_primitives import Bounds3D, Transform


def _element(kernel, position=(0, 0, 0), size=(100, 100, 100), material="wood_post", tags=()):
    return create_element(material, cuboid_shape(kernel, size), Transform.translation(*position), tags)


@pytest.fixture
def model_a(kernel):
    post = _element(kernel)
    return aggregate_results([
        element_result(post),
        measurement_result(Measurement((0, 0, 0), (100, 0, 0))),
        warning_result(make_issue("thin", [post])),
    ])


@pytest.fixture
def model_b(kernel):
    bale = _element(kernel, position=(500, 0, 0), material="straw")
    return aggregate_results([element_result(bale), error_result(make_issue("broken", [bale]))])


class TestElements:

    def test_element_bounds_follow_transform(self, kernel):
        element = _element(kernel, position=(10, 20, 30), size=(1, 2, 3))
        assert element.bounds.min == pytest.approx((10, 20, 30))
        assert element.bounds.max == pytest.approx((11, 22, 33))

    def test_group_bounds_cover_children(self, kernel):
        group = create_group([_element(kernel), _element(kernel, position=(200, 0, 0))])
        assert group.bounds.min == pytest.approx((0, 0, 0))
        assert group.bounds.max == pytest.approx((300, 100, 100))

    def test_empty_group_has_no_bounds(self):
        assert create_group([]).bounds is None

    def test_iter_elements_walks_nested_groups(self, kernel):
        inner = create_group([_element(kernel), _element(kernel)])
        outer = create_group([inner, _element(kernel)])
        assert len(list(iter_elements([outer]))) == 3

    def test_ids_are_unique(self, kernel):
        assert _element(kernel).id != _element(kernel).id


class TestAggregateResults:

    def test_sorts_results_by_kind(self, model_a):
        assert len(model_a.elements) == 1
        assert len(model_a.measurements) == 1
        assert len(model_a.warnings) == 1
        assert model_a.errors == []

    def test_issue_references_element(self, model_a):
        assert model_a.warnings[0].element_ids == (model_a.elements[0].id,)

    def test_empty_stream_has_no_bounds(self):
        model = aggregate_results([])
        assert model.bounds is None
        assert model.is_empty

    def test_model_results_round_trip(self, model_a):
        assert aggregate_results(model_results(model_a)) == model_a


class TestMergeModels:
    """Concatenation with order preserved, bounds as union."""

    def test_merge_order_preserved(self, model_a, model_b):
        merged = merge_models(model_a, model_b)
        assert merged.elements == model_a.elements + model_b.elements
        assert merged.warnings == model_a.warnings
        assert merged.errors == model_b.errors

    def test_merge_bounds_union(self, model_a, model_b):
        merged = merge_models(model_a, model_b)
        assert merged.bounds == Bounds3D.merge(model_a.bounds, model_b.bounds)
        assert merged.bounds.max[0] == pytest.approx(600.0)

    def test_merge_with_empty_is_identity(self, model_a, model_b):
        ab = merge_models(model_a, model_b)
        assert merge_models(ab, empty_model()) == ab
        assert merge_models(empty_model(), ab) == ab

    def test_merge_of_empty_models_has_no_bounds(self):
        merged = merge_models(empty_model(), ConstructionModel())
        assert merged.bounds is None
        assert merged.is_empty

    def test_duplicate_issues_kept(self, model_a):
        merged = merge_models(model_a, model_a)
        assert len(merged.warnings) == 2
        assert len(merged.elements) == 2

    def test_merge_does_not_mutate_inputs(self, model_a, model_b):
        before = len(model_a.elements)
        merge_models(model_a, model_b)
        assert len(model_a.elements) == before


class TestTransformModel:

    def test_elements_wrapped_in_group(self, model_a):
        moved = transform_model(model_a, Transform.translation(0, 0, 1000), tags=("storey",))
        assert len(moved.elements) == 1
        assert moved.elements[0].tags == ("storey",)
        assert moved.bounds.min[2] == pytest.approx(1000.0)

    def test_measurements_moved(self, model_a):
        moved = transform_model(model_a, Transform.translation(0, 0, 1000))
        assert moved.measurements[0].start_point == pytest.approx((0, 0, 1000))
        assert moved.measurements[0].length == pytest.approx(100.0)

    def test_empty_model_stays_empty(self):
        moved = transform_model(empty_model(), Transform.translation(1, 1, 1))
        assert moved.is_empty
        assert moved.bounds is None


def test_result_kinds_are_distinct():
    assert len({k.value for k in ResultKind}) == 5
