"""
Construction model: elements, groups, side artifacts and aggregation.

A construction step emits a flat list of ConstructionResult values (an
element or group, a measurement, a highlighted area, a warning or an error).
aggregate_results() folds such a stream into a ConstructionModel and
merge_models() combines models. Elements and groups form a strict ownership
tree: groups own their children, children never reference their parent.
"""
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
from shapely.geometry import Polygon

from geometry_primitives import IDENTITY, Bounds3D, Plane3D, Transform, Vec3, to_vec3
from solid_kernel import Solid, SolidKernel

logger = logging.getLogger(__name__)

# ─── Tags ────────────────────────────────────────────────────────────────────

TAG_FLOOR_LAYER_TOP = "floor-layer-top"
TAG_FLOOR_LAYER_CEILING = "floor-layer-ceiling"
TAG_WALL_LAYER_INSIDE = "wall-layer-inside"
TAG_WALL_LAYER_OUTSIDE = "wall-layer-outside"
TAG_LAYER_STRIPE = "layer-stripe"
TAG_LAYER_GAP = "layer-gap"
TAG_POST = "post"
TAG_INFILL = "infill"
TAG_STRAW = "straw"
TAG_FULL_BALE = "full-strawbale"
TAG_PARTIAL_BALE = "partial-strawbale"
TAG_POST_SPACING = "post-spacing"
TAG_OPENING = "opening"


def new_id() -> str:
    return uuid.uuid4().hex


# ─── Shapes ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CuboidParams:
    size: Vec3


@dataclass(frozen=True)
class ExtrusionParams:
    polygon: Polygon
    plane: Plane3D
    thickness: float


@dataclass(frozen=True)
class Shape:
    """How a solid was built (params) plus the solid and its local bounds."""
    params: Union[CuboidParams, ExtrusionParams]
    bounds: Bounds3D
    solid: Solid = field(compare=False, repr=False)

    @property
    def volume(self) -> float:
        return abs(float(self.solid.volume))


def cuboid_shape(kernel: SolidKernel, size: Sequence[float]) -> Shape:
    """Cuboid with its minimum corner at the local origin."""
    solid = kernel.cuboid(size)
    lo, hi = kernel.bounding_box(solid)
    return Shape(params=CuboidParams(to_vec3(size)), bounds=Bounds3D(to_vec3(lo), to_vec3(hi)), solid=solid)


def extruded_shape(kernel: SolidKernel, polygon: Polygon, plane: Plane3D, thickness: float) -> Shape:
    solid = kernel.extrude(polygon, plane, thickness)
    lo, hi = kernel.bounding_box(solid)
    return Shape(
        params=ExtrusionParams(polygon=polygon, plane=plane, thickness=float(thickness)),
        bounds=Bounds3D(to_vec3(lo), to_vec3(hi)),
        solid=solid,
    )


# ─── Elements and groups ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class ConstructionElement:
    """A positioned, tagged solid. ``bounds`` is in the parent frame."""
    id: str
    material: str
    shape: Shape
    transform: Transform
    bounds: Bounds3D
    tags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ConstructionGroup:
    """Owns its children; ``bounds`` covers all children in the parent frame."""
    id: str
    children: Tuple["GroupOrElement", ...]
    transform: Transform
    bounds: Optional[Bounds3D]
    tags: Tuple[str, ...] = ()


GroupOrElement = Union[ConstructionElement, ConstructionGroup]


def create_element(
    material: str,
    shape: Shape,
    transform: Transform = IDENTITY,
    tags: Sequence[str] = (),
) -> ConstructionElement:
    return ConstructionElement(
        id=new_id(),
        material=material,
        shape=shape,
        transform=transform,
        bounds=shape.bounds.transformed(transform.matrix()),
        tags=tuple(tags),
    )


def create_group(
    children: Sequence[GroupOrElement],
    transform: Transform = IDENTITY,
    tags: Sequence[str] = (),
) -> ConstructionGroup:
    local = Bounds3D.merge(*[child.bounds for child in children])
    bounds = local.transformed(transform.matrix()) if local is not None else None
    return ConstructionGroup(
        id=new_id(),
        children=tuple(children),
        transform=transform,
        bounds=bounds,
        tags=tuple(tags),
    )


def iter_elements(items: Iterable[GroupOrElement]) -> Iterator[ConstructionElement]:
    """Depth-first walk yielding leaf elements."""
    for item in items:
        if isinstance(item, ConstructionGroup):
            yield from iter_elements(item.children)
        else:
            yield item


# ─── Side artifacts ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Measurement:
    start_point: Vec3
    end_point: Vec3
    label: Optional[str] = None
    tags: Tuple[str, ...] = ()

    @property
    def length(self) -> float:
        return float(np.linalg.norm(np.subtract(self.end_point, self.start_point)))

    def transformed(self, transform: Transform) -> "Measurement":
        start, end = transform.apply(np.array([self.start_point, self.end_point]))
        return Measurement(to_vec3(start), to_vec3(end), self.label, self.tags)


@dataclass(frozen=True)
class HighlightedArea:
    """Non-geometric visual feedback (critical zones, corners)."""
    bounds: Bounds3D
    label: Optional[str] = None
    tags: Tuple[str, ...] = ()
    render_position: str = "top"  # "top" or "bottom"

    def transformed(self, transform: Transform) -> "HighlightedArea":
        return HighlightedArea(
            self.bounds.transformed(transform.matrix()), self.label, self.tags, self.render_position,
        )


@dataclass(frozen=True)
class ConstructionIssue:
    """A warning or error attached to a result, referencing affected elements."""
    description: str
    element_ids: Tuple[str, ...] = ()
    bounds: Optional[Bounds3D] = None

    def transformed(self, transform: Transform) -> "ConstructionIssue":
        if self.bounds is None:
            return self
        return ConstructionIssue(self.description, self.element_ids, self.bounds.transformed(transform.matrix()))


def make_issue(
    description: str,
    elements: Iterable[GroupOrElement] = (),
    bounds: Optional[Bounds3D] = None,
) -> ConstructionIssue:
    return ConstructionIssue(description, tuple(e.id for e in elements), bounds)


# ─── Results ─────────────────────────────────────────────────────────────────

class ResultKind(Enum):
    ELEMENT = "element"
    MEASUREMENT = "measurement"
    AREA = "area"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class ConstructionResult:
    """Tagged union over everything a construction step can emit."""
    kind: ResultKind
    value: Union[GroupOrElement, Measurement, HighlightedArea, ConstructionIssue]


def element_result(element: GroupOrElement) -> ConstructionResult:
    return ConstructionResult(ResultKind.ELEMENT, element)


def measurement_result(measurement: Measurement) -> ConstructionResult:
    return ConstructionResult(ResultKind.MEASUREMENT, measurement)


def area_result(area: HighlightedArea) -> ConstructionResult:
    return ConstructionResult(ResultKind.AREA, area)


def warning_result(issue: ConstructionIssue) -> ConstructionResult:
    return ConstructionResult(ResultKind.WARNING, issue)


def error_result(issue: ConstructionIssue) -> ConstructionResult:
    return ConstructionResult(ResultKind.ERROR, issue)


def result_elements(results: Iterable[ConstructionResult]) -> List[GroupOrElement]:
    return [r.value for r in results if r.kind is ResultKind.ELEMENT]


# ─── Models ──────────────────────────────────────────────────────────────────

@dataclass
class ConstructionModel:
    """Aggregate of a construction computation.

    ``bounds`` encloses every element; it is None when there are no elements.
    """
    elements: List[GroupOrElement] = field(default_factory=list)
    measurements: List[Measurement] = field(default_factory=list)
    areas: List[HighlightedArea] = field(default_factory=list)
    warnings: List[ConstructionIssue] = field(default_factory=list)
    errors: List[ConstructionIssue] = field(default_factory=list)
    bounds: Optional[Bounds3D] = None

    @property
    def is_empty(self) -> bool:
        return not (self.elements or self.measurements or self.areas or self.warnings or self.errors)


def empty_model() -> ConstructionModel:
    return ConstructionModel()


def aggregate_results(results: Iterable[ConstructionResult]) -> ConstructionModel:
    """Fold a result stream into a model, preserving emission order per kind."""
    model = ConstructionModel()
    buckets = {
        ResultKind.ELEMENT: model.elements,
        ResultKind.MEASUREMENT: model.measurements,
        ResultKind.AREA: model.areas,
        ResultKind.WARNING: model.warnings,
        ResultKind.ERROR: model.errors,
    }
    for result in results:
        buckets[result.kind].append(result.value)
    model.bounds = Bounds3D.merge(*[e.bounds for e in model.elements])
    return model


def merge_models(*models: ConstructionModel) -> ConstructionModel:
    """Concatenate models in order. Issues are not deduplicated."""
    merged = ConstructionModel()
    for model in models:
        merged.elements.extend(model.elements)
        merged.measurements.extend(model.measurements)
        merged.areas.extend(model.areas)
        merged.warnings.extend(model.warnings)
        merged.errors.extend(model.errors)
    merged.bounds = Bounds3D.merge(*[m.bounds for m in models])
    return merged


def model_results(model: ConstructionModel) -> List[ConstructionResult]:
    """Inverse of aggregate_results (up to the interleaving of kinds)."""
    return (
        [element_result(e) for e in model.elements]
        + [measurement_result(m) for m in model.measurements]
        + [area_result(a) for a in model.areas]
        + [warning_result(w) for w in model.warnings]
        + [error_result(e) for e in model.errors]
    )


def transform_model(
    model: ConstructionModel,
    transform: Transform,
    tags: Sequence[str] = (),
) -> ConstructionModel:
    """Move a whole model: elements are wrapped in one transformed group."""
    elements: List[GroupOrElement] = []
    bounds = None
    if model.elements:
        group = create_group(model.elements, transform, tags)
        elements.append(group)
        bounds = group.bounds
    return ConstructionModel(
        elements=elements,
        measurements=[m.transformed(transform) for m in model.measurements],
        areas=[a.transformed(transform) for a in model.areas],
        warnings=[w.transformed(transform) for w in model.warnings],
        errors=[e.transformed(transform) for e in model.errors],
        bounds=bounds,
    )
