"""
Layer stack assembly for floors, ceilings and walls.

A LayerStack accumulates layer offsets in stack order from a starting offset,
either upwards (each layer sits on top of the previous one) or downwards
(each layer hangs below the previous one). Every layer with non-zero
thickness becomes one or more elements; a stack contributes one tagged
group, or nothing at all when it has no thickness.

Offsets of a stack with start S and layers t0..tn:
    UP:   offset_i = S + sum(t0..t(i-1)),  outer face = S + T
    DOWN: offset_i = S - sum(t0..ti),      outer face = S - T
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from shapely.geometry import Polygon
from shapely.ops import unary_union

from construction_model import (
    TAG_FLOOR_LAYER_CEILING,
    TAG_FLOOR_LAYER_TOP,
    TAG_WALL_LAYER_INSIDE,
    TAG_WALL_LAYER_OUTSIDE,
    ConstructionModel,
    ConstructionResult,
    ResultKind,
    aggregate_results,
    create_group,
    element_result,
    empty_model,
    merge_models,
)
from geometry_primitives import (
    Plane3D,
    Vec2,
    make_polygon_with_holes,
    normalize_polygon_with_holes,
    rectangle,
)
from layers import LayerConfig, construct_layer, total_thickness
from solid_kernel import SolidKernel, default_kernel

logger = logging.getLogger(__name__)


class StackDirection(Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class LayerStack:
    """Ordered layers plus where and in which direction they accumulate."""
    layers: Tuple[LayerConfig, ...]
    start_offset: float = 0.0
    direction: StackDirection = StackDirection.UP

    def __post_init__(self):
        for layer in self.layers:
            if layer.thickness < 0:
                raise ValueError(f"Layer thickness must be >= 0, got {layer.thickness}")
            layer.validate()

    @property
    def total_thickness(self) -> float:
        return total_thickness(list(self.layers))

    @property
    def outer_offset(self) -> float:
        """Offset of the outermost layer's outer face."""
        if self.direction is StackDirection.UP:
            return self.start_offset + self.total_thickness
        return self.start_offset - self.total_thickness

    def offsets(self) -> List[float]:
        """Per-layer offset of the face each layer is extruded from."""
        result = []
        cumulative = 0.0
        for layer in self.layers:
            if self.direction is StackDirection.UP:
                result.append(self.start_offset + cumulative)
                cumulative += layer.thickness
            else:
                cumulative += layer.thickness
                result.append(self.start_offset - cumulative)
        return result

    def construct(
        self,
        polygon: Polygon,
        plane: Plane3D,
        kernel: Optional[SolidKernel] = None,
    ) -> List[ConstructionResult]:
        """Run every non-empty layer in stack order."""
        kernel = kernel or default_kernel()
        results: List[ConstructionResult] = []
        for layer, offset in zip(self.layers, self.offsets()):
            if layer.thickness <= 0:
                continue
            results.extend(construct_layer(polygon, offset, plane, layer, kernel))
        return results


def build_layer_group(
    stack: LayerStack,
    polygons: Sequence[Polygon],
    plane: Plane3D,
    tag: str,
    kernel: Optional[SolidKernel] = None,
) -> Optional[ConstructionModel]:
    """Construct a stack over one or more polygons into a single tagged group.

    Returns None when the stack has no layers or no thickness. Measurements
    and issues emitted by layers are kept next to the group.
    """
    if not stack.layers or stack.total_thickness <= 0:
        return None

    results: List[ConstructionResult] = []
    for polygon in polygons:
        results.extend(stack.construct(polygon, plane, kernel))

    elements = [r.value for r in results if r.kind is ResultKind.ELEMENT]
    others = [r for r in results if r.kind is not ResultKind.ELEMENT]
    if not elements and not others:
        return None

    stream = [element_result(create_group(elements, tags=(tag,)))] if elements else []
    model = aggregate_results(stream + others)
    logger.debug(
        "Layer group %s: %d layers, %.1f mm, %d elements",
        tag, len(stack.layers), stack.total_thickness, len(elements),
    )
    return model


# ─── Floors ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FloorLayersConfig:
    """Finish layers on top of a floor and below it (the ceiling of the storey below)."""
    top_layers: Tuple[LayerConfig, ...] = ()
    bottom_layers: Tuple[LayerConfig, ...] = ()

    @property
    def top_thickness(self) -> float:
        return total_thickness(list(self.top_layers))

    @property
    def bottom_thickness(self) -> float:
        return total_thickness(list(self.bottom_layers))


def construct_top_layers(
    polygon: Polygon,
    layers: Sequence[LayerConfig],
    floor_top_offset: float,
    kernel: Optional[SolidKernel] = None,
) -> Optional[ConstructionModel]:
    """Floor finish: the outermost layer's top face lands at ``floor_top_offset``."""
    stack = LayerStack(tuple(layers), floor_top_offset - total_thickness(list(layers)), StackDirection.UP)
    return build_layer_group(stack, [polygon], Plane3D.XY, TAG_FLOOR_LAYER_TOP, kernel)


def construct_ceiling_layers(
    polygon: Polygon,
    layers: Sequence[LayerConfig],
    ceiling_start_height: float,
    kernel: Optional[SolidKernel] = None,
) -> Optional[ConstructionModel]:
    """Ceiling finish: layers hang downwards from ``ceiling_start_height``."""
    stack = LayerStack(tuple(layers), ceiling_start_height, StackDirection.DOWN)
    return build_layer_group(stack, [polygon], Plane3D.XY, TAG_FLOOR_LAYER_CEILING, kernel)


def construct_floor_layers(
    finished_polygon: Sequence[Vec2],
    current_floor: FloorLayersConfig,
    next_floor: Optional[FloorLayersConfig],
    floor_top_offset: float,
    ceiling_start_height: float,
    top_holes: Sequence[Sequence[Vec2]] = (),
    ceiling_holes: Sequence[Sequence[Vec2]] = (),
    kernel: Optional[SolidKernel] = None,
) -> Optional[ConstructionModel]:
    """Top layers of this floor and ceiling layers of the floor above.

    Returns None when neither stack contributes anything.
    """
    top_polygon = make_polygon_with_holes(finished_polygon, top_holes)
    models = [construct_top_layers(top_polygon, current_floor.top_layers, floor_top_offset, kernel)]

    if next_floor is not None:
        ceiling_polygon = make_polygon_with_holes(finished_polygon, ceiling_holes)
        models.append(
            construct_ceiling_layers(ceiling_polygon, next_floor.bottom_layers, ceiling_start_height, kernel)
        )

    present = [m for m in models if m is not None]
    if not present:
        return None
    return merge_models(*present)


# ─── Walls ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Opening:
    """A window or door cut through a wall, in wall coordinates."""
    offset_from_start: float
    width: float
    height: float
    sill_height: float = 0.0
    kind: str = "window"

    @property
    def end(self) -> float:
        return self.offset_from_start + self.width


@dataclass(frozen=True)
class WallLayersConfig:
    inside_layers: Tuple[LayerConfig, ...] = ()
    outside_layers: Tuple[LayerConfig, ...] = ()

    @property
    def inside_thickness(self) -> float:
        return total_thickness(list(self.inside_layers))

    @property
    def outside_thickness(self) -> float:
        return total_thickness(list(self.outside_layers))


def wall_layer_polygons(
    wall_length: float,
    bottom: float,
    top: float,
    openings: Sequence[Opening] = (),
) -> List[Polygon]:
    """Wall face rectangle (x along the wall, z up) with openings removed.

    Openings are clamped to the rectangle; a full-height opening splits the
    face into several polygons.
    """
    face = rectangle(0.0, bottom, wall_length, top)
    holes = []
    for opening in openings:
        start, end = max(opening.offset_from_start, 0.0), min(opening.end, wall_length)
        sill = bottom + opening.sill_height
        lo, hi = max(sill, bottom), min(sill + opening.height, top)
        if end <= start or hi <= lo:
            continue
        holes.append(rectangle(start, lo, end, hi))

    remaining = face.difference(unary_union(holes)) if holes else face
    if remaining.is_empty:
        return []
    parts = list(remaining.geoms) if hasattr(remaining, "geoms") else [remaining]
    return [normalize_polygon_with_holes(p) for p in parts if isinstance(p, Polygon) and p.area > 0]


def construct_wall_layers(
    wall_length: float,
    wall_height: float,
    wall_thickness: float,
    layers: WallLayersConfig,
    openings: Sequence[Opening] = (),
    bottom: float = 0.0,
    kernel: Optional[SolidKernel] = None,
) -> ConstructionModel:
    """Inside and outside finish layers of a straight wall.

    Wall frame: x along the wall, y across it (0 = inside face,
    ``wall_thickness`` = outside face), z up. Inside layers stack from the
    inside face towards the core, outside layers from the outside face
    towards the core; the first listed layer is the one at the face.
    """
    polygons = wall_layer_polygons(wall_length, bottom, bottom + wall_height, openings)
    if not polygons:
        return empty_model()

    inside = LayerStack(tuple(layers.inside_layers), 0.0, StackDirection.UP)
    outside = LayerStack(tuple(layers.outside_layers), wall_thickness, StackDirection.DOWN)
    models = [
        build_layer_group(inside, polygons, Plane3D.XZ, TAG_WALL_LAYER_INSIDE, kernel),
        build_layer_group(outside, polygons, Plane3D.XZ, TAG_WALL_LAYER_OUTSIDE, kernel),
    ]
    present = [m for m in models if m is not None]
    if not present:
        return empty_model()
    return merge_models(*present)
