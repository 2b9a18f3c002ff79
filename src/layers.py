"""
Layer configurations and per-layer solid construction.

A layer is either monolithic (one uniform slab) or striped (repeating
stripes of one material, optionally with a second material in the gaps).
construct_layer() dispatches on the layer type through LAYER_CONSTRUCTIONS;
every layer turns a polygon-with-holes into solids at a given offset along
the plane normal.
"""
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, List, Mapping, Optional, Union

from shapely import affinity
from shapely.geometry import GeometryCollection, MultiPolygon, Polygon, box
from shapely.ops import unary_union

from construction_model import (
    TAG_LAYER_GAP,
    TAG_LAYER_STRIPE,
    ConstructionResult,
    create_element,
    element_result,
    extruded_shape,
)
from geometry_primitives import Plane3D, Transform, normalize_polygon_with_holes, point_2d_to_3d
from solid_kernel import SolidKernel

logger = logging.getLogger(__name__)

# Clipped stripe fragments smaller than this are dropped (mm²)
MIN_PIECE_AREA_MM2 = 1e-6

# Exterior edges shorter than this do not define the polygon's axis (mm)
MIN_EDGE_LENGTH_MM = 1e-6


class StripeDirection(Enum):
    """Stripe orientation relative to the layer polygon's first axis."""
    COLINEAR = "colinear"
    PERPENDICULAR = "perpendicular"
    DIAGONAL = "diagonal"

    @property
    def angle_deg(self) -> float:
        return {"colinear": 0.0, "perpendicular": 90.0, "diagonal": 45.0}[self.value]


@dataclass(frozen=True)
class MonolithicLayerConfig:
    material: str
    thickness: float
    name: str = ""

    layer_type: ClassVar[str] = "monolithic"

    def validate(self) -> None:
        if self.thickness < 0:
            raise ValueError(f"Layer thickness must be >= 0, got {self.thickness}")


@dataclass(frozen=True)
class StripedLayerConfig:
    stripe_material: str
    thickness: float
    stripe_width: float = 50.0
    gap_width: float = 50.0
    direction: StripeDirection = StripeDirection.PERPENDICULAR
    gap_material: Optional[str] = None
    name: str = ""

    layer_type: ClassVar[str] = "striped"

    def validate(self) -> None:
        if self.thickness < 0:
            raise ValueError(f"Layer thickness must be >= 0, got {self.thickness}")
        if self.stripe_width <= 0:
            raise ValueError(f"Stripe width must be > 0, got {self.stripe_width}")
        if self.gap_width < 0:
            raise ValueError(f"Gap width must be >= 0, got {self.gap_width}")


LayerConfig = Union[MonolithicLayerConfig, StripedLayerConfig]

LayerConstruction = Callable[[Polygon, float, Plane3D, Any, SolidKernel], List[ConstructionResult]]


def total_thickness(layers: List[LayerConfig]) -> float:
    return float(sum(layer.thickness for layer in layers))


def layer_from_dict(data: Mapping[str, Any]) -> LayerConfig:
    """Build a layer config from a JSON-style mapping with a ``type`` key."""
    values = dict(data)
    layer_type = values.pop("type", None)
    if layer_type == "monolithic":
        return MonolithicLayerConfig(**values)
    if layer_type == "striped":
        if "direction" in values:
            values["direction"] = StripeDirection(values["direction"])
        return StripedLayerConfig(**values)
    raise ValueError(f"Unknown layer type: {layer_type}")


# ─── Constructions ───────────────────────────────────────────────────────────

def construct_monolithic_layer(
    polygon: Polygon,
    offset: float,
    plane: Plane3D,
    config: MonolithicLayerConfig,
    kernel: SolidKernel,
) -> List[ConstructionResult]:
    """One extruded slab of the full polygon."""
    shape = extruded_shape(kernel, polygon, plane, config.thickness)
    position = point_2d_to_3d((0.0, 0.0), plane, offset)
    element = create_element(config.material, shape, Transform.translation(*position))
    return [element_result(element)]


def construct_striped_layer(
    polygon: Polygon,
    offset: float,
    plane: Plane3D,
    config: StripedLayerConfig,
    kernel: SolidKernel,
) -> List[ConstructionResult]:
    """Stripes clipped to the polygon, plus gap fill when a gap material is set."""
    stripes = stripe_polygons(polygon, config.direction, config.stripe_width, config.gap_width)
    transform = Transform.translation(*point_2d_to_3d((0.0, 0.0), plane, offset))

    results = []
    for piece in stripes:
        shape = extruded_shape(kernel, piece, plane, config.thickness)
        results.append(element_result(
            create_element(config.stripe_material, shape, transform, tags=(TAG_LAYER_STRIPE,))
        ))

    if config.gap_material is not None and config.gap_width > 0:
        remainder = polygon.difference(unary_union(stripes)) if stripes else polygon
        for piece in _polygon_pieces(remainder):
            shape = extruded_shape(kernel, piece, plane, config.thickness)
            results.append(element_result(
                create_element(config.gap_material, shape, transform, tags=(TAG_LAYER_GAP,))
            ))

    logger.debug(
        "Striped layer %r: %d stripes, %d total pieces",
        config.name, len(stripes), len(results),
    )
    return results


def stripe_polygons(
    polygon: Polygon,
    direction: StripeDirection,
    stripe_width: float,
    gap_width: float,
) -> List[Polygon]:
    """Clip parallel bands of ``stripe_width`` every ``stripe_width + gap_width``.

    The stripe direction is measured from the polygon's first axis (see
    polygon_axis_angle). Bands start at the polygon's minimum extent across
    the stripe direction.

    Raises:
        ValueError: If ``stripe_width`` is not positive or ``gap_width`` is negative.
    """
    if stripe_width <= 0:
        raise ValueError(f"Stripe width must be > 0, got {stripe_width}")
    if gap_width < 0:
        raise ValueError(f"Gap width must be >= 0, got {gap_width}")

    angle = polygon_axis_angle(polygon) + direction.angle_deg
    # Work in a frame where stripes run along +x
    rotated = affinity.rotate(polygon, -angle, origin=(0, 0))
    min_x, min_y, max_x, max_y = rotated.bounds
    pitch = stripe_width + gap_width

    pieces: List[Polygon] = []
    y = min_y
    while y < max_y:
        band = box(min_x, y, max_x, min(y + stripe_width, max_y))
        for piece in _polygon_pieces(rotated.intersection(band)):
            pieces.append(normalize_polygon_with_holes(affinity.rotate(piece, angle, origin=(0, 0))))
        y += pitch
    return pieces


def polygon_axis_angle(polygon: Polygon) -> float:
    """Angle in degrees of the polygon's first axis, folded into [-45, 45).

    The axis is the direction of the first non-degenerate exterior edge. The
    fold picks whichever of that edge and its perpendicular lies closer to +x,
    so axis-aligned polygons always give 0.
    """
    coords = list(polygon.exterior.coords)
    for (x0, y0), (x1, y1) in zip(coords, coords[1:]):
        if math.hypot(x1 - x0, y1 - y0) > MIN_EDGE_LENGTH_MM:
            angle = math.degrees(math.atan2(y1 - y0, x1 - x0))
            return (angle + 45.0) % 90.0 - 45.0
    return 0.0


def _polygon_pieces(geometry) -> List[Polygon]:
    if geometry.is_empty:
        return []
    if isinstance(geometry, Polygon):
        candidates = [geometry]
    elif isinstance(geometry, (MultiPolygon, GeometryCollection)):
        candidates = [g for g in geometry.geoms if isinstance(g, Polygon)]
    else:
        candidates = []
    return [p for p in candidates if p.area > MIN_PIECE_AREA_MM2]


LAYER_CONSTRUCTIONS: Dict[str, LayerConstruction] = {
    MonolithicLayerConfig.layer_type: construct_monolithic_layer,
    StripedLayerConfig.layer_type: construct_striped_layer,
}


def construct_layer(
    polygon: Polygon,
    offset: float,
    plane: Plane3D,
    layer: LayerConfig,
    kernel: SolidKernel,
) -> List[ConstructionResult]:
    """Dispatch a layer to its construction.

    Unknown types are a programming error (TypeError); invalid configs raise
    ValueError before any geometry is built.
    """
    construction = LAYER_CONSTRUCTIONS.get(getattr(layer, "layer_type", None))
    if construction is None:
        raise TypeError(f"Unsupported layer type: {type(layer).__name__}")
    layer.validate()
    return construction(polygon, offset, plane, layer, kernel)


# ─── Default layer sets ──────────────────────────────────────────────────────

def _monolithic(material: str, thickness: float, name: str) -> MonolithicLayerConfig:
    return MonolithicLayerConfig(material=material, thickness=thickness, name=name)


DEFAULT_WALL_LAYER_SETS: Dict[str, List[LayerConfig]] = {
    "Clay Plaster": [
        _monolithic("clay_plaster_base", 20, "Base Plaster (Clay)"),
        _monolithic("clay_plaster_fine", 10, "Fine Plaster (Clay)"),
    ],
    "Clay Plaster + Diagonal Bracing": [
        StripedLayerConfig(
            name="Diagonal Bracing", direction=StripeDirection.DIAGONAL,
            stripe_material="boards", stripe_width=200,
            gap_material="clay_plaster_base", gap_width=50, thickness=25,
        ),
        _monolithic("clay_plaster_fine", 5, "Fine Plaster (Clay)"),
    ],
    "Lime Plaster": [
        _monolithic("lime_plaster_base", 20, "Base Plaster (Lime)"),
        _monolithic("lime_plaster_fine", 10, "Fine Plaster (Lime)"),
    ],
    "Lime Plaster + DHF": [
        _monolithic("dhf", 16, "DHF"),
        _monolithic("reed", 9, "Plaster Ground (Reed)"),
        _monolithic("lime_plaster_base", 10, "Base Plaster (Lime)"),
        _monolithic("lime_plaster_fine", 4, "Fine Plaster (Lime)"),
    ],
    "Wooden Planking": [
        _monolithic("wind_barrier", 1, "Wind Barrier"),
        StripedLayerConfig(
            name="Battens", direction=StripeDirection.COLINEAR,
            stripe_material="battens", stripe_width=48, gap_width=500, thickness=24,
        ),
        _monolithic("boards", 25, "Wood Planking"),
    ],
    "Gypsum": [_monolithic("gypsum", 30, "Gypsum Boards")],
}

DEFAULT_FLOOR_LAYER_SETS: Dict[str, List[LayerConfig]] = {
    "Screed": [
        _monolithic("impact_sound_insulation", 25, "Impact Sound Insulation"),
        _monolithic("cement_screed", 35, "Screed"),
    ],
}

DEFAULT_CEILING_LAYER_SETS: Dict[str, List[LayerConfig]] = {
    "Clay Plaster": [
        _monolithic("clay_plaster_base", 20, "Base Plaster (Clay)"),
        _monolithic("clay_plaster_fine", 10, "Fine Plaster (Clay)"),
    ],
    "Lime Plaster": [
        _monolithic("lime_plaster_base", 20, "Base Plaster (Lime)"),
        _monolithic("lime_plaster_fine", 10, "Fine Plaster (Lime)"),
    ],
}

DEFAULT_ROOF_LAYER_SETS: Dict[str, List[LayerConfig]] = {
    "Tiles": [
        _monolithic("wind_barrier", 1, "Wind Paper"),
        StripedLayerConfig(
            name="Battens", direction=StripeDirection.COLINEAR,
            stripe_material="battens", stripe_width=60, gap_width=500, thickness=40,
        ),
        StripedLayerConfig(
            name="Counter Battens", direction=StripeDirection.PERPENDICULAR,
            stripe_material="battens", stripe_width=50, gap_width=300, thickness=30,
        ),
        _monolithic("roof_tiles", 35, "Tiles"),
    ],
}
