"""
Core geometry types for construction assembly.

Built on Shapely for 2D polygons-with-holes and numpy/trimesh for 3D
transforms. Provides Bounds3D (axis-aligned bounds with an explicit "empty"
marker), Transform (position + Euler rotation), plane mappings between a
2D construction plane and world space, and polygon normalisation.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
import trimesh
from shapely.geometry import Polygon, MultiPolygon, box
from shapely.geometry.polygon import orient

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]

# Vertex snapping tolerance used when simplifying polygons (mm)
SIMPLIFY_TOLERANCE_MM = 0.01


class DegenerateGeometryError(ValueError):
    """Geometry has no meaningful measurement (zero area, zero volume)."""
    pass


class Plane3D(Enum):
    """Construction planes. The complementary axis is the extrusion axis."""
    XY = "xy"
    XZ = "xz"
    YZ = "yz"

    @property
    def normal_axis(self) -> int:
        return {"xy": 2, "xz": 1, "yz": 0}[self.value]


def point_2d_to_3d(point: Sequence[float], plane: Plane3D, offset: float) -> np.ndarray:
    """Lift a plane coordinate (u, v) to world space at ``offset`` along the normal."""
    u, v = float(point[0]), float(point[1])
    if plane is Plane3D.XY:
        return np.array([u, v, offset])
    if plane is Plane3D.XZ:
        return np.array([u, offset, v])
    return np.array([offset, u, v])


def plane_matrix(plane: Plane3D) -> np.ndarray:
    """4x4 matrix mapping local (u, v, w) to world, w being the plane normal."""
    matrix = np.zeros((4, 4))
    matrix[3, 3] = 1.0
    u_axis, v_axis = [i for i in range(3) if i != plane.normal_axis]
    matrix[u_axis, 0] = 1.0
    matrix[v_axis, 1] = 1.0
    matrix[plane.normal_axis, 2] = 1.0
    return matrix


@dataclass(frozen=True)
class Bounds3D:
    """Axis-aligned 3D bounds. ``None`` is used for "no bounds" throughout."""
    min: Vec3
    max: Vec3

    @classmethod
    def from_points(cls, points: Iterable[Sequence[float]]) -> "Bounds3D":
        arr = np.asarray(list(points), dtype=float).reshape(-1, 3)
        if len(arr) == 0:
            raise ValueError("Cannot build bounds from zero points")
        return cls(to_vec3(arr.min(axis=0)), to_vec3(arr.max(axis=0)))

    @classmethod
    def from_cuboid(cls, position: Sequence[float], size: Sequence[float]) -> "Bounds3D":
        start = np.asarray(position, dtype=float)
        end = start + np.asarray(size, dtype=float)
        return cls(to_vec3(np.minimum(start, end)), to_vec3(np.maximum(start, end)))

    @property
    def size(self) -> Vec3:
        return to_vec3(np.subtract(self.max, self.min))

    @property
    def center(self) -> Vec3:
        return to_vec3((np.asarray(self.min) + np.asarray(self.max)) * 0.5)

    def corners(self) -> np.ndarray:
        """The 8 corner points, (8, 3)."""
        lo, hi = self.min, self.max
        return np.array([
            (x, y, z)
            for x in (lo[0], hi[0])
            for y in (lo[1], hi[1])
            for z in (lo[2], hi[2])
        ], dtype=float)

    def transformed(self, matrix: np.ndarray) -> "Bounds3D":
        """Bounds of this box after applying a 4x4 transform."""
        return Bounds3D.from_points(trimesh.transformations.transform_points(self.corners(), matrix))

    def contains(self, other: "Bounds3D", tol: float = 1e-6) -> bool:
        return bool(
            np.all(np.asarray(self.min) <= np.asarray(other.min) + tol)
            and np.all(np.asarray(self.max) >= np.asarray(other.max) - tol)
        )

    @staticmethod
    def merge(*bounds: Optional["Bounds3D"]) -> Optional["Bounds3D"]:
        """Union of all given bounds, ignoring ``None``; ``None`` if nothing is left."""
        present = [b for b in bounds if b is not None]
        if not present:
            return None
        lo = np.min([b.min for b in present], axis=0)
        hi = np.max([b.max for b in present], axis=0)
        return Bounds3D(to_vec3(lo), to_vec3(hi))


@dataclass(frozen=True)
class Transform:
    """Rigid placement: XYZ Euler rotation (radians) followed by translation."""
    position: Vec3 = (0.0, 0.0, 0.0)
    rotation: Vec3 = (0.0, 0.0, 0.0)

    @classmethod
    def translation(cls, x: float, y: float = 0.0, z: float = 0.0) -> "Transform":
        return cls(position=(float(x), float(y), float(z)))

    @property
    def is_identity(self) -> bool:
        return self == IDENTITY

    def matrix(self) -> np.ndarray:
        """4x4 homogeneous matrix."""
        m = trimesh.transformations.euler_matrix(*self.rotation, axes="sxyz")
        m[:3, 3] = self.position
        return m

    def apply(self, points: np.ndarray) -> np.ndarray:
        return trimesh.transformations.transform_points(np.asarray(points, dtype=float).reshape(-1, 3), self.matrix())


IDENTITY = Transform()


# ─── Polygons with holes ─────────────────────────────────────────────────────

def rectangle(min_x: float, min_y: float, max_x: float, max_y: float) -> Polygon:
    """Axis-aligned rectangle in plane coordinates."""
    return box(min_x, min_y, max_x, max_y)


def make_polygon_with_holes(
    outer: Sequence[Vec2],
    holes: Sequence[Sequence[Vec2]] = (),
) -> Polygon:
    """Build and normalise a polygon-with-holes from raw point loops."""
    return normalize_polygon_with_holes(Polygon(outer, [list(h) for h in holes]))


def normalize_polygon_with_holes(polygon: Polygon) -> Polygon:
    """Simplify and orient: outer loop clockwise, holes counter-clockwise.

    Extrusion and boolean operations downstream rely on the opposite
    orientation of outer loop and holes.
    """
    if polygon.is_empty:
        return polygon
    if isinstance(polygon, MultiPolygon):
        polygon = max(polygon.geoms, key=lambda g: g.area)
    simplified = polygon.simplify(SIMPLIFY_TOLERANCE_MM, preserve_topology=True)
    return orient(simplified, sign=-1.0)


def polygon_is_clockwise(coords: Sequence[Vec2]) -> bool:
    """Shoelace test on an open or closed point loop."""
    pts = np.asarray(coords, dtype=float)
    x, y = pts[:, 0], pts[:, 1]
    signed_area = 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1)))
    return signed_area < 0


def to_vec3(values: Sequence[float]) -> Vec3:
    return (float(values[0]), float(values[1]), float(values[2]))


def to_vec2(values: Sequence[float]) -> Vec2:
    return (float(values[0]), float(values[1]))


def polygon_points(polygon: Polygon) -> List[Vec2]:
    """All vertices of the outer loop and holes (closing duplicates dropped)."""
    if polygon.is_empty:
        return []
    points = [to_vec2(c) for c in polygon.exterior.coords[:-1]]
    for interior in polygon.interiors:
        points.extend(to_vec2(c) for c in interior.coords[:-1])
    return points
