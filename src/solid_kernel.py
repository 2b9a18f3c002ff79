"""
Solid-modeling kernel interface.

The construction engine never builds meshes itself; it asks a kernel to
extrude polygons, create cuboids, take convex hulls and transform solids.
TrimeshKernel implements the interface on top of trimesh. Any failure of the
backend surfaces as KernelError and is propagated unchanged by the engine.
"""
import logging
from abc import ABC, abstractmethod
from typing import Sequence, Tuple

import numpy as np
import trimesh
from shapely.geometry import Polygon

from geometry_primitives import Plane3D, plane_matrix

logger = logging.getLogger(__name__)

Solid = trimesh.Trimesh

# Extrusions and cuboids thinner than this are rejected by the kernel (mm)
MIN_SOLID_DIMENSION_MM = 1e-9


class KernelError(Exception):
    """The solid-modeling backend failed."""
    pass


class SolidKernel(ABC):
    """Abstract interface to a solid-modeling kernel.

    Implementations must raise KernelError for every backend failure so
    callers can tell kernel problems apart from their own errors.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Kernel identifier (e.g., 'trimesh')."""
        ...

    @abstractmethod
    def extrude(self, polygon: Polygon, plane: Plane3D, thickness: float) -> Solid:
        """Extrude a polygon-with-holes along the plane normal.

        The solid spans [0, thickness] along the normal; a negative thickness
        extrudes towards the negative side.
        """
        ...

    @abstractmethod
    def cuboid(self, size: Sequence[float]) -> Solid:
        """Axis-aligned box with its minimum corner at the origin."""
        ...

    @abstractmethod
    def convex_hull(self, solid: Solid) -> Solid:
        ...

    @abstractmethod
    def bounding_box(self, solid: Solid) -> Tuple[np.ndarray, np.ndarray]:
        """Axis-aligned (min, max) corners of a solid."""
        ...

    @abstractmethod
    def transform(self, solid: Solid, matrix: np.ndarray) -> Solid:
        """Return a transformed copy; the input solid is left untouched."""
        ...


class TrimeshKernel(SolidKernel):
    """Kernel backed by trimesh triangle meshes."""

    @property
    def name(self) -> str:
        return "trimesh"

    def extrude(self, polygon: Polygon, plane: Plane3D, thickness: float) -> Solid:
        if polygon.is_empty or polygon.area <= 0:
            raise KernelError("Cannot extrude an empty polygon")
        if abs(thickness) < MIN_SOLID_DIMENSION_MM:
            raise KernelError(f"Cannot extrude with thickness {thickness}")
        try:
            solid = trimesh.creation.extrude_polygon(polygon, height=abs(float(thickness)))
            if thickness < 0:
                solid.apply_translation([0.0, 0.0, float(thickness)])
            solid.apply_transform(plane_matrix(plane))
            # XZ maps (u, v, w) to (x, z, y), a mirror; keep normals outward
            if solid.volume < 0:
                solid.invert()
        except Exception as exc:
            raise KernelError(f"Extrusion failed: {exc}") from exc
        return solid

    def cuboid(self, size: Sequence[float]) -> Solid:
        extents = np.asarray(size, dtype=float)
        if extents.shape != (3,) or np.any(extents < MIN_SOLID_DIMENSION_MM):
            raise KernelError(f"Invalid cuboid size: {list(extents)}")
        try:
            solid = trimesh.creation.box(extents=extents)
            solid.apply_translation(extents * 0.5)
        except Exception as exc:
            raise KernelError(f"Cuboid creation failed: {exc}") from exc
        return solid

    def convex_hull(self, solid: Solid) -> Solid:
        try:
            return solid.convex_hull
        except Exception as exc:
            raise KernelError(f"Convex hull failed: {exc}") from exc

    def bounding_box(self, solid: Solid) -> Tuple[np.ndarray, np.ndarray]:
        bounds = solid.bounds
        if bounds is None:
            raise KernelError("Solid has no vertices")
        return np.array(bounds[0], dtype=float), np.array(bounds[1], dtype=float)

    def transform(self, solid: Solid, matrix: np.ndarray) -> Solid:
        try:
            moved = solid.copy()
            moved.apply_transform(np.asarray(matrix, dtype=float))
        except Exception as exc:
            raise KernelError(f"Transform failed: {exc}") from exc
        return moved


_DEFAULT_KERNEL = TrimeshKernel()


def default_kernel() -> SolidKernel:
    """Shared stateless kernel instance."""
    return _DEFAULT_KERNEL
