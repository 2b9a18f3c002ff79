"""
Minimum-volume oriented bounding boxes of construction solids.

Every face of the solid's convex hull is tried as the box's Z axis, with each
of its edges as X. Hull vertices are projected into each such frame and the
frame with the smallest axis-aligned volume wins. Hulls of construction
solids have tens to a few hundred faces, so all frames are projected at once
with numpy (O(faces x vertices) memory).
"""
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from geometry_primitives import DegenerateGeometryError
from solid_kernel import Solid, SolidKernel, default_kernel

logger = logging.getLogger(__name__)

# Face normals and extents below this are treated as zero (mm / mm²)
DEGENERATE_EPS = 1e-9


@dataclass(frozen=True)
class OrientedBoundingBox:
    """Oriented box. ``axes`` rows are the local X, Y, Z unit vectors."""
    center: np.ndarray       # (3,)
    axes: np.ndarray         # (3, 3)
    half_sizes: np.ndarray   # (3,)
    volume: float
    corners: np.ndarray      # (8, 3), sx/sy/sz in (-1, +1) nested order

    @property
    def size(self) -> np.ndarray:
        return self.half_sizes * 2.0

    @property
    def rotation(self) -> np.ndarray:
        """3x3 rotation whose columns are the box axes."""
        return self.axes.T.copy()

    def matrix(self) -> np.ndarray:
        """4x4 transform from box-local (centered) to world coordinates."""
        m = np.eye(4)
        m[:3, :3] = self.rotation
        m[:3, 3] = self.center
        return m


def _box_corners(center: np.ndarray, axes: np.ndarray, half_sizes: np.ndarray) -> np.ndarray:
    corners = []
    for sx in (-1.0, 1.0):
        for sy in (-1.0, 1.0):
            for sz in (-1.0, 1.0):
                offset = np.array([sx, sy, sz]) * half_sizes
                corners.append(center + offset @ axes)
    return np.array(corners)


def _face_frames(vertices: np.ndarray, faces: np.ndarray):
    """Candidate orthonormal frames plus a validity mask.

    Each hull face contributes one frame per edge: Z is the face normal,
    X the edge, Y = Z x X.
    """
    p0, p1, p2 = vertices[faces[:, 0]], vertices[faces[:, 1]], vertices[faces[:, 2]]
    normals = np.cross(p1 - p0, p2 - p0)
    normal_len = np.linalg.norm(normals, axis=1)
    face_valid = normal_len > DEGENERATE_EPS
    z_axes = normals / np.where(face_valid, normal_len, 1.0)[:, None]

    z_axes = np.repeat(z_axes, 3, axis=0)
    valid = np.repeat(face_valid, 3)
    edges = np.stack([p1 - p0, p2 - p1, p0 - p2], axis=1).reshape(-1, 3)
    # Remove any component along the normal before normalising
    edges -= np.sum(edges * z_axes, axis=1)[:, None] * z_axes
    edge_len = np.linalg.norm(edges, axis=1)
    valid &= edge_len > DEGENERATE_EPS
    x_axes = edges / np.where(valid, edge_len, 1.0)[:, None]
    y_axes = np.cross(z_axes, x_axes)

    return np.stack([x_axes, y_axes, z_axes], axis=1), valid


def compute_minimum_volume_obb(
    solid: Solid,
    kernel: Optional[SolidKernel] = None,
) -> OrientedBoundingBox:
    """Minimum-volume OBB over all hull-face orientations.

    Raises:
        DegenerateGeometryError: The solid has no volume (flat, collinear or
            empty), so no hull orientation yields a valid box.
        KernelError: The convex hull could not be computed.
    """
    kernel = kernel or default_kernel()
    points = np.asarray(solid.vertices, dtype=float)
    if len(points) < 4:
        raise DegenerateGeometryError(f"Solid has only {len(points)} vertices")
    if np.linalg.matrix_rank(points - points.mean(axis=0), tol=DEGENERATE_EPS) < 3:
        raise DegenerateGeometryError("Solid is flat, no oriented bounding box exists")

    hull = kernel.convex_hull(solid)
    vertices = np.asarray(hull.vertices, dtype=float)
    faces = np.asarray(hull.faces, dtype=int)
    if len(faces) == 0:
        raise DegenerateGeometryError("Convex hull has no faces")

    frames, valid = _face_frames(vertices, faces)
    # (frames, vertices, 3): every hull vertex in every candidate frame
    local = np.einsum("fij,vj->fvi", frames, vertices)
    lo, hi = local.min(axis=1), local.max(axis=1)
    extents = hi - lo
    valid &= np.all(extents > DEGENERATE_EPS, axis=1)
    if not np.any(valid):
        raise DegenerateGeometryError("No hull face yields a valid bounding box")

    volumes = np.where(valid, np.prod(extents, axis=1), np.inf)
    best = int(np.argmin(volumes))
    axes = frames[best]
    half_sizes = extents[best] * 0.5
    center = ((lo[best] + hi[best]) * 0.5) @ axes

    logger.debug(
        "OBB over %d hull faces (%d valid frames): volume %.3f",
        len(faces), int(valid.sum()), volumes[best],
    )
    return OrientedBoundingBox(
        center=center,
        axes=axes,
        half_sizes=half_sizes,
        volume=float(volumes[best]),
        corners=_box_corners(center, axes, half_sizes),
    )
