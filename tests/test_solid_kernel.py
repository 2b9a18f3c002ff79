"""Tests for the trimesh-backed solid kernel."""
import numpy as np
import pytest
from shapely.geometry import Polygon

from geometry_primitives import Plane3D
from solid_kernel import KernelError, TrimeshKernel, default_kernel


class TestExtrude:

    def test_xy_extrusion_volume_and_bounds(self, kernel, square_polygon):
        solid = kernel.extrude(square_polygon, Plane3D.XY, 50)
        assert abs(solid.volume) == pytest.approx(1000 * 1000 * 50)
        lo, hi = kernel.bounding_box(solid)
        np.testing.assert_allclose(lo, [0, 0, 0], atol=1e-9)
        np.testing.assert_allclose(hi, [1000, 1000, 50], atol=1e-9)

    def test_extrusion_keeps_holes(self, kernel, square_with_hole):
        solid = kernel.extrude(square_with_hole, Plane3D.XY, 10)
        assert abs(solid.volume) == pytest.approx((1000 * 1000 - 200 * 200) * 10)

    def test_negative_thickness_extrudes_downwards(self, kernel, square_polygon):
        lo, hi = kernel.bounding_box(kernel.extrude(square_polygon, Plane3D.XY, -30))
        assert lo[2] == pytest.approx(-30.0)
        assert hi[2] == pytest.approx(0.0)

    def test_xz_plane_extrudes_along_y(self, kernel):
        face = Polygon([(0, 0), (400, 0), (400, 200), (0, 200)])
        lo, hi = kernel.bounding_box(kernel.extrude(face, Plane3D.XZ, 20))
        np.testing.assert_allclose(hi - lo, [400, 20, 200], atol=1e-9)

    def test_empty_polygon_raises(self, kernel):
        with pytest.raises(KernelError):
            kernel.extrude(Polygon(), Plane3D.XY, 10)

    def test_zero_thickness_raises(self, kernel, square_polygon):
        with pytest.raises(KernelError):
            kernel.extrude(square_polygon, Plane3D.XY, 0)


class TestCuboid:

    def test_minimum_corner_at_origin(self, kernel):
        lo, hi = kernel.bounding_box(kernel.cuboid((60, 360, 2500)))
        np.testing.assert_allclose(lo, [0, 0, 0], atol=1e-9)
        np.testing.assert_allclose(hi, [60, 360, 2500], atol=1e-9)

    def test_invalid_size_raises(self, kernel):
        with pytest.raises(KernelError):
            kernel.cuboid((10, 0, 10))
        with pytest.raises(KernelError):
            kernel.cuboid((10, 10))


class TestHullAndTransform:

    def test_convex_hull_of_box(self, kernel, box_mesh):
        hull = kernel.convex_hull(box_mesh)
        assert hull.volume == pytest.approx(box_mesh.volume)

    def test_transform_returns_copy(self, kernel, box_mesh):
        matrix = np.eye(4)
        matrix[:3, 3] = [10, 0, 0]
        moved = kernel.transform(box_mesh, matrix)
        assert moved.bounds[0][0] == pytest.approx(box_mesh.bounds[0][0] + 10)
        assert box_mesh.bounds[0][0] == pytest.approx(-150.0)


def test_default_kernel_is_trimesh():
    assert default_kernel().name == "trimesh"
    assert isinstance(default_kernel(), TrimeshKernel)
