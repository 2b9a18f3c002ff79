"""
Shared test fixtures for construction geometry tests.
"""
import sys
from pathlib import Path

import pytest
import trimesh

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from construction_model import ResultKind
from geometry_primitives import make_polygon_with_holes
from infill import InfillConfig
from solid_kernel import KernelError, TrimeshKernel


class FailingKernel(TrimeshKernel):
    """Kernel whose solid-creating operations always fail."""

    def extrude(self, polygon, plane, thickness):
        raise KernelError("extrude failed")

    def cuboid(self, size):
        raise KernelError("cuboid failed")


@pytest.fixture
def kernel():
    return TrimeshKernel()


@pytest.fixture
def failing_kernel():
    return FailingKernel()


@pytest.fixture
def square_polygon():
    """A 1000x1000mm square with its minimum corner at the origin."""
    return make_polygon_with_holes([(0, 0), (1000, 0), (1000, 1000), (0, 1000)])


@pytest.fixture
def square_with_hole():
    """A 1000x1000mm square with a 200x200mm hole in the middle."""
    return make_polygon_with_holes(
        [(0, 0), (1000, 0), (1000, 1000), (0, 1000)],
        [[(400, 400), (600, 400), (600, 600), (400, 600)]],
    )


@pytest.fixture
def box_mesh():
    """A 300x200x100mm box centred at the origin."""
    return trimesh.creation.box(extents=[300, 200, 100])


@pytest.fixture
def infill_config():
    """Default packing constraints: 800mm spacing, 70mm min straw, 60mm posts."""
    return InfillConfig()


def of_kind(results, kind: ResultKind):
    return [r.value for r in results if r.kind is kind]


def with_tag(elements, tag: str):
    return [e for e in elements if tag in e.tags]
