"""
Infill packing for straw-bale walls.

Fills a rectangular wall cavity with straw segments separated by posts so
that no straw segment is wider than ``max_post_spacing`` and, where it can be
avoided, none is narrower than ``min_straw_space``. Segments are placed
alternately from both ends of the remaining span so slack never piles up on
one side. Constraint violations are reported as issues on the result, never
raised.

Wall coordinates: x along the wall, y across the wall (0 = inside face),
z up. ``position`` is the cavity's minimum corner, ``size`` its extent.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Any, ClassVar, List, Mapping, Optional, Sequence, Union

from construction_model import (
    TAG_FULL_BALE,
    TAG_INFILL,
    TAG_OPENING,
    TAG_PARTIAL_BALE,
    TAG_POST,
    TAG_POST_SPACING,
    TAG_STRAW,
    ConstructionModel,
    ConstructionResult,
    Measurement,
    aggregate_results,
    create_element,
    cuboid_shape,
    element_result,
    error_result,
    make_issue,
    measurement_result,
    result_elements,
    warning_result,
)
from geometry_primitives import Bounds3D, Transform
from layer_stack import Opening
from solid_kernel import SolidKernel, default_kernel

logger = logging.getLogger(__name__)

# Lengths closer than this are treated as equal (mm)
LENGTH_TOLERANCE_MM = 1e-6


def _same_length(a: float, b: float) -> bool:
    return math.isclose(a, b, rel_tol=0.0, abs_tol=LENGTH_TOLERANCE_MM)


# ─── Configuration ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FullPostConfig:
    """One solid member across the full wall thickness."""
    width: float = 60.0
    material: str = "wood_post"

    post_type: ClassVar[str] = "full"


@dataclass(frozen=True)
class DoublePostConfig:
    """Two members at the wall faces with infill between them."""
    width: float = 60.0
    thickness: float = 120.0
    material: str = "wood_post"
    infill_material: str = "straw"

    post_type: ClassVar[str] = "double"


PostConfig = Union[FullPostConfig, DoublePostConfig]


@dataclass(frozen=True)
class StrawConfig:
    bale_length: float = 800.0
    bale_height: float = 500.0
    bale_width: float = 360.0
    material: str = "straw"


@dataclass(frozen=True)
class OpeningFrameConfig:
    header_thickness: float = 60.0
    header_material: str = "wood_post"
    sill_thickness: float = 60.0
    sill_material: str = "wood_post"


@dataclass(frozen=True)
class InfillConfig:
    """Packing constraints for one wall assembly."""
    max_post_spacing: float = 800.0
    min_straw_space: float = 70.0
    posts: PostConfig = field(default_factory=FullPostConfig)
    straw: StrawConfig = field(default_factory=StrawConfig)
    openings: OpeningFrameConfig = field(default_factory=OpeningFrameConfig)

    @property
    def post_width(self) -> float:
        return self.posts.width

    def validate(self) -> None:
        if self.post_width <= 0:
            raise ValueError(f"Post width must be > 0, got {self.post_width}")
        if self.min_straw_space < 0:
            raise ValueError(f"min_straw_space must be >= 0, got {self.min_straw_space}")
        if self.max_post_spacing <= max(self.post_width, self.min_straw_space):
            raise ValueError(
                f"max_post_spacing ({self.max_post_spacing}) must exceed the post width "
                f"({self.post_width}) and min_straw_space ({self.min_straw_space})"
            )
        if isinstance(self.posts, DoublePostConfig) and self.posts.thickness <= 0:
            raise ValueError(f"Double post thickness must be > 0, got {self.posts.thickness}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InfillConfig":
        values = dict(data)
        posts = dict(values.pop("posts", {}))
        post_type = posts.pop("type", FullPostConfig.post_type)
        if post_type == FullPostConfig.post_type:
            values["posts"] = FullPostConfig(**posts)
        elif post_type == DoublePostConfig.post_type:
            values["posts"] = DoublePostConfig(**posts)
        else:
            raise ValueError(f"Unknown post type: {post_type}")
        if "straw" in values:
            values["straw"] = StrawConfig(**values["straw"])
        if "openings" in values:
            values["openings"] = OpeningFrameConfig(**values["openings"])
        config = cls(**values)
        config.validate()
        return config


# ─── Posts and straw ─────────────────────────────────────────────────────────

def _cuboid(
    kernel: SolidKernel,
    material: str,
    position: Sequence[float],
    size: Sequence[float],
    tags: Sequence[str],
):
    shape = cuboid_shape(kernel, size)
    return create_element(material, shape, Transform.translation(*position), tags)


def construct_post(
    position: Sequence[float],
    size: Sequence[float],
    config: PostConfig,
    kernel: Optional[SolidKernel] = None,
) -> List[ConstructionResult]:
    """A post occupying ``config.width`` along x at ``position``.

    ``size`` gives the wall thickness (y) and height (z); its x is ignored.
    """
    kernel = kernel or default_kernel()
    x, y, z = position
    thickness, height = float(size[1]), float(size[2])

    if isinstance(config, FullPostConfig):
        return [element_result(_cuboid(kernel, config.material, (x, y, z), (config.width, thickness, height), (TAG_POST,)))]

    if isinstance(config, DoublePostConfig):
        if thickness < 2 * config.thickness - LENGTH_TOLERANCE_MM:
            post = _cuboid(kernel, config.material, (x, y, z), (config.width, thickness, height), (TAG_POST,))
            return [
                element_result(post),
                error_result(make_issue(
                    f"Wall is too thin for a double post: needs {2 * config.thickness:.0f}mm, "
                    f"has {thickness:.0f}mm",
                    [post],
                )),
            ]
        inner = _cuboid(kernel, config.material, (x, y, z), (config.width, config.thickness, height), (TAG_POST,))
        outer = _cuboid(
            kernel, config.material, (x, y + thickness - config.thickness, z),
            (config.width, config.thickness, height), (TAG_POST,),
        )
        results = [element_result(inner), element_result(outer)]
        gap = thickness - 2 * config.thickness
        if gap > LENGTH_TOLERANCE_MM:
            results.append(element_result(_cuboid(
                kernel, config.infill_material, (x, y + config.thickness, z),
                (config.width, gap, height), (TAG_INFILL,),
            )))
        return results

    raise TypeError(f"Unsupported post type: {type(config).__name__}")


def construct_straw(
    position: Sequence[float],
    size: Sequence[float],
    config: StrawConfig,
    kernel: Optional[SolidKernel] = None,
) -> List[ConstructionResult]:
    """Straw for one fill segment.

    A segment as thick as a bale is tiled into full and partial bales. Any
    other thickness becomes one straw element, with an error when too thick
    for a bale and a warning when too thin.
    """
    kernel = kernel or default_kernel()
    px, py, pz = (float(v) for v in position)
    sx, sy, sz = (float(v) for v in size)
    if sx <= LENGTH_TOLERANCE_MM or sy <= LENGTH_TOLERANCE_MM or sz <= LENGTH_TOLERANCE_MM:
        return []

    if _same_length(sy, config.bale_width):
        results = []
        end_x, end_z = px + sx, pz + sz
        z = pz
        while z < end_z - LENGTH_TOLERANCE_MM:
            height = min(config.bale_height, end_z - z)
            x = px
            while x < end_x - LENGTH_TOLERANCE_MM:
                length = min(config.bale_length, end_x - x)
                full = _same_length(length, config.bale_length) and _same_length(height, config.bale_height)
                tag = TAG_FULL_BALE if full else TAG_PARTIAL_BALE
                results.append(element_result(
                    _cuboid(kernel, config.material, (x, py, z), (length, sy, height), (TAG_STRAW, tag))
                ))
                x += config.bale_length
            z += config.bale_height
        return results

    element = _cuboid(kernel, config.material, (px, py, pz), (sx, sy, sz), (TAG_STRAW,))
    if sy > config.bale_width:
        issue = error_result(make_issue("Wall is too thick for a single strawbale", [element]))
    else:
        issue = warning_result(make_issue("Wall is too thin for a single strawbale", [element]))
    return [element_result(element), issue]


# ─── Packing ─────────────────────────────────────────────────────────────────

def bale_width_for(available_width: float, config: InfillConfig) -> float:
    """Width of the next straw segment for the remaining span.

    1. narrower than max spacing: fill everything
    2. just over one segment + post: shrink so the rest is min_straw_space
    3. under one segment + post: leave exactly one post width
    4. otherwise: a full max-spacing segment
    """
    post_width = config.post_width
    segment = config.max_post_spacing + post_width
    if available_width < config.max_post_spacing:
        return available_width
    if segment < available_width < segment + config.min_straw_space:
        return available_width - config.min_straw_space - post_width
    if available_width < segment:
        return available_width - post_width
    return config.max_post_spacing


def infill_wall_area(
    position: Sequence[float],
    size: Sequence[float],
    config: InfillConfig,
    kernel: Optional[SolidKernel] = None,
    starts_with_stand: bool = False,
    ends_with_stand: bool = False,
    start_at_end: bool = False,
) -> List[ConstructionResult]:
    """Pack posts and straw into a cavity.

    Args:
        position: Minimum corner of the cavity (x, y, z).
        size: Cavity extent (width along the wall, thickness, height).
        config: Packing constraints.
        starts_with_stand / ends_with_stand: Place a post flush with that end.
        start_at_end: Place the first straw segment at the far end.

    Returns:
        Elements (posts, straw) in placement order, post-spacing
        measurements, and warnings/errors for violated constraints.
    """
    kernel = kernel or default_kernel()
    x0, y0, z0 = (float(v) for v in position)
    width, thickness, height = (float(v) for v in size)
    post_width = config.post_width
    cavity = Bounds3D.from_cuboid(position, size)

    results: List[ConstructionResult] = []
    if width < post_width - LENGTH_TOLERANCE_MM:
        results.append(error_result(make_issue("Not enough space for a post", bounds=cavity)))
        logger.debug("Cavity %.1f mm narrower than a post (%.1f mm)", width, post_width)
        return results
    if _same_length(width, post_width):
        return construct_post((x0, y0, z0), size, config.posts, kernel)

    left, remaining = x0, width
    if starts_with_stand:
        results.extend(construct_post((x0, y0, z0), size, config.posts, kernel))
        left += post_width
        remaining -= post_width
    if ends_with_stand:
        if remaining < post_width - LENGTH_TOLERANCE_MM:
            results.append(error_result(make_issue(
                "Space for more than one post, but not enough for two",
                result_elements(results),
                cavity,
            )))
            return results
        results.extend(construct_post((x0 + width - post_width, y0, z0), size, config.posts, kernel))
        remaining -= post_width

    fill_results = _pack(left, remaining, (y0, z0), (thickness, height), config, kernel, not start_at_end)
    results.extend(fill_results)

    if height < config.min_straw_space:
        fill = [e for e in result_elements(fill_results) if TAG_STRAW in e.tags]
        results.append(warning_result(make_issue("Not enough vertical space to fill with straw", fill, cavity)))

    logger.debug(
        "Packed cavity %.0f x %.0f mm into %d elements",
        width, height, len(result_elements(results)),
    )
    return results


def _pack(
    start: float,
    span: float,
    yz: Sequence[float],
    thickness_height: Sequence[float],
    config: InfillConfig,
    kernel: SolidKernel,
    at_start: bool,
) -> List[ConstructionResult]:
    """Alternate straw segment + post from either end until the span is used."""
    y, z = yz
    thickness, height = thickness_height
    post_width = config.post_width
    results: List[ConstructionResult] = []

    while span > LENGTH_TOLERANCE_MM:
        bale = bale_width_for(span, config)
        straw_x = start if at_start else start + span - bale

        straw = construct_straw((straw_x, y, z), (bale, thickness, height), config.straw, kernel)
        results.extend(straw)
        results.append(measurement_result(Measurement(
            (straw_x, y, z), (straw_x + bale, y, z), tags=(TAG_POST_SPACING,),
        )))
        if bale < config.min_straw_space:
            results.append(warning_result(make_issue(
                "Not enough space for infilling straw", result_elements(straw),
            )))

        # Leftover narrower than a post stays inside the last straw segment
        if bale + post_width > span + LENGTH_TOLERANCE_MM:
            break

        post_x = straw_x + bale if at_start else straw_x - post_width
        results.extend(construct_post((post_x, y, z), (post_width, thickness, height), config.posts, kernel))
        if at_start:
            start = post_x + post_width
        span -= bale + post_width
        at_start = not at_start

    return results


# ─── Whole walls ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class WallSegment:
    kind: str  # "wall" or "opening"
    position: float
    width: float
    opening: Optional[Opening] = None


def segment_wall(wall_length: float, openings: Sequence[Opening]) -> List[WallSegment]:
    """Split a wall into alternating wall and opening segments along x.

    Raises:
        ValueError: If an opening overflows the wall or overlaps another.
    """
    segments: List[WallSegment] = []
    current = 0.0
    for opening in sorted(openings, key=lambda o: o.offset_from_start):
        if opening.offset_from_start < 0 or opening.end > wall_length + LENGTH_TOLERANCE_MM:
            raise ValueError(
                f"Opening extends beyond wall: ends at {opening.end}mm, wall is {wall_length}mm long"
            )
        if opening.offset_from_start < current - LENGTH_TOLERANCE_MM:
            raise ValueError(
                f"Opening overlaps previous segment: starts at {opening.offset_from_start}mm, "
                f"previous ends at {current}mm"
            )
        if opening.offset_from_start > current + LENGTH_TOLERANCE_MM:
            segments.append(WallSegment("wall", current, opening.offset_from_start - current))
        segments.append(WallSegment("opening", opening.offset_from_start, opening.width, opening))
        current = opening.end

    if wall_length > current + LENGTH_TOLERANCE_MM:
        segments.append(WallSegment("wall", current, wall_length - current))
    return segments


def construct_opening_frame(
    segment: WallSegment,
    wall_thickness: float,
    wall_height: float,
    config: InfillConfig,
    kernel: Optional[SolidKernel] = None,
) -> List[ConstructionResult]:
    """Header, sill and the infill above and below an opening."""
    kernel = kernel or default_kernel()
    opening = segment.opening
    frame = config.openings
    x, width = segment.position, segment.width
    sill_height = opening.sill_height
    header_height = sill_height + opening.height
    results: List[ConstructionResult] = []

    if header_height < wall_height:
        header = _cuboid(
            kernel, frame.header_material, (x, 0.0, header_height),
            (width, wall_thickness, frame.header_thickness), (TAG_OPENING,),
        )
        results.append(element_result(header))
        available = wall_height - header_height
        if frame.header_thickness > available + LENGTH_TOLERANCE_MM:
            results.append(error_result(make_issue(
                f"Header does not fit: needs {frame.header_thickness:.0f}mm "
                f"but only {available:.0f}mm available",
                [header],
            )))
        above_bottom = header_height + frame.header_thickness
        if wall_height - above_bottom > LENGTH_TOLERANCE_MM:
            results.extend(infill_wall_area(
                (x, 0.0, above_bottom), (width, wall_thickness, wall_height - above_bottom), config, kernel,
            ))

    if sill_height > 0:
        sill_bottom = sill_height - frame.sill_thickness
        sill = _cuboid(
            kernel, frame.sill_material, (x, 0.0, max(sill_bottom, 0.0)),
            (width, wall_thickness, min(frame.sill_thickness, sill_height)), (TAG_OPENING,),
        )
        results.append(element_result(sill))
        if sill_bottom < -LENGTH_TOLERANCE_MM:
            results.append(error_result(make_issue(
                f"Sill does not fit: needs {frame.sill_thickness:.0f}mm but only {sill_height:.0f}mm available",
                [sill],
            )))
        if sill_bottom > LENGTH_TOLERANCE_MM:
            results.extend(infill_wall_area((x, 0.0, 0.0), (width, wall_thickness, sill_bottom), config, kernel))

    return results


def construct_infill_wall(
    wall_length: float,
    wall_height: float,
    wall_thickness: float,
    config: InfillConfig,
    openings: Sequence[Opening] = (),
    kernel: Optional[SolidKernel] = None,
) -> ConstructionModel:
    """Pack a whole straight wall, framing each opening with stands."""
    config.validate()
    kernel = kernel or default_kernel()
    segments = segment_wall(wall_length, openings)

    results: List[ConstructionResult] = []
    for index, segment in enumerate(segments):
        if segment.kind == "opening":
            results.extend(construct_opening_frame(segment, wall_thickness, wall_height, config, kernel))
            continue
        previous_is_opening = index > 0 and segments[index - 1].kind == "opening"
        next_is_opening = index + 1 < len(segments) and segments[index + 1].kind == "opening"
        results.extend(infill_wall_area(
            (segment.position, 0.0, 0.0),
            (segment.width, wall_thickness, wall_height),
            config,
            kernel,
            starts_with_stand=previous_is_opening,
            ends_with_stand=next_is_opening,
        ))

    model = aggregate_results(results)
    logger.info(
        "Infill wall %.0f mm: %d segments, %d elements, %d warnings, %d errors",
        wall_length, len(segments), len(model.elements), len(model.warnings), len(model.errors),
    )
    return model

