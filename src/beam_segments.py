"""
Beam segmentation and display-space coordinate mapping.

Long beams are mostly featureless; calculate_beam_segments() keeps only the
spans around polygon vertices, and CoordinateMapper compresses the omitted
spans so every gap is drawn with the same fixed width.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from shapely.geometry import Polygon

from geometry_primitives import polygon_points

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_DISTANCE = 50.0
DEFAULT_MIN_GAP_SIZE = 500.0
DEFAULT_MIN_LENGTH = 1000.0
DEFAULT_GAP_DISPLAY_WIDTH = 60.0


@dataclass(frozen=True)
class VirtualSegment:
    """Half-open span ``[start, end)`` on the beam axis, in real coordinates."""
    start: float
    end: float

    @property
    def width(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class SegmentGap:
    """Omitted real span between two segments and where it is drawn."""
    start: float
    end: float
    display_position: float

    @property
    def omitted_length(self) -> float:
        return self.end - self.start


def calculate_beam_segments(
    polygon: Polygon,
    bounds: Optional[Tuple[float, float, float, float]] = None,
    buffer_distance: float = DEFAULT_BUFFER_DISTANCE,
    min_gap_size: float = DEFAULT_MIN_GAP_SIZE,
    min_length: float = DEFAULT_MIN_LENGTH,
) -> List[VirtualSegment]:
    """Spans of the beam worth drawing.

    Vertex x coordinates closer than ``min_gap_size`` are clustered; each
    cluster is padded by ``buffer_distance`` (clamped to the bounds) and
    overlapping spans are merged. Beams shorter than ``min_length`` are one
    segment.

    Args:
        polygon: Beam outline in plane coordinates, x along the beam.
        bounds: (min_x, min_y, max_x, max_y); defaults to the polygon bounds.
    """
    min_x, _, max_x, _ = bounds if bounds is not None else polygon.bounds
    full = [VirtualSegment(float(min_x), float(max_x))]
    if max_x - min_x < min_length:
        return full

    xs = sorted({x for x, _ in polygon_points(polygon)})
    if not xs:
        return full

    clusters = [[xs[0], xs[0]]]
    for prev, x in zip(xs, xs[1:]):
        if x - prev < min_gap_size:
            clusters[-1][1] = x
        else:
            clusters.append([x, x])

    merged: List[List[float]] = []
    for lo, hi in clusters:
        start = max(min_x, lo - buffer_distance)
        end = min(max_x, hi + buffer_distance)
        if merged and start <= merged[-1][1]:
            merged[-1][1] = max(merged[-1][1], end)
        else:
            merged.append([start, end])

    logger.debug("Beam %.0f mm split into %d segments", max_x - min_x, len(merged))
    return [VirtualSegment(float(start), float(end)) for start, end in merged]


class CoordinateMapper:
    """Maps real beam positions to a display axis with fixed-width gaps.

    Display space starts at 0 with the first segment; segment i starts at the
    sum of the earlier segment widths plus i gap widths.
    """

    def __init__(self, segments: Sequence[VirtualSegment], gap_display_width: float = DEFAULT_GAP_DISPLAY_WIDTH):
        if gap_display_width < 0:
            raise ValueError(f"gap_display_width must be >= 0, got {gap_display_width}")
        for segment in segments:
            if segment.end < segment.start:
                raise ValueError(f"Segment end before start: {segment}")
        for prev, nxt in zip(segments, segments[1:]):
            if nxt.start < prev.end:
                raise ValueError(f"Segments must be sorted and disjoint: {prev} then {nxt}")

        self.segments: Tuple[VirtualSegment, ...] = tuple(segments)
        self.gap_display_width = float(gap_display_width)

        self._display_starts: List[float] = []
        offset = 0.0
        for segment in self.segments:
            self._display_starts.append(offset)
            offset += segment.width + self.gap_display_width

    @property
    def gaps(self) -> List[SegmentGap]:
        return [
            SegmentGap(prev.end, nxt.start, self.get_segment_display_end(i) + self.gap_display_width / 2)
            for i, (prev, nxt) in enumerate(zip(self.segments, self.segments[1:]))
        ]

    def get_segment_display_start(self, index: int) -> float:
        return self._display_starts[index]

    def get_segment_display_end(self, index: int) -> float:
        return self._display_starts[index] + self.segments[index].width

    def get_total_display_width(self) -> float:
        if not self.segments:
            return 0.0
        return self.get_segment_display_end(len(self.segments) - 1)

    def segment_index_for(self, x: float) -> Optional[int]:
        """Index of the segment containing ``x`` (ends inclusive), else None."""
        for index, segment in enumerate(self.segments):
            if segment.start <= x <= segment.end:
                return index
        return None

    def to_display(self, x: float) -> Optional[float]:
        """Display position of real ``x``; None inside a gap or outside all segments."""
        index = self.segment_index_for(x)
        if index is None:
            return None
        return self._display_starts[index] + (x - self.segments[index].start)

    def to_virtual(self, display_x: float) -> Optional[float]:
        """Real position for a display position; None where a gap is drawn."""
        for index, segment in enumerate(self.segments):
            start = self._display_starts[index]
            if start <= display_x <= start + segment.width:
                return segment.start + (display_x - start)
        return None

    def is_in_gap(self, x: float) -> bool:
        return any(prev.end < x < nxt.start for prev, nxt in zip(self.segments, self.segments[1:]))
