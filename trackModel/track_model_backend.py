"""
Track Model Backend
"""
import csv
import itertools
import logging
import math
import os
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from universal.universal import (
    InvalidHandle,
    InvariantViolation,
    SegmentAlreadyOccupied,
    SegmentHandle,
    TrainHandle,
)

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

_network_generations = itertools.count(1)


class Segment:
    """A single block of the track.

    Immutable after creation. Trains move along the path from its first to
    its last point; only the scalar length matters to the control loop.

    Attributes:
        handle: Stable handle of this segment in its network.
        name: Human-readable label.
        path: Points of the polyline, in travel order.
        length: Euclidean length of the path.
    """

    __slots__ = ("handle", "name", "path", "length")

    def __init__(self, handle: SegmentHandle, name: str,
                 path: Sequence[Point]) -> None:
        """Initialize a track segment.

        Args:
            handle: Handle issued by the owning network.
            name: Human-readable label.
            path: At least two (x, y) points.
        """
        points = tuple((float(x), float(y)) for x, y in path)
        if len(points) < 2:
            raise ValueError(f"Segment {name} needs at least two points.")
        length = sum(math.dist(a, b) for a, b in zip(points, points[1:]))
        if length <= 0.0:
            raise ValueError(f"Segment {name} has zero length.")
        object.__setattr__(self, "handle", handle)
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "path", points)
        object.__setattr__(self, "length", length)

    def __setattr__(self, name, value):
        raise AttributeError("Segment is immutable.")

    def point_at(self, fraction: float) -> Point:
        """Point at a fraction of the path length.

        Args:
            fraction: Distance along the path as a fraction of its length,
                clamped to [0, 1].
        """
        target = min(max(fraction, 0.0), 1.0) * self.length
        for a, b in zip(self.path, self.path[1:]):
            piece = math.dist(a, b)
            if target <= piece and piece > 0.0:
                t = target / piece
                return (a[0] + (b[0] - a[0]) * t, a[1] + (b[1] - a[1]) * t)
            target -= piece
        return self.path[-1]

    def __repr__(self):
        return f"Segment({self.name}, length={self.length:.1f})"


class TrackNetwork:
    """Track topology and segment occupancy registry.

    Owns the ordered segments and, for each one, the train currently
    holding it. The registry is the single source of truth for the
    block-signaling rule that at most one train occupies a segment:
    occupancy changes only through ``reserve`` and ``release``.

    Attributes:
        line_name: Name of the line.
        generation: Identity stamped into every handle issued here.
    """

    def __init__(self, line_name: str = "") -> None:
        """Initialize an empty track network."""
        self.line_name = line_name
        self.generation = next(_network_generations)
        self._segments: List[Segment] = []
        self._occupants: List[Optional[TrainHandle]] = []

    # ---- construction ----
    def add_segment(self, name: str, path: Sequence[Point]) -> SegmentHandle:
        """Add a segment to the end of the network.

        Args:
            name: Label of the segment, unique within the network.
            path: Polyline of the segment.

        Returns:
            Handle of the new segment.
        """
        if any(seg.name == name for seg in self._segments):
            raise ValueError(f"Segment {name} already exists in network.")
        handle = SegmentHandle(len(self._segments), self.generation)
        self._segments.append(Segment(handle, name, path))
        self._occupants.append(None)
        return handle

    @classmethod
    def from_polyline(cls, coords: Sequence[Point], scale: float = 1.0,
                      points_per_segment: int = 4,
                      line_name: str = "") -> "TrackNetwork":
        """Split a polyline into consecutive segments.

        Windows of ``points_per_segment`` points are taken every
        ``points_per_segment - 1`` points, so each segment starts where the
        previous one ends. Trailing points that do not fill a window are
        dropped.

        Args:
            coords: Points of the whole line.
            scale: Factor applied to every coordinate.
            points_per_segment: Points per segment, at least 2.
            line_name: Name of the line.
        """
        if points_per_segment < 2:
            raise ValueError("points_per_segment must be at least 2.")
        network = cls(line_name)
        points = [(x * scale, y * scale) for x, y in coords]
        step = points_per_segment - 1
        for start in range(0, len(points) - step, step):
            window = points[start:start + points_per_segment]
            network.add_segment(f"S{len(network) + 1}", window)
        if not len(network):
            raise ValueError("Polyline too short for a single segment.")
        return network

    def load_track_layout(self, layout_file: str) -> None:
        """Load segments from a CSV layout file.

        The file has a ``segment,x,y`` header; each row is one path point,
        points of a segment are consecutive and in travel order.

        Args:
            layout_file: Path to the track layout file.
        """
        logger.info("Loading track layout from file: %s", layout_file)
        if not self.line_name:
            self.line_name = os.path.splitext(os.path.basename(layout_file))[0]

        paths: Dict[str, List[Point]] = {}
        with open(layout_file, mode='r', newline='') as file:
            csvFile = csv.DictReader(file)
            current_line = 0
            for lines in csvFile:
                current_line += 1
                if not any((value or "").strip() for value in lines.values()):
                    continue
                name = (lines.get("segment") or "").strip()
                if not re.match(r"^[\w\-\.]+$", name):
                    raise ValueError(
                        f"Invalid 'segment' field in layout file at row "
                        f"{current_line}.")
                for axis in ("x", "y"):
                    if not re.match(r"^-?[0-9]+(\.[0-9]+)?$",
                                    (lines.get(axis) or "").strip()):
                        raise ValueError(
                            f"Invalid '{axis}' field in layout file at row "
                            f"{current_line}.")
                if name in paths and name != list(paths)[-1]:
                    raise ValueError(
                        f"Points of segment {name} are not consecutive "
                        f"(row {current_line}).")
                paths.setdefault(name, []).append(
                    (float(lines["x"]), float(lines["y"])))

        for name, path in paths.items():
            self.add_segment(name, path)
        logger.info("Loaded %d segments for line %s", len(paths),
                    self.line_name)

    # ---- topology access ----
    def segment(self, handle: SegmentHandle) -> Segment:
        """Look up a segment.

        Raises:
            InvalidHandle: The handle is stale or from another network.
        """
        if (not isinstance(handle, SegmentHandle)
                or handle.generation != self.generation
                or not 0 <= handle.index < len(self._segments)):
            raise InvalidHandle(
                f"Segment {handle} not found in track network "
                f"{self.line_name or self.generation}.")
        return self._segments[handle.index]

    def length_of(self, handle: SegmentHandle) -> float:
        return self.segment(handle).length

    def handles(self) -> List[SegmentHandle]:
        return [seg.handle for seg in self._segments]

    @property
    def segments(self) -> List[Segment]:
        return list(self._segments)

    def find(self, name: str) -> SegmentHandle:
        """Handle of the segment with the given name."""
        for seg in self._segments:
            if seg.name == name:
                return seg.handle
        raise InvalidHandle(f"Segment {name} not found in track network.")

    def __len__(self) -> int:
        return len(self._segments)

    # ---- occupancy registry ----
    def occupant_of(self, handle: SegmentHandle) -> Optional[TrainHandle]:
        """Train currently holding a segment, or None."""
        return self._occupants[self.segment(handle).handle.index]

    def is_free(self, handle: SegmentHandle) -> bool:
        """Whether a segment has no occupant (False for invalid handles)."""
        try:
            return self.occupant_of(handle) is None
        except InvalidHandle:
            return False

    def reserve(self, handle: SegmentHandle, train: TrainHandle) -> None:
        """Make a train the occupant of a segment.

        Raises:
            SegmentAlreadyOccupied: Another train holds the segment.
        """
        current = self.occupant_of(handle)
        if current is not None and current != train:
            raise SegmentAlreadyOccupied(
                f"Segment {self._segments[handle.index].name} is held by "
                f"train {current.index}, train {train.index} cannot enter.")
        self._occupants[handle.index] = train
        logger.debug("Segment %s reserved by train %s",
                     self._segments[handle.index].name, train.index)

    def release(self, handle: SegmentHandle, train: TrainHandle) -> None:
        """Clear a segment held by a train.

        Raises:
            InvariantViolation: The train is not the occupant.
        """
        current = self.occupant_of(handle)
        if current != train:
            raise InvariantViolation(
                f"Train {train.index} released segment "
                f"{self._segments[handle.index].name} held by "
                f"{'nobody' if current is None else current.index}.")
        self._occupants[handle.index] = None
        logger.debug("Segment %s released by train %s",
                     self._segments[handle.index].name, train.index)

    def occupancy(self) -> Dict[SegmentHandle, Optional[TrainHandle]]:
        """Snapshot of every segment's occupant, in track order."""
        return {seg.handle: occ
                for seg, occ in zip(self._segments, self._occupants)}

    # ---- status ----
    def get_segment_status(self, handle: SegmentHandle) -> Dict[str, Any]:
        """Get status information for a single segment.

        Args:
            handle: The handle of the segment to get status for.
        Returns:
            Dictionary containing segment status information.
        """
        segment = self.segment(handle)
        occupant = self._occupants[handle.index]
        return {
            "handle": segment.handle,
            "name": segment.name,
            "length": segment.length,
            "occupied": occupant is not None,
            "occupant": occupant,
        }

    def get_network_status(self) -> Dict[str, Any]:
        """Get complete network status.

        Returns:
            Dictionary with the line name and per-segment status.
        """
        return {
            "line_name": self.line_name,
            "segments": [self.get_segment_status(seg.handle)
                         for seg in self._segments],
        }
