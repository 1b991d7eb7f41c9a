"""Integer geometry used by object predictions: points, rectangles, bboxes, polygons."""

from __future__ import annotations

import sys
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from opex.errors import InvalidGeometry
from opex.schema import BBoxModel, PolygonModel, validate_node


@dataclass(frozen=True, slots=True)
class Point:
    """A 2D pixel coordinate."""

    x: int
    y: int


@dataclass(frozen=True, slots=True)
class Rectangle:
    """Rectangle in x/y/width/height form."""

    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True, slots=True)
class BBox:
    """Axis-aligned bounding box with edge-inclusive pixel coordinates.

    `right` and `bottom` are the last pixel covered by the box. Edges must
    satisfy `left < right` and `top < bottom`.

    Raises:
        InvalidGeometry: If the edge ordering is violated.
    """

    left: int
    top: int
    right: int
    bottom: int

    def __post_init__(self) -> None:
        if self.top >= self.bottom:
            raise InvalidGeometry(
                f"Violation of top < bottom: top={self.top} and bottom={self.bottom}"
            )
        if self.left >= self.right:
            raise InvalidGeometry(
                f"Violation of left < right: left={self.left} and right={self.right}"
            )

    def to_polygon(self) -> Polygon:
        """Return the 4 corners, clockwise from top-left (y axis pointing down)."""
        return Polygon(
            [
                Point(self.left, self.top),
                Point(self.right, self.top),
                Point(self.right, self.bottom),
                Point(self.left, self.bottom),
            ]
        )

    def to_rectangle(self) -> Rectangle:
        """Return the x/y/width/height form (width and height include both edges)."""
        return Rectangle(
            x=self.left,
            y=self.top,
            width=self.right - self.left + 1,
            height=self.bottom - self.top + 1,
        )

    @classmethod
    def from_xywh(cls, x: int, y: int, width: int, height: int) -> BBox:
        """Build a box from x/y/width/height, inverse of `to_rectangle`."""
        return cls(left=x, top=y, right=x + width - 1, bottom=y + height - 1)

    @classmethod
    def from_rectangle(cls, rect: Rectangle) -> BBox:
        """Build a box from a `Rectangle`, inverse of `to_rectangle`."""
        return cls.from_xywh(rect.x, rect.y, rect.width, rect.height)

    def to_json(self) -> dict[str, Any]:
        """Encode as `{top, left, bottom, right}`."""
        return {
            "top": int(self.top),
            "left": int(self.left),
            "bottom": int(self.bottom),
            "right": int(self.right),
        }

    @classmethod
    def from_json(cls, node: Any) -> BBox:
        """Decode a `{"top", "left", "bottom", "right"}` object."""
        return cls.from_model(validate_node(BBoxModel, node))

    @classmethod
    def from_model(cls, m: BBoxModel) -> BBox:
        """Build a box from an already validated wire model."""
        return cls(left=m.left, top=m.top, right=m.right, bottom=m.bottom)


def _as_point(p: Point | Sequence[int]) -> Point:
    if isinstance(p, Point):
        return p
    x, y = p
    return Point(int(x), int(y))


@dataclass(frozen=True, slots=True, init=False)
class Polygon:
    """Closed outline given as an ordered sequence of at least 3 points.

    Points may be passed as `Point` instances or as `(x, y)` pairs; the input
    is copied, so later changes to the caller's list are not seen here.

    Raises:
        InvalidGeometry: If `points` is None or holds fewer than 3 entries.
    """

    points: tuple[Point, ...]

    def __init__(self, points: Iterable[Point | Sequence[int]] | None) -> None:
        if points is None:
            raise InvalidGeometry("Points cannot be None!")
        copied = tuple(_as_point(p) for p in points)
        if len(copied) < 3:
            raise InvalidGeometry(f"At least three points required, provided: {len(copied)}")
        object.__setattr__(self, "points", copied)

    def __len__(self) -> int:
        return len(self.points)

    def size(self) -> int:
        """Return the number of points."""
        return len(self.points)

    def xs(self) -> tuple[int, ...]:
        """Return the x coordinates in stored order."""
        return tuple(p.x for p in self.points)

    def ys(self) -> tuple[int, ...]:
        """Return the y coordinates in stored order."""
        return tuple(p.y for p in self.points)

    def to_bbox(self) -> BBox:
        """Return the enclosing bounding box.

        The max accumulators start at 0, so for outlines with only negative
        coordinates `right`/`bottom` are 0 rather than the largest x/y.

        Raises:
            InvalidGeometry: If the resulting edges are not strictly ordered, e.g.
                all points share the same non-negative x.
        """
        left = top = sys.maxsize
        right = bottom = 0
        for p in self.points:
            left = min(left, p.x)
            right = max(right, p.x)
            top = min(top, p.y)
            bottom = max(bottom, p.y)
        return BBox(left=left, top=top, right=right, bottom=bottom)

    def to_array(self) -> np.ndarray:
        """Return the points as an `(N, 2)` integer array of `[x, y]` rows."""
        return np.array([[p.x, p.y] for p in self.points], dtype=np.int64)

    @classmethod
    def from_array(cls, arr: Any) -> Polygon:
        """Build a polygon from an `(N, 2)` array-like of `[x, y]` rows."""
        a = np.asarray(arr)
        if a.ndim != 2 or a.shape[1] != 2:
            raise InvalidGeometry(f"Expected an (N, 2) point array, got shape {a.shape}")
        return cls([(int(x), int(y)) for x, y in a.tolist()])

    def to_json(self) -> dict[str, Any]:
        """Encode as `{points: [[x, y], ...]}`."""
        return {"points": [[int(p.x), int(p.y)] for p in self.points]}

    @classmethod
    def from_json(cls, node: Any) -> Polygon:
        """Decode a `{"points": [[x, y], ...]}` object."""
        return cls.from_model(validate_node(PolygonModel, node))

    @classmethod
    def from_model(cls, m: PolygonModel) -> Polygon:
        """Build a polygon from an already validated wire model."""
        return cls(m.points)

