"""Object predictions: single detections and the per-image document that holds them."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Final

from opex.errors import InvalidDocument, InvalidGeometry
from opex.geometry import BBox, Polygon
from opex.schema import ObjectPredictionModel, ObjectPredictionsModel, validate_node

LOG = logging.getLogger(__name__)

TIMESTAMP_FORMAT: Final[str] = "%Y%m%d_%H%M%S.%f"
TIMESTAMP_FORMAT_ALT: Final[str] = "%Y-%m-%d %H:%M:%S.%f"

# Tried in order when decoding; encoding always uses the first one.
TIMESTAMP_FORMATS: Final[tuple[str, ...]] = (TIMESTAMP_FORMAT, TIMESTAMP_FORMAT_ALT)


def _strptime_or_none(value: str, fmt: str) -> datetime | None:
    try:
        return datetime.strptime(value, fmt)
    except ValueError:
        return None


def parse_timestamp(value: str) -> datetime | None:
    """Parse `value` with the first matching entry of `TIMESTAMP_FORMATS`.

    Returns None (and logs a warning) if no format matches.
    """
    for fmt in TIMESTAMP_FORMATS:
        ts = _strptime_or_none(value, fmt)
        if ts is not None:
            return ts
    LOG.warning("Failed to parse timestamp: %r (accepted formats: %s)", value, TIMESTAMP_FORMATS)
    return None


def format_timestamp(ts: datetime) -> str:
    """Render `ts` in the primary `TIMESTAMP_FORMAT`."""
    return ts.strftime(TIMESTAMP_FORMAT)


def _meta_to_json(meta: Mapping[str, str]) -> dict[str, str]:
    return {str(k): str(v) for k, v in meta.items()}


@dataclass(frozen=True, slots=True, kw_only=True)
class ObjectPrediction:
    """A single detected object.

    Attributes:
        label: Class label of the object.
        bbox: Axis-aligned bounding box.
        polygon: Outline of the object. Not required to agree with `bbox`
            (a padded or separately measured box is accepted as is).
        score: Optional confidence score.
        meta: Free-form string metadata; copied at construction, read-only.
    """

    label: str
    bbox: BBox
    polygon: Polygon
    score: float | None = None
    meta: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.bbox is None:
            raise InvalidGeometry(f"Prediction {self.label!r} has no bbox")
        if self.polygon is None:
            raise InvalidGeometry(f"Prediction {self.label!r} has no polygon")
        object.__setattr__(self, "meta", MappingProxyType(dict(self.meta or {})))

    @classmethod
    def from_bbox(
        cls,
        label: str,
        bbox: BBox,
        *,
        score: float | None = None,
        meta: Mapping[str, str] | None = None,
    ) -> ObjectPrediction:
        """Create a prediction whose polygon is the 4 corners of `bbox`."""
        return cls(
            label=label,
            bbox=bbox,
            polygon=bbox.to_polygon(),
            score=score,
            meta=dict(meta or {}),
        )

    @classmethod
    def from_polygon(
        cls,
        label: str,
        polygon: Polygon,
        *,
        score: float | None = None,
        meta: Mapping[str, str] | None = None,
    ) -> ObjectPrediction:
        """Create a prediction whose bbox encloses `polygon`.

        Raises:
            InvalidGeometry: If the polygon is degenerate (zero width or height).
        """
        return cls(
            label=label,
            bbox=polygon.to_bbox(),
            polygon=polygon,
            score=score,
            meta=dict(meta or {}),
        )

    def to_json(self) -> dict[str, Any]:
        """Encode as `{score?, label, bbox, polygon, meta?}`."""
        out: dict[str, Any] = {}
        if self.score is not None:
            out["score"] = float(self.score)
        out["label"] = self.label
        out["bbox"] = self.bbox.to_json()
        out["polygon"] = self.polygon.to_json()
        if self.meta:
            out["meta"] = _meta_to_json(self.meta)
        return out

    @classmethod
    def from_json(cls, node: Any) -> ObjectPrediction:
        """Decode a single prediction object."""
        return cls.from_model(validate_node(ObjectPredictionModel, node))

    @classmethod
    def from_model(cls, m: ObjectPredictionModel) -> ObjectPrediction:
        """Build a prediction from an already validated wire model."""
        return cls(
            label=m.label,
            score=m.score,
            bbox=BBox.from_model(m.bbox),
            polygon=Polygon.from_model(m.polygon),
            meta=m.meta,
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class ObjectPredictions:
    """All predictions made for one image; the unit of exchange.

    Attributes:
        id: Identifier of the image/sample, must be non-empty.
        objects: Predictions in output order; copied into a tuple.
        timestamp: Optional time of prediction (microsecond precision).
        meta: Free-form string metadata; copied at construction, read-only.

    Raises:
        InvalidDocument: If `id` is None or empty.
    """

    id: str
    objects: tuple[ObjectPrediction, ...] = ()
    timestamp: datetime | None = None
    meta: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            raise InvalidDocument("ID cannot be None or empty!")
        objects: Iterable[ObjectPrediction] = self.objects or ()
        object.__setattr__(self, "objects", tuple(objects))
        object.__setattr__(self, "meta", MappingProxyType(dict(self.meta or {})))

    def __len__(self) -> int:
        return len(self.objects)

    def __iter__(self) -> Iterator[ObjectPrediction]:
        return iter(self.objects)

    def labels(self) -> list[str]:
        """Return the object labels in stored order."""
        return [o.label for o in self.objects]

    def timestamp_str(self) -> str | None:
        """Return the timestamp in `TIMESTAMP_FORMAT`, or None if unset."""
        if self.timestamp is None:
            return None
        return format_timestamp(self.timestamp)

    def to_json(self) -> dict[str, Any]:
        """Encode as `{timestamp?, id, objects, meta?}`."""
        out: dict[str, Any] = {}
        if self.timestamp is not None:
            out["timestamp"] = format_timestamp(self.timestamp)
        out["id"] = self.id
        out["objects"] = [o.to_json() for o in self.objects]
        if self.meta:
            out["meta"] = _meta_to_json(self.meta)
        return out

    @classmethod
    def from_json(cls, node: Any) -> ObjectPredictions:
        """Decode a parsed OPEX document.

        An unparseable timestamp is logged and decoded as None; everything
        else that is missing or mistyped raises.

        Raises:
            MalformedEncoding: If required keys are missing or mistyped.
            InvalidDocument: If the id is empty.
            InvalidGeometry: If an embedded bbox or polygon is invalid.
        """
        m = validate_node(ObjectPredictionsModel, node)
        timestamp = parse_timestamp(m.timestamp) if m.timestamp is not None else None
        preds = cls(
            id=m.id,
            objects=tuple(ObjectPrediction.from_model(o) for o in m.objects),
            timestamp=timestamp,
            meta=m.meta,
        )
        LOG.debug("Decoded predictions id=%s objects=%d", preds.id, len(preds.objects))
        return preds
