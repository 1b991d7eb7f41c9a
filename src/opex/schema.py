"""Pydantic models describing the OPEX wire shape.

These models only check the structure of decoded JSON (required keys, value
types, point arity). Domain invariants such as edge ordering or a non-empty id
are enforced by the entity constructors the decoded values are passed to.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from opex.errors import MalformedEncoding

M = TypeVar("M", bound=BaseModel)


def _coerce_scalar(v: Any) -> Any:
    # JSON numbers and booleans are read back as their string form.
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, int | float):
        return str(v)
    return v


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


def _reject_bool(v: Any) -> Any:
    # pydantic reads JSON true/false as 1/0 for numeric fields.
    if isinstance(v, bool):
        raise ValueError("expected a number, got a boolean")
    return v


class BBoxModel(_WireModel):
    top: int
    left: int
    bottom: int
    right: int

    @field_validator("top", "left", "bottom", "right", mode="before")
    @classmethod
    def _no_bool_edges(cls, v: Any) -> Any:
        return _reject_bool(v)


class PolygonModel(_WireModel):
    points: list[tuple[int, int]]

    @field_validator("points", mode="before")
    @classmethod
    def _no_bool_coords(cls, v: Any) -> Any:
        if isinstance(v, list):
            for p in v:
                if isinstance(p, list | tuple):
                    for c in p:
                        _reject_bool(c)
        return v


class _HasMeta(_WireModel):
    meta: dict[str, str] = {}

    @field_validator("meta", mode="before")
    @classmethod
    def _coerce_meta(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {k: _coerce_scalar(val) for k, val in v.items()}
        return v


class ObjectPredictionModel(_HasMeta):
    score: float | None = None
    label: str
    bbox: BBoxModel
    polygon: PolygonModel

    @field_validator("score", mode="before")
    @classmethod
    def _no_bool_score(cls, v: Any) -> Any:
        return _reject_bool(v)

    @field_validator("label", mode="before")
    @classmethod
    def _coerce_label(cls, v: Any) -> Any:
        return _coerce_scalar(v)


class ObjectPredictionsModel(_HasMeta):
    timestamp: str | None = None
    id: str
    objects: list[ObjectPredictionModel]

    @field_validator("timestamp", "id", mode="before")
    @classmethod
    def _coerce_strings(cls, v: Any) -> Any:
        return _coerce_scalar(v)


def validate_node(model: type[M], node: Any) -> M:
    """Validate a parsed JSON node against `model`.

    Raises:
        MalformedEncoding: If `node` is not a JSON object or fails validation.
    """
    if not isinstance(node, dict):
        raise MalformedEncoding(
            f"Expected a JSON object for {model.__name__}, got {type(node).__name__}"
        )
    try:
        return model.model_validate(node)
    except ValidationError as e:
        raise MalformedEncoding(f"Malformed {model.__name__}: {e}") from e
