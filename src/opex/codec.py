"""JSON text helpers for OPEX entities and documents.

Entities encode themselves to plain dict/list trees (`to_json`) and decode from
them (`from_json`). This module turns those trees into text and back, and reads
or writes documents from already-open streams or from paths.
"""

from __future__ import annotations

import io
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, Protocol, runtime_checkable

from opex.errors import MalformedEncoding
from opex.predictions import ObjectPredictions

LOG = logging.getLogger(__name__)


@runtime_checkable
class JsonEncodable(Protocol):
    """Anything that can encode itself to a JSON-compatible tree."""

    def to_json(self) -> dict[str, Any]: ...


@dataclass(frozen=True, slots=True, kw_only=True)
class JsonOptions:
    """Text rendering options.

    Attributes:
        pretty: Indented multi-line output if True, a single compact line otherwise.
        indent: Indentation width used when `pretty` is True.
        ensure_ascii: Escape non-ASCII characters.
    """

    pretty: bool = True
    indent: int = 2
    ensure_ascii: bool = False

    def __post_init__(self) -> None:
        if self.indent < 0:
            raise ValueError(f"indent must be >= 0, got {self.indent}")


def _resolve_options(pretty: bool | None, options: JsonOptions | None) -> JsonOptions:
    if options is not None and pretty is not None:
        raise ValueError("Pass either `pretty` or `options`, not both.")
    if options is not None:
        return options
    return JsonOptions(pretty=True if pretty is None else bool(pretty))


def to_json_string(
    obj: JsonEncodable,
    *,
    pretty: bool | None = None,
    options: JsonOptions | None = None,
) -> str:
    """Render `obj.to_json()` as JSON text (pretty-printed by default)."""
    opts = _resolve_options(pretty, options)
    tree = obj.to_json()
    if opts.pretty:
        return json.dumps(tree, indent=opts.indent, ensure_ascii=opts.ensure_ascii)
    return json.dumps(tree, separators=(",", ":"), ensure_ascii=opts.ensure_ascii)


def loads(text: str | bytes | bytearray) -> ObjectPredictions:
    """Decode an OPEX document from JSON text.

    Raises:
        MalformedEncoding: If `text` is not valid UTF-8 or JSON, or not a valid
            document.
    """
    if isinstance(text, bytes | bytearray):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedEncoding(f"Input is not valid UTF-8: {e}") from e
    try:
        tree = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedEncoding(f"Invalid JSON: {e}") from e
    return ObjectPredictions.from_json(tree)


def load(fp: IO[str] | IO[bytes]) -> ObjectPredictions:
    """Decode an OPEX document from an open text or binary stream.

    The stream is read to the end but not closed.
    """
    try:
        data = fp.read()
    except UnicodeDecodeError as e:
        raise MalformedEncoding(f"Input is not valid UTF-8: {e}") from e
    return loads(data)


def dumps(
    preds: ObjectPredictions,
    *,
    pretty: bool | None = None,
    options: JsonOptions | None = None,
) -> str:
    """Render `preds` as JSON text (pretty-printed by default)."""
    return to_json_string(preds, pretty=pretty, options=options)


def _is_binary(fp: IO[Any]) -> bool:
    if isinstance(fp, io.TextIOBase):
        return False
    if isinstance(fp, io.RawIOBase | io.BufferedIOBase):
        return True
    return "b" in getattr(fp, "mode", "")


def dump(
    preds: ObjectPredictions,
    fp: IO[str] | IO[bytes],
    *,
    pretty: bool | None = None,
    options: JsonOptions | None = None,
) -> None:
    """Write `preds` to an open text or binary stream (UTF-8 for binary).

    The stream is neither flushed nor closed.
    """
    text = dumps(preds, pretty=pretty, options=options)
    if _is_binary(fp):
        fp.write(text.encode("utf-8"))  # type: ignore[arg-type]
    else:
        fp.write(text)  # type: ignore[arg-type]


def read_file(path: Path | str) -> ObjectPredictions:
    """Read an OPEX document from `path`."""
    path = Path(path)
    LOG.debug("Reading predictions from %s", path)
    with path.open("rb") as f:
        return load(f)


def write_file(
    preds: ObjectPredictions,
    path: Path | str,
    *,
    pretty: bool | None = None,
    options: JsonOptions | None = None,
) -> Path:
    """Write `preds` to `path`, creating parent directories if needed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        dump(preds, f, pretty=pretty, options=options)
    LOG.debug("Wrote predictions id=%s to %s", preds.id, path)
    return path
