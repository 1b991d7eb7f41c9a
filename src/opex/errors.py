"""Exceptions raised by the OPEX data model and codec."""


class OpexError(ValueError):
    """Base class for all OPEX errors."""


class InvalidGeometry(OpexError):
    """A bounding box or polygon violates its construction invariant."""


class InvalidDocument(OpexError):
    """A predictions document was built without a usable id."""


class MalformedEncoding(OpexError):
    """A JSON node does not have the shape expected for the entity being decoded."""
