class NoDataError(LookupError):
    """Raised when a nearest-neighbor query is made on an index holding no points."""


class ShapeMismatchError(ValueError):
    """Raised when the known points, known values or output buffers have inconsistent shapes."""
