from typing import NamedTuple, Sequence


class Point(NamedTuple):
    """An immutable point in 3D space."""

    x: float
    y: float
    z: float

    @classmethod
    def from_index(cls, i: int, j: int, k: int) -> 'Point':
        """The grid cell (i, j, k) as a point with real coordinates."""
        return cls(float(i), float(j), float(k))

    def distance_sq(self, other: Sequence[float]) -> float:
        """Squared Euclidean distance to another point."""
        dx = self[0] - other[0]
        dy = self[1] - other[1]
        dz = self[2] - other[2]
        return dx * dx + dy * dy + dz * dz
