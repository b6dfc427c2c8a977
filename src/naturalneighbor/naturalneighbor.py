import logging
import math
from typing import Sequence, Tuple

import numpy as np
import scipy.sparse

from naturalneighbor.errors import ShapeMismatchError
from naturalneighbor.scatter import scatter_interpolate, scatter_pairs

logger = logging.getLogger(__name__)


def griddata(
    known_points: np.ndarray,
    known_values: np.ndarray,
    interp_ranges: Sequence[Sequence],
    fill_value: float = 0.0,
) -> np.ndarray:
    """
    Interpolates known values onto a regular 3D grid with the discrete natural neighbor
    (Sibson) method :footcite:`park2006discrete`.

    Args:
        known_points: The points at which the function is known. Shape (N, 3).
        known_values: The values of the function at the known points. Shape (N,).
        interp_ranges: Three ``[start, stop, step]`` triples, one per axis, with the
            same meaning as in ``np.mgrid``. A real ``step`` is the spacing of the grid
            and ``stop`` is excluded; a complex ``step`` such as ``10j`` is the number
            of samples and ``stop`` is included.
        fill_value: The value of the grid cells that receive no contribution, which only
            happens when there are no known points.

    Returns:
        The interpolated values on the grid, as float64 of shape (ni, nj, nk).
    """
    known_points = _as_known_points(known_points)
    known_values = np.asarray(known_values, np.float64)
    starts, spacings, grid_shape = _grid_geometry(interp_ranges)

    interp_values = np.zeros(grid_shape, np.float64)
    contribution_counter = np.zeros(grid_shape, np.int64)
    scatter_interpolate(
        (known_points - starts) / spacings, known_values, interp_values, contribution_counter)
    interp_values[contribution_counter == 0] = fill_value
    return interp_values


def interpolate(
    known_points: np.ndarray,
    known_values: np.ndarray,
    interp_ranges: Sequence[Sequence],
    fill_value: float = 0.0,
) -> np.ndarray:
    """Interpolates known values onto a regular 3D grid through an :class:`Interpolator`.

    Unlike :func:`griddata`, the values may have several channels.

    Args:
        known_points: The points at which the function is known. Shape (N, 3).
        known_values: The values of the function at the known points. Shape (N,) or (N, D).
        interp_ranges: The grid specification, see :func:`griddata`.
        fill_value: The value of the grid cells that receive no contribution.

    Returns:
        The interpolated values. Shape (ni, nj, nk) or (ni, nj, nk, D), depending on the
        shape of the ``known_values`` array.
    """
    interpolator = Interpolator(known_points, interp_ranges)
    return interpolator.interpolate(known_values, fill_value=fill_value)


class Interpolator:
    """
    Discrete natural neighbor interpolator from fixed known points to a fixed 3D grid.

    The scatter step only depends on the positions of the known points, so it is
    computed once in the constructor and stored as a sparse weight matrix. If several
    sets of values are known at the same points, it is more efficient to create one
    Interpolator and call :meth:`interpolate` for each of them than to call
    :func:`griddata` repeatedly.

    Args:
        known_points: The points at which the function is known. Shape (N, 3).
        interp_ranges: The grid specification, see :func:`griddata`.
    """

    def __init__(self, known_points: np.ndarray, interp_ranges: Sequence[Sequence]):
        known_points = _as_known_points(known_points)
        self._starts, self._spacings, self.grid_shape = _grid_geometry(interp_ranges)
        self.num_known_points = len(known_points)
        known_ijk = (known_points - self._starts) / self._spacings
        self._weights, self._touched = _scatter_weights(known_ijk, self.grid_shape)

    def get_weights(self) -> scipy.sparse.csr_matrix:
        """The interpolation weights, with one row per grid cell in row-major order and one
        column per known point.

        The weight of a known point in a cell is the fraction of the cell's contributions
        that carried the value of that known point. Rows of cells that received
        contributions sum to one, the others are empty.
        """
        return self._weights

    def interpolate(self, values: np.ndarray, fill_value: float = 0.0) -> np.ndarray:
        """Interpolate values given at the known points onto the grid.

        Args:
            values: The values of the function at the known points that were passed to the
                constructor. Shape (N,) or (N, D).
            fill_value: The value of the grid cells that receive no contribution.

        Returns:
            The interpolated values. Shape (ni, nj, nk) or (ni, nj, nk, D), depending on
            the shape of the ``values`` array.
        """
        values = np.asarray(values, np.float64)
        if values.ndim not in (1, 2) or values.shape[0] != self.num_known_points:
            raise ShapeMismatchError(
                f'Expected values of shape ({self.num_known_points},) or '
                f'({self.num_known_points}, D), got {values.shape}')

        interpolated = np.asarray(self._weights @ values, np.float64)
        interpolated[~self._touched] = fill_value
        return interpolated.reshape(self.grid_shape + values.shape[1:])

    def grid_points(self) -> np.ndarray:
        """The coordinates of the grid cells. Shape (ni, nj, nk, 3)."""
        axes = [
            start + spacing * np.arange(size)
            for start, spacing, size in zip(self._starts, self._spacings, self.grid_shape)]
        return np.stack(np.meshgrid(*axes, indexing='ij'), axis=-1)


def _scatter_weights(known_ijk, grid_shape):
    num_cells = math.prod(grid_shape)
    rows = []
    cols = []
    for known_index, targets in scatter_pairs(known_ijk, grid_shape):
        rows.append(targets)
        cols.append(np.full(len(targets), known_index, np.intp))

    rows = np.concatenate(rows) if rows else np.zeros(0, np.intp)
    cols = np.concatenate(cols) if cols else np.zeros(0, np.intp)
    # Duplicate (cell, known point) entries are summed, giving contribution counts
    counts = scipy.sparse.coo_matrix(
        (np.ones(len(rows)), (rows, cols)), shape=(num_cells, len(known_ijk))).tocsr()

    totals = np.asarray(counts.sum(axis=1)).ravel()
    touched = totals > 0
    scale = np.divide(1.0, totals, out=np.zeros_like(totals), where=touched)
    weights = scipy.sparse.csr_matrix(scipy.sparse.diags(scale) @ counts)
    logger.debug(
        'Computed scatter weights for %d cells and %d known points (%d nonzeros)',
        num_cells, len(known_ijk), weights.nnz)
    return weights, touched


def _as_known_points(known_points):
    known_points = np.asarray(known_points, np.float64)
    if known_points.size == 0:
        known_points = known_points.reshape(0, 3)
    if known_points.ndim != 2 or known_points.shape[1] != 3:
        raise ShapeMismatchError(
            f'known_points must have shape (N, 3), got {known_points.shape}')
    return known_points


def _grid_geometry(interp_ranges) -> Tuple[np.ndarray, np.ndarray, Tuple[int, int, int]]:
    # Returns the coordinates of the first cell, the spacing and the number of cells
    # along each axis.
    if len(interp_ranges) != 3:
        raise ValueError(f'Expected 3 interpolation ranges, got {len(interp_ranges)}')

    starts = []
    spacings = []
    sizes = []
    for axis, interp_range in enumerate(interp_ranges):
        if len(interp_range) != 3:
            raise ValueError(
                f'Interpolation range {axis} must be [start, stop, step], got {interp_range}')
        start, stop, step = interp_range
        start = float(np.real(start))
        stop = float(np.real(stop))
        if not stop > start:
            raise ValueError(f'Interpolation range {axis} must have stop > start')

        if np.iscomplexobj(step):
            size = int(abs(step))
            if size < 1:
                raise ValueError(f'Interpolation range {axis} must have at least one sample')
            spacing = (stop - start) / (size - 1) if size > 1 else 1.0
        else:
            step = float(step)
            if not step > 0:
                raise ValueError(f'Interpolation range {axis} must have a positive step')
            size = int(math.ceil((stop - start) / step))
            spacing = step

        starts.append(start)
        spacings.append(spacing)
        sizes.append(size)

    return np.array(starts, np.float64), np.array(spacings, np.float64), tuple(sizes)
