"""Discrete Sibson interpolation on a regular grid by the scatter method.

Every grid cell looks up its nearest known point, at squared distance ``D2``.
It then donates that point's value to every grid cell within the sphere of
squared radius ``D2`` around itself. Each cell finally holds the mean of the
values donated to it.
"""

import logging
import math
from typing import Iterator, Sequence, Tuple

import numpy as np

from naturalneighbor.errors import ShapeMismatchError
from naturalneighbor.geometry import Point
from naturalneighbor.kdtree import KdTree

logger = logging.getLogger(__name__)


def scatter_interpolate(
    known_coords: np.ndarray,
    known_values: np.ndarray,
    interp_values: np.ndarray,
    contribution_counter: np.ndarray,
) -> None:
    """Fill ``interp_values`` in place with the discrete natural neighbor interpolation.

    The grid cell (i, j, k) is located at the point (i, j, k), so the known
    coordinates must already be expressed in grid index units.

    Contributions are added on top of the existing content of ``interp_values``,
    and every cell that received at least one contribution is then divided by its
    number of contributions. Cells without contributions keep their content.
    ``contribution_counter`` is reset to zero before counting.

    Args:
        known_coords: Coordinates of the known points. Shape (N, 3).
        known_values: Values at the known points. Shape (N,).
        interp_values: Output grid, a writable float array of shape (ni, nj, nk).
        contribution_counter: Writable array of the same shape as ``interp_values``
            that receives the number of contributions per cell.

    Raises:
        ShapeMismatchError: If the inputs have inconsistent shapes. Nothing is
            written in that case.
    """
    known_coords, known_values = _validate(
        known_coords, known_values, interp_values, contribution_counter)
    contribution_counter[...] = 0

    shape = interp_values.shape
    if 0 in shape:
        logger.debug('Empty grid of shape %s, nothing to interpolate', shape)
        return
    if len(known_values) == 0:
        logger.debug('No known points, leaving the grid of shape %s untouched', shape)
        return

    tree = KdTree(known_coords, known_values)
    for cell in np.ndindex(*shape):
        neighbor = tree.nearest(Point.from_index(*cell))
        box, within = _claim(cell, neighbor.distance_sq, shape)
        interp_values[box][within] += neighbor.value
        contribution_counter[box][within] += 1

    touched = contribution_counter != 0
    interp_values[touched] /= contribution_counter[touched]
    logger.debug(
        'Scattered %d known points onto a grid of shape %s (%d contributions)',
        len(tree), shape, int(contribution_counter.sum()))


def scatter_pairs(known_coords: np.ndarray, shape: Sequence[int]) -> Iterator[Tuple[int, np.ndarray]]:
    """Yield, for every grid cell in row-major order, the index of its nearest known
    point and the flat indices of the cells it scatters that point's value into.
    Nothing is yielded if there are no known points or the grid is empty."""
    known_coords = np.asarray(known_coords, np.float64)
    if known_coords.size == 0 or 0 in shape:
        return

    tree = KdTree(known_coords, np.zeros(len(known_coords)))
    for cell in np.ndindex(*shape):
        neighbor = tree.nearest(Point.from_index(*cell))
        box, within = _claim(cell, neighbor.distance_sq, shape)
        targets = tuple(
            axis_indices + axis_slice.start
            for axis_indices, axis_slice in zip(np.nonzero(within), box))
        yield neighbor.index, np.ravel_multi_index(targets, shape)


def roi_bounds(center: Sequence[int], radius: int, shape: Sequence[int]) -> Tuple[Tuple[int, int], ...]:
    """Inclusive index bounds of the cube of half-width ``radius`` around ``center``,
    clamped to the grid. Bounds are computed on signed integers, so a cube that
    extends past index zero is clamped to zero."""
    return tuple(
        (_clamp(c - radius, 0, n - 1), _clamp(c + radius, 0, n - 1))
        for c, n in zip(center, shape))


def _claim(cell, distance_sq, shape):
    # The region of interest around `cell` as slices, and the mask of the cells in
    # it that are no farther from `cell` than its nearest known point.
    radius = math.ceil(math.sqrt(distance_sq))
    bounds = roi_bounds(cell, radius, shape)
    di, dj, dk = [np.arange(lo - c, hi - c + 1) for (lo, hi), c in zip(bounds, cell)]
    offsets_sq = di[:, None, None] ** 2 + dj[None, :, None] ** 2 + dk[None, None, :] ** 2
    box = tuple(slice(lo, hi + 1) for lo, hi in bounds)
    return box, offsets_sq <= distance_sq


def _clamp(value, lo, hi):
    return max(lo, min(value, hi))


def _validate(known_coords, known_values, interp_values, contribution_counter):
    known_coords = np.asarray(known_coords, np.float64)
    known_values = np.asarray(known_values, np.float64)
    if known_coords.size == 0:
        known_coords = known_coords.reshape(0, 3)

    if known_coords.ndim != 2 or known_coords.shape[1] != 3:
        raise ShapeMismatchError(
            f'known_coords must have shape (N, 3), got {known_coords.shape}')
    if known_values.shape != (len(known_coords),):
        raise ShapeMismatchError(
            f'known_values must have shape ({len(known_coords)},) to match known_coords, '
            f'got {known_values.shape}')
    if interp_values.ndim != 3:
        raise ShapeMismatchError(
            f'interp_values must be 3-dimensional, got shape {interp_values.shape}')
    if contribution_counter.shape != interp_values.shape:
        raise ShapeMismatchError(
            f'contribution_counter has shape {contribution_counter.shape}, '
            f'but interp_values has shape {interp_values.shape}')
    return known_coords, known_values
