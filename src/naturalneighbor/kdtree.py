"""A static kd-tree over known points for nearest-neighbor lookup.

The tree is built once from the full point set by recursive median splits,
cycling the splitting axis with the depth. Nodes live in an arena of parallel
lists indexed by node id, where ``-1`` marks a missing child.
"""

import logging
import math
from typing import NamedTuple, Sequence, Tuple

import numpy as np

from naturalneighbor.errors import NoDataError, ShapeMismatchError
from naturalneighbor.geometry import Point

logger = logging.getLogger(__name__)


class Neighbor(NamedTuple):
    point: Point
    value: float
    distance_sq: float
    index: int


class KdTree:
    """Kd-tree over 3D known points, each associated with a scalar value.

    Args:
        points: Coordinates of the known points. Shape (N, 3).
        values: Values at the known points. Shape (N,).
    """

    def __init__(self, points: np.ndarray, values: np.ndarray):
        points = np.asarray(points, np.float64)
        values = np.asarray(values, np.float64)
        if points.size == 0:
            points = points.reshape(0, 3)
        if points.ndim != 2 or points.shape[1] != 3:
            raise ShapeMismatchError(f'points must have shape (N, 3), got {points.shape}')
        if values.shape != (len(points),):
            raise ShapeMismatchError(
                f'values must have shape ({len(points)},), got {values.shape}')

        self._coords = points
        self._points = [Point(*p) for p in points.tolist()]
        self._values = values.tolist()

        n = len(points)
        self._point_index = [-1] * n
        self._axis = [0] * n
        self._left = [-1] * n
        self._right = [-1] * n
        self._num_nodes = 0
        self.depth = 0
        self._root = self._build(np.arange(n), 0)
        logger.debug('Built kd-tree over %d points with depth %d', n, self.depth)

    def __len__(self):
        return len(self._points)

    def _build(self, indices: np.ndarray, depth: int) -> int:
        if len(indices) == 0:
            return -1

        axis = depth % 3
        order = np.argsort(self._coords[indices, axis], kind='stable')
        indices = indices[order]
        median = len(indices) // 2

        node = self._num_nodes
        self._num_nodes += 1
        self._point_index[node] = int(indices[median])
        self._axis[node] = axis
        self.depth = max(self.depth, depth + 1)
        self._left[node] = self._build(indices[:median], depth + 1)
        self._right[node] = self._build(indices[median + 1:], depth + 1)
        return node

    def nearest(self, query: Sequence[float]) -> Neighbor:
        """Find the known point closest to ``query``.

        When several known points are equally close, the first one reached by the
        traversal wins. Nodes nearer the root are reached first, and at each node
        the child on the query's side of the splitting plane is searched before the
        other one.

        Raises:
            NoDataError: If the tree holds no points.
        """
        if self._root < 0:
            raise NoDataError('Cannot query an empty kd-tree')

        best_node = -1
        best_dist_sq = math.inf
        # Entries are (node, lower bound of the squared distance to any point below it)
        stack = [(self._root, 0.0)]
        while stack:
            node, bound_sq = stack.pop()
            if bound_sq > best_dist_sq:
                continue

            point = self._points[self._point_index[node]]
            dist_sq = point.distance_sq(query)
            if dist_sq < best_dist_sq:
                best_node = node
                best_dist_sq = dist_sq

            axis = self._axis[node]
            diff = query[axis] - point[axis]
            if diff <= 0:
                near, far = self._left[node], self._right[node]
            else:
                near, far = self._right[node], self._left[node]

            # The far child goes on the stack first so that the near one is popped first
            if far >= 0:
                stack.append((far, diff * diff))
            if near >= 0:
                stack.append((near, bound_sq))

        index = self._point_index[best_node]
        return Neighbor(self._points[index], self._values[index], best_dist_sq, index)

    def nearest_many(self, queries: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Nearest known point for each row of ``queries`` (shape (M, 3)).

        Returns:
            The indices of the nearest known points and the squared distances to them.
        """
        queries = np.asarray(queries, np.float64).reshape(-1, 3)
        indices = np.empty(len(queries), np.intp)
        distances_sq = np.empty(len(queries), np.float64)
        for row, query in enumerate(queries.tolist()):
            neighbor = self.nearest(query)
            indices[row] = neighbor.index
            distances_sq[row] = neighbor.distance_sq
        return indices, distances_sq
