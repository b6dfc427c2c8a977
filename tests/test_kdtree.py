import numpy as np
import pytest
from scipy.spatial import cKDTree

from naturalneighbor import KdTree, NoDataError, Point, ShapeMismatchError


# ── Helpers ──────────────────────────────────────────────────────────────────

def exhaustive_nearest(points, query):
    distances_sq = np.sum((points - np.asarray(query)) ** 2, axis=1)
    index = int(np.argmin(distances_sq))
    return index, distances_sq[index]


def subtree_nodes(tree, node):
    if node < 0:
        return []
    return [node] + subtree_nodes(tree, tree._left[node]) + subtree_nodes(tree, tree._right[node])


# ── Nearest neighbor correctness ─────────────────────────────────────────────

class TestMatchesExhaustiveScan:
    def test_random_queries(self):
        rng = np.random.RandomState(42)
        points = rng.uniform(-10, 10, (300, 3))
        tree = KdTree(points, rng.randn(300))
        queries = rng.uniform(-15, 15, (1000, 3))
        for query in queries:
            neighbor = tree.nearest(query)
            index, distance_sq = exhaustive_nearest(points, query)
            assert neighbor.index == index
            assert neighbor.distance_sq == pytest.approx(distance_sq, rel=1e-12)

    def test_clustered_points(self):
        rng = np.random.RandomState(43)
        centers = rng.uniform(-50, 50, (5, 3))
        points = (centers[:, np.newaxis] + rng.randn(5, 40, 3) * 0.5).reshape(-1, 3)
        tree = KdTree(points, np.zeros(len(points)))
        for query in rng.uniform(-60, 60, (500, 3)):
            index, distance_sq = exhaustive_nearest(points, query)
            assert tree.nearest(query).index == index

    def test_matches_scipy(self):
        rng = np.random.RandomState(44)
        points = rng.randn(500, 3)
        queries = rng.randn(1000, 3) * 2
        tree = KdTree(points, np.zeros(500))
        indices, distances_sq = tree.nearest_many(queries)
        expected_distances, expected_indices = cKDTree(points).query(queries)
        np.testing.assert_array_equal(indices, expected_indices)
        np.testing.assert_allclose(np.sqrt(distances_sq), expected_distances, rtol=1e-12)

    def test_lattice_with_ties(self):
        """Many equidistant candidates: only the distance is unique."""
        xs = np.arange(4, dtype=np.float64)
        points = np.array(np.meshgrid(xs, xs, xs, indexing='ij')).reshape(3, -1).T
        tree = KdTree(points, np.arange(len(points), dtype=np.float64))
        rng = np.random.RandomState(45)
        queries = np.round(rng.uniform(-1, 4, (300, 3)) * 2) / 2
        for query in queries:
            neighbor = tree.nearest(query)
            _, distance_sq = exhaustive_nearest(points, query)
            assert neighbor.distance_sq == distance_sq
            assert Point(*points[neighbor.index]).distance_sq(query) == distance_sq

    def test_duplicate_points(self):
        points = np.array([[1.0, 1.0, 1.0]] * 5 + [[3.0, 3.0, 3.0]])
        tree = KdTree(points, np.arange(6, dtype=np.float64))
        neighbor = tree.nearest((1.2, 1.0, 1.0))
        assert neighbor.index < 5
        assert neighbor.distance_sq == pytest.approx(0.04)
        assert tree.nearest((3.0, 3.0, 2.9)).index == 5


class TestNeighborResult:
    def test_fields(self):
        points = np.array([[0.0, 0.0, 0.0], [5.0, 5.0, 5.0]])
        tree = KdTree(points, np.array([10.0, 20.0]))
        neighbor = tree.nearest(Point(4.0, 5.0, 5.0))
        assert neighbor.index == 1
        assert neighbor.value == 20.0
        assert neighbor.distance_sq == 1.0
        assert neighbor.point == Point(5.0, 5.0, 5.0)

    def test_query_on_known_point(self):
        rng = np.random.RandomState(46)
        points = rng.randn(50, 3)
        tree = KdTree(points, np.zeros(50))
        for index in [0, 17, 49]:
            neighbor = tree.nearest(points[index])
            assert neighbor.index == index
            assert neighbor.distance_sq == 0.0

    def test_nearest_many_matches_nearest(self):
        rng = np.random.RandomState(47)
        points = rng.randn(60, 3)
        queries = rng.randn(40, 3)
        tree = KdTree(points, np.zeros(60))
        indices, distances_sq = tree.nearest_many(queries)
        for query, index, distance_sq in zip(queries, indices, distances_sq):
            neighbor = tree.nearest(query)
            assert neighbor.index == index
            assert neighbor.distance_sq == distance_sq


# ── Tie-breaking ─────────────────────────────────────────────────────────────

class TestTieBreaking:
    def test_root_wins_over_equidistant_child(self):
        # Sorted along x, the median (index 1) becomes the root and is reached first
        points = np.array([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0]])
        tree = KdTree(points, np.array([1.0, 2.0]))
        neighbor = tree.nearest((1.0, 0.0, 0.0))
        assert neighbor.index == 1
        assert neighbor.distance_sq == 1.0

    def test_deterministic(self):
        points = np.array([
            [1, 0, 0], [-1, 0, 0], [0, 1, 0], [0, -1, 0], [0, 0, 1], [0, 0, -1],
        ], dtype=np.float64)
        results = {KdTree(points, np.zeros(6)).nearest((0.0, 0.0, 0.0)).index for _ in range(10)}
        assert len(results) == 1


# ── Structure ────────────────────────────────────────────────────────────────

class TestStructure:
    def test_partition_invariant(self):
        rng = np.random.RandomState(48)
        points = rng.randint(0, 5, (200, 3)).astype(np.float64)
        tree = KdTree(points, np.zeros(200))
        for node in range(len(tree)):
            coord = points[tree._point_index[node], tree._axis[node]]
            axis = tree._axis[node]
            for child in subtree_nodes(tree, tree._left[node]):
                assert points[tree._point_index[child], axis] <= coord
            for child in subtree_nodes(tree, tree._right[node]):
                assert points[tree._point_index[child], axis] >= coord

    def test_every_point_stored_once(self):
        rng = np.random.RandomState(49)
        tree = KdTree(rng.randn(123, 3), np.zeros(123))
        assert sorted(tree._point_index) == list(range(123))

    def test_axis_cycles_with_depth(self):
        tree = KdTree(np.random.RandomState(50).randn(15, 3), np.zeros(15))
        root = tree._root
        assert tree._axis[root] == 0
        assert tree._axis[tree._left[root]] == 1
        assert tree._axis[tree._left[tree._left[root]]] == 2
        assert tree._axis[tree._left[tree._left[tree._left[root]]]] == 0

    def test_balanced(self):
        tree = KdTree(np.random.RandomState(51).randn(1000, 3), np.zeros(1000))
        assert len(tree) == 1000
        assert tree.depth == 10


# ── Edge cases ───────────────────────────────────────────────────────────────

class TestEdgeCases:
    def test_empty_tree(self):
        tree = KdTree(np.zeros((0, 3)), np.zeros(0))
        assert len(tree) == 0
        assert tree.depth == 0
        with pytest.raises(NoDataError):
            tree.nearest((0.0, 0.0, 0.0))

    def test_empty_lists(self):
        tree = KdTree([], [])
        with pytest.raises(NoDataError):
            tree.nearest(Point(1.0, 2.0, 3.0))

    def test_single_point(self):
        tree = KdTree(np.array([[1.0, 2.0, 3.0]]), np.array([7.5]))
        assert tree.depth == 1
        neighbor = tree.nearest((0.0, 0.0, 0.0))
        assert neighbor.index == 0
        assert neighbor.value == 7.5
        assert neighbor.distance_sq == 14.0

    def test_wrong_coordinate_count(self):
        with pytest.raises(ShapeMismatchError):
            KdTree(np.zeros((4, 2)), np.zeros(4))

    def test_value_count_mismatch(self):
        with pytest.raises(ShapeMismatchError):
            KdTree(np.zeros((4, 3)), np.zeros(3))

    def test_shape_mismatch_is_value_error(self):
        with pytest.raises(ValueError):
            KdTree(np.zeros((4, 3)), np.zeros(5))
