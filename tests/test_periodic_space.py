"""Tests for the periodic_space module."""

from __future__ import annotations

import itertools
import math
from random import Random

import pytest

from periodic_space import PeriodicSpace


def _image_distance(a, b, width, height) -> float:
    return min(
        math.hypot(a[0] - (b[0] + i * width), a[1] - (b[1] + j * height))
        for i, j in itertools.product((-1, 0, 1), repeat=2)
    )


class TestPeriodicSpaceConstruction:
    def test_rejects_non_positive_extent(self) -> None:
        with pytest.raises(ValueError):
            PeriodicSpace(0.0, 10.0)
        with pytest.raises(ValueError):
            PeriodicSpace(10.0, -1.0)

    def test_rejects_non_positive_cell_size(self) -> None:
        with pytest.raises(ValueError):
            PeriodicSpace(10.0, 10.0, cell_size=0.0)

    def test_cells_are_at_least_cell_size(self) -> None:
        space = PeriodicSpace(70.0, 70.0, cell_size=2.0)
        assert space.cols == 35
        assert space.cell_width >= 2.0

    def test_tiny_domain_uses_single_cell(self) -> None:
        space = PeriodicSpace(1.5, 1.5, cell_size=2.0)
        assert (space.cols, space.rows) == (1, 1)


class TestPeriodicSpaceMove:
    def test_add_wraps_position(self) -> None:
        space = PeriodicSpace(10.0, 10.0)
        assert space.add(1, (12.0, -3.0)) == pytest.approx((2.0, 7.0))

    def test_move_wraps_across_both_edges(self) -> None:
        space = PeriodicSpace(10.0, 8.0)
        space.add(1, (9.5, 0.5))
        new_pos = space.move(1, 1.0, -1.0)
        assert new_pos == pytest.approx((0.5, 7.5))
        assert space.position(1) == new_pos

    def test_wrap_never_returns_extent(self) -> None:
        space = PeriodicSpace(70.0, 70.0)
        x, y = space.wrap((-1e-17, 70.0))
        assert 0.0 <= x < 70.0
        assert 0.0 <= y < 70.0

    def test_positions_stay_in_bounds_after_many_moves(self) -> None:
        space = PeriodicSpace(7.0, 5.0)
        rng = Random(3)
        for agent_id in range(20):
            space.add(agent_id, (rng.uniform(0, 7), rng.uniform(0, 5)))
        for _ in range(200):
            agent_id = rng.randrange(20)
            x, y = space.move(agent_id, rng.uniform(-9, 9), rng.uniform(-9, 9))
            assert 0.0 <= x < 7.0
            assert 0.0 <= y < 5.0

    def test_moved_agent_is_found_in_new_cell(self) -> None:
        space = PeriodicSpace(20.0, 20.0)
        space.add(1, (1.0, 1.0))
        space.move(1, 10.0, 10.0)
        assert space.neighbors_within((11.0, 11.0), 0.1) == [1]
        assert space.neighbors_within((1.0, 1.0), 0.1) == []


class TestPeriodicSpaceNeighbors:
    def test_distance_wraps(self) -> None:
        space = PeriodicSpace(10.0, 10.0)
        assert space.distance((0.5, 0.5), (9.5, 9.5)) == pytest.approx(math.sqrt(2.0))

    def test_neighbor_across_corner(self) -> None:
        space = PeriodicSpace(10.0, 10.0)
        space.add(1, (9.8, 9.8))
        assert space.neighbors_within((0.1, 0.1), 1.0) == [1]

    def test_query_includes_agent_at_point(self) -> None:
        space = PeriodicSpace(10.0, 10.0)
        space.add(7, (5.0, 5.0))
        assert space.neighbors_within((5.0, 5.0), 1.0) == [7]

    def test_boundary_distance_is_inclusive(self) -> None:
        space = PeriodicSpace(10.0, 10.0)
        space.add(1, (3.0, 5.0))
        assert space.neighbors_within((5.0, 5.0), 2.0) == [1]

    def test_negative_radius_finds_nothing(self) -> None:
        space = PeriodicSpace(10.0, 10.0)
        space.add(1, (3.0, 5.0))
        assert space.neighbors_within((3.0, 5.0), -1.0) == []

    @pytest.mark.parametrize("radius", [0.5, 1.0, 2.0, 3.7, 40.0])
    def test_matches_brute_force(self, radius: float) -> None:
        width, height = 23.0, 17.0
        space = PeriodicSpace(width, height, cell_size=2.0)
        rng = Random(11)
        points = {}
        for agent_id in range(150):
            points[agent_id] = space.add(
                agent_id, (rng.uniform(0, width), rng.uniform(0, height))
            )
        for _ in range(25):
            query = (rng.uniform(0, width), rng.uniform(0, height))
            expected = {
                agent_id
                for agent_id, pos in points.items()
                if _image_distance(query, pos, width, height) <= radius + 1e-9
            }
            found = space.neighbors_within(query, radius)
            assert len(found) == len(set(found))
            assert set(found) == expected


class TestPeriodicSpaceRemove:
    def test_remove_forgets_agent(self) -> None:
        space = PeriodicSpace(10.0, 10.0)
        space.add(1, (2.0, 2.0))
        space.remove(1)
        assert 1 not in space
        assert space.position(1) is None
        assert space.neighbors_within((2.0, 2.0), 1.0) == []

    def test_remove_is_idempotent(self) -> None:
        space = PeriodicSpace(10.0, 10.0)
        space.add(1, (2.0, 2.0))
        space.add(2, (2.5, 2.0))
        space.remove(1)
        space.remove(1)
        space.remove(99)
        assert len(space) == 1
        assert space.neighbors_within((2.0, 2.0), 1.0) == [2]
