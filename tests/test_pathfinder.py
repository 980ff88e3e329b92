"""Tests for track routing."""

from city_bridge.models.world import Building, BuildingType, Point, create_world
from city_bridge.routing.pathfinder import is_passable, manhattan_path, route


def _p(x: int, y: int) -> Point:
    return Point(x=x, y=y)


def _coords(path):
    return [(p.x, p.y) for p in path]


def _set(world, x, y, building_type):
    world.grid[y][x].building = Building(type=building_type)


def _assert_adjacent(path):
    for a, b in zip(path, path[1:]):
        assert abs(a.x - b.x) + abs(a.y - b.y) == 1


class TestPassability:
    def test_water_never_passable(self):
        assert not is_passable(BuildingType.WATER, "road")
        assert not is_passable(BuildingType.WATER, "rail")

    def test_bridge_always_passable(self):
        assert is_passable(BuildingType.BRIDGE, "road")
        assert is_passable(BuildingType.BRIDGE, "rail")

    def test_tracks_share_space(self):
        assert is_passable(BuildingType.RAIL, "road")
        assert is_passable(BuildingType.ROAD, "rail")

    def test_buildings_block(self):
        assert not is_passable(BuildingType.HOSPITAL, "road")
        assert not is_passable(BuildingType.HOUSE, "rail")


class TestManhattanPath:
    def test_x_then_y(self):
        path = manhattan_path(_p(0, 0), _p(2, 2))
        assert _coords(path) == [(0, 0), (1, 0), (2, 0), (2, 1), (2, 2)]

    def test_negative_direction(self):
        path = manhattan_path(_p(3, 3), _p(1, 2))
        assert _coords(path) == [(3, 3), (2, 3), (1, 3), (1, 2)]

    def test_same_point(self):
        assert _coords(manhattan_path(_p(4, 4), _p(4, 4))) == [(4, 4)]

    def test_bounded_keeps_only_grid_cells(self):
        path = manhattan_path(_p(-2, 1), _p(5, 3), size=4)
        assert _coords(path) == [(0, 1), (1, 1), (2, 1), (3, 1)]

    def test_bounded_descending_leg(self):
        path = manhattan_path(_p(2, 10), _p(1, -5), size=4)
        assert _coords(path) == [(1, 3), (1, 2), (1, 1), (1, 0)]

    def test_bounded_matches_unbounded_inside_grid(self):
        assert manhattan_path(_p(3, 3), _p(0, 1), size=4) == manhattan_path(_p(3, 3), _p(0, 1))

    def test_huge_goal_stays_small(self):
        path = manhattan_path(_p(0, 0), _p(10**9, 10**9), size=8)
        assert _coords(path) == [(x, 0) for x in range(8)]


class TestRoute:
    def test_straight_line_on_open_grid(self):
        world = create_world(10)
        path = route(world, _p(0, 0), _p(3, 0), "road")
        assert _coords(path) == [(0, 0), (1, 0), (2, 0), (3, 0)]

    def test_routes_around_obstacle(self):
        world = create_world(5)
        # Wall of water at x=2 except a gap at y=4
        for y in range(4):
            _set(world, 2, y, BuildingType.WATER)
        path = route(world, _p(0, 0), _p(4, 0), "road")
        _assert_adjacent(path)
        assert path[0].as_tuple() == (0, 0)
        assert path[-1].as_tuple() == (4, 0)
        assert (2, 4) in _coords(path)
        for p in path:
            assert is_passable(world.grid[p.y][p.x].building.type, "road")

    def test_shortest_length(self):
        world = create_world(6)
        path = route(world, _p(0, 0), _p(3, 4), "rail")
        assert len(path) == 3 + 4 + 1

    def test_deterministic_neighbor_order(self):
        world = create_world(6)
        first = _coords(route(world, _p(0, 0), _p(2, 2), "road"))
        second = _coords(route(world, _p(0, 0), _p(2, 2), "road"))
        assert first == second
        # West/east are expanded before north/south, so x is walked first
        assert first == [(0, 0), (1, 0), (2, 0), (2, 1), (2, 2)]

    def test_passes_through_existing_bridge(self):
        world = create_world(3)
        for y in range(3):
            _set(world, 1, y, BuildingType.WATER)
        _set(world, 1, 1, BuildingType.BRIDGE)
        path = route(world, _p(0, 1), _p(2, 1), "road")
        assert _coords(path) == [(0, 1), (1, 1), (2, 1)]

    def test_blocked_goal_falls_back_to_stepping(self):
        world = create_world(5)
        _set(world, 3, 3, BuildingType.WATER)
        path = route(world, _p(0, 0), _p(3, 3), "road")
        assert _coords(path) == _coords(manhattan_path(_p(0, 0), _p(3, 3)))

    def test_blocked_start_falls_back_to_stepping(self):
        world = create_world(5)
        _set(world, 0, 0, BuildingType.POWER_PLANT)
        path = route(world, _p(0, 0), _p(2, 0), "rail")
        assert _coords(path) == [(0, 0), (1, 0), (2, 0)]

    def test_unreachable_goal_falls_back_to_stepping(self):
        world = create_world(5)
        for y in range(5):
            _set(world, 2, y, BuildingType.WATER)
        path = route(world, _p(0, 0), _p(4, 0), "road")
        assert _coords(path) == [(0, 0), (1, 0), (2, 0), (3, 0), (4, 0)]

    def test_out_of_range_endpoint_falls_back(self):
        world = create_world(3)
        path = route(world, _p(0, 0), _p(4, 0), "road")
        assert _coords(path) == [(0, 0), (1, 0), (2, 0), (3, 0), (4, 0)]

    def test_start_equals_goal(self):
        world = create_world(3)
        assert _coords(route(world, _p(1, 1), _p(1, 1), "road")) == [(1, 1)]
