import pytest

from elemsplit import UnclosedLoop
from elemsplit.geometry import CuttingLine, LineCurve, Loop, PlanarProfile, Side, as_point, line, points_equal
from elemsplit.geometry.math_utils import intersect_segment_with_line, point_in_polygon


def _square(x0, y0, size):
    return Loop.from_points([(x0, y0), (x0 + size, y0), (x0 + size, y0 + size), (x0, y0 + size)])


def test_as_point_fills_missing_z():
    assert as_point((1, 2)) == (1.0, 2.0, 0.0)
    assert as_point([1, 2, 3]) == (1.0, 2.0, 3.0)
    with pytest.raises(ValueError):
        as_point((1,))


def test_points_equal_uses_tolerance():
    assert points_equal((0.0, 0.0, 0.0), (0.02, 0.0, 0.0))
    assert not points_equal((0.0, 0.0, 0.0), (0.05, 0.0, 0.0))
    assert points_equal((0.0, 0.0, 0.0), (0.05, 0.0, 0.0), tol=0.1)


def test_line_curve_cleave_and_reverse():
    curve = line((0, 0), (10, 0))
    first, second = curve.cleave((4.0, 0.0, 0.0))
    assert first.end == second.start == (4.0, 0.0, 0.0)
    assert first.length + second.length == pytest.approx(10.0)
    assert curve.cleave((0.01, 0.0, 0.0)) == [curve]
    assert curve.reversed() == LineCurve((10.0, 0.0, 0.0), (0.0, 0.0, 0.0))


def test_loop_area_centroid_and_validation():
    loop = _square(0, 0, 10)
    assert loop.area == pytest.approx(100.0)
    assert loop.signed_area > 0
    assert loop.centroid == pytest.approx((5.0, 5.0, 0.0))
    assert loop.is_closed()
    assert loop.contains((5, 5))
    assert loop.contains((10, 5))
    assert not loop.contains((11, 5))


def test_loop_validate_reports_gaps():
    broken = Loop([line((0, 0), (1, 0)), line((1, 0), (1, 1)), line((1, 1), (0, 0.5))])
    assert broken.gaps() == [2]
    with pytest.raises(UnclosedLoop):
        broken.validate()
    with pytest.raises(UnclosedLoop):
        Loop([line((0, 0), (1, 0)), line((1, 0), (0, 0))]).validate()


def test_profile_from_loops_picks_largest_as_outer():
    hole = _square(3, 3, 2)
    outer = _square(0, 0, 10)
    profile = PlanarProfile.from_loops([hole, outer])
    assert profile.outer is outer
    assert profile.holes == [hole]
    assert profile.area == pytest.approx(96.0)
    assert profile.contains((1, 1))
    assert not profile.contains((4, 4))
    assert profile.contains((3, 4))


def test_cutting_line_sides():
    cut = CuttingLine.through((4, -5), (4, 15))
    assert cut.direction == pytest.approx((0.0, 1.0, 0.0))
    assert cut.perpendicular == pytest.approx((-1.0, 0.0, 0.0))
    assert cut.side_of((0, 0, 0)) is Side.A
    assert cut.side_of((9, 0, 0)) is Side.B
    assert cut.side_of((4.01, 3, 0), tol=0.03125) is None
    assert Side.A.other is Side.B


def test_cutting_line_rejects_identical_points():
    with pytest.raises(ValueError):
        CuttingLine.through((1, 1), (1, 1))


@pytest.mark.parametrize(
    "start, end, expected",
    [
        ((0, 0, 0), (10, 0, 0), (4.0, 0.0, 0.0)),
        ((4, -1, 0), (4, 1, 0), None),
        ((0, 5, 0), (3, 5, 0), None),
        ((0, 0, 0), (8, 0, 8), (4.0, 0.0, 4.0)),
    ],
)
def test_intersect_segment_with_line(start, end, expected):
    hit = intersect_segment_with_line(start, end, (4.0, 0.0, 0.0), (0.0, 1.0, 0.0), 1.0 / 32.0)
    if expected is None:
        assert hit is None
    else:
        assert hit == pytest.approx(expected)


def test_intersection_snaps_to_endpoint():
    hit = intersect_segment_with_line((0, 0, 0), (4.01, 0, 0), (4.0, 0.0, 0.0), (0.0, 1.0, 0.0), 1.0 / 32.0)
    assert hit == (4.01, 0, 0)


def test_point_in_polygon_even_odd():
    vertices = [(0, 0, 0), (4, 0, 0), (4, 4, 0), (2, 1, 0), (0, 4, 0)]
    assert point_in_polygon((1, 0.5), vertices)
    assert not point_in_polygon((2, 3), vertices)
