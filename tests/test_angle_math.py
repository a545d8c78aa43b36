import itertools

import pytest

from astro.utils import angle_diff, deg_to_sign, normalize_angle

ANGLES = [0.0, 0.5, 10.0, 89.9, 90.0, 179.99, 180.0, 270.0, 350.0, 359.999, -10.0, 725.0]


def test_shortest_separation_wraps_around_aries():
    assert angle_diff(10, 350) == pytest.approx(20)
    assert angle_diff(350, 10) == pytest.approx(20)


def test_shortest_separation_is_symmetric_and_bounded():
    for a, b in itertools.product(ANGLES, repeat=2):
        d = angle_diff(a, b)
        assert d == pytest.approx(angle_diff(b, a))
        assert 0.0 <= d <= 180.0


def test_shortest_separation_opposition_and_identity():
    assert angle_diff(0, 180) == 180
    assert angle_diff(123.4, 123.4) == 0


def test_shortest_separation_is_not_rounded():
    assert angle_diff(90.0, 184.01) == pytest.approx(94.01)


@pytest.mark.parametrize(
    "angle,expected",
    [(0, 0), (360, 0), (-30, 330), (725, 5), (-720, 0), (359.5, 359.5)],
)
def test_normalize_angle(angle, expected):
    assert normalize_angle(angle) == pytest.approx(expected)


def test_normalize_angle_tiny_negative_stays_in_range():
    lon = normalize_angle(-1e-18)
    assert 0.0 <= lon < 360.0


def test_deg_to_sign():
    assert deg_to_sign(90.0) == {"sign": "Cancer", "deg_in_sign": 0.0}
    assert deg_to_sign(-15.0)["sign"] == "Pisces"
