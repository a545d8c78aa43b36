from datetime import date, datetime, timezone

import pytest

from astro.errors import OracleSampleFailure
from astro.models import Body, LongitudeSample, Profile

BIRTH_LOCAL = datetime(1990, 6, 15, 14, 30, 0)


class ScriptedOracle:
    """Deterministic oracle: fixed natal longitudes, scripted daily transits.

    ``transit(day, body)`` returns a longitude, a ``(longitude, speed)`` pair,
    or None when the body should fail on that day.
    """

    def __init__(self, birth_utc, natal, transit):
        self.birth_utc = birth_utc
        self.natal = natal
        self.transit = transit
        self.calls = []

    def longitude_at(self, instant, body):
        self.calls.append((instant, body))
        if instant == self.birth_utc:
            value = self.natal.get(body)
        else:
            value = self.transit(instant.date(), body)
        if value is None:
            raise OracleSampleFailure(f"no position for {body.value}", body=body, instant=instant)
        if isinstance(value, tuple):
            lon, speed = value
        else:
            lon, speed = value, 0.1
        return LongitudeSample(body=body, longitude=lon, speed=speed)

    def transit_days(self):
        return sorted({instant.date() for instant, _ in self.calls if instant != self.birth_utc})


def _saturn_square_sun(day: date, body: Body):
    """Saturn squares a natal Sun at 90 deg on 2024-03-09..12, peaking on the 11th."""
    if body is Body.SUN:
        return 135.0
    if body is Body.SATURN:
        script = {
            date(2024, 3, 9): 3.0,
            date(2024, 3, 10): 1.0,
            date(2024, 3, 11): 0.2,
            date(2024, 3, 12): 357.5,
        }
        return script.get(day, 45.0)
    return None


@pytest.fixture
def profile():
    return Profile(birth_local=BIRTH_LOCAL, tz_offset_minutes=120, bodies=(Body.SUN, Body.SATURN))


@pytest.fixture
def birth_utc():
    return datetime(1990, 6, 15, 12, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_oracle(birth_utc):
    def _make(transit, natal=None):
        if natal is None:
            natal = {Body.SUN: 90.0}
        return ScriptedOracle(birth_utc, natal, transit)

    return _make


@pytest.fixture
def saturn_square_sun():
    return _saturn_square_sun
