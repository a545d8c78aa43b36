from datetime import date, datetime, timezone

import pytest

from astro.errors import OracleSampleFailure
from astro.models import AspectKind, Body, Diagnostics, LongitudeSample
from astro.sampler import noon_utc, sample_day, sample_positions

DAY = date(2024, 3, 10)


class DictOracle:
    def __init__(self, longitudes):
        self.longitudes = longitudes
        self.instants = []

    def longitude_at(self, instant, body):
        self.instants.append(instant)
        if body not in self.longitudes:
            raise OracleSampleFailure("missing", body=body, instant=instant)
        return LongitudeSample(body, self.longitudes[body], speed=-0.2)


def test_noon_utc():
    assert noon_utc(DAY) == datetime(2024, 3, 10, 12, tzinfo=timezone.utc)
    assert noon_utc(DAY, 0).hour == 0


def test_conjunction_across_zero_aries():
    natal = {Body.MOON: LongitudeSample(Body.MOON, 2.0)}
    oracle = DictOracle({Body.MARS: 358.0})
    hits = sample_day(DAY, natal, oracle, [Body.MARS], Diagnostics())

    assert len(hits) == 1
    hit = hits[0]
    assert (hit.transit_body, hit.aspect, hit.natal_body) == (Body.MARS, AspectKind.CONJUNCTION, Body.MOON)
    assert hit.deviation == pytest.approx(4.0)
    assert hit.day == DAY
    assert hit.speed == -0.2
    assert (hit.influence, hit.score) == ("intense", 1)


def test_samples_at_configured_hour():
    oracle = DictOracle({Body.SUN: 10.0})
    sample_day(DAY, {}, oracle, [Body.SUN], Diagnostics(), sample_hour=6)
    assert oracle.instants == [datetime(2024, 3, 10, 6, tzinfo=timezone.utc)]


def test_every_pair_is_compared():
    natal = {
        Body.SUN: LongitudeSample(Body.SUN, 90.0),
        Body.MOON: LongitudeSample(Body.MOON, 240.0),
    }
    oracle = DictOracle({Body.SATURN: 0.5, Body.JUPITER: 91.0})
    hits = sample_day(DAY, natal, oracle, [Body.SATURN, Body.JUPITER], Diagnostics())

    found = {(h.transit_body, h.aspect, h.natal_body) for h in hits}
    assert found == {
        (Body.SATURN, AspectKind.SQUARE, Body.SUN),
        (Body.SATURN, AspectKind.TRINE, Body.MOON),
        (Body.JUPITER, AspectKind.CONJUNCTION, Body.SUN),
    }


def test_failed_body_is_skipped_and_recorded():
    natal = {Body.SUN: LongitudeSample(Body.SUN, 90.0)}
    oracle = DictOracle({Body.SATURN: 0.0})
    diagnostics = Diagnostics()

    hits = sample_day(DAY, natal, oracle, [Body.CHIRON, Body.SATURN], diagnostics)

    assert [h.transit_body for h in hits] == [Body.SATURN]
    assert diagnostics.samples_ok == 1
    assert len(diagnostics.failures) == 1
    failure = diagnostics.failures[0]
    assert failure.body is Body.CHIRON
    assert failure.natal is False


def test_sample_positions_marks_natal_failures():
    oracle = DictOracle({Body.SUN: 90.0})
    diagnostics = Diagnostics()
    positions = sample_positions(
        oracle, noon_utc(DAY), [Body.SUN, Body.CHIRON], diagnostics, natal=True
    )
    assert list(positions) == [Body.SUN]
    assert diagnostics.missing_natal == [Body.CHIRON]


def test_unexpected_oracle_errors_propagate():
    class BrokenOracle:
        def longitude_at(self, instant, body):
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        sample_day(DAY, {}, BrokenOracle(), [Body.SUN], Diagnostics())
