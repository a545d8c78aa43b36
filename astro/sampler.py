from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from typing import Dict, Iterable, List, Mapping, Sequence

from astro.aspects import ASPECTS, find_aspects
from astro.ephemeris import PositionOracle
from astro.errors import OracleSampleFailure
from astro.models import AspectDefinition, Body, DailyHit, Diagnostics, LongitudeSample, SampleFailure
from astro.utils import angle_diff
from core.log import log_event

logger = logging.getLogger("astro-api.sampler")


def noon_utc(day: date, hour: int = 12) -> datetime:
    return datetime.combine(day, time(hour=hour), tzinfo=timezone.utc)


def sample_positions(
    oracle: PositionOracle,
    instant: datetime,
    bodies: Iterable[Body],
    diagnostics: Diagnostics,
    natal: bool = False,
) -> Dict[Body, LongitudeSample]:
    """Ask the oracle for every body; bodies it cannot place are left out."""
    positions: Dict[Body, LongitudeSample] = {}
    for body in bodies:
        try:
            sample = oracle.longitude_at(instant, body)
        except OracleSampleFailure as e:
            diagnostics.add_failure(SampleFailure(instant, body, str(e), natal=natal))
            log_event(
                logger,
                "warning",
                "oracle_sample_failed",
                body=body.value,
                instant=instant.isoformat(),
                natal=natal,
            )
            continue
        diagnostics.samples_ok += 1
        positions[body] = sample
    return positions


def sample_day(
    day: date,
    natal: Mapping[Body, LongitudeSample],
    oracle: PositionOracle,
    bodies: Iterable[Body],
    diagnostics: Diagnostics,
    sample_hour: int = 12,
    aspects: Sequence[AspectDefinition] = ASPECTS,
) -> List[DailyHit]:
    """Every (transit, aspect, natal) triple within orb on ``day``."""
    transits = sample_positions(oracle, noon_utc(day, sample_hour), bodies, diagnostics)

    hits: List[DailyHit] = []
    for t_body, t_sample in transits.items():
        for n_body, n_sample in natal.items():
            separation = angle_diff(t_sample.longitude, n_sample.longitude)
            for aspect, deviation in find_aspects(separation, aspects):
                hits.append(
                    DailyHit(
                        day=day,
                        transit_body=t_body,
                        aspect=aspect.kind,
                        natal_body=n_body,
                        deviation=deviation,
                        speed=t_sample.speed,
                        influence=aspect.influence,
                        score=aspect.score,
                    )
                )
    return hits
