from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import List, Optional, Sequence, Tuple

from astro.aspects import ASPECT_ORDER, ASPECTS, validate_catalog
from astro.ephemeris import PositionOracle, SwissEphemerisOracle, resolve_ephemeris
from astro.episodes import group_hits
from astro.errors import NoTransitDataError
from astro.models import (
    BODY_ORDER,
    AspectDefinition,
    Body,
    DailyHit,
    Diagnostics,
    Episode,
    Profile,
    SampleFailure,
    TransitReport,
)
from astro.sampler import sample_day, sample_positions
from astro.window import iter_days, month_overlap, scan_range, validate_month
from core.config import Settings
from core.log import log_event

logger = logging.getLogger("astro-api.transits")


def _peak_order(episode: Episode) -> tuple:
    return (
        episode.peak_date,
        episode.start_date,
        BODY_ORDER[episode.transit_body],
        ASPECT_ORDER.get(episode.aspect, len(ASPECT_ORDER)),
        BODY_ORDER[episode.natal_body],
    )


class TransitEngine:
    """Monthly transit detection over an injected position oracle.

    The engine keeps no state between calls: every call re-samples the natal
    chart and the whole scan window.
    """

    def __init__(
        self,
        oracle: PositionOracle,
        settings: Optional[Settings] = None,
        aspects: Sequence[AspectDefinition] = ASPECTS,
    ):
        validate_catalog(aspects)
        self.oracle = oracle
        self.settings = settings or Settings()
        self.aspects = tuple(aspects)

    def compute(self, profile: Profile, month: int, year: int) -> TransitReport:
        validate_month(month, year)
        scan_start, scan_end = scan_range(month, year, self.settings.buffer_months)

        diagnostics = Diagnostics()
        birth_utc = profile.birth_utc()
        bodies = self._usable_bodies(profile.bodies, birth_utc, diagnostics)
        natal = sample_positions(self.oracle, birth_utc, bodies, diagnostics, natal=True)
        if not natal:
            raise NoTransitDataError("No natal longitude could be computed for this profile.")

        natal_ok = diagnostics.samples_ok
        days = list(iter_days(scan_start, scan_end))
        hits = self._scan(days, natal, bodies, diagnostics)
        if diagnostics.samples_ok == natal_ok:
            raise NoTransitDataError(
                f"No transiting position could be computed between {scan_start} and {scan_end}."
            )

        episodes = [
            e for e in group_hits(hits, max_gap_days=self.settings.max_gap_days)
            if month_overlap(e, month, year)
        ]
        episodes.sort(key=_peak_order)

        log_event(
            logger,
            "info",
            "transits_computed",
            month=month,
            year=year,
            episodes=len(episodes),
            hits=len(hits),
            scan_days=len(days),
            failures=len(diagnostics.failures),
        )
        return TransitReport(
            month=month,
            year=year,
            scan_start=scan_start,
            scan_end=scan_end,
            episodes=episodes,
            natal=natal,
            diagnostics=diagnostics,
        )

    def compute_transits(self, profile: Profile, month: int, year: int) -> List[Episode]:
        return self.compute(profile, month, year).episodes

    def _usable_bodies(
        self, bodies: Sequence[Body], birth_utc, diagnostics: Diagnostics
    ) -> Tuple[Body, ...]:
        """Drop bodies the oracle cannot place, recording each one once."""
        supported = getattr(self.oracle, "supported_bodies", None)
        if supported is None:
            return tuple(bodies)

        usable = []
        for body in bodies:
            if body in supported:
                usable.append(body)
                continue
            message = f"{body.value} is not available from this ephemeris engine."
            diagnostics.add_failure(SampleFailure(birth_utc, body, message, natal=True))
            log_event(logger, "warning", "body_unsupported", body=body.value)
        return tuple(usable)

    def _sample(self, day: date, natal, bodies: Sequence[Body]) -> Tuple[List[DailyHit], Diagnostics]:
        local = Diagnostics()
        hits = sample_day(
            day,
            natal,
            self.oracle,
            bodies,
            local,
            sample_hour=self.settings.sample_hour_utc,
            aspects=self.aspects,
        )
        return hits, local

    def _scan(
        self, days: List[date], natal, bodies: Sequence[Body], diagnostics: Diagnostics
    ) -> List[DailyHit]:
        hits: List[DailyHit] = []
        workers = self.settings.max_workers
        if workers > 1 and len(days) > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = [executor.submit(self._sample, day, natal, bodies) for day in days]
                for future in futures:
                    day_hits, local = future.result()
                    hits.extend(day_hits)
                    diagnostics.merge(local)
        else:
            for day in days:
                day_hits, local = self._sample(day, natal, bodies)
                hits.extend(day_hits)
                diagnostics.merge(local)
        return hits


def compute_transits(
    profile: Profile,
    month: int,
    year: int,
    oracle: Optional[PositionOracle] = None,
    settings: Optional[Settings] = None,
) -> List[Episode]:
    settings = settings or Settings()
    if oracle is None:
        oracle = SwissEphemerisOracle(
            resolve_ephemeris(settings.ephe_path, prefer_moshier=settings.ephemeris_engine == "moshier")
        )
    return TransitEngine(oracle, settings).compute_transits(profile, month, year)
