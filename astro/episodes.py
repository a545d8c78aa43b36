"""Fold daily aspect hits into transit episodes.

Hits are partitioned by ``(transit body, aspect, natal body)``, sorted by day
and merged in a single forward pass: a hit within ``max_gap_days`` of the
current episode's last day extends it, anything further opens a new episode.
A slow body that stations retrograde can cross the same aspect two or three
times in one scan window; each crossing is reported as its own episode.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List

from astro.models import DailyHit, Episode, TransitKey

DEFAULT_MAX_GAP_DAYS = 1


def partition_hits(hits: Iterable[DailyHit]) -> Dict[TransitKey, List[DailyHit]]:
    grouped: Dict[TransitKey, List[DailyHit]] = defaultdict(list)
    for hit in hits:
        grouped[hit.key].append(hit)
    return dict(grouped)


def _close(key: TransitKey, run: List[DailyHit]) -> Episode:
    peak = run[0]
    for hit in run[1:]:
        # strict: the earliest of equal minima stays the peak
        if hit.deviation < peak.deviation:
            peak = hit
    return Episode(
        transit_body=key.transit_body,
        aspect=key.aspect,
        natal_body=key.natal_body,
        start_date=run[0].day,
        end_date=run[-1].day,
        peak_date=peak.day,
        peak_deviation=peak.deviation,
        retrograde_at_peak=peak.speed is not None and peak.speed < 0,
        hit_count=len(run),
        influence=peak.influence,
        score=peak.score,
    )


def merge_hits(
    key: TransitKey,
    hits: Iterable[DailyHit],
    max_gap_days: int = DEFAULT_MAX_GAP_DAYS,
) -> List[Episode]:
    """Merge one key's hits into temporally disjoint, ordered episodes."""
    if isinstance(max_gap_days, bool) or not isinstance(max_gap_days, int) or max_gap_days < 0:
        raise ValueError(f"max_gap_days must be a non-negative integer, got {max_gap_days!r}")

    episodes: List[Episode] = []
    run: List[DailyHit] = []
    for hit in sorted(hits, key=lambda h: h.day):
        if run and (hit.day - run[-1].day).days > max_gap_days:
            episodes.append(_close(key, run))
            run = []
        run.append(hit)
    if run:
        episodes.append(_close(key, run))
    return episodes


def group_hits(
    hits: Iterable[DailyHit],
    max_gap_days: int = DEFAULT_MAX_GAP_DAYS,
) -> List[Episode]:
    episodes: List[Episode] = []
    for key, key_hits in partition_hits(hits).items():
        episodes.extend(merge_hits(key, key_hits, max_gap_days=max_gap_days))
    episodes.sort(key=lambda e: (e.start_date, e.transit_body.value, e.aspect.value, e.natal_body.value))
    return episodes
