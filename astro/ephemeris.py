from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol, Tuple

import swisseph as swe

from astro.errors import OracleSampleFailure
from astro.models import Body, LongitudeSample
from core.log import log_event

logger = logging.getLogger("astro-api.ephemeris")

BODY_CODES = {
    Body.SUN: swe.SUN,
    Body.MOON: swe.MOON,
    Body.MERCURY: swe.MERCURY,
    Body.VENUS: swe.VENUS,
    Body.MARS: swe.MARS,
    Body.JUPITER: swe.JUPITER,
    Body.SATURN: swe.SATURN,
    Body.URANUS: swe.URANUS,
    Body.NEPTUNE: swe.NEPTUNE,
    Body.PLUTO: swe.PLUTO,
    Body.TRUE_NODE: swe.TRUE_NODE,
    Body.CHIRON: swe.CHIRON,
}

EPHE_SUFFIXES = (".se1", ".se2", ".se3", ".se4", ".se5")

ENGINE_SWIEPH = "SWIEPH"
ENGINE_MOSEPH = "MOSEPH"

# Moshier covers the planets and lunar nodes only; Chiron needs seas_18.se1
MOSEPH_UNSUPPORTED = frozenset({Body.CHIRON})


class PositionOracle(Protocol):
    """Anything that can place a body on the ecliptic at a UTC instant.

    An oracle may also expose ``supported_bodies``; the engine then drops
    other bodies before scanning instead of failing on them every day.
    """

    def longitude_at(self, instant: datetime, body: Body) -> LongitudeSample:
        """Return the body's longitude; raise OracleSampleFailure on failure."""
        ...


@dataclass(frozen=True)
class EphemerisConfig:
    engine: str
    flags: int
    path: Optional[str]
    version: Optional[str]
    note: Optional[str] = None

    @property
    def is_using_files(self) -> bool:
        return self.engine == ENGINE_SWIEPH

    @property
    def supported_bodies(self) -> Tuple[Body, ...]:
        if self.is_using_files:
            return tuple(BODY_CODES)
        return tuple(b for b in BODY_CODES if b not in MOSEPH_UNSUPPORTED)

    def as_dict(self) -> dict:
        return {
            "engine": self.engine,
            "path": self.path,
            "version": self.version,
            "note": self.note,
            "using_files": self.is_using_files,
            "bodies": [b.value for b in self.supported_bodies],
        }


def has_ephemeris_files(path: Optional[str]) -> bool:
    if not path:
        return False
    root = Path(path).expanduser()
    if not root.is_dir():
        return False
    return any(
        entry.is_file() and entry.suffix.lower() in EPHE_SUFFIXES
        for entry in root.iterdir()
    )


def resolve_ephemeris(path: Optional[str] = ".", prefer_moshier: bool = False) -> EphemerisConfig:
    """Pick the ephemeris engine once, at startup.

    Swiss data files under ``path`` select SWIEPH; otherwise the built-in
    Moshier model is used, which needs no files but cannot place Chiron.
    """
    version = getattr(swe, "version", None)

    if not prefer_moshier and has_ephemeris_files(path):
        resolved = str(Path(path).expanduser())
        swe.set_ephe_path(resolved)
        config = EphemerisConfig(ENGINE_SWIEPH, swe.FLG_SWIEPH, resolved, version)
    else:
        if prefer_moshier:
            note = "Moshier engine requested explicitly."
        elif path and Path(path).expanduser().is_dir():
            note = "No .se1 files found, using MOSEPH."
        else:
            note = "Ephemeris folder not found, using MOSEPH."
        config = EphemerisConfig(ENGINE_MOSEPH, swe.FLG_MOSEPH, path, version, note)

    log_event(logger, "info", "ephemeris_resolved", engine=config.engine)
    return config


def to_julian_day(instant: datetime) -> float:
    if instant.tzinfo is not None:
        instant = instant.astimezone(timezone.utc)
    hour = instant.hour + instant.minute / 60.0 + instant.second / 3600.0
    return swe.julday(instant.year, instant.month, instant.day, hour)


class SwissEphemerisOracle:
    """Position oracle backed by pyswisseph. Naive instants are read as UTC."""

    def __init__(self, config: Optional[EphemerisConfig] = None):
        self.config = config or resolve_ephemeris()

    @property
    def supported_bodies(self) -> Tuple[Body, ...]:
        return self.config.supported_bodies

    def longitude_at(self, instant: datetime, body: Body) -> LongitudeSample:
        code = BODY_CODES.get(body)
        if code is None:
            raise OracleSampleFailure(f"Unsupported body: {body}", body=body, instant=instant)

        jd_ut = to_julian_day(instant)
        try:
            result, _ = swe.calc_ut(jd_ut, code, self.config.flags | swe.FLG_SPEED)
        except swe.Error as e:
            raise OracleSampleFailure(str(e), body=body, instant=instant) from e

        speed = result[3] if len(result) > 3 else None
        return LongitudeSample(body=body, longitude=result[0], speed=speed)
