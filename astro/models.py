from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Tuple

from astro.errors import MissingNatalInstantError
from astro.utils import deg_to_sign, normalize_angle


class Body(str, Enum):
    SUN = "Sun"
    MOON = "Moon"
    MERCURY = "Mercury"
    VENUS = "Venus"
    MARS = "Mars"
    JUPITER = "Jupiter"
    SATURN = "Saturn"
    URANUS = "Uranus"
    NEPTUNE = "Neptune"
    PLUTO = "Pluto"
    TRUE_NODE = "TrueNode"
    CHIRON = "Chiron"


DEFAULT_BODIES: Tuple[Body, ...] = tuple(Body)

BODY_ORDER = {body: i for i, body in enumerate(Body)}


class AspectKind(str, Enum):
    CONJUNCTION = "conjunction"
    SEXTILE = "sextile"
    SQUARE = "square"
    TRINE = "trine"
    OPPOSITION = "opposition"


@dataclass(frozen=True)
class AspectDefinition:
    kind: AspectKind
    exact_angle: float
    orb: float
    influence: str
    score: int


@dataclass(frozen=True)
class LongitudeSample:
    body: Body
    longitude: float
    speed: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "longitude", normalize_angle(self.longitude))

    @property
    def retrograde(self) -> bool:
        return self.speed is not None and self.speed < 0

    def as_dict(self) -> dict:
        sign_info = deg_to_sign(self.longitude)
        return {
            "body": self.body.value,
            "lon": round(self.longitude, 6),
            "sign": sign_info["sign"],
            "deg_in_sign": sign_info["deg_in_sign"],
            "speed": round(self.speed, 6) if self.speed is not None else None,
            "retrograde": self.retrograde,
        }


class TransitKey(NamedTuple):
    transit_body: Body
    aspect: AspectKind
    natal_body: Body


@dataclass(frozen=True)
class DailyHit:
    day: date
    transit_body: Body
    aspect: AspectKind
    natal_body: Body
    deviation: float
    speed: Optional[float] = None
    influence: Optional[str] = None
    score: Optional[int] = None

    @property
    def key(self) -> TransitKey:
        return TransitKey(self.transit_body, self.aspect, self.natal_body)


@dataclass(frozen=True)
class Episode:
    """A contiguous run of in-orb days for one (transit, aspect, natal) key."""

    transit_body: Body
    aspect: AspectKind
    natal_body: Body
    start_date: date
    end_date: date
    peak_date: date
    peak_deviation: float
    retrograde_at_peak: bool = False
    hit_count: int = 1
    influence: Optional[str] = None
    score: Optional[int] = None

    @property
    def key(self) -> TransitKey:
        return TransitKey(self.transit_body, self.aspect, self.natal_body)

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def as_dict(self) -> dict:
        return {
            "transit_body": self.transit_body.value,
            "aspect": self.aspect.value,
            "natal_body": self.natal_body.value,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "peak_date": self.peak_date.isoformat(),
            "peak_deviation": round(self.peak_deviation, 4),
            "retrograde_at_peak": self.retrograde_at_peak,
            "duration_days": self.duration_days,
            "hit_count": self.hit_count,
            "influence": self.influence,
            "score": self.score,
        }


@dataclass(frozen=True)
class Profile:
    """Birth data. Timezone names are resolved by the caller into an offset."""

    birth_local: Optional[datetime]
    tz_offset_minutes: int = 0
    name: Optional[str] = None
    bodies: Tuple[Body, ...] = DEFAULT_BODIES

    def birth_utc(self) -> datetime:
        if not isinstance(self.birth_local, datetime):
            raise MissingNatalInstantError("Profile has no birth instant.")
        if self.birth_local.tzinfo is not None:
            return self.birth_local.astimezone(timezone.utc)
        utc_dt = self.birth_local - timedelta(minutes=self.tz_offset_minutes)
        return utc_dt.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class SampleFailure:
    instant: datetime
    body: Body
    message: str
    natal: bool = False

    def as_dict(self) -> dict:
        return {
            "instant": self.instant.isoformat(),
            "body": self.body.value,
            "message": self.message,
            "natal": self.natal,
        }


@dataclass
class Diagnostics:
    failures: List[SampleFailure] = field(default_factory=list)
    samples_ok: int = 0

    def add_failure(self, failure: SampleFailure) -> None:
        self.failures.append(failure)

    def merge(self, other: "Diagnostics") -> None:
        self.failures.extend(other.failures)
        self.samples_ok += other.samples_ok

    @property
    def missing_natal(self) -> List[Body]:
        return [f.body for f in self.failures if f.natal]

    def as_dict(self) -> dict:
        return {
            "samples_ok": self.samples_ok,
            "failure_count": len(self.failures),
            "missing_natal": [b.value for b in self.missing_natal],
            # first few are enough to diagnose an ephemeris setup problem
            "failures": [f.as_dict() for f in self.failures[:20]],
        }


@dataclass(frozen=True)
class TransitReport:
    month: int
    year: int
    scan_start: date
    scan_end: date
    episodes: List[Episode]
    natal: Dict[Body, LongitudeSample]
    diagnostics: Diagnostics

    def as_dict(self) -> dict:
        return {
            "month": self.month,
            "year": self.year,
            "scan_start": self.scan_start.isoformat(),
            "scan_end": self.scan_end.isoformat(),
            "natal": {body.value: s.as_dict() for body, s in self.natal.items()},
            "episodes": [e.as_dict() for e in self.episodes],
            "diagnostics": self.diagnostics.as_dict(),
        }
