import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

ENGINE_CHOICES = ("auto", "moshier")


def _int_env(env: Mapping[str, str], name: str, default: int, minimum: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    ephe_path: str = "."
    ephemeris_engine: str = "auto"
    buffer_months: int = 3
    max_gap_days: int = 1
    sample_hour_utc: int = 12
    max_workers: int = 1
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        if env is None:
            load_dotenv()
            env = os.environ

        engine = env.get("EPHEMERIS_ENGINE", "auto").strip().lower() or "auto"
        if engine not in ENGINE_CHOICES:
            raise ValueError(f"EPHEMERIS_ENGINE must be one of {ENGINE_CHOICES}, got {engine!r}")

        sample_hour = _int_env(env, "TRANSIT_SAMPLE_HOUR_UTC", 12, 0)
        if sample_hour > 23:
            raise ValueError(f"TRANSIT_SAMPLE_HOUR_UTC must be <= 23, got {sample_hour}")

        return cls(
            ephe_path=env.get("EPHE_PATH", "."),
            ephemeris_engine=engine,
            buffer_months=_int_env(env, "TRANSIT_BUFFER_MONTHS", 3, 0),
            max_gap_days=_int_env(env, "TRANSIT_MAX_GAP_DAYS", 1, 0),
            sample_hour_utc=sample_hour,
            max_workers=_int_env(env, "TRANSIT_MAX_WORKERS", 1, 1),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )
