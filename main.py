import os
import time
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, model_validator

from astro.ephemeris import SwissEphemerisOracle, resolve_ephemeris
from astro.errors import InvalidWindowError, MissingNatalInstantError, NoTransitDataError
from astro.models import DEFAULT_BODIES, Body, Profile
from astro.transits import TransitEngine
from core.config import Settings
from core.log import configure_logging, log_event

# -----------------------------
# Settings (reads .env)
# -----------------------------
SETTINGS = Settings.from_env()

# -----------------------------
# Logging (structured)
# -----------------------------
logger = configure_logging("astro-api", SETTINGS.log_level)

# -----------------------------
# Ephemeris: engine chosen once at startup
# -----------------------------
EPHEMERIS = resolve_ephemeris(
    SETTINGS.ephe_path, prefer_moshier=SETTINGS.ephemeris_engine == "moshier"
)
ORACLE = SwissEphemerisOracle(EPHEMERIS)

# -----------------------------
# App
# -----------------------------
app = FastAPI(
    title="Transit Engine API",
    description="Monthly transit episodes against a natal chart using Swiss Ephemeris",
    version="1.0.0",
)

origins = os.getenv("ALLOWED_ORIGINS", "*")
allowed = [o.strip() for o in origins.split(",")] if origins != "*" else ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -----------------------------
# Middleware: request_id + logging
# -----------------------------
@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
    request.state.request_id = request_id

    start = time.time()
    try:
        response = await call_next(request)
        latency_ms = int((time.time() - start) * 1000)
        log_event(
            logger,
            "info",
            "request",
            request_id=request_id,
            path=request.url.path,
            status=response.status_code,
            latency_ms=latency_ms,
        )
        response.headers["X-Request-Id"] = request_id
        return response

    except Exception:
        latency_ms = int((time.time() - start) * 1000)
        log_event(
            logger,
            "error",
            "unhandled_exception",
            exc_info=True,
            request_id=request_id,
            path=request.url.path,
            status=500,
            latency_ms=latency_ms,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Erro interno no servidor.", "request_id": request_id},
        )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    request_id = getattr(request.state, "request_id", None)
    log_event(
        logger,
        "warning",
        "http_exception",
        request_id=request_id,
        path=request.url.path,
        status=exc.status_code,
    )
    payload = {"detail": exc.detail}
    if request_id:
        payload["request_id"] = request_id
    return JSONResponse(status_code=exc.status_code, content=payload)


# -----------------------------
# Dependencies
# -----------------------------
def get_engine() -> TransitEngine:
    return TransitEngine(ORACLE, SETTINGS)


# -----------------------------
# Models
# -----------------------------
class MonthlyTransitsRequest(BaseModel):
    natal_year: int = Field(..., ge=1800, le=2100)
    natal_month: int = Field(..., ge=1, le=12)
    natal_day: int = Field(..., ge=1, le=31)
    natal_hour: int = Field(..., ge=0, le=23)
    natal_minute: int = Field(0, ge=0, le=59)
    natal_second: int = Field(0, ge=0, le=59)
    tz_offset_minutes: Optional[int] = Field(
        None, ge=-840, le=840, description="Minutos de offset para o fuso. Se vazio, usa timezone."
    )
    timezone: Optional[str] = Field(
        None,
        description="Timezone IANA (ex.: Europe/Paris). Se preenchido, substitui tz_offset_minutes",
    )
    strict_timezone: bool = Field(
        default=False,
        description="Quando true, rejeita horários ambíguos em transições de DST.",
    )
    month: int = Field(..., description="Mês alvo (1..12)")
    year: int = Field(..., description="Ano alvo")
    bodies: Optional[List[Body]] = Field(
        default=None, description="Corpos considerados; padrão: todos os do catálogo."
    )

    @model_validator(mode="after")
    def validate_tz(self):
        if self.tz_offset_minutes is None and not self.timezone:
            raise HTTPException(
                status_code=400,
                detail="Informe timezone IANA ou tz_offset_minutes para calcular trânsitos.",
            )
        return self


class TimezoneResolveRequest(BaseModel):
    datetime_local: datetime = Field(..., description="Data/hora local, ex.: 2025-12-19T14:30:00")
    timezone: str = Field(..., description="Timezone IANA, ex.: America/Sao_Paulo")
    strict_birth: bool = Field(
        default=False,
        description="Quando true, acusa horários ambíguos em transições de DST para dados de nascimento.",
    )


class EpisodeResponse(BaseModel):
    transit_body: str
    aspect: str
    natal_body: str
    start_date: str
    end_date: str
    peak_date: str
    peak_deviation: float
    retrograde_at_peak: bool
    duration_days: int
    hit_count: int
    influence: Optional[str] = None
    score: Optional[int] = None


class MonthlyTransitsResponse(BaseModel):
    month: int
    year: int
    scan_start: str
    scan_end: str
    natal: Dict[str, Dict[str, Any]]
    episodes: List[EpisodeResponse]
    diagnostics: Dict[str, Any]


# -----------------------------
# Helpers
# -----------------------------
def _tz_offset_for(
    date_time: datetime, timezone: Optional[str], fallback_minutes: Optional[int], strict: bool = False
) -> int:
    """Resolve timezone: prefer IANA name; fallback to explicit offset or UTC.

    When ``strict`` is True, ambiguous local times at a DST transition are
    rejected so the birth instant is never silently shifted by an hour.
    """

    if timezone:
        try:
            tzinfo = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise HTTPException(status_code=400, detail=f"Timezone inválido: {timezone}")

        offset_fold0 = date_time.replace(tzinfo=tzinfo, fold=0).utcoffset()
        offset_fold1 = date_time.replace(tzinfo=tzinfo, fold=1).utcoffset()

        offset = offset_fold0 if offset_fold0 is not None else offset_fold1
        if offset is None:
            raise HTTPException(status_code=400, detail=f"Timezone sem offset disponível: {timezone}")

        if strict and offset_fold0 is not None and offset_fold1 is not None and offset_fold0 != offset_fold1:
            opts = sorted({int(offset_fold0.total_seconds() // 60), int(offset_fold1.total_seconds() // 60)})
            raise HTTPException(
                status_code=400,
                detail={
                    "detail": "Horário ambíguo na transição de horário de verão.",
                    "offset_options_minutes": opts,
                    "hint": "Envie tz_offset_minutes explicitamente ou ajuste o horário local.",
                },
            )

        return int(offset.total_seconds() // 60)

    if fallback_minutes is not None:
        return fallback_minutes

    return 0


def _profile_from(body: MonthlyTransitsRequest) -> Profile:
    try:
        birth_local = datetime(
            year=body.natal_year,
            month=body.natal_month,
            day=body.natal_day,
            hour=body.natal_hour,
            minute=body.natal_minute,
            second=body.natal_second,
        )
    except ValueError:
        raise HTTPException(status_code=400, detail="Data de nascimento inválida.")

    tz_offset_minutes = _tz_offset_for(
        birth_local, body.timezone, body.tz_offset_minutes, strict=body.strict_timezone
    )
    bodies = tuple(dict.fromkeys(body.bodies)) if body.bodies else DEFAULT_BODIES
    return Profile(birth_local=birth_local, tz_offset_minutes=tz_offset_minutes, bodies=bodies)


# -----------------------------
# Routes
# -----------------------------
@app.get("/")
async def root():
    return {
        "ok": True,
        "service": "transit-engine",
        "version": app.version,
        "env": {"ephemeris": EPHEMERIS.engine, "log_level": SETTINGS.log_level},
    }


@app.get("/health")
async def health_check():
    return {"ok": True}


@app.get("/v1/system/ephemeris")
async def ephemeris_status():
    return EPHEMERIS.as_dict()


@app.post("/v1/time/resolve-tz")
async def resolve_timezone(body: TimezoneResolveRequest):
    resolved_offset = _tz_offset_for(
        body.datetime_local, body.timezone, fallback_minutes=None, strict=body.strict_birth
    )
    return {"tz_offset_minutes": resolved_offset}


@app.post("/v1/transits/monthly", response_model=MonthlyTransitsResponse)
def monthly_transits(
    body: MonthlyTransitsRequest,
    request: Request,
    engine: TransitEngine = Depends(get_engine),
):
    profile = _profile_from(body)
    request_id = getattr(request.state, "request_id", None)

    try:
        report = engine.compute(profile, body.month, body.year)
    except InvalidWindowError as e:
        raise HTTPException(status_code=400, detail=f"Mês/ano inválido: {e}")
    except MissingNatalInstantError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NoTransitDataError as e:
        log_event(
            logger,
            "error",
            "transits_unavailable",
            exc_info=True,
            request_id=request_id,
            path=request.url.path,
        )
        raise HTTPException(status_code=503, detail=f"Efemérides indisponíveis: {e}")

    return report.as_dict()
