import logging
import os
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from fastapi import FastAPI, Depends, Query, Path, Request
from fastapi.responses import JSONResponse
from .client import ClinicaOnClient
from .errors import ClinicaOnError, AuthenticationError, UnauthenticatedError, UpstreamError, NetworkError
from .models import (
    AgendaQuery, AgendaResponse, AgendaDateResponse, AuthStatus, ErrorResponse,
    HealthResponse, LoginRequest, LoginResponse, UserProfile,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "ClinicaOn API Wrapper"
# ClinicaOn days start at local midnight in Brasilia (UTC-3)
_DAY_START_UTC = "T03:00:00.000Z"


def token_ttl_from_env() -> float | None:
    """Seconds from CLINICAON_TOKEN_TTL; unset or unreadable means optimistic validity."""
    raw = os.getenv("CLINICAON_TOKEN_TTL")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring CLINICAON_TOKEN_TTL=%r: not a number of seconds", raw)
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    client = ClinicaOnClient(token_ttl=token_ttl_from_env())
    app.state.clinicaon = client

    email = os.getenv("CLINICAON_EMAIL")
    password = os.getenv("CLINICAON_PASSWORD")
    if email and password:
        try:
            await client.login(email, password)
            logger.info("Auto-login successful")
        except ClinicaOnError as exc:
            logger.warning("Auto-login failed: %s", exc.message)
    yield


app = FastAPI(
    title=SERVICE_NAME,
    description="HTTP wrapper for ClinicaOn system API",
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Authentication", "description": "Authentication endpoints"},
        {"name": "Agenda", "description": "ClinicaOn agenda endpoints"},
    ],
)

_ERROR_RESPONSES = {401: {"model": ErrorResponse}, 502: {"model": ErrorResponse}, 503: {"model": ErrorResponse}}


def get_client(request: Request) -> ClinicaOnClient:
    return request.app.state.clinicaon


def require_auth(client: ClinicaOnClient = Depends(get_client)) -> ClinicaOnClient:
    """Reject the request before any upstream call unless a valid token is held."""
    if not client.is_token_valid():
        raise UnauthenticatedError("Valid authentication token required")
    return client


# Error mapping -------------------------------------------------------------

def _error(status_code: int, error: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message, **extra})


@app.exception_handler(AuthenticationError)
async def authentication_failed(request: Request, exc: AuthenticationError):
    return _error(401, "Authentication failed", exc.message)


@app.exception_handler(UnauthenticatedError)
async def unauthenticated(request: Request, exc: UnauthenticatedError):
    return _error(401, "Unauthorized", exc.message)


@app.exception_handler(UpstreamError)
async def upstream_failed(request: Request, exc: UpstreamError):
    logger.error("ClinicaOn error on %s: %s (HTTP %s)", request.url.path, exc.message, exc.status_code)
    return _error(502, "Upstream error", exc.message, upstreamStatus=exc.status_code)


@app.exception_handler(NetworkError)
async def upstream_unreachable(request: Request, exc: NetworkError):
    return _error(503, "Upstream unavailable", exc.message)


@app.exception_handler(Exception)
async def internal_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return _error(500, "Internal Server Error", str(exc))


# Health --------------------------------------------------------------------

@app.get("/", response_model=HealthResponse, description="Health check endpoint")
async def health():
    return HealthResponse(
        status="healthy",
        service=SERVICE_NAME,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


# Authentication ------------------------------------------------------------

@app.post("/api/auth/login", tags=["Authentication"], response_model=LoginResponse, responses=_ERROR_RESPONSES)
async def login(req: LoginRequest, client: ClinicaOnClient = Depends(get_client)):
    """Authenticate with ClinicaOn system"""
    result = await client.login(req.email, req.password)
    return LoginResponse(
        success=True,
        message="Login successful",
        user=UserProfile(
            id=result.id,
            userName=result.user_name,
            nomeUsuario=result.display_name,
            nomeUnidade=result.unit_name,
            unidadeId=result.unit_id,
            tipoAssinatura=result.subscription_type,
            nutricional=result.nutritional,
        ),
    )


@app.get("/api/auth/status", tags=["Authentication"], response_model=AuthStatus)
async def auth_status(client: ClinicaOnClient = Depends(get_client)):
    """Check authentication status"""
    valid = client.is_token_valid()
    return AuthStatus(authenticated=valid, token=client.get_token() if valid else None)


# Agenda --------------------------------------------------------------------

@app.get(
    "/api/agenda",
    tags=["Agenda"],
    response_model=AgendaResponse,
    response_model_exclude_unset=True,
    responses=_ERROR_RESPONSES,
)
async def get_agenda(
    start_date: date = Query(..., alias="startDate", description="Start date (e.g., 2025-09-03)"),
    end_date: date = Query(..., alias="endDate", description="End date (e.g., 2025-09-04)"),
    sem_falta: bool = Query(False, alias="semFalta", description="Whether to exclude no-shows"),
    status: Optional[str] = Query(None, description='Filter by status (e.g., "Confirmado", "Agendado", "Falta")'),
    client: ClinicaOnClient = Depends(require_auth),
):
    """Get appointments for a specific date range"""
    query = AgendaQuery(
        start_date=f"{start_date.isoformat()}{_DAY_START_UTC}",
        end_date=f"{end_date.isoformat()}{_DAY_START_UTC}",
        exclude_no_shows=sem_falta,
        status_filter=status,
    )
    agenda = await client.get_agenda(query)
    return AgendaResponse(success=True, data=agenda, count=len(agenda))


@app.get(
    "/api/agenda/date/{date}",
    tags=["Agenda"],
    response_model=AgendaDateResponse,
    response_model_exclude_unset=True,
    responses=_ERROR_RESPONSES,
)
async def get_agenda_for_date(
    date: date = Path(..., description="Date in YYYY-MM-DD format"),
    sem_falta: bool = Query(False, alias="semFalta", description="Whether to exclude no-shows"),
    status: Optional[str] = Query(None, description='Filter by status (e.g., "Confirmado", "Agendado", "Falta")'),
    client: ClinicaOnClient = Depends(require_auth),
):
    """Get appointments for a specific date"""
    query = AgendaQuery(
        start_date=f"{date.isoformat()}{_DAY_START_UTC}",
        end_date=f"{(date + timedelta(days=1)).isoformat()}{_DAY_START_UTC}",
        exclude_no_shows=sem_falta,
        status_filter=status,
    )
    agenda = await client.get_agenda(query)
    return AgendaDateResponse(success=True, date=date.isoformat(), data=agenda, count=len(agenda))


def run():
    import uvicorn

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "3000")))
