"""Async ClinicaOn API client holding a single authenticated session.
Assumes e-mail/password login returning a bearer token with no advertised expiry.
"""
from __future__ import annotations
import logging
import os
import time
from dataclasses import dataclass
import httpx
from dotenv import load_dotenv
from pydantic import ValidationError
from .errors import AuthenticationError, NetworkError, UnauthenticatedError, UpstreamError
from .models import AgendaQuery, Appointment, LoginResult

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.clinicaon.com.br"
_BASE_URL = os.getenv("CLINICAON_BASE_URL", DEFAULT_BASE_URL)

_LOGIN_PATH = "/api/auth/login"
_AGENDA_PATH = "/api/agenda"


@dataclass
class Session:
    base_url: str
    token: str | None = None
    issued_at: float | None = None  # epoch seconds

    def establish(self, token: str) -> None:
        self.token = token
        self.issued_at = time.time()

    def invalidate(self, token: str) -> bool:
        """Drop ``token`` if it is still the current one. Returns True if cleared."""
        if self.token != token:
            return False
        self.token = None
        self.issued_at = None
        return True


def _upstream_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or resp.reason_phrase
    if isinstance(body, dict):
        for key in ("message", "mensagem", "error"):
            if isinstance(body.get(key), str):
                return body[key]
    return resp.reason_phrase


class ClinicaOnClient:
    """Owns one session to ClinicaOn: login, token introspection and agenda lookup.

    Token validity is optimistic unless ``token_ttl`` is given: a stored token is
    trusted until ClinicaOn rejects it with 401/403.
    """

    def __init__(self, base_url: str | None = None, token_ttl: float | None = None):
        self.session = Session(base_url=(base_url or _BASE_URL).rstrip("/"))
        self.token_ttl = token_ttl

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = f"{self.session.base_url}{path}"
        try:
            async with httpx.AsyncClient(http2=True) as client:
                return await client.request(method, url, **kwargs)
        except httpx.RequestError as exc:
            logger.error("ClinicaOn %s %s failed: %s", method, path, exc)
            raise NetworkError(f"Could not reach ClinicaOn: {exc}") from exc

    async def login(self, email: str, password: str) -> LoginResult:
        """Authenticate and replace the session token. The session is untouched on failure."""
        resp = await self._request("POST", _LOGIN_PATH, json={"email": email, "senha": password})
        if not resp.is_success:
            logger.warning("ClinicaOn login rejected (HTTP %s)", resp.status_code)
            raise AuthenticationError(_upstream_message(resp), status_code=resp.status_code)

        try:
            payload = resp.json()
        except ValueError as exc:
            raise UpstreamError("Login response is not JSON", status_code=resp.status_code) from exc
        if not isinstance(payload, dict) or not payload.get("sucesso"):
            logger.warning("ClinicaOn login rejected: invalid credentials")
            raise AuthenticationError("Invalid credentials", status_code=resp.status_code)
        token = payload.get("token")
        if not token:
            raise AuthenticationError("Login response did not include a token", status_code=resp.status_code)

        result = LoginResult.model_validate(payload)
        self.session.establish(token)
        logger.info("ClinicaOn login succeeded for user id %s", result.id)
        return result

    def is_token_valid(self) -> bool:
        if not self.session.token:
            return False
        if self.token_ttl is None:
            return True
        return time.time() - self.session.issued_at < self.token_ttl

    def get_token(self) -> str | None:
        return self.session.token

    async def get_agenda(self, query: AgendaQuery) -> list[Appointment]:
        """Return appointments in ``query``'s range, in the order ClinicaOn sends them."""
        if not self.is_token_valid():
            raise UnauthenticatedError("Valid authentication token required")

        token = self.session.token
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        params = {"startDate": query.start_date, "endDate": query.end_date}
        if query.exclude_no_shows:
            params["semFalta"] = "true"
        if query.status_filter:
            params["status"] = query.status_filter

        logger.debug("Fetching ClinicaOn agenda with params %s", params)
        resp = await self._request("GET", _AGENDA_PATH, headers=headers, params=params)

        if resp.status_code in (401, 403):
            if self.session.invalidate(token):
                logger.warning("ClinicaOn rejected the session token (HTTP %s); login required", resp.status_code)
            raise UnauthenticatedError("ClinicaOn rejected the session token", status_code=resp.status_code)
        if not resp.is_success:
            raise UpstreamError(_upstream_message(resp), status_code=resp.status_code)

        try:
            payload = resp.json()
        except ValueError as exc:
            raise UpstreamError("Agenda response is not JSON", status_code=resp.status_code) from exc
        items = payload.get("data") if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise UpstreamError("Unexpected agenda payload", status_code=resp.status_code)

        try:
            return [Appointment.model_validate(item) for item in items]
        except ValidationError as exc:
            raise UpstreamError(f"Unexpected agenda item: {exc}", status_code=resp.status_code) from exc
