from typing import Any
from pydantic import BaseModel, Field


# Upstream payloads: values are kept as ClinicaOn sends them, never validated or coerced.

class LoginResult(BaseModel):
    """Profile fields ClinicaOn returns alongside a successful login."""
    id: Any = Field(None, alias="usuarioid")  # int
    user_name: Any = Field(None, alias="userName")
    display_name: Any = Field(None, alias="nomeUsuario")
    unit_name: Any = Field(None, alias="nomeUnidade")
    unit_id: Any = Field(None, alias="unidadeId")  # int
    subscription_type: Any = Field(None, alias="tipoAssinatura")  # int
    nutritional: Any = Field(None, alias="nutricional")  # bool

    model_config = {
        "populate_by_name": True,
        "extra": "allow",
    }


class AgendaQuery(BaseModel):
    start_date: str  # ISO-8601 dateTime, e.g. 2025-09-03T03:00:00.000Z
    end_date: str
    exclude_no_shows: bool = False
    status_filter: str | None = None

    model_config = {
        "frozen": True
    }


class Appointment(BaseModel):
    """One agenda entry, passed through with ClinicaOn's field names."""
    id: Any = None  # int
    date: Any = Field(None, alias="data")  # yyyy-MM-dd
    start_time: Any = Field(None, alias="horaInicio")  # HH:mm
    end_time: Any = Field(None, alias="horaFim")
    patient_name: Any = Field(None, alias="nomePessoa")
    phone: Any = Field(None, alias="telefone")
    mobile: Any = Field(None, alias="celular")
    services: Any = Field(None, alias="servicos")  # list of service names
    status: Any = None

    model_config = {
        "populate_by_name": True,
        "extra": "allow",
    }


# Route schemas -------------------------------------------------------------

class LoginRequest(BaseModel):
    email: str = Field(..., description="User email/username")
    password: str = Field(..., description="User password")


class UserProfile(BaseModel):
    id: Any = None
    userName: Any = None
    nomeUsuario: Any = None
    nomeUnidade: Any = None
    unidadeId: Any = None
    tipoAssinatura: Any = None
    nutricional: Any = None


class LoginResponse(BaseModel):
    success: bool
    message: str
    user: UserProfile


class AuthStatus(BaseModel):
    authenticated: bool
    token: str | None = None


class AgendaResponse(BaseModel):
    success: bool
    data: list[Appointment]
    count: int = Field(..., description="Total number of appointments")


class AgendaDateResponse(AgendaResponse):
    date: str = Field(..., description="Query date")


class HealthResponse(BaseModel):
    status: str
    service: str
    timestamp: str


class ErrorResponse(BaseModel):
    error: str
    message: str
