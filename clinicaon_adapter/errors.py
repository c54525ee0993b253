"""Errors raised by the ClinicaOn client.

The route layer maps these to HTTP responses; the client itself only raises them.
"""
from __future__ import annotations


class ClinicaOnError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthenticationError(ClinicaOnError):
    """Bad credentials, or ClinicaOn refused the login."""


class UnauthenticatedError(ClinicaOnError):
    """No usable token: never logged in, or ClinicaOn rejected the stored one."""


class UpstreamError(ClinicaOnError):
    """ClinicaOn answered with a failure or a payload we cannot read."""


class NetworkError(ClinicaOnError):
    """ClinicaOn could not be reached."""
