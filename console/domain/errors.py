from __future__ import annotations

from enum import StrEnum


class ConsoleError(Exception):
    """Base class for errors surfaced by the console core."""

    title: str = "Error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AuthErrorKind(StrEnum):
    INVALID_CREDENTIALS = "invalid_credentials"
    TOKEN_INVALID = "token_invalid"
    NETWORK_ERROR = "network_error"


class AuthError(ConsoleError):
    title = "Error de autenticación"

    def __init__(self, kind: AuthErrorKind, message: str | None = None) -> None:
        self.kind = kind
        super().__init__(message or kind.value)


class ValidationError(ConsoleError):
    """Client-side form check that failed before anything was sent."""

    title = "Datos inválidos"

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class ApiError(ConsoleError):
    """Non-2xx backend response, or a transport failure when status is 0."""

    title = "Error de la API"

    def __init__(self, status: int, message: str, code: str = "API_ERROR") -> None:
        self.status = status
        self.code = code
        super().__init__(message)

    @property
    def is_network_error(self) -> bool:
        return self.status == 0


class PollingError(ConsoleError):
    title = "Error de actualización"

    def __init__(self, view: str, cause: BaseException) -> None:
        self.view = view
        self.cause = cause
        super().__init__(f"{view}: {cause}")


class PermissionDeniedError(ConsoleError):
    title = "Sin permisos"
