"""
Excepciones relacionadas con autorización de los disparadores.
"""
from app.shared.exceptions.base import AppException


class AuthException(AppException):
    """Excepción base para errores de autorización."""

    def __init__(self, message: str, error_code: str = "AUTH_ERROR", details=None):
        super().__init__(
            message=message,
            status_code=401,
            error_code=error_code,
            details=details
        )


class UnauthorizedException(AuthException):
    """Excepción para acceso no autorizado (secreto de cron inválido o ausente)."""

    def __init__(self, message: str = "No autorizado"):
        super().__init__(
            message=message,
            error_code="UNAUTHORIZED"
        )
