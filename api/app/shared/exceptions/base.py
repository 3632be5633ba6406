"""
Excepción base de la aplicación.
"""
from typing import Optional, Dict, Any


class AppException(Exception):
    """
    Excepción base de la aplicación.

    Lleva el código HTTP con el que se responde y un `error_code`
    estable que el portal usa para distinguir los errores.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Cuerpo JSON de la respuesta de error."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }

    def to_sync_dict(self) -> Dict[str, Any]:
        """Cuerpo con la forma de los disparadores de sync: {success, message, error}."""
        return {
            "success": False,
            "message": self.message,
            "error": self.error_code,
        }
