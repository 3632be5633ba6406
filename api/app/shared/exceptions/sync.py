"""
Excepciones del pipeline de sincronizacion GIS.
"""
from typing import Any, Optional

from app.shared.exceptions.base import AppException


class SyncException(AppException):
    """Excepcion base para errores de sincronizacion."""

    def __init__(self, message: str, error_code: str = "SYNC_ERROR", details=None):
        super().__init__(
            message=message,
            status_code=500,
            error_code=error_code,
            details=details
        )


class FuenteExternaError(SyncException):
    """
    Fallo al obtener datos del GIS: red, timeout, respuesta no 2xx
    o cuerpo imposible de interpretar.
    """

    def __init__(self, message: str, endpoint: str, status: Optional[int] = None):
        super().__init__(
            message=message,
            error_code="FUENTE_EXTERNA_ERROR",
            details={"endpoint": endpoint, "status": status}
        )
        self.endpoint = endpoint
        self.status = status


class RegistroInvalidoError(SyncException):
    """Registro del GIS del que no se puede derivar una clave canonica."""

    def __init__(self, tipo: str, registro: Any):
        preview = str(registro)[:100]
        super().__init__(
            message=f"Registro de tipo '{tipo}' sin identificador valido: {preview}",
            error_code="REGISTRO_INVALIDO",
            details={"tipo": tipo}
        )


class AlmacenNoDisponibleError(SyncException):
    """No se pudo establecer la conexion inicial con el almacen de documentos."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="ALMACEN_NO_DISPONIBLE"
        )
