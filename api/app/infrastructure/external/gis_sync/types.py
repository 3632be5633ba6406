"""
Tipos y utilidades puras para el pipeline GIS -> almacén.

Se mantienen libres de I/O para poder testearlos fácilmente.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Literal

Reloj = Callable[[], datetime]
Resultado = Literal["created", "updated"]


def utc_now() -> datetime:
    """Retorna la hora actual en UTC, como datetime aware."""
    return datetime.now(timezone.utc)


def isoformat_z(dt: datetime) -> str:
    """Serializa a ISO8601 UTC con sufijo 'Z' (formato guardado en los documentos)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class RegistroNormalizado:
    """Registro del GIS ya resuelto a clave y nombre canónicos."""

    clave: Any
    nombre: str
    extras: dict[str, Any]


@dataclass
class ResumenSync:
    """
    Reporte de una corrida (no se persiste).

    procesados = nuevos + actualizados; los errores no cuentan como procesados.
    """

    procesados: int = 0
    nuevos: int = 0
    actualizados: int = 0
    errores: int = 0
    success: bool = True
    message: str = "Sincronización completada"

    def registrar(self, resultado: Resultado) -> None:
        if resultado == "created":
            self.nuevos += 1
        else:
            self.actualizados += 1
        self.procesados += 1

    def registrar_error(self) -> None:
        self.errores += 1

    def absorber(self, otro: "ResumenSync") -> None:
        """Suma los contadores de otra pasada a este resumen."""
        self.procesados += otro.procesados
        self.nuevos += otro.nuevos
        self.actualizados += otro.actualizados
        self.errores += otro.errores

    def contadores(self) -> dict[str, int]:
        return {
            "procesados": self.procesados,
            "nuevos": self.nuevos,
            "actualizados": self.actualizados,
            "errores": self.errores,
        }


@dataclass
class ResultadoParteEtl:
    """Resultado de una parte del ETL compuesto (admin / órdenes / protección)."""

    exito: bool = False
    error: str | None = None
    cantidad: int = 0
    resumen: ResumenSync | None = None


@dataclass
class ResultadoEtl:
    datos_administrativos: ResultadoParteEtl = field(default_factory=ResultadoParteEtl)
    ordenes_trabajo: ResultadoParteEtl = field(default_factory=ResultadoParteEtl)
    datos_proteccion: ResultadoParteEtl = field(default_factory=ResultadoParteEtl)

    @property
    def success(self) -> bool:
        return (
            self.datos_administrativos.exito
            or self.ordenes_trabajo.exito
            or self.datos_proteccion.exito
        )


@dataclass
class ResultadoAdministrativo:
    """
    Resultado de volcar el sobre de datos administrativos.

    - tablas: documentos escritos por tabla cruda (zonas, campos, ...)
    - tablas_fallidas: tablas cuyo lote no se pudo escribir
    - empresas: resumen del dominio reconciliado
    """

    tablas: dict[str, int] = field(default_factory=dict)
    tablas_fallidas: list[str] = field(default_factory=list)
    empresas: ResumenSync = field(default_factory=ResumenSync)

    @property
    def documentos(self) -> int:
        return sum(self.tablas.values()) + self.empresas.procesados
