"""
DTOs de las corridas de sincronización con el GIS.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from app.infrastructure.external.gis_sync.types import ResultadoEtl, ResultadoParteEtl, ResumenSync


class ResumenDTO(BaseModel):
    procesados: int = 0
    nuevos: int = 0
    actualizados: int = 0
    errores: int = 0


class SyncResponseDTO(BaseModel):
    """Respuesta de una corrida de dominio (empresas, supervisores, ...)."""

    success: bool
    message: str
    resumen: ResumenDTO = Field(default_factory=ResumenDTO)

    @classmethod
    def from_resumen(cls, resumen: ResumenSync) -> "SyncResponseDTO":
        return cls(
            success=resumen.success,
            message=resumen.message,
            resumen=ResumenDTO(**resumen.contadores()),
        )


class ParteEtlDTO(BaseModel):
    exito: bool = False
    error: Optional[str] = None
    cantidad: int = 0
    resumen: Optional[ResumenDTO] = None

    @classmethod
    def from_parte(cls, parte: ResultadoParteEtl) -> "ParteEtlDTO":
        return cls(
            exito=parte.exito,
            error=parte.error,
            cantidad=parte.cantidad,
            resumen=ResumenDTO(**parte.resumen.contadores()) if parte.resumen else None,
        )


class ResultadosEtlDTO(BaseModel):
    datosAdministrativos: ParteEtlDTO
    ordenesTrabajo: ParteEtlDTO
    datosProteccion: ParteEtlDTO


class EtlResponseDTO(BaseModel):
    """
    Reporte del ETL compuesto. `success` es True si al menos una parte
    terminó bien; cada parte informa su propio error.
    """

    success: bool
    message: str
    resultados: ResultadosEtlDTO

    @classmethod
    def from_resultado(cls, resultado: ResultadoEtl) -> "EtlResponseDTO":
        return cls(
            success=resultado.success,
            message=(
                "Proceso ETL completado (algunas partes pueden haber fallado)"
                if resultado.success
                else "Proceso ETL falló completamente"
            ),
            resultados=ResultadosEtlDTO(
                datosAdministrativos=ParteEtlDTO.from_parte(resultado.datos_administrativos),
                ordenesTrabajo=ParteEtlDTO.from_parte(resultado.ordenes_trabajo),
                datosProteccion=ParteEtlDTO.from_parte(resultado.datos_proteccion),
            ),
        )
