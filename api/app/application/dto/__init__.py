"""
Data Transfer Objects (DTOs) para la capa de aplicacion.
"""
from .sync_dto import (
    ResumenDTO,
    SyncResponseDTO,
    ParteEtlDTO,
    ResultadosEtlDTO,
    EtlResponseDTO,
)
from .ordenes_dto import (
    PaginacionDTO,
    OrdenesPaginadasDTO,
    OrdenesSupervisorDTO,
)

__all__ = [
    "ResumenDTO",
    "SyncResponseDTO",
    "ParteEtlDTO",
    "ResultadosEtlDTO",
    "EtlResponseDTO",
    "PaginacionDTO",
    "OrdenesPaginadasDTO",
    "OrdenesSupervisorDTO",
]
