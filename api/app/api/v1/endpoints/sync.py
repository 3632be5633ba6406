"""
Endpoints para disparar la sincronizacion con el GIS.

Cada dominio acepta GET (cron, protegido por CRON_SECRET) y POST (boton
del panel de admin). El resultado no se persiste: se devuelve en la
respuesta y queda en el log.
"""
from datetime import date
from typing import Awaitable, Callable, Optional, Union

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from loguru import logger

from app.api.v1.dependencies.use_case_deps import get_gis_sync_service, verify_cron_secret
from app.application.dto.sync_dto import EtlResponseDTO, SyncResponseDTO
from app.infrastructure.external.gis_sync.sync_service import GisSyncService
from app.infrastructure.external.gis_sync.types import ResumenSync
from app.shared.exceptions.domain import ValidationException


router = APIRouter(tags=["Sync"])

_cron = [Depends(verify_cron_secret)]


def _error_response(message: str, exc: Exception) -> JSONResponse:
    detalle = getattr(exc, "message", None) or str(exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": message, "error": detalle},
    )


async def _ejecutar(
    nombre: str,
    corrida: Callable[[], Awaitable[ResumenSync]],
) -> Union[SyncResponseDTO, JSONResponse]:
    try:
        logger.info(f"Iniciando sincronizacion de {nombre} desde API")
        resumen = await corrida()
        return SyncResponseDTO.from_resumen(resumen)
    except Exception as e:
        logger.error(f"Error al sincronizar {nombre}: {e}")
        return _error_response(f"Error al sincronizar {nombre}", e)


def _validar_desde(desde: Optional[str]) -> Optional[str]:
    if desde is None:
        return None
    try:
        date.fromisoformat(desde)
    except ValueError:
        raise ValidationException("El parametro 'from' debe tener formato YYYY-MM-DD", field="from")
    return desde


@router.get(
    "/empresas/sync",
    response_model=SyncResponseDTO,
    dependencies=_cron,
    summary="Sincronizar empresas (cron)",
)
@router.post(
    "/empresas/sync",
    response_model=SyncResponseDTO,
    summary="Sincronizar empresas desde el GIS",
)
async def sync_empresas(service: GisSyncService = Depends(get_gis_sync_service)):
    """
    Reconcilia la coleccion `empresas` con las empresas del GIS.
    Conserva cuit, telefono, email, rubros y activo cargados en el portal.
    """
    return await _ejecutar("empresas", service.sincronizar_empresas)


@router.get(
    "/supervisores/sync",
    response_model=SyncResponseDTO,
    dependencies=_cron,
    summary="Sincronizar supervisores (cron)",
)
@router.post(
    "/supervisores/sync",
    response_model=SyncResponseDTO,
    summary="Sincronizar supervisores desde el GIS",
)
async def sync_supervisores(service: GisSyncService = Depends(get_gis_sync_service)):
    return await _ejecutar("supervisores", service.sincronizar_supervisores)


@router.get(
    "/usuarios_admin/sync",
    response_model=SyncResponseDTO,
    dependencies=_cron,
    summary="Sincronizar usuarios del portal (cron)",
)
@router.post(
    "/usuarios_admin/sync",
    response_model=SyncResponseDTO,
    summary="Sincronizar usuarios del portal desde el GIS",
)
async def sync_usuarios_admin(service: GisSyncService = Depends(get_gis_sync_service)):
    """
    Dos pasadas sobre `usuarios_admin`: supervisores (usuarios del GIS) y
    proveedores (empresas del GIS). Email y password locales no se pisan.
    """
    return await _ejecutar("usuarios", service.sincronizar_usuarios_admin)


@router.get(
    "/ordenesTrabajoAPI/sync",
    response_model=SyncResponseDTO,
    dependencies=_cron,
    summary="Sincronizar ordenes de trabajo (cron)",
)
@router.post(
    "/ordenesTrabajoAPI/sync",
    response_model=SyncResponseDTO,
    summary="Sincronizar ordenes de trabajo desde el GIS",
)
async def sync_ordenes(
    desde: Optional[str] = Query(
        default=None,
        alias="from",
        description="Fecha desde (YYYY-MM-DD). Por defecto WORK_ORDERS_FROM_DATE.",
    ),
    service: GisSyncService = Depends(get_gis_sync_service),
):
    desde = _validar_desde(desde)
    return await _ejecutar("ordenes", lambda: service.sincronizar_ordenes(desde))


@router.get(
    "/cron/etl",
    response_model=EtlResponseDTO,
    dependencies=_cron,
    summary="ETL completo (datos administrativos, ordenes y proteccion)",
)
async def cron_etl(service: GisSyncService = Depends(get_gis_sync_service)):
    """
    Ejecuta las tres partes del ETL de forma independiente.
    `success` es True si al menos una parte termino bien.
    """
    try:
        resultado = await service.ejecutar_etl()
        return EtlResponseDTO.from_resultado(resultado)
    except Exception as e:
        logger.error(f"Error en cron job ETL: {e}")
        return _error_response("Proceso ETL fallo", e)
