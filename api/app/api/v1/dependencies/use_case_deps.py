"""
Dependencias para inyeccion de servicios de sincronizacion y consulta.
"""
from typing import AsyncIterator, Optional

import httpx
from fastapi import Depends, Header

from app.api.v1.dependencies.repository_deps import get_document_store
from app.application.services.ordenes_consulta import OrdenesConsultaService
from app.core.config import settings
from app.domain.repositories.document_store import IDocumentStore
from app.infrastructure.external.gis_sync.gis_client import GisClient, build_from_settings
from app.infrastructure.external.gis_sync.sync_service import GisSyncService
from app.infrastructure.security.cron_secret_verifier import CronSecretVerifier
from app.shared.exceptions.auth import UnauthorizedException


async def get_gis_client() -> AsyncIterator[GisClient]:
    """
    Dependencia para obtener el cliente GIS.
    El cliente HTTP se cierra al terminar la request.
    """
    client = build_from_settings()
    try:
        yield client
    finally:
        await client.aclose()


async def get_gis_sync_service(
    store: IDocumentStore = Depends(get_document_store),
    gis: GisClient = Depends(get_gis_client),
) -> GisSyncService:
    """
    Dependencia para obtener el servicio de sincronizacion.

    Args:
        store: Almacen de documentos
        gis: Cliente del GIS

    Returns:
        GisSyncService: Orquestador de las corridas
    """
    return GisSyncService(
        store,
        gis,
        desde_por_defecto=settings.WORK_ORDERS_FROM_DATE,
        limite_pagina=settings.WORK_ORDERS_PAGE_SIZE,
        max_paginas_en_vuelo=settings.WORK_ORDERS_MAX_CONCURRENT_PAGES,
    )


async def get_ordenes_consulta_service() -> AsyncIterator[OrdenesConsultaService]:
    async with httpx.AsyncClient() as client:
        yield OrdenesConsultaService(
            client,
            settings.PORTAL_ORDERS_URL,
            limite=settings.PORTAL_ORDERS_PAGE_SIZE,
        )


def get_cron_verifier() -> CronSecretVerifier:
    return CronSecretVerifier(settings.CRON_SECRET)


async def verify_cron_secret(
    authorization: Optional[str] = Header(default=None),
    verifier: CronSecretVerifier = Depends(get_cron_verifier),
) -> None:
    """
    Protege los disparadores GET (cron) cuando CRON_SECRET está configurado.

    Raises:
        UnauthorizedException: header ausente o distinto de `Bearer <CRON_SECRET>`
    """
    if not verifier.verify(authorization):
        raise UnauthorizedException()
