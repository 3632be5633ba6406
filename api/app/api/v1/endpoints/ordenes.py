"""
Endpoints de consulta de ordenes de trabajo.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger

from app.api.v1.dependencies.repository_deps import get_document_store
from app.api.v1.dependencies.use_case_deps import get_ordenes_consulta_service
from app.application.dto.ordenes_dto import (
    OrdenesPaginadasDTO,
    OrdenesSupervisorDTO,
    PaginacionDTO,
)
from app.application.services.ordenes_consulta import (
    OrdenesConsultaService,
    listar_ordenes_locales,
)
from app.domain.repositories.document_store import IDocumentStore


router = APIRouter(tags=["Ordenes"])


@router.get(
    "/ordenesTrabajoAPI",
    response_model=OrdenesPaginadasDTO,
    summary="Listar ordenes de trabajo sincronizadas",
)
async def listar_ordenes(
    pagina: int = Query(1, ge=1),
    limite: int = Query(20, ge=1, le=500),
    estado: Optional[str] = Query(None),
    cod_empres: Optional[str] = Query(None),
    supervisor_id: Optional[str] = Query(None),
    cod_zona: Optional[str] = Query(None),
    cod_campo: Optional[str] = Query(None),
    fecha_desde: Optional[str] = Query(None, alias="fechaDesde", description="Fecha minima (YYYY-MM-DD), inclusiva"),
    fecha_hasta: Optional[str] = Query(None, alias="fechaHasta", description="Fecha maxima (YYYY-MM-DD), inclusiva"),
    store: IDocumentStore = Depends(get_document_store),
) -> OrdenesPaginadasDTO:
    """
    Listado paginado de la coleccion local, ordenado por fecha descendente.
    """
    resultado = await listar_ordenes_locales(
        store,
        pagina=pagina,
        limite=limite,
        estado=estado,
        cod_empres=cod_empres,
        supervisor_id=supervisor_id,
        cod_zona=cod_zona,
        cod_campo=cod_campo,
        fecha_desde=fecha_desde,
        fecha_hasta=fecha_hasta,
    )
    return OrdenesPaginadasDTO(
        ordenes=resultado.ordenes,
        paginacion=PaginacionDTO(**resultado.paginacion()),
    )


@router.get(
    "/ordenes/supervisor/{supervisor_id}",
    response_model=OrdenesSupervisorDTO,
    summary="Ordenes de un supervisor (todas las paginas)",
)
async def ordenes_de_supervisor(
    supervisor_id: str,
    busqueda: Optional[str] = Query(None, description="Texto a buscar en actividad, campo, empresa..."),
    orden_id: Optional[str] = Query(None, description="Id exacto de orden (tiene prioridad)"),
    service: OrdenesConsultaService = Depends(get_ordenes_consulta_service),
) -> OrdenesSupervisorDTO:
    """
    Lee todas las paginas del listado de ordenes y filtra por supervisor.
    Si alguna pagina no respondio, `completo` es False.
    """
    try:
        consulta = await service.ordenes_de_supervisor(
            supervisor_id, busqueda=busqueda, orden_id=orden_id
        )
    except Exception as e:
        logger.error(f"Error obteniendo ordenes del supervisor {supervisor_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"No se pudo leer el listado de ordenes: {str(e)}",
        )

    return OrdenesSupervisorDTO(
        ordenes=consulta.ordenes,
        total=len(consulta.ordenes),
        completo=not consulta.paginas_fallidas,
        paginas_fallidas=consulta.paginas_fallidas,
    )
