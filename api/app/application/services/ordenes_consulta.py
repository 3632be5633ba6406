"""
Consulta de órdenes de trabajo para las vistas del portal.

Dos caminos:
- listado local paginado sobre la colección ordenesTrabajoAPI
- lectura de corpus completo del listado paginado (todas las páginas) para
  filtrar localmente por supervisor o empresa, como hacen las vistas de
  supervisor y proveedor
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from app.domain.repositories.document_store import IDocumentStore
from app.infrastructure.external.gis_sync.normalizer import coercionar_clave
from app.infrastructure.external.gis_sync.ownership import ORDENES_TRABAJO
from app.infrastructure.external.gis_sync.paginator import obtener_todo_desde_url


def _primero(orden: Dict[str, Any], *campos: str, default: Any = None) -> Any:
    for campo in campos:
        valor = orden.get(campo)
        if valor not in (None, ""):
            return valor
    return default


def transformar_orden(orden: Dict[str, Any]) -> Dict[str, Any]:
    """Lleva una orden cruda a la forma que consumen las vistas."""
    identificador = _primero(orden, "_id", "id")
    return {
        "id": identificador,
        "_id": identificador,
        "actividad": _primero(orden, "actividad", "tipoActividad", default="Sin actividad"),
        "campo": _primero(orden, "campo", "nombreCampo", default="Sin campo"),
        "emisor": _primero(orden, "emisor", "usuarioEmisor", default=""),
        "empresa": _primero(orden, "empresa", "empresaEncargada", default=""),
        "cod_empres": orden.get("cod_empres"),
        "fecha": _primero(orden, "fecha", "fechaCreacion", default=date.today().isoformat()),
        "cantidad": _primero(orden, "cantidad", "hectareas", "superficie", default="0"),
        "supervisor": _primero(orden, "supervisor", default=""),
        "supervisor_id": _primero(orden, "supervisor_id", "supervisorId"),
        "usuario_id": _primero(orden, "usuario_id", "usuarioId"),
        "estado": orden.get("estado"),
        "estado_nombre": _primero(orden, "estado_nombre", "estadoNombre"),
        "encargado": _primero(orden, "encargado", default=""),
        "zona": _primero(orden, "zona", default=""),
        "rodales": orden.get("rodales") or [],
    }


def _mismo_id(valor: Any, buscado: Any) -> bool:
    a, b = coercionar_clave(valor), coercionar_clave(buscado)
    return a is not None and a == b


def filtrar_por_supervisor(ordenes: List[Dict[str, Any]], supervisor_id: Any) -> List[Dict[str, Any]]:
    """Órdenes cuyo supervisor_id o usuario_id coincide (7 y "7" son el mismo)."""
    return [
        o for o in ordenes
        if _mismo_id(o.get("supervisor_id"), supervisor_id) or _mismo_id(o.get("usuario_id"), supervisor_id)
    ]


def filtrar_por_empresa(ordenes: List[Dict[str, Any]], cod_empres: Any) -> List[Dict[str, Any]]:
    return [o for o in ordenes if _mismo_id(o.get("cod_empres"), cod_empres)]


def buscar_texto(ordenes: List[Dict[str, Any]], texto: str) -> List[Dict[str, Any]]:
    termino = texto.strip().lower()
    if not termino:
        return ordenes
    campos = ("actividad", "campo", "empresa", "id", "supervisor", "emisor")
    return [
        o for o in ordenes
        if any(termino in str(o.get(c) or "").lower() for c in campos)
    ]


@dataclass
class ConsultaOrdenes:
    ordenes: List[Dict[str, Any]] = field(default_factory=list)
    total_leidas: int = 0
    paginas_fallidas: List[int] = field(default_factory=list)


@dataclass
class PaginaOrdenes:
    ordenes: List[Dict[str, Any]]
    total: int
    pagina: int
    limite: int

    @property
    def paginas(self) -> int:
        return math.ceil(self.total / self.limite) if self.limite else 0

    def paginacion(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "pagina": self.pagina,
            "limite": self.limite,
            "paginas": self.paginas,
        }


async def listar_ordenes_locales(
    store: IDocumentStore,
    *,
    pagina: int = 1,
    limite: int = 20,
    estado: Optional[str] = None,
    cod_empres: Optional[str] = None,
    supervisor_id: Optional[str] = None,
    cod_zona: Optional[str] = None,
    cod_campo: Optional[str] = None,
    fecha_desde: Optional[str] = None,
    fecha_hasta: Optional[str] = None,
) -> PaginaOrdenes:
    """
    Listado paginado de la colección local, ordenado por fecha descendente.
    Los filtros de código llegan como texto y se comparan como clave canónica;
    el rango de fechas es inclusivo y compara las fechas ISO como texto.
    """
    filtro: Dict[str, Any] = {}
    for campo, valor in (
        ("estado", estado),
        ("cod_zona", cod_zona),
        ("cod_campo", cod_campo),
        ("cod_empres", cod_empres),
    ):
        if valor:
            filtro[campo] = coercionar_clave(valor)
    if supervisor_id:
        sid = coercionar_clave(supervisor_id)
        filtro["$or"] = [{"supervisor_id": sid}, {"usuario_id": sid}]

    rango: Dict[str, str] = {}
    if fecha_desde:
        rango["$gte"] = fecha_desde
    if fecha_hasta:
        rango["$lte"] = fecha_hasta
    if rango:
        filtro["fecha"] = rango

    pagina = max(pagina, 1)
    total = await store.count(ORDENES_TRABAJO.coleccion, filtro)
    ordenes = await store.find(
        ORDENES_TRABAJO.coleccion,
        filtro,
        skip=(pagina - 1) * limite,
        limit=limite,
        orden=("fecha", -1),
    )
    return PaginaOrdenes(ordenes=ordenes, total=total, pagina=pagina, limite=limite)


class OrdenesConsultaService:
    """
    Lee el listado paginado de órdenes completo (todas las páginas) y
    aplica los filtros de cada vista.

    Uso:
        async with httpx.AsyncClient() as client:
            service = OrdenesConsultaService(client, settings.PORTAL_ORDERS_URL)
            consulta = await service.ordenes_de_supervisor(44)
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        *,
        limite: int = 20,
        paralelo: bool = False,
        pausa_s: float = 0.1,
    ) -> None:
        self._client = client
        self._url = url
        self._limite = limite
        self._paralelo = paralelo
        self._pausa_s = pausa_s

    async def obtener_todas(self) -> ConsultaOrdenes:
        resultado = await obtener_todo_desde_url(
            self._client,
            self._url,
            limite=self._limite,
            paralelo=self._paralelo,
            pausa_s=self._pausa_s,
        )
        if resultado.paginas_fallidas:
            logger.warning(
                f"Listado de órdenes incompleto: páginas fallidas {resultado.paginas_fallidas}"
            )
        ordenes = [transformar_orden(o) for o in resultado.registros if isinstance(o, dict)]
        return ConsultaOrdenes(
            ordenes=ordenes,
            total_leidas=len(ordenes),
            paginas_fallidas=resultado.paginas_fallidas,
        )

    async def ordenes_de_supervisor(
        self,
        supervisor_id: Any,
        *,
        busqueda: Optional[str] = None,
        orden_id: Optional[str] = None,
    ) -> ConsultaOrdenes:
        """
        Órdenes de un supervisor. Si viene `orden_id` se filtra solo por ese
        id exacto; si no, por supervisor y luego por texto.
        """
        consulta = await self.obtener_todas()
        if orden_id and orden_id.strip():
            buscado = orden_id.strip()
            consulta.ordenes = [o for o in consulta.ordenes if str(o.get("id") or "") == buscado]
            return consulta

        ordenes = filtrar_por_supervisor(consulta.ordenes, supervisor_id)
        if busqueda:
            ordenes = buscar_texto(ordenes, busqueda)
        consulta.ordenes = ordenes
        return consulta

    async def ordenes_de_empresa(self, cod_empres: Any) -> ConsultaOrdenes:
        """Órdenes asignadas a un proveedor (vista de proveedor)."""
        consulta = await self.obtener_todas()
        consulta.ordenes = filtrar_por_empresa(consulta.ordenes, cod_empres)
        return consulta
