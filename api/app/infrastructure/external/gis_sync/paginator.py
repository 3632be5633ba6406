"""
Lectura de corpus completo sobre un listado paginado.

Patrón:
1. Se pide la página 1 (si falla, falla todo).
2. Se lee el total de páginas del sobre ({paginacion: {paginas}} o
   {pagination: {totalPages}}). Sin metadatos, la página 1 es todo el resultado.
3. Se piden las páginas 2..N (secuencial o en paralelo). Cada fallo se
   registra con su número de página y no detiene al resto.

El resultado es "completo hasta la última página que respondió": quien
necesite completitud debe mirar `paginas_fallidas` y volver a correr.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import httpx
from loguru import logger

from .gis_client import extraer_registros

FetchPagina = Callable[[int], Awaitable[Any]]

_SOBRES_PAGINACION = ("paginacion", "pagination")
_CAMPOS_PAGINAS = ("paginas", "totalPages", "pages")
_CAMPOS_TOTAL = ("total", "totalItems", "count")


@dataclass
class ResultadoPaginado:
    registros: list[Any] = field(default_factory=list)
    total: int = 0
    paginas: int = 1
    paginas_fallidas: list[int] = field(default_factory=list)

    @property
    def completo(self) -> bool:
        return not self.paginas_fallidas


def _primer_entero(datos: dict[str, Any], campos: tuple[str, ...]) -> Optional[int]:
    for campo in campos:
        valor = datos.get(campo)
        if isinstance(valor, bool):
            continue
        try:
            return int(valor)
        except (TypeError, ValueError):
            continue
    return None


def leer_paginacion(body: Any) -> Optional[tuple[int, Optional[int]]]:
    """
    Retorna (total_paginas, total_registros) o None si el sobre no trae
    metadatos de paginación.
    """
    if not isinstance(body, dict):
        return None

    for sobre in _SOBRES_PAGINACION:
        meta = body.get(sobre)
        if isinstance(meta, dict):
            paginas = _primer_entero(meta, _CAMPOS_PAGINAS)
            if paginas is not None:
                return paginas, _primer_entero(meta, _CAMPOS_TOTAL)

    paginas = _primer_entero(body, ("totalPages",))
    if paginas is not None:
        return paginas, _primer_entero(body, _CAMPOS_TOTAL)
    return None


async def obtener_todo(
    fetch_pagina: FetchPagina,
    *,
    paralelo: bool = False,
    max_concurrencia: int = 5,
    pausa_s: float = 0.0,
    contexto: str = "listado",
) -> ResultadoPaginado:
    """
    Recorre todas las páginas de un listado y concatena los registros en
    orden de página.

    Args:
        fetch_pagina: corrutina que recibe el número de página (1-based)
            y retorna el cuerpo parseado
        paralelo: si True, las páginas 2..N se piden concurrentemente
        max_concurrencia: tope de pedidos en vuelo en modo paralelo
        pausa_s: pausa entre páginas en modo secuencial
        contexto: etiqueta para los logs
    """
    primera = await fetch_pagina(1)
    registros = list(extraer_registros(primera, contexto=contexto))

    meta = leer_paginacion(primera)
    if meta is None:
        return ResultadoPaginado(registros=registros, total=len(registros), paginas=1)

    total_paginas, total = meta
    resto = list(range(2, total_paginas + 1))
    logger.info(f"[{contexto}] Total de páginas: {total_paginas}, total informado: {total}")

    respuestas: list[Any] = []
    if paralelo:
        semaforo = asyncio.Semaphore(max(max_concurrencia, 1))

        async def _limitada(pagina: int) -> Any:
            async with semaforo:
                return await fetch_pagina(pagina)

        respuestas = await asyncio.gather(
            *(_limitada(pagina) for pagina in resto), return_exceptions=True
        )
    else:
        for pagina in resto:
            try:
                respuestas.append(await fetch_pagina(pagina))
            except Exception as e:
                respuestas.append(e)
            if pausa_s > 0:
                await asyncio.sleep(pausa_s)

    fallidas: list[int] = []
    for pagina, respuesta in zip(resto, respuestas):
        if isinstance(respuesta, BaseException):
            if not isinstance(respuesta, Exception):
                raise respuesta
            logger.error(f"[{contexto}] Error obteniendo página {pagina}: {respuesta}")
            fallidas.append(pagina)
            continue
        registros.extend(extraer_registros(respuesta, contexto=f"{contexto} p{pagina}"))

    logger.info(
        f"[{contexto}] Registros cargados: {len(registros)}"
        + (f" (páginas fallidas: {fallidas})" if fallidas else "")
    )
    return ResultadoPaginado(
        registros=registros,
        total=total if total is not None else len(registros),
        paginas=max(total_paginas, 1),
        paginas_fallidas=fallidas,
    )


async def obtener_todo_desde_url(
    client: httpx.AsyncClient,
    url: str,
    *,
    limite: int = 20,
    params: Optional[dict[str, Any]] = None,
    headers: Optional[dict[str, str]] = None,
    paralelo: bool = False,
    max_concurrencia: int = 5,
    pausa_s: float = 0.0,
    timeout_s: float = 30.0,
) -> ResultadoPaginado:
    """
    Variante HTTP genérica: pagina con los parámetros `pagina` / `limite`.
    Los errores HTTP de las páginas 2..N se toleran; los de la página 1 se propagan.
    """
    base = dict(params or {})

    async def _fetch(pagina: int) -> Any:
        response = await client.get(
            url,
            params={**base, "pagina": pagina, "limite": limite},
            headers=headers,
            timeout=timeout_s,
        )
        response.raise_for_status()
        return response.json()

    return await obtener_todo(
        _fetch,
        paralelo=paralelo,
        max_concurrencia=max_concurrencia,
        pausa_s=pausa_s,
        contexto=url,
    )
