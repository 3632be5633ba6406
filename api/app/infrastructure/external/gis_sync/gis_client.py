"""
Cliente mínimo de la API GIS (httpx async).

Requisitos cubiertos:
- header estático x-api-key en todas las llamadas
- timeout por endpoint (el listado de órdenes es el más lento)
- normalización de la forma de respuesta (array / {data} / {ordenes} / {results})

No reintenta: un fallo de red, timeout o status no 2xx se propaga como
FuenteExternaError y el que dispara el job decide si vuelve a correrlo.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from loguru import logger

from app.core.config import settings
from app.shared.exceptions.sync import FuenteExternaError

USER_AGENT = "Mozilla/5.0 (compatible; ForestalSync/1.0)"

# Orden de evaluación: la primera clave cuyo valor sea lista gana.
CLAVES_SOBRE: tuple[str, ...] = ("data", "ordenes", "results")


def extraer_registros(
    body: Any,
    claves: tuple[str, ...] = CLAVES_SOBRE,
    *,
    contexto: str = "",
) -> list[Any]:
    """
    Tabla de decisión para la forma del cuerpo de respuesta:

    1. body ya es lista            -> se usa tal cual
    2. body[clave] es lista        -> se usa (clave en orden: data, ordenes, results)
    3. cualquier otra cosa         -> [] y se registra la anomalía
    """
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        for clave in claves:
            valor = body.get(clave)
            if isinstance(valor, list):
                return valor
    logger.warning(
        f"Respuesta GIS sin array reconocible{f' ({contexto})' if contexto else ''}: "
        f"{str(body)[:200]}"
    )
    return []


def extraer_coleccion(datos_admin: Any, nombre: str) -> list[Any]:
    """
    Extrae un dominio del sobre de datos administrativos
    ({"zonas": [...], "empresas": [...], ...}).
    """
    if not isinstance(datos_admin, dict):
        logger.warning(f"Datos administrativos con forma inesperada al leer '{nombre}'")
        return []
    valor = datos_admin.get(nombre)
    if valor is None:
        return []
    if not isinstance(valor, list):
        logger.warning(f"El dominio '{nombre}' no es una lista en los datos administrativos")
        return []
    return valor


def _mensaje_de_error(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:500] or response.reason_phrase
    if isinstance(body, dict):
        for clave in ("message", "error", "detail"):
            if body.get(clave):
                return str(body[clave])
    return str(body)[:500]


class GisClient:
    """
    Cliente HTTP del GIS. Cada método retorna el cuerpo ya parseado.

    Se puede inyectar un httpx.AsyncClient (p.ej. con MockTransport en tests);
    si no, el cliente crea y cierra el suyo.
    """

    def __init__(
        self,
        api_key: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        admin_url: str = "",
        ordenes_url: str = "",
        proteccion_url: str = "",
        admin_timeout_s: float = 30.0,
        ordenes_timeout_s: float = 120.0,
        proteccion_timeout_s: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._client = client or httpx.AsyncClient()
        self._owns_client = client is None
        self.admin_url = admin_url
        self.ordenes_url = ordenes_url
        self.proteccion_url = proteccion_url
        self._admin_timeout_s = admin_timeout_s
        self._ordenes_timeout_s = ordenes_timeout_s
        self._proteccion_timeout_s = proteccion_timeout_s

    async def __aenter__(self) -> "GisClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch(
        self,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
        *,
        timeout_s: Optional[float] = None,
    ) -> Any:
        """
        GET autenticado contra un endpoint del GIS.

        Raises:
            FuenteExternaError: red, timeout, status no 2xx o JSON inválido
        """
        headers = {
            "x-api-key": self._api_key,
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        timeout = timeout_s if timeout_s is not None else self._admin_timeout_s

        try:
            response = await self._client.get(endpoint, params=params, headers=headers, timeout=timeout)
        except httpx.TimeoutException as e:
            raise FuenteExternaError(
                f"Timeout ({timeout}s) consultando el GIS: {endpoint}", endpoint=endpoint
            ) from e
        except httpx.HTTPError as e:
            raise FuenteExternaError(
                f"Error de red consultando el GIS ({endpoint}): {e}", endpoint=endpoint
            ) from e

        if not 200 <= response.status_code < 300:
            detalle = _mensaje_de_error(response)
            if response.status_code >= 500:
                logger.error(f"GIS {response.status_code} en {endpoint} - body: {detalle}")
            raise FuenteExternaError(
                f"El servidor GIS respondió con error ({response.status_code}). Detalle: {detalle}",
                endpoint=endpoint,
                status=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise FuenteExternaError(
                f"Respuesta GIS no es JSON válido ({endpoint})",
                endpoint=endpoint,
                status=response.status_code,
            ) from e

    async def obtener_datos_administrativos(self) -> Any:
        """Sobre con las tablas administrativas: {zonas, empresas, usuarios, ...}."""
        logger.info(f"Obteniendo datos administrativos desde: {self.admin_url}")
        return await self.fetch(self.admin_url, timeout_s=self._admin_timeout_s)

    async def obtener_ordenes(
        self,
        desde: str,
        pagina: Optional[int] = None,
        limite: Optional[int] = None,
    ) -> Any:
        """
        Listado de órdenes de trabajo. Puede venir paginado
        ({ordenes, paginacion}) o como array plano.
        """
        params: dict[str, Any] = {"from": desde}
        if pagina is not None:
            params["pagina"] = pagina
        if limite is not None:
            params["limite"] = limite
        return await self.fetch(self.ordenes_url, params=params, timeout_s=self._ordenes_timeout_s)

    async def obtener_datos_proteccion(self) -> list[Any]:
        logger.info(f"Obteniendo datos de protección desde: {self.proteccion_url}")
        body = await self.fetch(self.proteccion_url, timeout_s=self._proteccion_timeout_s)
        return extraer_registros(body, contexto="proteccion")


def build_from_settings(client: Optional[httpx.AsyncClient] = None) -> GisClient:
    """Construye el cliente GIS leyendo la configuración de la aplicación."""
    if not settings.WORK_ORDERS_API_KEY:
        logger.warning("WORK_ORDERS_API_KEY no configurada - el GIS rechazará las llamadas")
    return GisClient(
        settings.WORK_ORDERS_API_KEY,
        client=client,
        admin_url=settings.ADMIN_API_URL,
        ordenes_url=settings.WORK_ORDERS_API_URL,
        proteccion_url=settings.PROTECTION_API_URL,
        admin_timeout_s=settings.GIS_ADMIN_TIMEOUT_S,
        ordenes_timeout_s=settings.GIS_ORDERS_TIMEOUT_S,
        proteccion_timeout_s=settings.GIS_PROTECTION_TIMEOUT_S,
    )
