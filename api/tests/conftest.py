"""
Configuración de fixtures para pytest.
"""
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Callable, Dict

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from app.infrastructure.database import models  # noqa: F401  (registra la tabla en Base)
from app.infrastructure.database.session import Base
from app.infrastructure.external.gis_sync.gis_client import GisClient
from app.infrastructure.repositories.document_store import SqlDocumentStore


# URL de base de datos de prueba
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_URL = "http://gis.test/ordenes/json-tablas-adm"
ORDENES_URL = "http://gis.test/api/ordenes/listar"
PROTECCION_URL = "http://gis.test/proteccion/json"

AHORA = datetime(2025, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    Engine SQLite en memoria por test.
    StaticPool: todas las conexiones comparten la misma base en memoria.
    """
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def store(engine: AsyncEngine) -> SqlDocumentStore:
    return SqlDocumentStore(engine)


@pytest.fixture
def sentencias_sql(engine: AsyncEngine):
    """SELECTs ejecutados contra el engine de prueba durante el test."""
    sentencias: list[str] = []

    def _registrar(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("SELECT"):
            sentencias.append(statement)

    event.listen(engine.sync_engine, "before_cursor_execute", _registrar)
    yield sentencias
    event.remove(engine.sync_engine, "before_cursor_execute", _registrar)


@pytest.fixture
def reloj_fijo() -> Callable[[], datetime]:
    return lambda: AHORA


def build_gis(client: httpx.AsyncClient, api_key: str = "test-key") -> GisClient:
    """Cliente GIS sobre un httpx.AsyncClient inyectado (p.ej. con MockTransport)."""
    return GisClient(
        api_key,
        client=client,
        admin_url=ADMIN_URL,
        ordenes_url=ORDENES_URL,
        proteccion_url=PROTECCION_URL,
    )


class GisFalso:
    """
    Respuestas configurables por URL. Cada valor puede ser un body JSON,
    un httpx.Response o una función request -> httpx.Response.
    Registra las requests recibidas.
    """

    def __init__(self) -> None:
        self.respuestas: Dict[str, Any] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        respuesta = self.respuestas.get(url)
        if respuesta is None:
            return httpx.Response(404, json={"message": "no encontrado"})
        if callable(respuesta):
            return respuesta(request)
        if isinstance(respuesta, httpx.Response):
            return respuesta
        return httpx.Response(200, json=respuesta)

    def admin(self, respuesta: Any) -> None:
        self.respuestas[ADMIN_URL] = respuesta

    def ordenes(self, respuesta: Any) -> None:
        self.respuestas[ORDENES_URL] = respuesta

    def proteccion(self, respuesta: Any) -> None:
        self.respuestas[PROTECCION_URL] = respuesta


@pytest.fixture
def gis_falso() -> GisFalso:
    return GisFalso()


@pytest_asyncio.fixture
async def gis(gis_falso: GisFalso) -> AsyncGenerator[GisClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(gis_falso)) as client:
        yield build_gis(client)
