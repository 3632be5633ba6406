"""
Gestión de la conexión compartida al almacen de documentos.

El engine es estado de proceso: se crea una sola vez, de forma perezosa,
y se reutiliza en todos los jobs de sincronización y en las consultas.
Varias corrutinas pueden pedir la conexión antes de que termine la
primera inicialización; un asyncio.Lock garantiza que solo una la crea.
"""
import asyncio
from typing import Optional

from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings
from app.shared.exceptions.sync import AlmacenNoDisponibleError


# Base para modelos de SQLAlchemy
Base = declarative_base()

_engine: Optional[AsyncEngine] = None
_init_lock = asyncio.Lock()


def _create_engine_args(database_url: str) -> dict:
    """
    Construye los argumentos del engine segun el tipo de base de datos.
    PostgreSQL usa pool de conexiones acotado, SQLite no lo soporta.
    """
    args = {
        "echo": settings.DEBUG,
        "future": True,
    }

    # Configuracion de pool solo para PostgreSQL
    if "postgresql" in database_url:
        args.update({
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_pre_ping": True,  # Verifica conexion antes de usar
        })

    return args


async def get_engine() -> AsyncEngine:
    """
    Retorna el engine compartido, creándolo la primera vez.

    La primera llamada verifica conectividad y crea las tablas;
    si falla, el engine no queda cacheado y se levanta
    AlmacenNoDisponibleError.
    """
    global _engine

    if _engine is not None:
        return _engine

    async with _init_lock:
        if _engine is not None:
            return _engine

        database_url = settings.effective_database_url
        engine = create_async_engine(database_url, **_create_engine_args(database_url))
        try:
            async with engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            await engine.dispose()
            logger.error(f"No se pudo conectar al almacen de documentos: {e}")
            raise AlmacenNoDisponibleError(f"Error al conectar al almacen: {e}") from e

        _engine = engine
        logger.info("Conexion al almacen de documentos establecida")
        return _engine


async def init_db() -> None:
    """Inicializa la base de datos creando todas las tablas."""
    await get_engine()


async def close_db() -> None:
    """Cierra las conexiones de la base de datos."""
    global _engine

    async with _init_lock:
        if _engine is not None:
            await _engine.dispose()
            _engine = None
