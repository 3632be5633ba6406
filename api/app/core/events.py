"""
Ciclo de vida de la aplicacion (inicio y cierre).
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from loguru import logger

from app.core.config import settings
from app.infrastructure.database.session import init_db, close_db


async def _startup() -> int:
    """
    Inicializa recursos al inicio de la aplicacion.

    Returns:
        int: id del sink de archivo de loguru, para quitarlo al cerrar
    """
    try:
        logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}")
        logger.info(f"Entorno: {settings.ENVIRONMENT}")
        
        # Validar configuracion critica
        _validate_config()
        
        # Abrir el almacen compartido (crea la tabla de documentos si no existe)
        await init_db()
        logger.info("Almacen de documentos inicializado")
        
        # Configurar logging adicional
        sink_id = logger.add(
            settings.LOG_FILE,
            rotation="500 MB",
            retention="10 days",
            level=settings.LOG_LEVEL
        )
        
        logger.success("Aplicacion iniciada correctamente")
        
        # Mostrar URLs disponibles
        _print_available_urls()
        return sink_id
    except Exception as e:
        logger.error(f"Error durante startup: {e}")
        logger.exception("Detalle del error:")
        raise


def _validate_config() -> None:
    """Valida que la configuracion critica este presente."""
    warnings = []
    
    if not settings.WORK_ORDERS_API_KEY:
        warnings.append("WORK_ORDERS_API_KEY no configurada - el GIS rechazara las sincronizaciones")

    if not settings.CRON_SECRET:
        warnings.append("CRON_SECRET no configurado - los GET de sync quedan sin proteccion")
    
    # Mostrar advertencias
    for warning in warnings:
        logger.warning(f"CONFIG: {warning}")


def _print_available_urls() -> None:
    """Imprime las URLs disponibles de la aplicacion."""
    # Determinar la URL base de acceso
    if settings.HOST == "0.0.0.0":
        access_host = "localhost"
    else:
        access_host = settings.HOST
    
    base_url = f"http://{access_host}:{settings.PORT}"
    
    # Mostrar las URLs disponibles
    logger.opt(colors=True).info("<bold><green>" + "=" * 80 + "</green></bold>")
    logger.opt(colors=True).info("<bold><green>URLS DISPONIBLES:</green></bold>")
    logger.opt(colors=True).info("<bold><green>" + "=" * 80 + "</green></bold>")
    logger.opt(colors=True).info(f"<cyan>  Swagger UI:  {base_url}/docs</cyan>")
    logger.opt(colors=True).info(f"<cyan>  ReDoc:       {base_url}/redoc</cyan>")
    logger.opt(colors=True).info(f"<cyan>  OpenAPI:     {base_url}/openapi.json</cyan>")
    logger.opt(colors=True).info(f"<cyan>  Health:      {base_url}/health</cyan>")
    logger.opt(colors=True).info("<bold><green>" + "=" * 80 + "</green></bold>")


async def _shutdown(sink_id: int) -> None:
    """Libera recursos al cerrar la aplicacion."""
    logger.info("Cerrando aplicacion...")

    # Cerrar conexiones de base de datos
    await close_db()
    logger.info("Conexiones de base de datos cerradas")

    logger.success("Aplicacion cerrada correctamente")
    logger.remove(sink_id)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Ciclo de vida para `FastAPI(lifespan=...)`: abre el almacen y el log
    de archivo al iniciar y los cierra al terminar.
    """
    sink_id = await _startup()
    try:
        yield
    finally:
        await _shutdown(sink_id)
