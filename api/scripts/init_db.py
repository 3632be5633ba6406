"""
Script para inicializar el almacén de documentos (crea la tabla si no existe).
"""
import asyncio
import sys
from pathlib import Path

from loguru import logger

_API_ROOT = Path(__file__).resolve().parents[1]
if str(_API_ROOT) not in sys.path:
    sys.path.insert(0, str(_API_ROOT))

from app.infrastructure.database.session import close_db, init_db


async def main():
    """Función principal para inicializar el almacén."""
    logger.info("Inicializando almacén de documentos...")

    try:
        await init_db()
        logger.success("Almacén de documentos inicializado correctamente")
    except Exception as e:
        logger.error(f"Error al inicializar el almacén: {e}")
        raise
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
