"""
CLI: GIS -> almacén de documentos.

Uso recomendado:
  - Ejecutar como job (cron/systemd timer) cuando no se quiere pasar por HTTP.
  - Corre un dominio o el ETL completo y muestra el resumen en stdout.

Variables de entorno (ver app/core/config.py):
  - WORK_ORDERS_API_KEY
  - ADMIN_API_URL / WORK_ORDERS_API_URL / PROTECTION_API_URL
  - DATABASE_URL

Ejecución:
  python scripts/sync_gis.py etl
  python scripts/sync_gis.py empresas
  python scripts/sync_gis.py ordenes --from 2025-01-12
  python scripts/sync_gis.py ordenes --paralelo
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict, is_dataclass
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
# La carpeta "api" contiene el paquete raíz `app/`.
_API_ROOT = Path(__file__).resolve().parents[1]
if str(_API_ROOT) not in sys.path:
    sys.path.insert(0, str(_API_ROOT))

# Cargar variables desde .env si existe (api/.env o raíz del repo).
_REPO_ROOT = _API_ROOT.parent
load_dotenv(_API_ROOT / ".env", override=False)
load_dotenv(_REPO_ROOT / ".env", override=False)

from app.core.config import settings
from app.infrastructure.database.session import close_db, get_engine
from app.infrastructure.external.gis_sync.gis_client import build_from_settings
from app.infrastructure.external.gis_sync.sync_service import GisSyncService
from app.infrastructure.repositories.document_store import SqlDocumentStore

DOMINIOS = ("empresas", "supervisores", "usuarios_admin", "ordenes", "administrativos", "proteccion", "etl")


def _a_json(resultado) -> str:
    if is_dataclass(resultado):
        resultado = asdict(resultado)
    return json.dumps(resultado, ensure_ascii=False, indent=2, default=str)


def _exitoso(resultado) -> bool:
    return bool(getattr(resultado, "success", True))


async def _run(dominio: str, desde: str | None, paralelo: bool):
    engine = await get_engine()
    store = SqlDocumentStore(engine)
    try:
        async with build_from_settings() as gis:
            service = GisSyncService(
                store,
                gis,
                desde_por_defecto=settings.WORK_ORDERS_FROM_DATE,
                limite_pagina=settings.WORK_ORDERS_PAGE_SIZE,
                paginas_en_paralelo=paralelo,
                max_paginas_en_vuelo=settings.WORK_ORDERS_MAX_CONCURRENT_PAGES,
            )
            corridas = {
                "empresas": service.sincronizar_empresas,
                "supervisores": service.sincronizar_supervisores,
                "usuarios_admin": service.sincronizar_usuarios_admin,
                "ordenes": lambda: service.sincronizar_ordenes(desde),
                "administrativos": service.sincronizar_datos_administrativos,
                "proteccion": service.sincronizar_proteccion,
                "etl": lambda: service.ejecutar_etl(desde),
            }
            return await corridas[dominio]()
    finally:
        await close_db()


def main() -> int:
    parser = argparse.ArgumentParser(description="Sincronización GIS -> almacén de documentos")
    parser.add_argument("dominio", choices=DOMINIOS, help="Dominio a sincronizar (o 'etl' para todo)")
    parser.add_argument(
        "--from",
        dest="desde",
        default=None,
        help="Fecha desde para órdenes (YYYY-MM-DD). Por defecto WORK_ORDERS_FROM_DATE.",
    )
    parser.add_argument(
        "--paralelo",
        action="store_true",
        help="Pide las páginas 2..N del listado de órdenes en paralelo.",
    )
    args = parser.parse_args()

    logger.info(f"Iniciando sync GIS: {args.dominio}")
    try:
        resultado = asyncio.run(_run(args.dominio, args.desde, args.paralelo))
    except Exception as e:
        logger.error(f"Sync GIS falló: {e}")
        return 1

    print(_a_json(resultado))
    return 0 if _exitoso(resultado) else 1


if __name__ == "__main__":
    raise SystemExit(main())
