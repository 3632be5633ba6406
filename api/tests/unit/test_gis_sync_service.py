"""
Tests del orquestador de sincronización contra un GIS falso y SQLite en memoria.

Propiedades verificadas:
- idempotencia (segunda corrida sin cambios: 0 nuevos, almacén idéntico)
- estabilidad de clave entre corridas
- preservación de campos locales y refresco de campos del GIS
- aislamiento de fallos parciales
"""
from __future__ import annotations

import httpx
import pytest
from sqlalchemy.exc import OperationalError

from app.infrastructure.external.gis_sync.sync_service import GisSyncService
from app.shared.exceptions.sync import FuenteExternaError


@pytest.fixture
def service(store, gis, reloj_fijo) -> GisSyncService:
    return GisSyncService(store, gis, reloj=reloj_fijo, limite_pagina=2)


async def _snapshot(store, coleccion: str) -> list[dict]:
    return await store.find(coleccion, orden=("_id", 1))


@pytest.mark.asyncio
async def test_escenario_acme(service, store, gis_falso) -> None:
    gis_falso.admin({"empresas": [{"id": 7, "empresa": "Acme"}]})

    primera = await service.sincronizar_empresas()
    doc = await store.find_one("empresas", {"_id": 7})

    assert primera.nuevos == 1
    assert doc["nombre"] == "Acme"
    assert doc["sincronizadoDesdeGIS"] is True
    assert doc["activo"] is True
    assert doc["telefono"] == ""

    # edición local (CRUD del portal)
    await store.update_one("empresas", 7, {"telefono": "11-2222"})

    gis_falso.admin({"empresas": [{"id": 7, "empresa": "Acme Renombrada"}]})
    segunda = await service.sincronizar_empresas()
    doc = await store.find_one("empresas", {"_id": 7})

    assert segunda.actualizados == 1
    assert segunda.nuevos == 0
    assert doc["nombre"] == "Acme Renombrada"
    assert doc["telefono"] == "11-2222"
    assert doc["activo"] is True
    assert await store.count("empresas") == 1


@pytest.mark.asyncio
async def test_idempotencia(service, store, gis_falso) -> None:
    gis_falso.admin({
        "usuarios": [
            {"id": 1, "nombre": "Ana", "apellido": "Gomez"},
            {"id": 2, "nombre": "Luis"},
            {"id": 3, "usuario": "mperez"},
        ]
    })

    primera = await service.sincronizar_supervisores()
    antes = await _snapshot(store, "supervisores")
    segunda = await service.sincronizar_supervisores()
    despues = await _snapshot(store, "supervisores")

    assert primera.nuevos == 3
    assert segunda.nuevos == 0
    assert segunda.actualizados == primera.nuevos + primera.actualizados
    assert antes == despues


@pytest.mark.asyncio
async def test_estabilidad_de_clave_entre_formas(service, store, gis_falso) -> None:
    gis_falso.admin({"empresas": [{"idempresa": "7", "empresa": "Acme"}]})
    await service.sincronizar_empresas()

    gis_falso.admin({"empresas": [{"cod_empres": 7, "empresa": "Acme", "razon_social": "Acme SA"}]})
    resumen = await service.sincronizar_empresas()

    assert resumen.actualizados == 1
    assert await store.count("empresas") == 1
    assert (await store.find_one("empresas", {"_id": 7}))["razon_social"] == "Acme SA"


@pytest.mark.asyncio
async def test_registro_sin_clave_no_corta_el_lote(service, store, gis_falso) -> None:
    gis_falso.admin({
        "empresas": [
            {"id": 1, "empresa": "Uno"},
            {"empresa": "Sin id"},
            {"id": 3, "empresa": "Tres"},
        ]
    })

    resumen = await service.sincronizar_empresas()

    assert resumen.nuevos + resumen.actualizados == 2
    assert resumen.procesados == 2
    assert resumen.errores == 1
    assert await store.count("empresas") == 2


@pytest.mark.asyncio
async def test_directorio_vacio_no_es_exitoso(service, gis_falso) -> None:
    gis_falso.admin({"empresas": []})

    resumen = await service.sincronizar_empresas()

    assert resumen.success is False
    assert resumen.message == "No se encontraron empresas en los datos GIS"
    assert resumen.procesados == 0


@pytest.mark.asyncio
async def test_fallo_del_gis_falla_la_corrida(service, gis_falso, store) -> None:
    gis_falso.admin(httpx.Response(502, text="bad gateway"))

    with pytest.raises(FuenteExternaError):
        await service.sincronizar_supervisores()

    assert await store.count("supervisores") == 0


@pytest.mark.asyncio
async def test_usuarios_admin_dos_pasadas_en_un_resumen(service, store, gis_falso) -> None:
    gis_falso.admin({
        "usuarios": [{"id": 14, "nombre": "Juan"}, {"id": "abc", "nombre": "Sin id numerico"}],
        "empresas": [{"idempresa": 14, "empresa": "Forestal", "cuit": "30-1"}],
    })

    resumen = await service.sincronizar_usuarios_admin()

    assert resumen.nuevos == 2
    assert resumen.errores == 1
    supervisor = await store.find_one("usuarios_admin", {"_id": "supervisor_14"})
    proveedor = await store.find_one("usuarios_admin", {"_id": "provider_14"})
    assert supervisor["rol"] == "supervisor"
    assert supervisor["gisSupervisorId"] == 14
    assert proveedor["rol"] == "provider"
    assert proveedor["cuit"] == "30-1"
    assert proveedor["fechaCreacion"] == "2025-03-10T12:00:00.000Z"


@pytest.mark.asyncio
async def test_usuarios_admin_conserva_credenciales(service, store, gis_falso) -> None:
    gis_falso.admin({"usuarios": [{"id": 14, "nombre": "Juan"}], "empresas": []})
    await service.sincronizar_usuarios_admin()
    await store.update_one("usuarios_admin", "supervisor_14", {"email": "juan@portal", "password": "hash"})

    gis_falso.admin({"usuarios": [{"id": 14, "nombre": "Juan Carlos"}], "empresas": []})
    resumen = await service.sincronizar_usuarios_admin()

    doc = await store.find_one("usuarios_admin", {"_id": "supervisor_14"})
    assert resumen.actualizados == 1
    assert doc["nombre"] == "Juan Carlos"
    assert doc["email"] == "juan@portal"
    assert doc["password"] == "hash"


@pytest.mark.asyncio
async def test_usuarios_admin_documento_legacy_solo_refresca_fuente(service, store, gis_falso) -> None:
    # documento creado por una versión anterior: _id numérico sin prefijo
    await store.update_one("usuarios_admin", 14, {"rol": "supervisor", "nombre": "Viejo", "email": "j@p", "telefono": "1"})
    gis_falso.admin({"usuarios": [{"id": 14, "nombre": "Nuevo"}], "empresas": []})

    resumen = await service.sincronizar_usuarios_admin()

    assert resumen.actualizados == 1
    assert resumen.nuevos == 0
    assert await store.find_one("usuarios_admin", {"_id": "supervisor_14"}) is None
    legacy = await store.find_one("usuarios_admin", {"_id": 14})
    assert legacy["nombre"] == "Nuevo"
    assert legacy["gisSupervisorId"] == 14
    assert legacy["email"] == "j@p"
    assert legacy["telefono"] == "1"


@pytest.mark.asyncio
async def test_ordenes_paginadas_con_pagina_fallida(service, store, gis_falso) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        pagina = int(request.url.params["pagina"])
        assert request.url.params["limite"] == "2"
        assert request.url.params["from"] == "2025-01-12"
        if pagina == 2:
            return httpx.Response(500, json={"message": "error"})
        ordenes = [{"_id": pagina * 10 + i, "actividad": "Poda"} for i in range(2)]
        return httpx.Response(200, json={"ordenes": ordenes, "paginacion": {"total": 6, "pagina": pagina, "paginas": 3}})

    gis_falso.ordenes(handler)

    resumen = await service.sincronizar_ordenes("2025-01-12")

    assert resumen.nuevos == 4
    assert "parcial" in resumen.message
    assert {d["_id"] for d in await store.find("ordenesTrabajoAPI")} == {10, 11, 30, 31}


@pytest.mark.asyncio
async def test_ordenes_sin_paginacion_y_sin_id(service, store, gis_falso) -> None:
    gis_falso.ordenes({"data": [{"_id": 1, "estado": 1}, {"actividad": "sin id"}, {"id": 2}]})

    resumen = await service.sincronizar_ordenes()

    assert resumen.procesados == 2
    assert resumen.errores == 1
    assert (await store.find_one("ordenesTrabajoAPI", {"_id": 2}))["id"] == 2
    assert gis_falso.requests[-1].url.params["from"] == "2020-01-01"


@pytest.mark.asyncio
async def test_datos_administrativos_renombra_ids_y_reconcilia_empresas(service, store, gis_falso) -> None:
    await store.update_one("empresas", 5, {"nombre": "Local", "email": "x@y", "rubros": "poda"})
    gis_falso.admin({
        "zonas": [{"_id": 1, "nombre": "Norte"}],
        "campos": [{"idcampo": "30", "nombre": "La Loma"}, {"nombre": "sin id"}],
        "tiposUso": [{"idtipouso": 2, "nombre": "Forestal"}],
        "empresas": [{"idempresa": 5, "empresa": "Cinco"}],
    })

    resultado = await service.sincronizar_datos_administrativos()

    assert resultado.tablas["zonas"] == 1
    assert resultado.tablas["campos"] == 1
    assert resultado.tablas["insumos"] == 0
    assert resultado.tablas_fallidas == []
    assert await store.find_one("campos", {"_id": 30}) == {"_id": 30, "nombre": "La Loma"}
    assert await store.find_one("tiposUso", {"_id": 2}) == {"_id": 2, "nombre": "Forestal"}
    empresa = await store.find_one("empresas", {"_id": 5})
    assert empresa["nombre"] == "Cinco"
    assert empresa["email"] == "x@y"
    assert empresa["rubros"] == "poda"
    assert resultado.empresas.actualizados == 1


@pytest.mark.asyncio
async def test_proteccion_upsert_por_id(service, store, gis_falso) -> None:
    gis_falso.proteccion([{"id": 1, "nombre": "Cortafuego"}, {"nombre": "sin id"}])

    escritos = await service.sincronizar_proteccion()

    assert escritos == 1
    assert await store.find_one("proteccion", {"_id": 1}) == {"_id": 1, "id": 1, "nombre": "Cortafuego"}


@pytest.mark.asyncio
async def test_etl_partes_independientes(service, store, gis_falso) -> None:
    gis_falso.admin(httpx.Response(500, json={"error": "caido"}))
    gis_falso.ordenes([{"_id": 1}, {"_id": 2}])
    gis_falso.proteccion({"results": [{"id": 9}]})

    resultado = await service.ejecutar_etl()

    assert resultado.success is True
    assert resultado.datos_administrativos.exito is False
    assert "caido" in resultado.datos_administrativos.error
    assert resultado.ordenes_trabajo.exito is True
    assert resultado.ordenes_trabajo.cantidad == 2
    assert resultado.datos_proteccion.exito is True
    assert resultado.datos_proteccion.cantidad == 1


@pytest.mark.asyncio
async def test_etl_falla_completo(service, gis_falso) -> None:
    resultado = await service.ejecutar_etl()

    assert resultado.success is False
    assert all(
        parte.error
        for parte in (resultado.datos_administrativos, resultado.ordenes_trabajo, resultado.datos_proteccion)
    )


class _StoreConFalloDeEscritura:
    """Delegación al almacén real; update_one falla para una clave."""

    def __init__(self, store, clave_fallida) -> None:
        self._store = store
        self._clave_fallida = clave_fallida

    async def update_one(self, coleccion, clave, campos, upsert=True):
        if clave == self._clave_fallida:
            raise OperationalError("UPDATE documentos", {}, Exception("disk I/O error"))
        return await self._store.update_one(coleccion, clave, campos, upsert=upsert)

    def __getattr__(self, nombre):
        return getattr(self._store, nombre)


@pytest.mark.asyncio
async def test_escritura_fallida_cuenta_error_y_el_lote_sigue(store, gis, gis_falso, reloj_fijo) -> None:
    service = GisSyncService(_StoreConFalloDeEscritura(store, 2), gis, reloj=reloj_fijo)
    gis_falso.admin({
        "empresas": [
            {"id": 1, "empresa": "Uno"},
            {"id": 2, "empresa": "Dos"},
            {"id": 3, "empresa": "Tres"},
        ]
    })

    resumen = await service.sincronizar_empresas()

    assert resumen.errores == 1
    assert resumen.nuevos == 2
    assert await store.find_one("empresas", {"_id": 2}) is None
    assert (await store.find_one("empresas", {"_id": 3}))["nombre"] == "Tres"


@pytest.mark.asyncio
async def test_busqueda_de_existentes_no_recorre_la_coleccion(service, store, gis_falso, sentencias_sql) -> None:
    gis_falso.admin({"empresas": [{"id": i, "empresa": f"Empresa {i}"} for i in range(1, 51)]})

    resumen = await service.sincronizar_empresas()

    assert resumen.nuevos == 50
    # por registro: búsqueda por _id y búsqueda legacy por campo
    assert len(sentencias_sql) == 100
    assert all("doc_id = " in s or "json_type" in s for s in sentencias_sql)
