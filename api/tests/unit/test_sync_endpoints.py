"""
Tests unitarios de los endpoints de sincronización y consulta.

Verifica el contrato HTTP:
- GET (cron) protegido por CRON_SECRET; POST abierto.
- Respuesta {success, message, resumen} y 500 {success:false, message, error}.
- Validación del parámetro `from`.
- Listado local de órdenes y vista de supervisor.
"""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.api.v1.dependencies.repository_deps import get_document_store
from app.api.v1.dependencies.use_case_deps import (
    get_cron_verifier,
    get_gis_sync_service,
    get_ordenes_consulta_service,
)
from app.application.services.ordenes_consulta import ConsultaOrdenes
from app.infrastructure.external.gis_sync.types import (
    ResultadoEtl,
    ResultadoParteEtl,
    ResumenSync,
)
from app.infrastructure.security.cron_secret_verifier import CronSecretVerifier
from app.shared.exceptions.sync import AlmacenNoDisponibleError, FuenteExternaError


@pytest.fixture
def mock_service() -> AsyncMock:
    service = AsyncMock()
    service.sincronizar_empresas = AsyncMock(
        return_value=ResumenSync(procesados=3, nuevos=1, actualizados=2, errores=1)
    )
    service.sincronizar_supervisores = AsyncMock(
        return_value=ResumenSync(success=False, message="No se encontraron usuarios en los datos GIS")
    )
    service.sincronizar_usuarios_admin = AsyncMock(
        side_effect=FuenteExternaError("El servidor GIS respondió con error (503)", endpoint="http://gis", status=503)
    )
    service.sincronizar_ordenes = AsyncMock(return_value=ResumenSync(procesados=2, nuevos=2))
    service.ejecutar_etl = AsyncMock(
        return_value=ResultadoEtl(
            datos_administrativos=ResultadoParteEtl(error="caido"),
            ordenes_trabajo=ResultadoParteEtl(exito=True, cantidad=2, resumen=ResumenSync(procesados=2, nuevos=2)),
            datos_proteccion=ResultadoParteEtl(exito=True, cantidad=5),
        )
    )
    return service


@pytest.fixture
def app_with_mock(mock_service: AsyncMock):
    """Crea la app FastAPI con el servicio mockeado via dependency_overrides."""
    from main import create_application
    app = create_application()
    app.dependency_overrides[get_gis_sync_service] = lambda: mock_service
    app.dependency_overrides[get_cron_verifier] = lambda: CronSecretVerifier("s3cret")
    yield app
    app.dependency_overrides.clear()


async def _request(app, method: str, url: str, **kwargs):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.request(method, url, **kwargs)


@pytest.mark.asyncio
async def test_post_empresas_devuelve_resumen(app_with_mock) -> None:
    response = await _request(app_with_mock, "POST", "/api/v1/empresas/sync")

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Sincronización completada",
        "resumen": {"procesados": 3, "nuevos": 1, "actualizados": 2, "errores": 1},
    }


@pytest.mark.asyncio
async def test_get_sin_secreto_es_401(app_with_mock, mock_service: AsyncMock) -> None:
    response = await _request(app_with_mock, "GET", "/api/v1/empresas/sync")

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "No autorizado"}
    mock_service.sincronizar_empresas.assert_not_called()


@pytest.mark.asyncio
async def test_get_con_secreto_incorrecto_es_401(app_with_mock) -> None:
    response = await _request(
        app_with_mock, "GET", "/api/v1/empresas/sync", headers={"Authorization": "Bearer otro"}
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_get_con_secreto_ejecuta(app_with_mock, mock_service: AsyncMock) -> None:
    response = await _request(
        app_with_mock, "GET", "/api/v1/empresas/sync", headers={"Authorization": "Bearer s3cret"}
    )

    assert response.status_code == 200
    mock_service.sincronizar_empresas.assert_awaited_once()


@pytest.mark.asyncio
async def test_get_abierto_si_no_hay_secreto(app_with_mock) -> None:
    app_with_mock.dependency_overrides[get_cron_verifier] = lambda: CronSecretVerifier("")

    response = await _request(app_with_mock, "GET", "/api/v1/empresas/sync")

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_directorio_vacio_responde_200_sin_exito(app_with_mock) -> None:
    response = await _request(app_with_mock, "POST", "/api/v1/supervisores/sync")

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["message"] == "No se encontraron usuarios en los datos GIS"


@pytest.mark.asyncio
async def test_fallo_del_gis_es_500(app_with_mock) -> None:
    response = await _request(app_with_mock, "POST", "/api/v1/usuarios_admin/sync")

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Error al sincronizar usuarios"
    assert "503" in body["error"]


@pytest.mark.asyncio
async def test_ordenes_pasa_from(app_with_mock, mock_service: AsyncMock) -> None:
    response = await _request(app_with_mock, "POST", "/api/v1/ordenesTrabajoAPI/sync?from=2025-01-12")

    assert response.status_code == 200
    mock_service.sincronizar_ordenes.assert_awaited_once_with("2025-01-12")


@pytest.mark.asyncio
async def test_ordenes_sin_from_usa_default_del_servicio(app_with_mock, mock_service: AsyncMock) -> None:
    await _request(app_with_mock, "POST", "/api/v1/ordenesTrabajoAPI/sync")

    mock_service.sincronizar_ordenes.assert_awaited_once_with(None)


@pytest.mark.asyncio
async def test_ordenes_rechaza_from_invalido(app_with_mock, mock_service: AsyncMock) -> None:
    response = await _request(app_with_mock, "POST", "/api/v1/ordenesTrabajoAPI/sync?from=12/01/2025")

    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"
    mock_service.sincronizar_ordenes.assert_not_called()


@pytest.mark.asyncio
async def test_cron_etl_reporta_partes(app_with_mock) -> None:
    response = await _request(
        app_with_mock, "GET", "/api/v1/cron/etl", headers={"Authorization": "Bearer s3cret"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["resultados"]["datosAdministrativos"] == {
        "exito": False, "error": "caido", "cantidad": 0, "resumen": None
    }
    assert body["resultados"]["ordenesTrabajo"]["cantidad"] == 2
    assert body["resultados"]["datosProteccion"]["exito"] is True


@pytest.mark.asyncio
async def test_cron_etl_requiere_secreto(app_with_mock) -> None:
    response = await _request(app_with_mock, "GET", "/api/v1/cron/etl")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_listado_local_de_ordenes(app_with_mock, store) -> None:
    await store.update_one("ordenesTrabajoAPI", 1, {"fecha": "2025-01-01", "cod_empres": 5})
    await store.update_one("ordenesTrabajoAPI", 2, {"fecha": "2025-01-02", "cod_empres": 5})
    await store.update_one("ordenesTrabajoAPI", 3, {"fecha": "2025-01-03", "cod_empres": 6})
    app_with_mock.dependency_overrides[get_document_store] = lambda: store

    response = await _request(app_with_mock, "GET", "/api/v1/ordenesTrabajoAPI?cod_empres=5&limite=10")

    assert response.status_code == 200
    body = response.json()
    assert [o["_id"] for o in body["ordenes"]] == [2, 1]
    assert body["paginacion"] == {"total": 2, "pagina": 1, "limite": 10, "paginas": 1}


@pytest.mark.asyncio
async def test_listado_local_por_zona_y_rango_de_fechas(app_with_mock, store) -> None:
    await store.update_one("ordenesTrabajoAPI", 1, {"fecha": "2025-01-01", "cod_zona": 3})
    await store.update_one("ordenesTrabajoAPI", 2, {"fecha": "2025-01-10", "cod_zona": 3})
    await store.update_one("ordenesTrabajoAPI", 3, {"fecha": "2025-01-20", "cod_zona": 3})
    await store.update_one("ordenesTrabajoAPI", 4, {"fecha": "2025-01-10", "cod_zona": 4})
    app_with_mock.dependency_overrides[get_document_store] = lambda: store

    response = await _request(
        app_with_mock,
        "GET",
        "/api/v1/ordenesTrabajoAPI?cod_zona=3&fechaDesde=2025-01-05&fechaHasta=2025-01-31",
    )

    assert response.status_code == 200
    assert [o["_id"] for o in response.json()["ordenes"]] == [3, 2]


@pytest.mark.asyncio
async def test_almacen_no_disponible_es_500(app_with_mock) -> None:
    def _sin_almacen():
        raise AlmacenNoDisponibleError("Error al conectar al almacen")

    app_with_mock.dependency_overrides[get_document_store] = _sin_almacen

    response = await _request(app_with_mock, "GET", "/api/v1/ordenesTrabajoAPI")

    assert response.status_code == 500
    assert response.json()["success"] is False
    assert response.json()["error"] == "ALMACEN_NO_DISPONIBLE"


@pytest.mark.asyncio
async def test_ordenes_de_supervisor(app_with_mock) -> None:
    consulta = AsyncMock()
    consulta.ordenes_de_supervisor = AsyncMock(
        return_value=ConsultaOrdenes(ordenes=[{"id": 1}], total_leidas=40, paginas_fallidas=[3])
    )
    app_with_mock.dependency_overrides[get_ordenes_consulta_service] = lambda: consulta

    response = await _request(app_with_mock, "GET", "/api/v1/ordenes/supervisor/44?busqueda=poda")

    assert response.status_code == 200
    assert response.json() == {
        "ordenes": [{"id": 1}],
        "total": 1,
        "completo": False,
        "paginas_fallidas": [3],
    }
    consulta.ordenes_de_supervisor.assert_awaited_once_with("44", busqueda="poda", orden_id=None)
