"""
Tests de la función pura de fusión (existente, entrante, tabla) -> documento.
"""
from __future__ import annotations

from datetime import datetime, timezone

from app.infrastructure.external.gis_sync.normalizer import normalizar
from app.infrastructure.external.gis_sync.ownership import (
    EMPRESAS,
    ORDENES_TRABAJO,
    SUPERVISORES,
    USUARIOS_ADMIN_PROVEEDORES,
    USUARIOS_ADMIN_SUPERVISORES,
)
from app.infrastructure.external.gis_sync.reconciler import campos_fuente, fusionar

AHORA = datetime(2025, 3, 10, 12, 0, 0, tzinfo=timezone.utc)
AHORA_ISO = "2025-03-10T12:00:00.000Z"


def test_empresa_nueva_usa_defaults_y_marca_sync() -> None:
    registro = normalizar({"id": 7, "empresa": "Acme"}, "empresa")

    doc = fusionar(None, registro, EMPRESAS, AHORA)

    assert doc["_id"] == 7
    assert doc["nombre"] == "Acme"
    assert doc["empresa"] == "Acme"
    assert doc["idempresa"] == 7
    assert doc["cod_empres"] == 7
    assert doc["telefono"] == ""
    assert doc["activo"] is True
    assert doc["sincronizadoDesdeGIS"] is True
    assert doc["ultimaSincronizacion"] == AHORA_ISO
    assert "razon_social" not in doc


def test_empresa_existente_conserva_campos_locales() -> None:
    existente = {"_id": 7, "nombre": "Acme", "telefono": "11-2222", "email": "a@acme.com", "activo": False}
    registro = normalizar({"id": 7, "empresa": "Acme Renombrada", "telefono": "99-9999"}, "empresa")

    doc = fusionar(existente, registro, EMPRESAS, AHORA)

    assert doc["nombre"] == "Acme Renombrada"
    assert doc["telefono"] == "11-2222"
    assert doc["email"] == "a@acme.com"
    assert doc["activo"] is False


def test_campo_local_vacio_se_siembra_desde_la_fuente() -> None:
    existente = {"_id": 7, "cuit": "", "email": ""}
    registro = normalizar({"id": 7, "cuit": "30-1", "email": "no-se-siembra@gis"}, "empresa")

    doc = fusionar(existente, registro, EMPRESAS, AHORA)

    assert doc["cuit"] == "30-1"
    assert doc["email"] == ""


def test_opcional_de_fuente_solo_si_viene_con_valor() -> None:
    con_valor = fusionar(None, normalizar({"id": 1, "nombre": "Ana", "apellido": "Gomez"}, "usuario"), SUPERVISORES, AHORA)
    vacio = fusionar(None, normalizar({"id": 1, "nombre": "Ana", "apellido": ""}, "usuario"), SUPERVISORES, AHORA)

    assert con_valor["apellido"] == "Gomez"
    assert "apellido" not in vacio


def test_usuario_admin_supervisor_clave_prefijada_y_rol_fijo() -> None:
    registro = normalizar({"id": 14, "nombre": "Juan"}, "usuario", requiere_numerica=True)

    doc = fusionar(None, registro, USUARIOS_ADMIN_SUPERVISORES, AHORA)

    assert doc["_id"] == "supervisor_14"
    assert doc["gisSupervisorId"] == 14
    assert doc["rol"] == "supervisor"
    assert doc["apellido"] == ""
    assert doc["password"] == ""
    assert doc["fechaCreacion"] == AHORA_ISO


def test_fecha_creacion_existente_no_se_pisa() -> None:
    existente = {"_id": "provider_14", "fechaCreacion": "2024-01-01T00:00:00.000Z", "password": "hash"}
    registro = normalizar({"idempresa": 14, "empresa": "Forestal"}, "empresa", requiere_numerica=True)

    doc = fusionar(existente, registro, USUARIOS_ADMIN_PROVEEDORES, AHORA)

    assert doc["_id"] == "provider_14"
    assert doc["fechaCreacion"] == "2024-01-01T00:00:00.000Z"
    assert doc["password"] == "hash"
    assert doc["rol"] == "provider"


def test_ordenes_copian_todos_los_campos_sin_marcas() -> None:
    crudo = {"_id": 501, "actividad": "Poda", "estado": 2, "rodales": [{"cod_rodal": 1}]}

    doc = fusionar(None, normalizar(crudo, "orden"), ORDENES_TRABAJO, AHORA)

    assert doc == crudo
    assert "sincronizadoDesdeGIS" not in doc


def test_campos_fuente_solo_incluye_lo_que_manda_el_gis() -> None:
    registro = normalizar({"id": 14, "nombre": "Juan", "email": "x@y"}, "usuario")

    campos = campos_fuente(registro, USUARIOS_ADMIN_SUPERVISORES, AHORA)

    assert campos == {
        "nombre": "Juan",
        "gisSupervisorId": 14,
        "sincronizadoDesdeGIS": True,
        "ultimaSincronizacion": AHORA_ISO,
    }


def test_fusionar_es_pura() -> None:
    existente = {"_id": 7, "telefono": "11"}
    registro = normalizar({"id": 7, "empresa": "Acme"}, "empresa")

    primero = fusionar(existente, registro, EMPRESAS, AHORA)
    segundo = fusionar(existente, registro, EMPRESAS, AHORA)

    assert primero == segundo
    assert existente == {"_id": 7, "telefono": "11"}
