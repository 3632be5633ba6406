"""
Reconciliador: fusiona un registro normalizado del GIS con el documento local
y lo persiste con un único UPSERT por clave.

La búsqueda previa del documento existente solo sirve para clasificar el
resultado (nuevo / actualizado) y para preservar campos locales; la
escritura en sí es atómica. Dos corridas concurrentes sobre la misma clave
nueva pueden contarla ambas como "nueva": es una aproximación aceptada.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

from loguru import logger

from app.domain.repositories.document_store import IDocumentStore
from app.shared.exceptions.sync import RegistroInvalidoError

from .normalizer import normalizar
from .ownership import TablaPropiedad
from .types import RegistroNormalizado, Reloj, Resultado, ResumenSync, isoformat_z, utc_now

CAMPO_SINCRONIZADO = "sincronizadoDesdeGIS"
CAMPO_ULTIMA_SYNC = "ultimaSincronizacion"


def _tiene_valor(valor: Any) -> bool:
    return valor is not None and valor != ""


def _marcas_sync(tabla: TablaPropiedad, ahora: datetime) -> dict[str, Any]:
    if not tabla.marcar_sync:
        return {}
    return {CAMPO_SINCRONIZADO: True, CAMPO_ULTIMA_SYNC: isoformat_z(ahora)}


def campos_fuente(registro: RegistroNormalizado, tabla: TablaPropiedad, ahora: datetime) -> dict[str, Any]:
    """Campos que el GIS sobrescribe siempre (nombre, alias de clave, marcas de sync)."""
    campos: dict[str, Any] = {}
    for campo in tabla.campos_nombre:
        campos[campo] = registro.nombre
    for campo in tabla.campos_clave:
        campos[campo] = registro.clave
    campos.update(_marcas_sync(tabla, ahora))
    return campos


def fusionar(
    existente: Optional[dict[str, Any]],
    registro: RegistroNormalizado,
    tabla: TablaPropiedad,
    ahora: datetime,
) -> dict[str, Any]:
    """
    Función pura (existente, entrante, tabla) -> documento a escribir.

    El resultado incluye "_id" con la clave de documento canónica; el
    llamador la reemplaza si el documento existente vive bajo otra clave.
    """
    existente = existente or {}
    extras = registro.extras
    documento: dict[str, Any] = {}

    if tabla.copiar_todo:
        documento.update({k: v for k, v in extras.items() if k != "_id"})

    for campo in tabla.campos_nombre:
        documento[campo] = registro.nombre
    for campo in tabla.campos_clave:
        documento[campo] = registro.clave
    documento.update(tabla.fijos)

    for campo in tabla.opcionales_fuente:
        valor = extras.get(campo)
        if _tiene_valor(valor):
            documento[campo] = valor

    for campo, default in tabla.fuente_con_default.items():
        valor = extras.get(campo)
        documento[campo] = valor if _tiene_valor(valor) else default

    for campo, default in tabla.campos_locales.items():
        actual = existente.get(campo)
        if _tiene_valor(actual):
            documento[campo] = actual
        elif campo in tabla.sembrar_desde_fuente and _tiene_valor(extras.get(campo)):
            documento[campo] = extras[campo]
        else:
            documento[campo] = default(ahora) if callable(default) else default

    documento.update(_marcas_sync(tabla, ahora))
    documento["_id"] = tabla.clave_documento(registro.clave)
    return documento


class Reconciliador:
    """
    Aplica la fusión sobre el almacén y lleva la cuenta de resultados.
    """

    def __init__(self, store: IDocumentStore, *, reloj: Reloj = utc_now) -> None:
        self._store = store
        self._reloj = reloj

    async def _buscar_existente(
        self, registro: RegistroNormalizado, tabla: TablaPropiedad
    ) -> tuple[Optional[dict[str, Any]], bool]:
        """Retorna (documento existente, es_legacy)."""
        clave_doc = tabla.clave_documento(registro.clave)
        existente = await self._store.find_one(tabla.coleccion, {"_id": clave_doc})
        if existente is not None or tabla.filtros_legacy is None:
            return existente, False

        legacy = await self._store.find_one(
            tabla.coleccion, {"$or": tabla.filtros_legacy(registro.clave)}
        )
        return legacy, legacy is not None

    async def reconciliar(self, registro: RegistroNormalizado, tabla: TablaPropiedad) -> Resultado:
        ahora = self._reloj()
        existente, es_legacy = await self._buscar_existente(registro, tabla)

        if es_legacy and tabla.legacy_solo_fuente:
            await self._store.update_one(
                tabla.coleccion, existente["_id"], campos_fuente(registro, tabla, ahora), upsert=False
            )
            return "updated"

        documento = fusionar(existente, registro, tabla, ahora)
        if es_legacy:
            documento["_id"] = existente["_id"]

        await self._store.update_one(tabla.coleccion, documento["_id"], documento, upsert=True)
        return "updated" if existente is not None else "created"

    async def reconciliar_lote(
        self,
        registros: Iterable[Any],
        tabla: TablaPropiedad,
    ) -> ResumenSync:
        """
        Reconcilia registros crudos en el orden recibido.
        Un registro inválido o una escritura fallida cuentan como error
        y el lote sigue.
        """
        resumen = ResumenSync()
        for crudo in registros:
            try:
                normalizado = normalizar(crudo, tabla.tipo, requiere_numerica=tabla.requiere_numerica)
            except RegistroInvalidoError as e:
                logger.warning(f"[{tabla.coleccion}] {e.message}")
                resumen.registrar_error()
                continue

            try:
                resultado = await self.reconciliar(normalizado, tabla)
            except Exception as e:
                logger.error(
                    f"[{tabla.coleccion}] Error al procesar registro {normalizado.clave}: {e}"
                )
                resumen.registrar_error()
                continue

            resumen.registrar(resultado)
            if resumen.procesados % 100 == 0:
                logger.info(f"[{tabla.coleccion}] Procesados: {resumen.procesados}...")

        return resumen
