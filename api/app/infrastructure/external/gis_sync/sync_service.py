"""
Servicio de sincronización GIS -> almacén de documentos.

Diseño (resumen):
- Una corrutina por dominio (empresas, supervisores, usuarios_admin, órdenes)
- Cada corrida: Idle -> Fetching -> Reconciling -> Done | Failed
- Sin reintentos: si el GIS falla, la corrida falla y quien la disparó
  decide si la repite (cron, botón de admin, CLI)
- El ETL compuesto corre sus tres partes de forma independiente

Estrategia de idempotencia:
- Cada registro se escribe con un único UPSERT por clave canónica
- Repetir una corrida con los mismos datos deja el almacén igual
  (salvo la marca ultimaSincronizacion)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from loguru import logger

from app.domain.repositories.document_store import IDocumentStore, UpsertOne

from .gis_client import GisClient, extraer_coleccion
from .normalizer import coercionar_clave
from .ownership import (
    EMPRESAS,
    ORDENES_TRABAJO,
    SUPERVISORES,
    USUARIOS_ADMIN_PROVEEDORES,
    USUARIOS_ADMIN_SUPERVISORES,
    TablaPropiedad,
)
from .paginator import obtener_todo
from .reconciler import Reconciliador
from .types import (
    Reloj,
    ResultadoAdministrativo,
    ResultadoEtl,
    ResultadoParteEtl,
    ResumenSync,
    utc_now,
)


class EstadoSync(str, Enum):
    IDLE = "Idle"
    FETCHING = "Fetching"
    RECONCILING = "Reconciling"
    DONE = "Done"
    FAILED = "Failed"


@dataclass(frozen=True)
class TablaCruda:
    """
    Colección que se copia tal cual, con upsert por `campo_id`.
    Si `renombrar`, el campo id se quita del documento (pasa a ser la clave).
    """

    nombre: str
    campo_id: str = "_id"
    renombrar: bool = True


# empresas no está acá: pasa por el dominio reconciliado para no pisar
# los campos que carga el portal (cuit, email, rubros...).
TABLAS_ADMINISTRATIVAS: tuple[TablaCruda, ...] = (
    TablaCruda("zonas"),
    TablaCruda("propietarios"),
    TablaCruda("campos", "idcampo"),
    TablaCruda("actividades"),
    TablaCruda("usuarios"),
    TablaCruda("tiposUso", "idtipouso"),
    TablaCruda("especies"),
    TablaCruda("ambientales"),
    TablaCruda("insumos"),
)

PROTECCION = TablaCruda("proteccion", "id", renombrar=False)


def mapear_documento_crudo(item: Any, tabla: TablaCruda) -> Optional[UpsertOne]:
    """
    Convierte un item crudo en una operación de upsert.
    Retorna None si el item no trae un id utilizable.
    """
    if not isinstance(item, dict):
        return None

    documento = dict(item)
    if tabla.renombrar and tabla.campo_id != "_id":
        crudo = documento.pop(tabla.campo_id, None)
    else:
        crudo = documento.get(tabla.campo_id)
    clave = coercionar_clave(crudo)
    if clave is None:
        return None

    documento.pop("_id", None)
    return UpsertOne(clave=clave, campos=documento)


class GisSyncService:
    """
    Orquestador de las corridas de sincronización.

    Dependencias inyectadas: almacén, cliente GIS y reloj (fijo en tests).
    """

    def __init__(
        self,
        store: IDocumentStore,
        gis: GisClient,
        *,
        reloj: Reloj = utc_now,
        desde_por_defecto: str = "2020-01-01",
        limite_pagina: int = 500,
        paginas_en_paralelo: bool = False,
        max_paginas_en_vuelo: int = 5,
    ) -> None:
        self._store = store
        self._gis = gis
        self._reconciliador = Reconciliador(store, reloj=reloj)
        self._desde_por_defecto = desde_por_defecto
        self._limite_pagina = limite_pagina
        self._paginas_en_paralelo = paginas_en_paralelo
        self._max_paginas_en_vuelo = max_paginas_en_vuelo

    @staticmethod
    def _estado(dominio: str, estado: EstadoSync, detalle: str = "") -> None:
        mensaje = f"[sync:{dominio}] {estado.value}" + (f" - {detalle}" if detalle else "")
        if estado is EstadoSync.FAILED:
            logger.error(mensaje)
        else:
            logger.info(mensaje)

    async def _correr(
        self,
        dominio: str,
        obtener: Callable[[], Awaitable[Any]],
        reconciliar: Callable[[Any], Awaitable[ResumenSync]],
    ) -> ResumenSync:
        self._estado(dominio, EstadoSync.IDLE)
        try:
            self._estado(dominio, EstadoSync.FETCHING)
            datos = await obtener()
            self._estado(dominio, EstadoSync.RECONCILING)
            resumen = await reconciliar(datos)
        except Exception as e:
            self._estado(dominio, EstadoSync.FAILED, str(e))
            raise

        self._estado(dominio, EstadoSync.DONE, str(resumen.contadores()))
        logger.success(
            f"[sync:{dominio}] {resumen.message}: {resumen.procesados} procesados "
            f"(nuevos: {resumen.nuevos}, actualizados: {resumen.actualizados}, "
            f"errores: {resumen.errores})"
        )
        return resumen

    async def _directorio(self, nombre: str, tabla: TablaPropiedad, mensaje_vacio: str) -> ResumenSync:
        async def reconciliar(datos: Any) -> ResumenSync:
            registros = extraer_coleccion(datos, nombre)
            if not registros:
                logger.warning(f"[sync:{tabla.coleccion}] {mensaje_vacio}")
                return ResumenSync(success=False, message=mensaje_vacio)
            logger.info(f"[sync:{tabla.coleccion}] Registros recibidos del GIS: {len(registros)}")
            return await self._reconciliador.reconciliar_lote(registros, tabla)

        return await self._correr(tabla.coleccion, self._gis.obtener_datos_administrativos, reconciliar)

    async def sincronizar_empresas(self) -> ResumenSync:
        return await self._directorio("empresas", EMPRESAS, "No se encontraron empresas en los datos GIS")

    async def sincronizar_supervisores(self) -> ResumenSync:
        return await self._directorio(
            "usuarios", SUPERVISORES, "No se encontraron usuarios en los datos GIS"
        )

    async def sincronizar_usuarios_admin(self) -> ResumenSync:
        """
        Dos pasadas secuenciales sobre usuarios_admin con un solo resumen:
        supervisores (usuarios del GIS) y proveedores (empresas del GIS).
        """

        async def reconciliar(datos: Any) -> ResumenSync:
            resumen = ResumenSync()
            for nombre, tabla in (
                ("usuarios", USUARIOS_ADMIN_SUPERVISORES),
                ("empresas", USUARIOS_ADMIN_PROVEEDORES),
            ):
                registros = extraer_coleccion(datos, nombre)
                logger.info(f"[sync:usuarios_admin] Pasada '{tabla.fijos['rol']}': {len(registros)} registros")
                resumen.absorber(await self._reconciliador.reconciliar_lote(registros, tabla))
            return resumen

        return await self._correr("usuarios_admin", self._gis.obtener_datos_administrativos, reconciliar)

    async def sincronizar_ordenes(self, desde: Optional[str] = None) -> ResumenSync:
        desde = desde or self._desde_por_defecto
        paginas_fallidas: list[int] = []

        async def obtener() -> list[Any]:
            resultado = await obtener_todo(
                lambda pagina: self._gis.obtener_ordenes(desde, pagina=pagina, limite=self._limite_pagina),
                paralelo=self._paginas_en_paralelo,
                max_concurrencia=self._max_paginas_en_vuelo,
                contexto="ordenes GIS",
            )
            paginas_fallidas.extend(resultado.paginas_fallidas)
            logger.info(f"[sync:ordenes] Total de órdenes recibidas: {len(resultado.registros)} (from={desde})")
            return resultado.registros

        async def reconciliar(ordenes: list[Any]) -> ResumenSync:
            resumen = await self._reconciliador.reconciliar_lote(ordenes, ORDENES_TRABAJO)
            if paginas_fallidas:
                resumen.message = (
                    f"Sincronización parcial: no se pudieron obtener las páginas {paginas_fallidas}"
                )
            else:
                resumen.message = f"Sincronizadas {resumen.procesados} órdenes desde GIS (from={desde})"
            return resumen

        return await self._correr(ORDENES_TRABAJO.coleccion, obtener, reconciliar)

    async def _volcar_tabla(self, tabla: TablaCruda, items: list[Any]) -> int:
        operaciones: list[UpsertOne] = []
        for item in items:
            operacion = mapear_documento_crudo(item, tabla)
            if operacion is None:
                logger.warning(f"[sync:{tabla.nombre}] Item sin '{tabla.campo_id}', se omite: {str(item)[:100]}")
                continue
            operaciones.append(operacion)

        if not operaciones:
            return 0
        return await self._store.bulk_write(tabla.nombre, operaciones)

    async def sincronizar_datos_administrativos(self) -> ResultadoAdministrativo:
        """
        Vuelca el sobre administrativo completo: tablas crudas por bulk_write
        y empresas por el dominio reconciliado. Una tabla que falla no
        detiene al resto.
        """
        resultado = ResultadoAdministrativo()

        async def reconciliar(datos: Any) -> ResumenSync:
            for tabla in TABLAS_ADMINISTRATIVAS:
                try:
                    resultado.tablas[tabla.nombre] = await self._volcar_tabla(
                        tabla, extraer_coleccion(datos, tabla.nombre)
                    )
                except Exception as e:
                    logger.error(f"Error al procesar {tabla.nombre}: {e}")
                    resultado.tablas_fallidas.append(tabla.nombre)

            resultado.empresas = await self._reconciliador.reconciliar_lote(
                extraer_coleccion(datos, "empresas"), EMPRESAS
            )
            return resultado.empresas

        await self._correr("datos_administrativos", self._gis.obtener_datos_administrativos, reconciliar)
        return resultado

    async def sincronizar_proteccion(self) -> int:
        """Upsert por `id` de los registros de protección. Retorna documentos escritos."""
        dominio = PROTECCION.nombre
        self._estado(dominio, EstadoSync.IDLE)
        try:
            self._estado(dominio, EstadoSync.FETCHING)
            registros = await self._gis.obtener_datos_proteccion()
            self._estado(dominio, EstadoSync.RECONCILING)
            escritos = await self._volcar_tabla(PROTECCION, registros)
        except Exception as e:
            self._estado(dominio, EstadoSync.FAILED, str(e))
            raise
        self._estado(dominio, EstadoSync.DONE, f"{escritos} documentos")
        return escritos

    async def ejecutar_etl(self, desde: Optional[str] = None) -> ResultadoEtl:
        """
        ETL compuesto. Cada parte corre aunque la anterior haya fallado;
        el resultado es exitoso si al menos una parte terminó bien.
        """
        resultado = ResultadoEtl()

        try:
            admin = await self.sincronizar_datos_administrativos()
            resultado.datos_administrativos = ResultadoParteEtl(
                exito=True, cantidad=admin.documentos, resumen=admin.empresas
            )
        except Exception as e:
            logger.error(f"Error en datos administrativos: {e}")
            resultado.datos_administrativos = ResultadoParteEtl(error=str(e))

        try:
            ordenes = await self.sincronizar_ordenes(desde)
            resultado.ordenes_trabajo = ResultadoParteEtl(
                exito=True, cantidad=ordenes.procesados, resumen=ordenes
            )
        except Exception as e:
            logger.error(f"Error en órdenes de trabajo: {e}")
            resultado.ordenes_trabajo = ResultadoParteEtl(error=str(e))

        try:
            escritos = await self.sincronizar_proteccion()
            resultado.datos_proteccion = ResultadoParteEtl(exito=True, cantidad=escritos)
        except Exception as e:
            logger.error(f"Error en datos de protección: {e}")
            resultado.datos_proteccion = ResultadoParteEtl(error=str(e))

        if resultado.success:
            logger.success("Proceso ETL completado")
        else:
            logger.error("Proceso ETL falló completamente")
        return resultado
