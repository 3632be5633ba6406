"""
Implementación SQL (SQLAlchemy async) del almacén de documentos.

Cada documento vive en la tabla `documentos` bajo (coleccion, doc_id).
Las escrituras son UPSERT atómicos (INSERT ... ON CONFLICT DO UPDATE)
que fusionan los campos nuevos sobre el JSON existente:
- PostgreSQL: `data || EXCLUDED.data` (JSONB)
- SQLite: `json_patch(data, excluded.data)`

Los filtros, el orden y la paginación se traducen a SQL:
- PostgreSQL: igualdad por contención (`data @> '{"campo": valor}'`),
  que usa el índice GIN de la tabla
- SQLite: `json_type` + `json_extract`, para que 7, "7" y true no
  se confundan entre sí

Nota: json_patch sigue RFC 7396, por lo que en SQLite un campo fijado
a None se elimina del documento en vez de quedar en null.
"""
import json
import operator
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import (
    Numeric,
    Text,
    and_,
    bindparam,
    case,
    cast,
    delete,
    false,
    func,
    literal,
    or_,
    select,
    true,
    update,
)
from sqlalchemy.dialects.postgresql import JSONB, insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from app.domain.repositories.document_store import (
    Clave,
    Filtro,
    IDocumentStore,
    UpsertOne,
)
from app.infrastructure.database.models import DocumentoModel


_tabla = DocumentoModel.__table__

_OPERADORES_RANGO = {
    "$gt": operator.gt,
    "$gte": operator.ge,
    "$lt": operator.lt,
    "$lte": operator.le,
}


def codificar_clave(clave: Clave) -> str:
    """Codifica la clave en JSON: 7 -> '7', "7" -> '"7"'."""
    return json.dumps(clave, ensure_ascii=False)


def decodificar_clave(doc_id: str) -> Clave:
    return json.loads(doc_id)


def _es_numero(valor: Any) -> bool:
    return isinstance(valor, (int, float)) and not isinstance(valor, bool)


def _es_rango(valor: Any) -> bool:
    return isinstance(valor, dict) and bool(valor) and all(k in _OPERADORES_RANGO for k in valor)


def _ruta_sqlite(campo: str) -> str:
    if '"' in campo:
        raise ValueError(f"Nombre de campo no soportado en filtros: {campo!r}")
    return f'$."{campo}"'


class SqlDocumentStore(IDocumentStore):
    """
    Almacén de documentos sobre una tabla SQL con columna JSON.
    """

    def __init__(self, engine: AsyncEngine):
        self._engine = engine
        self._dialecto = engine.dialect.name

    # ------------------------------------------------------------------
    # Helpers de escritura
    # ------------------------------------------------------------------

    @property
    def _es_postgres(self) -> bool:
        return self._dialecto == "postgresql"

    def _fusionar(self, actual, nuevo):
        """Expresión SQL que fusiona el JSON `nuevo` sobre `actual`."""
        if self._es_postgres:
            return actual.op("||")(nuevo)
        return func.json_patch(actual, nuevo)

    def _insert(self):
        if self._es_postgres:
            return pg_insert(_tabla)
        return sqlite_insert(_tabla)

    async def _upsert(self, conn: AsyncConnection, coleccion: str, clave: Clave, campos: Dict[str, Any]) -> None:
        data = {k: v for k, v in campos.items() if k != "_id"}
        stmt = self._insert().values(
            coleccion=coleccion,
            doc_id=codificar_clave(clave),
            data=data,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[_tabla.c.coleccion, _tabla.c.doc_id],
            set_={
                "data": self._fusionar(_tabla.c.data, stmt.excluded.data),
                "updated_at": func.now(),
            },
        )
        await conn.execute(stmt)

    @staticmethod
    def _a_documento(doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        documento = {"_id": decodificar_clave(doc_id)}
        documento.update(data or {})
        return documento

    # ------------------------------------------------------------------
    # Traducción de filtros a SQL
    # ------------------------------------------------------------------

    def _campo_jsonb(self, campo: str):
        return _tabla.c.data.op("->", return_type=JSONB)(literal(campo, Text))

    def _campo_texto(self, campo: str):
        return _tabla.c.data.op("->>", return_type=Text)(literal(campo, Text))

    def _tipo_sqlite(self, campo: str):
        return func.json_type(_tabla.c.data, _ruta_sqlite(campo))

    def _valor_sqlite(self, campo: str):
        return func.json_extract(_tabla.c.data, _ruta_sqlite(campo))

    def _igualdad(self, campo: str, valor: Any):
        if campo == "_id":
            return _tabla.c.doc_id == codificar_clave(valor)
        if not (valor is None or isinstance(valor, (bool, int, float, str))):
            raise ValueError(f"Filtro no soportado para '{campo}': {valor!r}")

        if self._es_postgres:
            return _tabla.c.data.op("@>", is_comparison=True)(literal({campo: valor}, JSONB))

        tipo = self._tipo_sqlite(campo)
        if valor is None:
            return tipo == "null"
        if isinstance(valor, bool):
            return tipo == ("true" if valor else "false")
        if _es_numero(valor):
            return and_(tipo.in_(("integer", "real")), self._valor_sqlite(campo) == literal(valor))
        return and_(tipo == "text", self._valor_sqlite(campo) == literal(valor))

    def _escalar(self, campo: str, numerico: bool):
        """Valor del campo como escalar SQL; NULL si su tipo JSON no es el pedido."""
        if self._es_postgres:
            tipo = func.jsonb_typeof(self._campo_jsonb(campo))
            if numerico:
                return case((tipo == "number", cast(self._campo_texto(campo), Numeric)))
            return case((tipo == "string", self._campo_texto(campo)))

        tipos = ("integer", "real") if numerico else ("text",)
        return case((self._tipo_sqlite(campo).in_(tipos), self._valor_sqlite(campo)))

    def _rango(self, campo: str, rango: Dict[str, Any]):
        if campo == "_id":
            raise ValueError("Los filtros de rango sobre _id no están soportados")
        condiciones = []
        for op, limite in rango.items():
            if not (_es_numero(limite) or isinstance(limite, str)):
                raise ValueError(f"Límite de rango no soportado para '{campo}': {limite!r}")
            comparar = _OPERADORES_RANGO[op]
            condiciones.append(comparar(self._escalar(campo, _es_numero(limite)), literal(limite)))
        return and_(*condiciones)

    def _condicion(self, filtro: Optional[Filtro]):
        condiciones = []
        for campo, esperado in (filtro or {}).items():
            if campo == "$or":
                alternativas = [self._condicion(sub) for sub in esperado]
                condiciones.append(or_(*alternativas) if alternativas else false())
            elif _es_rango(esperado):
                condiciones.append(self._rango(campo, esperado))
            else:
                condiciones.append(self._igualdad(campo, esperado))
        return and_(true(), *condiciones)

    def _expresion_orden(self, campo: str):
        if self._es_postgres:
            if campo == "_id":
                return cast(_tabla.c.doc_id, JSONB)
            return self._campo_jsonb(campo)
        if campo == "_id":
            return func.json_extract(_tabla.c.doc_id, "$")
        return self._valor_sqlite(campo)

    # ------------------------------------------------------------------
    # IDocumentStore
    # ------------------------------------------------------------------

    async def find_one(self, coleccion: str, filtro: Filtro) -> Optional[Dict[str, Any]]:
        documentos = await self.find(coleccion, filtro, limit=1)
        return documentos[0] if documentos else None

    async def update_one(
        self,
        coleccion: str,
        clave: Clave,
        campos: Dict[str, Any],
        upsert: bool = True,
    ) -> bool:
        async with self._engine.begin() as conn:
            if upsert:
                await self._upsert(conn, coleccion, clave, campos)
                return True

            data = {k: v for k, v in campos.items() if k != "_id"}
            nuevo = bindparam("nuevo", value=data, type_=_tabla.c.data.type)
            result = await conn.execute(
                update(_tabla)
                .where(
                    _tabla.c.coleccion == coleccion,
                    _tabla.c.doc_id == codificar_clave(clave),
                )
                .values(data=self._fusionar(_tabla.c.data, nuevo), updated_at=func.now())
            )
            return (result.rowcount or 0) > 0

    async def bulk_write(self, coleccion: str, operaciones: Sequence[UpsertOne]) -> int:
        if not operaciones:
            return 0
        async with self._engine.begin() as conn:
            for op in operaciones:
                await self._upsert(conn, coleccion, op.clave, op.campos)
        return len(operaciones)

    async def find(
        self,
        coleccion: str,
        filtro: Optional[Filtro] = None,
        *,
        skip: int = 0,
        limit: Optional[int] = None,
        orden: Optional[Tuple[str, int]] = None,
    ) -> List[Dict[str, Any]]:
        query = select(_tabla.c.doc_id, _tabla.c.data).where(
            _tabla.c.coleccion == coleccion,
            self._condicion(filtro),
        )
        if orden:
            campo, direccion = orden
            expresion = self._expresion_orden(campo)
            # ausentes al final en descendente y al principio en ascendente
            query = query.order_by(
                expresion.desc().nulls_last() if direccion < 0 else expresion.asc().nulls_first()
            )
        query = query.order_by(_tabla.c.created_at, _tabla.c.doc_id)
        if skip:
            query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)

        async with self._engine.connect() as conn:
            rows = (await conn.execute(query)).all()
        return [self._a_documento(r.doc_id, r.data) for r in rows]

    async def count(self, coleccion: str, filtro: Optional[Filtro] = None) -> int:
        query = (
            select(func.count())
            .select_from(_tabla)
            .where(_tabla.c.coleccion == coleccion, self._condicion(filtro))
        )
        async with self._engine.connect() as conn:
            return int((await conn.execute(query)).scalar_one())

    async def delete_one(self, coleccion: str, clave: Clave) -> bool:
        async with self._engine.begin() as conn:
            result = await conn.execute(
                delete(_tabla).where(
                    _tabla.c.coleccion == coleccion,
                    _tabla.c.doc_id == codificar_clave(clave),
                )
            )
        return (result.rowcount or 0) > 0
