"""
Tablas de propiedad de campos por colección (sincronización GIS).

Cada colección declara qué campos manda el GIS y cuáles son propiedad del
portal. Este módulo no realiza I/O: solo define configuración.

Grupos (disjuntos):
- campos_nombre / campos_clave / fijos: los escribe el GIS en cada sync
- opcionales_fuente: se copian solo si el GIS manda un valor no vacío
- fuente_con_default: los manda el GIS; si falta, se escribe el default
- campos_locales: el valor existente no vacío gana; si no hay, se siembra
  desde el GIS (solo los listados en sembrar_desde_fuente) o se usa el default
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from .types import isoformat_z

FiltrosLegacy = Callable[[Any], list[dict[str, Any]]]


def _fecha_creacion(ahora: datetime) -> str:
    return isoformat_z(ahora)


@dataclass(frozen=True)
class TablaPropiedad:
    """
    Propiedad de campos de una colección destino.

    NOTA sobre claves legacy:
    - filtros_legacy permite encontrar documentos creados antes con otra
      clave (p.ej. _id numérico en usuarios_admin). Si aparece uno, su clave
      se conserva: un documento nunca cambia de _id.
    - legacy_solo_fuente: en ese caso solo se refrescan los campos del GIS.
    """

    coleccion: str
    tipo: str
    campos_nombre: tuple[str, ...] = ("nombre",)
    campos_clave: tuple[str, ...] = ()
    fijos: Mapping[str, Any] = field(default_factory=dict)
    opcionales_fuente: tuple[str, ...] = ()
    fuente_con_default: Mapping[str, Any] = field(default_factory=dict)
    campos_locales: Mapping[str, Any] = field(default_factory=dict)
    sembrar_desde_fuente: frozenset[str] = frozenset()
    copiar_todo: bool = False
    marcar_sync: bool = True
    prefijo_clave: str = ""
    requiere_numerica: bool = False
    filtros_legacy: Optional[FiltrosLegacy] = None
    legacy_solo_fuente: bool = False

    def clave_documento(self, clave: Any) -> Any:
        """_id del documento local para una clave canónica."""
        if self.prefijo_clave:
            return f"{self.prefijo_clave}{clave}"
        return clave


EMPRESAS = TablaPropiedad(
    coleccion="empresas",
    tipo="empresa",
    campos_nombre=("empresa", "nombre"),
    campos_clave=("idempresa", "cod_empres"),
    opcionales_fuente=("razon_social",),
    campos_locales={
        "cuit": "",
        "telefono": "",
        "email": "",
        "rubros": "",
        "activo": True,
    },
    sembrar_desde_fuente=frozenset({"cuit", "telefono"}),
    filtros_legacy=lambda clave: [{"idempresa": clave}, {"cod_empres": clave}],
)

SUPERVISORES = TablaPropiedad(
    coleccion="supervisores",
    tipo="usuario",
    opcionales_fuente=("apellido", "rol"),
    campos_locales={
        "email": "",
        "telefono": "",
        "activo": True,
    },
)

# La API GIS usa el mismo número para una empresa y para un usuario
# (idempresa 14 y usuario 14 son entidades distintas): en usuarios_admin
# las claves llevan prefijo por rol.
USUARIOS_ADMIN_SUPERVISORES = TablaPropiedad(
    coleccion="usuarios_admin",
    tipo="usuario",
    campos_clave=("gisSupervisorId",),
    fijos={"rol": "supervisor"},
    fuente_con_default={"apellido": ""},
    campos_locales={
        "email": "",
        "password": "",
        "telefono": "",
        "activo": True,
        "fechaCreacion": _fecha_creacion,
    },
    prefijo_clave="supervisor_",
    requiere_numerica=True,
    filtros_legacy=lambda clave: [
        {"gisSupervisorId": clave, "rol": "supervisor"},
        {"_id": clave, "rol": "supervisor"},
    ],
    legacy_solo_fuente=True,
)

USUARIOS_ADMIN_PROVEEDORES = TablaPropiedad(
    coleccion="usuarios_admin",
    tipo="empresa",
    campos_clave=("idempresa",),
    fijos={"rol": "provider", "apellido": ""},
    campos_locales={
        "email": "",
        "password": "",
        "telefono": "",
        "cuit": "",
        "activo": True,
        "fechaCreacion": _fecha_creacion,
    },
    sembrar_desde_fuente=frozenset({"telefono", "cuit"}),
    prefijo_clave="provider_",
    requiere_numerica=True,
    filtros_legacy=lambda clave: [
        {"idempresa": clave, "rol": "provider"},
        {"_id": clave, "rol": "provider"},
    ],
    legacy_solo_fuente=True,
)

ORDENES_TRABAJO = TablaPropiedad(
    coleccion="ordenesTrabajoAPI",
    tipo="orden",
    campos_nombre=(),
    copiar_todo=True,
    marcar_sync=False,
)
