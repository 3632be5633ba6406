"""
Normalizador de registros del GIS.

Los endpoints del GIS no son uniformes: una misma empresa puede venir
identificada por `id`, `_id`, `idempresa`, `cod_empres` o `codigo`, y su
nombre por `empresa`, `nombre` o `razon_social`. Cada tipo de registro
tiene una estrategia explícita (candidatos en orden de prioridad) para
resolver una clave y un nombre canónicos.

La clave se convierte a número cuando es parseable: el almacén compara
claves de forma estricta en el tipo, así que 7 y "7" serían documentos
distintos.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Optional

from app.shared.exceptions.sync import RegistroInvalidoError

from .types import RegistroNormalizado

# solo notación decimal: sin "_", sin dígitos no ASCII, sin "inf" ni "nan"
_ENTERO = re.compile(r"[+-]?[0-9]+")
_DECIMAL = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


@dataclass(frozen=True)
class EstrategiaNormalizacion:
    """
    - candidatos_clave: campos de donde sale la clave, el primero no vacío gana
    - candidatos_nombre: campos de donde sale el nombre visible
    - nombre_fallback: plantilla con {clave} si no hay nombre
    """

    candidatos_clave: tuple[str, ...]
    candidatos_nombre: tuple[str, ...]
    nombre_fallback: str


ESTRATEGIAS: dict[str, EstrategiaNormalizacion] = {
    "empresa": EstrategiaNormalizacion(
        candidatos_clave=("id", "_id", "idempresa", "cod_empres", "codigo"),
        candidatos_nombre=("empresa", "nombre", "razon_social"),
        nombre_fallback="Proveedor {clave}",
    ),
    "usuario": EstrategiaNormalizacion(
        candidatos_clave=("id", "_id", "idusuario", "cod_usuario"),
        candidatos_nombre=("nombre", "usuario", "nombre_completo"),
        nombre_fallback="Supervisor {clave}",
    ),
    "orden": EstrategiaNormalizacion(
        candidatos_clave=("_id", "id"),
        candidatos_nombre=("actividad",),
        nombre_fallback="Orden {clave}",
    ),
    "proteccion": EstrategiaNormalizacion(
        candidatos_clave=("id", "_id"),
        candidatos_nombre=("nombre",),
        nombre_fallback="Registro {clave}",
    ),
}


def _es_vacio(valor: Any) -> bool:
    if valor is None or isinstance(valor, bool):
        return True
    if isinstance(valor, str):
        return not valor.strip()
    return False


def primer_valor(registro: dict[str, Any], candidatos: tuple[str, ...]) -> Any:
    """Retorna el valor del primer candidato presente y no vacío, o None."""
    for campo in candidatos:
        valor = registro.get(campo)
        if not _es_vacio(valor):
            return valor
    return None


def coercionar_clave(valor: Any) -> Optional[Any]:
    """
    Convierte el valor crudo en clave canónica.

    - enteros se mantienen; floats enteros (7.0) pasan a int
    - strings numéricos en notación decimal ("7", " 7 ", "7.0", "1e3") pasan
      a número; "1_000" o dígitos no ASCII quedan como texto
    - otros strings quedan tal cual (sin espacios en los bordes)
    - listas, dicts, NaN/inf -> None (no hay clave)
    """
    if isinstance(valor, bool):
        return None
    if isinstance(valor, int):
        return valor
    if isinstance(valor, float):
        if not math.isfinite(valor):
            return None
        return int(valor) if valor.is_integer() else valor
    if isinstance(valor, str):
        texto = valor.strip()
        if not texto:
            return None
        if _ENTERO.fullmatch(texto):
            return int(texto)
        if not _DECIMAL.fullmatch(texto):
            return texto
        numero = float(texto)
        if not math.isfinite(numero):
            return texto
        return int(numero) if numero.is_integer() else numero
    return None


def normalizar(
    registro: Any,
    tipo: str,
    *,
    requiere_numerica: bool = False,
) -> RegistroNormalizado:
    """
    Resuelve clave y nombre canónicos de un registro crudo.

    Args:
        registro: Registro tal como vino del GIS
        tipo: Clave de ESTRATEGIAS ("empresa", "usuario", "orden", "proteccion")
        requiere_numerica: Si True, una clave no entera invalida el registro

    Raises:
        RegistroInvalidoError: si no se puede derivar una clave
    """
    estrategia = ESTRATEGIAS[tipo]
    if not isinstance(registro, dict):
        raise RegistroInvalidoError(tipo, registro)

    clave = coercionar_clave(primer_valor(registro, estrategia.candidatos_clave))
    if clave is None:
        raise RegistroInvalidoError(tipo, registro)
    if requiere_numerica and not isinstance(clave, int):
        raise RegistroInvalidoError(tipo, registro)

    nombre = primer_valor(registro, estrategia.candidatos_nombre)
    if nombre is None:
        nombre = estrategia.nombre_fallback.format(clave=clave)

    return RegistroNormalizado(clave=clave, nombre=str(nombre).strip(), extras=dict(registro))
