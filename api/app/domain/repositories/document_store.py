"""
Interfaz del almacén de documentos.
Define el contrato que debe cumplir cualquier implementación.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

# Clave canónica de un documento: entero si es derivable, si no el string crudo
Clave = Any
Filtro = Dict[str, Any]


@dataclass(frozen=True)
class UpsertOne:
    """Operación de bulk_write: fija `campos` sobre el documento `clave`."""

    clave: Clave
    campos: Dict[str, Any] = field(default_factory=dict)


class IDocumentStore(ABC):
    """
    Interfaz del almacén de documentos por colección.

    Semántica de filtros (find/find_one/count):
    - {"campo": valor}: igualdad estricta (incluye "_id")
    - {"campo": {"$gte": a, "$lte": b}}: rango ($gt, $gte, $lt, $lte) sobre
      strings o números; los valores de otro tipo JSON no entran en el rango
    - {"$or": [filtro, ...]}: alguno de los sub-filtros coincide

    Un campo ausente no coincide con ningún filtro, tampoco con None.
    """

    @abstractmethod
    async def find_one(self, coleccion: str, filtro: Filtro) -> Optional[Dict[str, Any]]:
        """
        Obtiene el primer documento que cumple el filtro.

        Args:
            coleccion: Nombre de la colección
            filtro: Filtro de igualdad (ver docstring de la clase)

        Returns:
            Optional[dict]: Documento (incluye "_id") o None
        """
        pass

    @abstractmethod
    async def update_one(
        self,
        coleccion: str,
        clave: Clave,
        campos: Dict[str, Any],
        upsert: bool = True,
    ) -> bool:
        """
        Fija `campos` sobre el documento `clave` en una sola operación atómica.
        Los campos no mencionados del documento existente se conservan.

        Args:
            coleccion: Nombre de la colección
            clave: Clave canónica del documento
            campos: Campos a fijar
            upsert: Si True, inserta el documento cuando no existe

        Returns:
            bool: True si algún documento quedó escrito (siempre con upsert)
        """
        pass

    @abstractmethod
    async def bulk_write(self, coleccion: str, operaciones: Sequence[UpsertOne]) -> int:
        """
        Aplica un lote de upserts en una misma transacción.

        Returns:
            int: Cantidad de operaciones aplicadas
        """
        pass

    @abstractmethod
    async def find(
        self,
        coleccion: str,
        filtro: Optional[Filtro] = None,
        *,
        skip: int = 0,
        limit: Optional[int] = None,
        orden: Optional[Tuple[str, int]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Lista documentos de una colección.

        Args:
            orden: (campo, 1 | -1) para ordenar ascendente o descendente
        """
        pass

    @abstractmethod
    async def count(self, coleccion: str, filtro: Optional[Filtro] = None) -> int:
        """Cuenta los documentos que cumplen el filtro."""
        pass

    @abstractmethod
    async def delete_one(self, coleccion: str, clave: Clave) -> bool:
        """Elimina un documento. Retorna True si existía."""
        pass
