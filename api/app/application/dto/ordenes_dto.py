"""
DTOs de consulta de órdenes de trabajo.
"""

from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, Field


class PaginacionDTO(BaseModel):
    total: int
    pagina: int
    limite: int
    paginas: int


class OrdenesPaginadasDTO(BaseModel):
    """Página del listado local (misma forma que consume el portal)."""

    ordenes: List[Dict[str, Any]]
    paginacion: PaginacionDTO


class OrdenesSupervisorDTO(BaseModel):
    """Órdenes de un supervisor, leídas de todas las páginas del listado."""

    ordenes: List[Dict[str, Any]]
    total: int
    completo: bool = Field(True, description="False si alguna página del listado no respondió")
    paginas_fallidas: List[int] = Field(default_factory=list)
