"""
Servicios de aplicacion.

Contiene la logica de negocio reutilizable que no pertenece
a un caso de uso especifico.
"""
from app.application.services.ordenes_consulta import (
    ConsultaOrdenes,
    OrdenesConsultaService,
    PaginaOrdenes,
    listar_ordenes_locales,
    transformar_orden,
)

__all__ = [
    "ConsultaOrdenes",
    "OrdenesConsultaService",
    "PaginaOrdenes",
    "listar_ordenes_locales",
    "transformar_orden",
]
