"""
Dependencias para inyección de repositorios.
"""
from app.domain.repositories.document_store import IDocumentStore
from app.infrastructure.database.session import get_engine
from app.infrastructure.repositories.document_store import SqlDocumentStore


async def get_document_store() -> IDocumentStore:
    """
    Dependencia para obtener el almacén de documentos.

    La primera llamada del proceso abre la conexión compartida; si falla se
    propaga AlmacenNoDisponibleError (HTTP 500).

    Returns:
        IDocumentStore: Almacén sobre el engine compartido
    """
    engine = await get_engine()
    return SqlDocumentStore(engine)
