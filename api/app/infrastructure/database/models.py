"""
Modelos de base de datos (ORM).
"""
from sqlalchemy import Column, String, DateTime, Index, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from app.infrastructure.database.session import Base


class DocumentoModel(Base):
    """
    Documento de una colección del portal.

    La clave (_id) se persiste codificada en JSON para que el almacén
    distinga 7 de "7": la búsqueda por clave es estricta en el tipo.
    """

    __tablename__ = "documentos"
    __table_args__ = (
        # filtros por contencion (data @> ...) en PostgreSQL
        Index(
            "ix_documentos_data",
            "data",
            postgresql_using="gin",
            postgresql_ops={"data": "jsonb_path_ops"},
        ).ddl_if(dialect="postgresql"),
    )

    coleccion = Column(String(100), primary_key=True)
    doc_id = Column(String(255), primary_key=True)
    data = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Documento(coleccion={self.coleccion}, doc_id={self.doc_id})>"
