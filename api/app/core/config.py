"""
Configuracion central de la aplicacion.
Gestiona variables de entorno y configuraciones globales.
Soporta configuracion dinamica para desarrollo (ENVIRONMENT=development)
y produccion (ENVIRONMENT=production).
"""
import json
from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field, computed_field


class Settings(BaseSettings):
    """
    Clase de configuracion de la aplicacion.
    Lee variables de entorno y proporciona valores por defecto.

    Configuracion del almacen de documentos:
    - DATABASE_URL se puede especificar completa o por componentes
    - En desarrollo se puede usar sqlite+aiosqlite
    """

    # Configuracion de la aplicacion
    APP_NAME: str = Field(default="Portal Forestal - Sincronizacion GIS")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Configuracion del servidor
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # Base de datos - Componentes separados (recomendado para flexibilidad)
    DATABASE_HOST: str = Field(default="localhost")
    DATABASE_PORT: int = Field(default=5432)
    DATABASE_USER: str = Field(default="forestal_user")
    DATABASE_PASSWORD: str = Field(default="forestal_pass")
    DATABASE_NAME: str = Field(default="gestion_forestal")

    # Base de datos - URL completa (override de componentes si se proporciona)
    DATABASE_URL: str = Field(default="")
    DB_POOL_SIZE: int = Field(default=10)
    DB_MAX_OVERFLOW: int = Field(default=5)

    # API GIS (origen de la sincronizacion)
    ADMIN_API_URL: str = Field(default="https://gis.fasa.ibc.ar/ordenes/json-tablas-adm")
    WORK_ORDERS_API_URL: str = Field(default="https://gis.fasa.ibc.ar/api/ordenes/listar")
    PROTECTION_API_URL: str = Field(default="https://gis.fasa.ibc.ar/proteccion/json")
    WORK_ORDERS_API_KEY: str = Field(default="")
    WORK_ORDERS_FROM_DATE: str = Field(default="2020-01-01")
    WORK_ORDERS_PAGE_SIZE: int = Field(default=500)
    # Tope de paginas pedidas a la vez cuando el listado se lee en paralelo
    WORK_ORDERS_MAX_CONCURRENT_PAGES: int = Field(default=5)

    # Timeouts (segundos). El listado de ordenes es el mas pesado.
    GIS_ADMIN_TIMEOUT_S: float = Field(default=30.0)
    GIS_ORDERS_TIMEOUT_S: float = Field(default=120.0)
    GIS_PROTECTION_TIMEOUT_S: float = Field(default=30.0)

    # Listado paginado propio del portal (lado lectura)
    PORTAL_ORDERS_URL: str = Field(default="http://localhost:8000/api/v1/ordenesTrabajoAPI")
    PORTAL_ORDERS_PAGE_SIZE: int = Field(default=20)

    # Secreto compartido para disparos tipo cron (Authorization: Bearer <secreto>)
    CRON_SECRET: str = Field(default="")

    # CORS (acepta lista JSON o "*" para todos los origenes)
    CORS_ORIGINS: str = Field(default="*")

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/app.log")

    @computed_field
    @property
    def effective_database_url(self) -> str:
        """
        Retorna la URL de base de datos efectiva.
        Si DATABASE_URL esta definida, la usa directamente.
        Si no, construye la URL desde los componentes individuales.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}"
            f"@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"
        )

    @computed_field
    @property
    def is_development(self) -> bool:
        """Indica si el entorno es de desarrollo."""
        return self.ENVIRONMENT.lower() == "development"

    class Config:
        """Configuracion de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignorar campos extra del .env


def get_cors_origins(cors_string: str) -> List[str]:
    """
    Parsea la configuracion de CORS.
    Acepta "*" para todos los origenes o una lista JSON.
    """
    if cors_string == "*":
        return ["*"]
    try:
        return json.loads(cors_string)
    except json.JSONDecodeError:
        # Si no es JSON valido, retornar como lista simple
        return [origin.strip() for origin in cors_string.split(",")]


# Instancia global de configuracion
settings = Settings()
