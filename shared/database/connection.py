"""Conexión a la base de datos PostgreSQL"""
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
import os
from typing import AsyncGenerator
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

# Base para modelos SQLAlchemy
Base = declarative_base()

# Engine y session factory
engine = None
async_session_maker = None


def to_async_url(database_url: str) -> str:
    """Convertir una URL de base de datos a su driver async"""
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if database_url.startswith("postgresql+psycopg://"):
        return database_url.replace("postgresql+psycopg://", "postgresql+asyncpg://", 1)
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return database_url


async def init_db(create_tables: bool = False):
    """Inicializar conexión a la base de datos"""
    global engine, async_session_maker

    if engine is not None:
        logger.warning("Database engine already initialized, skipping...")
        return

    database_url = os.getenv("DATABASE_URL", settings.DATABASE_URL)

    logger.info(f"Initializing database connection to: {database_url.split('@')[1] if '@' in database_url else database_url}")

    # Limpiar parámetros SSL de la URL (se configuran en connect_args)
    if "?" in database_url:
        database_url = database_url.split("?")[0]
        logger.info("Removed query parameters from DATABASE_URL (SSL configured in connect_args)")

    database_url = to_async_url(database_url)
    logger.info(f"Using async driver: {database_url.split(':')[0]}")

    is_supabase = "pooler.supabase.com" in database_url or "supabase.com" in database_url
    is_sqlite = database_url.startswith("sqlite")

    connect_args = {}
    pool_config = {}
    if is_supabase:
        logger.info("Detected Supabase connection, configuring search_path and SSL")
        import ssl
        ssl_context = ssl.create_default_context()
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE

        connect_args = {
            "ssl": ssl_context,
            "server_settings": {
                "search_path": "public",
                "jit": "off"
            },
            "command_timeout": settings.STORE_TIMEOUT_SECONDS,
            "timeout": settings.STORE_TIMEOUT_SECONDS,
        }

    if not is_sqlite:
        pool_config = {
            "pool_pre_ping": True,  # Verificar conexiones antes de usar
            "pool_recycle": 180 if is_supabase else 300,
            "pool_timeout": 30,
            "pool_size": int(os.getenv("DATABASE_POOL_SIZE", "3" if is_supabase else "5")),
            "max_overflow": int(os.getenv("DATABASE_MAX_OVERFLOW", "5" if is_supabase else "10")),
        }
        logger.info(f"Pool config: size={pool_config['pool_size']}, overflow={pool_config['max_overflow']}")

    engine = create_async_engine(
        database_url,
        echo=os.getenv("APP_DEBUG", "False").lower() == "true",
        connect_args=connect_args,
        **pool_config
    )

    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    if create_tables:
        # Importar modelos para registrarlos en Base.metadata
        from shared.database import models  # noqa: F401
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    logger.info("Database engine initialized successfully")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency para obtener sesión de base de datos.

    Los errores del store se propagan tal cual; el cliente decide si reintenta.
    """
    if async_session_maker is None:
        logger.error("Database not initialized! Call init_db() first.")
        raise RuntimeError("Database not initialized. Please check application startup.")

    async with async_session_maker() as session:
        yield session


async def close_db():
    """Cerrar conexiones a la base de datos"""
    global engine, async_session_maker
    if engine:
        logger.info("Closing database connections...")
        await engine.dispose()
        engine = None
        async_session_maker = None
        logger.info("Database connections closed")
