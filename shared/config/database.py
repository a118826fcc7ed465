import os
from dotenv import load_dotenv
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

load_dotenv()

DB_USER = os.getenv("POSTGRES_USER", "postgres")
DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
DB_HOST = os.getenv("POSTGRES_HOST", "localhost") # In Docker, this will be 'postgres'
DB_PORT = os.getenv("POSTGRES_PORT", "5433")
DB_NAME = os.getenv("POSTGRES_DB", "ecommerce")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"
SQLITE_BEGIN_IMMEDIATE = os.getenv("SQLITE_BEGIN_IMMEDIATE", "false").lower() == "true"

# Every service keeps its tables in its own schema to simulate microservice isolation
SERVICE_SCHEMAS = ("auth_schema", "product_schema", "session_schema", "order_schema")

# Engines without schema support (sqlite) get the schema names translated away
SCHEMALESS_TRANSLATE_MAP = {schema: None for schema in SERVICE_SCHEMAS}


def _begin_immediate(engine: AsyncEngine) -> None:
    """
    SQLite ignores FOR UPDATE. BEGIN IMMEDIATE takes the database write lock when
    a transaction starts, so concurrent transactions serialize the way row locks
    serialize them on PostgreSQL.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(
    url: str = DATABASE_URL, echo: bool = SQL_ECHO, serialize_sqlite: bool = SQLITE_BEGIN_IMMEDIATE
) -> AsyncEngine:
    if url.startswith("postgresql"):
        return create_async_engine(url, echo=echo, pool_pre_ping=True)
    engine = create_async_engine(
        url,
        echo=echo,
        execution_options={"schema_translate_map": SCHEMALESS_TRANSLATE_MAP},
    )
    if serialize_sqlite and url.startswith("sqlite"):
        # every transaction, reads included, holds the single writer lock
        _begin_immediate(engine)
    return engine


engine = build_engine()

AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)

Base = declarative_base()


async def init_models(bind: AsyncEngine = engine) -> None:
    """Create the service schemas (PostgreSQL only) and all registered tables."""
    async with bind.begin() as conn:
        if conn.dialect.name == "postgresql":
            for schema in SERVICE_SCHEMAS:
                await conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {schema}"))
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    async with AsyncSessionLocal() as session:
        yield session
