"""
app/database.py

Configuração do banco de dados via SQLAlchemy assíncrono.

Exporta:
- `engine`: engine assíncrona compartilhada
- `async_session_factory`: fábrica de sessões usada pelo `SqlStorage`
- `Base`: classe base para os modelos ORM
- `init_db()`: cria as tabelas na inicialização da aplicação
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import settings

# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

# check_same_thread só existe no driver SQLite
_connect_args = (
    {"check_same_thread": False}
    if settings.database_url.startswith("sqlite")
    else {}
)

engine = create_async_engine(
    settings.database_url,
    echo=False,
    connect_args=_connect_args,
)

# ---------------------------------------------------------------------------
# Fábrica de sessões
# ---------------------------------------------------------------------------

async_session_factory = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,  # evita lazy-load após commit em contexto assíncrono
    class_=AsyncSession,
)


# ---------------------------------------------------------------------------
# Base declarativa
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Inicialização
# ---------------------------------------------------------------------------

async def init_db() -> None:
    """
    Cria todas as tabelas definidas nos modelos ORM caso ainda não existam.
    Deve ser chamado uma única vez no startup da aplicação (lifespan do FastAPI).
    """
    # Importa os modelos para que o SQLAlchemy os registre no metadata da Base
    # antes de criar as tabelas.
    from app.models import account, blog, follow, note  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
