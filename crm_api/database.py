# crm_api/database.py
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from crm_api.core.config import settings

# Define o motor de banco de dados assíncrono
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=True if settings.ENVIRONMENT == "development" else False,
    pool_pre_ping=True,
)

# Cria uma fábrica de sessões assíncronas.
# expire_on_commit=False: os objetos continuam legíveis depois do commit,
# já que o serviço os devolve e serializa fora da sessão.
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False,
)
