import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from crm_api.api.errors import register_exception_handlers
from crm_api.api.v1.router import api_router_v1
from crm_api.core.config import settings
from crm_api.core.logging import setup_logging
from crm_api.crud.crud_cliente import CRUDCliente
from crm_api.db.base_class import Base
from crm_api.services.cliente_service import ClienteService
from crm_api.services.redis_service import RedisCache

logger = logging.getLogger(__name__)


def create_app(
    engine: Optional[AsyncEngine] = None,
    session_factory: Optional[async_sessionmaker] = None,
    cache=None,
) -> FastAPI:
    """
    Monta a aplicação. Banco e cache podem ser substituídos (testes);
    por padrão usa o engine de crm_api.database e o Redis das configurações.
    """
    if engine is None or session_factory is None:
        from crm_api.database import AsyncSessionLocal, engine as default_engine

        engine = engine or default_engine
        session_factory = session_factory or AsyncSessionLocal
    cache = cache if cache is not None else RedisCache()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="API de CRM - cadastro de clientes (PF/PJ) com cache Redis",
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        version=settings.PROJECT_VERSION,
        contact={
            "name": "Suporte Técnico",
            "email": settings.SUPPORT_EMAIL,
        },
    )

    # Configuração de CORS
    if settings.BACKEND_CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.cache = cache
    app.state.cliente_service = ClienteService(CRUDCliente(session_factory), cache)

    @app.on_event("startup")
    async def startup():
        await cache.connect()
        # Em produção, use migrações com Alembic
        if settings.ENVIRONMENT == "development":
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Tabelas criadas com sucesso (apenas em desenvolvimento)")

    @app.on_event("shutdown")
    async def shutdown():
        await cache.disconnect()
        await engine.dispose()

    register_exception_handlers(app)

    # Inclui todas as rotas da API V1
    app.include_router(api_router_v1, prefix=settings.API_V1_STR)

    @app.get("/", tags=["Root"])
    async def read_root():
        return {
            "message": f"Bem-vindo à API {settings.PROJECT_NAME} v{settings.PROJECT_VERSION}",
            "docs": "/docs",
            "status": "operacional",
            "environment": settings.ENVIRONMENT,
        }

    @app.get("/health", tags=["Health Check"])
    async def health_check():
        """Endpoint para verificação de saúde da API"""
        return {
            "status": "healthy",
            "cache": "connected" if cache.is_healthy() else "disconnected",
            "environment": settings.ENVIRONMENT,
        }

    return app


setup_logging()
app = create_app()
