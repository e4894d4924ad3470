"""
Fixtures compartilhadas dos testes.

- Banco: SQLAlchemy async sobre sqlite em memória (aiosqlite), tabelas
  criadas a partir dos modelos.
- Cache: FakeCache em memória com a mesma interface do RedisCache.
- Fábricas de dados de clientes.
"""
import fnmatch
import json
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from crm_api.crud.crud_cliente import CRUDCliente
from crm_api.db.base_class import Base
from crm_api.db.models import cliente  # noqa: F401
from crm_api.schemas.cliente import ClienteCreate
from crm_api.services.cliente_service import ClienteService

CPF_VALIDO = "52998224725"
CPF_VALIDO_2 = "11144477735"
CPF_VALIDO_3 = "39053344705"
CNPJ_VALIDO = "11222333000181"
CNPJ_VALIDO_2 = "03319508000145"


class FakeCache:
    """Cache em memória com a interface do RedisCache (get/set/delete/delete_pattern)."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.deleted_keys: List[str] = []
        self.deleted_patterns: List[str] = []
        self.is_connected = False

    async def connect(self):
        self.is_connected = True

    async def disconnect(self):
        self.is_connected = False

    async def get(self, key: str) -> Optional[Any]:
        value = self.store.get(key)
        return json.loads(value) if value is not None else None

    async def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        self.store[key] = json.dumps(value)
        self.ttls[key] = ttl
        return True

    async def delete(self, key: str) -> int:
        self.deleted_keys.append(key)
        return 1 if self.store.pop(key, None) is not None else 0

    async def delete_pattern(self, pattern: str) -> int:
        self.deleted_patterns.append(pattern)
        keys = [key for key in self.store if fnmatch.fnmatchcase(key, pattern)]
        for key in keys:
            del self.store[key]
        return len(keys)

    def is_healthy(self) -> bool:
        return self.is_connected

    def keys(self, prefix: str = "") -> List[str]:
        return [key for key in self.store if key.startswith(prefix)]


class BrokenCache:
    """Cache que falha em toda operação."""

    is_connected = True

    async def connect(self):
        pass

    async def disconnect(self):
        pass

    async def get(self, key):
        raise ConnectionError("redis fora do ar")

    async def set(self, key, value, ttl=300):
        raise ConnectionError("redis fora do ar")

    async def delete(self, key):
        raise ConnectionError("redis fora do ar")

    async def delete_pattern(self, pattern):
        raise ConnectionError("redis fora do ar")

    def is_healthy(self) -> bool:
        return False


class ClienteFactory:
    """Fábrica de payloads de criação de cliente."""

    @staticmethod
    def pf(nome: str = "Maria da Silva", cnpj_cpf: Optional[str] = CPF_VALIDO, **kwargs) -> ClienteCreate:
        return ClienteCreate(nome=nome, tipo="PF", cnpj_cpf=cnpj_cpf, **kwargs)

    @staticmethod
    def pj(nome: str = "Empresa Exemplo Ltda", cnpj_cpf: Optional[str] = CNPJ_VALIDO, **kwargs) -> ClienteCreate:
        return ClienteCreate(nome=nome, tipo="PJ", cnpj_cpf=cnpj_cpf, **kwargs)


@pytest.fixture
def cliente_factory():
    return ClienteFactory


@pytest.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def repository(session_factory):
    return CRUDCliente(session_factory)


@pytest.fixture
def cache():
    return FakeCache()


@pytest.fixture
def service(repository, cache):
    return ClienteService(repository, cache)


@pytest.fixture
def store_calls(repository, monkeypatch):
    """Conta as chamadas ao banco feitas pelo serviço."""
    calls = {"run_atomically": 0, "get": 0, "update": 0, "create": 0, "remove": 0}

    def spy(name):
        original = getattr(repository, name)

        async def wrapper(*args, **kwargs):
            calls[name] += 1
            return await original(*args, **kwargs)

        monkeypatch.setattr(repository, name, wrapper)

    for name in calls:
        spy(name)
    return calls
