# crm_api/services/redis_service.py
import json
import logging
import time
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from crm_api.core.config import settings

logger = logging.getLogger(__name__)


class CACHE_KEYS:
    CLIENTE_LIST = "cliente:list"
    CLIENTE_BY_ID = "cliente:id"


class CACHE_TTL:
    """TTLs em segundos."""
    SHORT = 60  # 1 minuto
    MEDIUM = 300  # 5 minutos
    LONG = 1800  # 30 minutos
    VERY_LONG = 3600  # 1 hora


# intervalo mínimo entre tentativas de reconexão, em segundos
RECONNECT_INTERVAL = 5.0


class RedisCache:
    """
    Cache chave/valor com TTL sobre o Redis.

    O cache é só uma otimização: nenhum método propaga erro para quem chama.
    Falha de leitura vira miss, falha de escrita/remoção vira no-op.

    Se o Redis estiver fora do ar, cada operação tenta reconectar, no máximo
    uma vez a cada `reconnect_interval` segundos. Depois de `disconnect()`
    (shutdown da aplicação) não há mais reconexão.
    """

    def __init__(
        self,
        host: str = settings.REDIS_HOST,
        port: int = settings.REDIS_PORT,
        password: Optional[str] = settings.REDIS_PASSWORD,
        db: int = settings.REDIS_DB,
        client: Optional[redis.Redis] = None,
        reconnect_interval: float = RECONNECT_INTERVAL,
    ):
        self.host = host
        self.port = port
        self.password = password
        self.db = db
        self.reconnect_interval = reconnect_interval
        self._client = client
        self.is_connected = client is not None
        self._closed = False
        self._next_attempt = 0.0

    async def connect(self):
        if self._client is not None and self.is_connected:
            return
        self._closed = False
        try:
            self._client = redis.Redis(
                host=self.host,
                port=self.port,
                password=self.password,
                db=self.db,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
            )
            # Test connection
            await self._client.ping()
            self.is_connected = True
            logger.info(f"Conectado ao Redis em {self.host}:{self.port}")
        except (RedisError, OSError) as e:
            logger.error(f"Falha ao conectar ao Redis: {e}")
            self._client = None
            self.is_connected = False
            self._next_attempt = time.monotonic() + self.reconnect_interval

    async def disconnect(self):
        self._closed = True
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self.is_connected = False
            logger.info("Desconectado do Redis.")

    async def _ensure_connection(self) -> bool:
        if self.is_connected:
            return True
        if self._closed or time.monotonic() < self._next_attempt:
            return False
        logger.info("Tentando reconectar ao Redis...")
        await self.connect()
        return self.is_connected

    async def get(self, key: str) -> Optional[Any]:
        if not await self._ensure_connection():
            return None
        try:
            value = await self._client.get(key)
            return json.loads(value) if value is not None else None
        except (RedisError, OSError, ValueError) as e:
            logger.error(f"Erro ao buscar cache: {key} ({e})")
            return None

    async def set(self, key: str, value: Any, ttl: int = CACHE_TTL.MEDIUM) -> bool:
        if not await self._ensure_connection():
            return False
        try:
            await self._client.setex(key, ttl, json.dumps(value))
            return True
        except (RedisError, OSError, TypeError, ValueError) as e:
            logger.error(f"Erro ao salvar cache: {key} ({e})")
            return False

    async def delete(self, key: str) -> int:
        if not await self._ensure_connection():
            return 0
        try:
            return await self._client.delete(key)
        except (RedisError, OSError) as e:
            logger.error(f"Erro ao deletar cache: {key} ({e})")
            return 0

    async def delete_pattern(self, pattern: str) -> int:
        """Remove todas as chaves que casam com o padrão (glob do Redis)."""
        if not await self._ensure_connection():
            return 0
        try:
            keys = [key async for key in self._client.scan_iter(match=pattern, count=500)]
            if not keys:
                return 0
            return await self._client.delete(*keys)
        except (RedisError, OSError) as e:
            logger.error(f"Erro ao deletar cache: {pattern} ({e})")
            return 0

    def is_healthy(self) -> bool:
        return self.is_connected


class NullCache:
    """Cache que nunca guarda nada (sempre miss). Útil sem Redis e em testes."""

    is_connected = False

    async def connect(self):
        pass

    async def disconnect(self):
        pass

    async def get(self, key: str) -> Optional[Any]:
        return None

    async def set(self, key: str, value: Any, ttl: int = CACHE_TTL.MEDIUM) -> bool:
        return False

    async def delete(self, key: str) -> int:
        return 0

    async def delete_pattern(self, pattern: str) -> int:
        return 0

    def is_healthy(self) -> bool:
        return False
