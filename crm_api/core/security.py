import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from crm_api.core.config import settings
from crm_api.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Cria um token JWT de acesso (usado por ferramentas internas e testes)."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta if expires_delta else timedelta(minutes=30))
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """Decodifica e valida um token JWT de acesso."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"Token decode error: {str(e)}")
        raise AuthenticationError("Token inválido ou expirado.") from e

    if payload.get("type") != "access" or not payload.get("sub"):
        logger.warning("Payload do token JWT inválido.")
        raise AuthenticationError("Token com conteúdo inválido.")
    return payload
