# crm_api/api/deps.py
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from crm_api.core import security
from crm_api.core.exceptions import AuthenticationError
from crm_api.services.cliente_service import ClienteService

reusable_bearer = HTTPBearer(auto_error=False)


def get_cliente_service(request: Request) -> ClienteService:
    # Instância criada no startup (ver crm_api.main)
    return request.app.state.cliente_service


def get_current_subject(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(reusable_bearer),
) -> str:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Token de autenticação não fornecido.")
    payload = security.decode_token(credentials.credentials)
    return str(payload["sub"])
