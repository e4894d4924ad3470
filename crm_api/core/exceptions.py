"""
Erros de aplicação.

Erros operacionais são condições previstas (entrada inválida, recurso não
encontrado, duplicidade) e carregam o status HTTP que a camada de API usa
para montar a resposta. Qualquer outra exceção é tratada como erro interno.
"""
from typing import Any, List, Optional, Union


class AppError(Exception):
    """Base para erros operacionais da aplicação."""

    def __init__(self, message: str, status_code: int = 500, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.errors = errors or []


class ValidationError(AppError):
    """Dados de entrada malformados ou ausentes (400)."""

    def __init__(self, message: str = "Erro de validação nos dados de entrada.", errors: Optional[List[Any]] = None):
        super().__init__(message, 400, errors)


class NotFoundError(AppError):
    """Recurso referenciado não existe (404)."""

    def __init__(self, resource: str, id: Optional[Union[int, str]] = None):
        self.resource = resource
        self.id = id
        message = f"{resource} com ID '{id}' não encontrado(a)." if id is not None else f"{resource} não encontrado(a)."
        super().__init__(message, 404)


class DuplicateError(AppError):
    """Valor já usado por outro registro em um campo único (409)."""

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"O campo '{field}' com o valor '{value}' já está em uso.", 409)


class AuthenticationError(AppError):
    def __init__(self, message: str = "Não autenticado."):
        super().__init__(message, 401)
