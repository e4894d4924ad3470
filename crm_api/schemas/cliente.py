from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from crm_api.db.models.cliente import TipoCliente


# Os schemas de entrada só carregam tipos; as regras de negócio (nome
# obrigatório, CPF/CNPJ válido, email...) ficam no ClienteService.

class ClienteCreate(BaseModel):
    nome: Optional[str] = Field(None, examples=["Maria da Silva"])
    tipo: Optional[str] = Field(None, examples=["PF"])
    cnpj_cpf: Optional[str] = Field(None, examples=["529.982.247-25"])
    email: Optional[str] = Field(None, examples=["maria.silva@example.com"])
    telefone: Optional[str] = Field(None, examples=["(11) 99999-8888"])
    endereco: Optional[str] = Field(None, examples=["Rua das Flores, 123"])
    ativo: Optional[bool] = None


class ClienteUpdate(BaseModel):
    # Atualização parcial: só os campos presentes em model_fields_set são aplicados
    nome: Optional[str] = None
    tipo: Optional[str] = None
    cnpj_cpf: Optional[str] = None
    email: Optional[str] = None
    telefone: Optional[str] = None
    endereco: Optional[str] = None
    ativo: Optional[bool] = None


class Cliente(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    nome: str
    tipo: TipoCliente
    cnpj_cpf: Optional[str] = None
    email: Optional[str] = None
    telefone: Optional[str] = None
    endereco: Optional[str] = None
    ativo: bool = True
    created_at: datetime
    updated_at: datetime


class ClienteFiltros(BaseModel):
    nome: Optional[str] = None
    tipo: Optional[str] = None
    ativo: Optional[bool] = None
    search: Optional[str] = None


class Paginacao(BaseModel):
    page: Optional[int] = None
    limit: Optional[int] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class ClienteList(BaseModel):
    data: List[Cliente]
    pagination: PaginationMeta
