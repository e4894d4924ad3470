# crm_api/api/v1/endpoints/clientes.py
from typing import Any, Optional

from fastapi import APIRouter, Depends, Response, status

from crm_api import schemas
from crm_api.api import deps
from crm_api.services.cliente_service import ClienteService

router = APIRouter(dependencies=[Depends(deps.get_current_subject)])


@router.get("/", response_model=schemas.ClienteList)
async def read_clientes(
    nome: Optional[str] = None,
    tipo: Optional[str] = None,
    ativo: Optional[bool] = None,
    search: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    service: ClienteService = Depends(deps.get_cliente_service),
) -> Any:
    """
    Lista clientes com filtros, paginação e ordenação.
    """
    filtros = schemas.ClienteFiltros(nome=nome, tipo=tipo, ativo=ativo, search=search)
    paginacao = schemas.Paginacao(page=page, limit=limit, sort_by=sort_by, sort_order=sort_order)
    return await service.get_all_clientes(filtros, paginacao)


@router.get("/{cliente_id}", response_model=schemas.Cliente)
async def read_cliente_by_id(
    cliente_id: int,
    service: ClienteService = Depends(deps.get_cliente_service),
) -> Any:
    """
    Recupera um cliente pelo seu ID.
    """
    return await service.get_cliente_by_id(cliente_id)


@router.post("/", response_model=schemas.Cliente, status_code=status.HTTP_201_CREATED)
async def create_cliente(
    cliente_in: schemas.ClienteCreate,
    service: ClienteService = Depends(deps.get_cliente_service),
) -> Any:
    """
    Cria um novo cliente.
    """
    return await service.create_cliente(cliente_in)


@router.put("/{cliente_id}", response_model=schemas.Cliente)
async def update_cliente(
    cliente_id: int,
    cliente_in: schemas.ClienteUpdate,
    service: ClienteService = Depends(deps.get_cliente_service),
) -> Any:
    """
    Atualiza um cliente (parcialmente: só os campos enviados).
    """
    return await service.update_cliente(cliente_id, cliente_in)


@router.delete("/{cliente_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_cliente(
    cliente_id: int,
    service: ClienteService = Depends(deps.get_cliente_service),
) -> Response:
    """
    Remove um cliente definitivamente.
    """
    await service.delete_cliente(cliente_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
