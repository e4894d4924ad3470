# crm_api/services/cliente_service.py
"""
Serviço de clientes.

Orquestra validação, checagem de duplicidade de CPF/CNPJ, leitura com cache
(cache-aside) e invalidação do cache nas escritas.

Chaves de cache:
    cliente:id:{id}                      -> um cliente
    cliente:list:page:..:limit:..:...    -> uma página de listagem

As listagens não são invalidadas uma a uma (as combinações de filtros não
têm limite): toda escrita remove o namespace inteiro por padrão.
"""
import json
import logging
import math
from typing import Any, Dict, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from crm_api.core.exceptions import AppError, DuplicateError, NotFoundError, ValidationError
from crm_api.crud.crud_cliente import ClienteFiltro, CRUDCliente, Ordenacao, UniqueConstraintError
from crm_api.db.models.cliente import TipoCliente
from crm_api.schemas.cliente import (
    Cliente,
    ClienteCreate,
    ClienteFiltros,
    ClienteList,
    ClienteUpdate,
    Paginacao,
    PaginationMeta,
)
from crm_api.services.redis_service import CACHE_KEYS, CACHE_TTL
from crm_api.utils.documentos import is_valid_cnpj, is_valid_cpf, is_valid_email, limpar_documento

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

DEFAULT_LIMIT = 10
MAX_LIMIT = 100
NOME_MIN, NOME_MAX = 3, 100

# Campos aceitos em sort_by; as grafias camelCase do frontend também valem
CAMPOS_ORDENACAO = {
    "id": "id",
    "nome": "nome",
    "tipo": "tipo",
    "cnpj_cpf": "cnpj_cpf",
    "cnpjCpf": "cnpj_cpf",
    "ativo": "ativo",
    "email": "email",
    "created_at": "created_at",
    "createdAt": "created_at",
    "updated_at": "updated_at",
    "updatedAt": "updated_at",
}
DIRECOES_ORDENACAO = ("asc", "desc")

CAMPOS_ATUALIZAVEIS = ("nome", "tipo", "cnpj_cpf", "email", "telefone", "endereco", "ativo")


def _texto_ou_none(value: Optional[str]) -> Optional[str]:
    value = value.strip() if value else None
    return value or None


def _digitos_ou_none(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return limpar_documento(value) or None


def _email_ou_none(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return value.strip().lower() or None


SANITIZADORES = {
    "nome": lambda v: v.strip() if v is not None else v,
    "tipo": lambda v: TipoCliente(v) if v is not None else v,
    "cnpj_cpf": _digitos_ou_none,
    "email": _email_ou_none,
    "telefone": _digitos_ou_none,
    "endereco": _texto_ou_none,
    "ativo": lambda v: v,
}


class ClienteService:
    """
    Regras de negócio de clientes.

    Construído uma vez no startup com o repositório e o cache e injetado
    nas rotas. Qualquer objeto com get/set/delete/delete_pattern serve de cache;
    NullCache mantém o comportamento correto sem Redis.
    """

    def __init__(self, repository: CRUDCliente, cache):
        self.repository = repository
        self.cache = cache

    # ------------------------------------------------------------------
    # Leitura
    # ------------------------------------------------------------------

    async def get_all_clientes(
        self,
        filtros: Optional[ClienteFiltros] = None,
        paginacao: Optional[Paginacao] = None,
    ) -> ClienteList:
        paginacao = paginacao or Paginacao()
        page = max(1, paginacao.page or 1)
        limit = min(max(1, paginacao.limit or DEFAULT_LIMIT), MAX_LIMIT)
        skip = (page - 1) * limit

        filtro = self._build_filtro(filtros)
        ordenacao = self._build_order_by(paginacao)
        cache_key = self.list_cache_key(page, limit, filtros, ordenacao)

        cached = await self._cache_get(cache_key, ClienteList)
        if cached is not None:
            logger.info(f"Cache HIT para get_all_clientes: {cache_key}")
            return cached
        logger.info(f"Cache MISS para get_all_clientes: {cache_key}")

        try:
            clientes, total = await self.repository.run_atomically(
                lambda db: self.repository.get_multi(
                    filtro=filtro, ordenacao=ordenacao, skip=skip, limit=limit, db=db
                ),
                lambda db: self.repository.count(filtro=filtro, db=db),
            )
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Erro ao listar clientes: {e}", exc_info=True)
            raise AppError("Erro ao listar clientes.", 500) from e

        total_pages = math.ceil(total / limit)
        result = ClienteList(
            data=[Cliente.model_validate(c) for c in clientes],
            pagination=PaginationMeta(
                page=page,
                limit=limit,
                total=total,
                total_pages=total_pages,
                has_next=page < total_pages,
                has_prev=page > 1,
            ),
        )
        await self._cache_set(cache_key, result.model_dump(mode="json"), CACHE_TTL.MEDIUM)
        return result

    async def get_cliente_by_id(self, id: int) -> Cliente:
        if isinstance(id, bool) or not isinstance(id, int) or id <= 0:
            raise ValidationError("ID inválido")

        cache_key = f"{CACHE_KEYS.CLIENTE_BY_ID}:{id}"
        cached = await self._cache_get(cache_key, Cliente)
        if cached is not None:
            logger.info(f"Cache HIT para get_cliente_by_id: {cache_key}")
            return cached
        logger.info(f"Cache MISS para get_cliente_by_id: {cache_key}")

        try:
            db_cliente = await self.repository.get(id)
        except Exception as e:
            logger.error(f"Erro ao buscar cliente por ID {id}: {e}", exc_info=True)
            raise AppError("Erro ao buscar cliente por ID.", 500) from e

        if db_cliente is None:
            raise NotFoundError("Cliente", id)

        cliente = Cliente.model_validate(db_cliente)
        await self._cache_set(cache_key, cliente.model_dump(mode="json"), CACHE_TTL.MEDIUM)
        return cliente

    # ------------------------------------------------------------------
    # Escrita
    # ------------------------------------------------------------------

    async def create_cliente(self, data: ClienteCreate) -> Cliente:
        self._validate_cliente_data(data)

        if data.cnpj_cpf:
            await self._check_duplicate_cnpj_cpf(data.cnpj_cpf)

        clean_data = self._sanitize_data(data)

        try:
            db_cliente = await self.repository.create(obj_in=clean_data)
        except UniqueConstraintError as e:
            logger.warning(f"Violação de unicidade ao criar cliente: {e.fields}")
            raise self._duplicate_from_store(e, data) from e
        except Exception as e:
            logger.error(f"Erro ao criar cliente no banco: {e}", exc_info=True)
            raise AppError("Erro ao criar cliente.", 500) from e

        logger.info(f"Cliente criado: {db_cliente.id}")
        await self._cache_delete_pattern(f"{CACHE_KEYS.CLIENTE_LIST}:*")
        return Cliente.model_validate(db_cliente)

    async def update_cliente(self, id: int, data: ClienteUpdate) -> Cliente:
        existing = await self.get_cliente_by_id(id)  # verifica existência e traz os dados atuais
        campos = data.model_fields_set & set(CAMPOS_ATUALIZAVEIS)

        if "nome" in campos:
            self._validate_nome(data.nome)
        if "tipo" in campos:
            self._validate_tipo(data.tipo)
        if "email" in campos and data.email and not is_valid_email(data.email.strip()):
            raise ValidationError("Email inválido")

        novo_cnpj_cpf = limpar_documento(data.cnpj_cpf) if "cnpj_cpf" in campos and data.cnpj_cpf else None
        if novo_cnpj_cpf is not None and novo_cnpj_cpf != existing.cnpj_cpf:
            if not data.tipo:
                raise ValidationError(
                    'O campo "tipo" (PF/PJ) é obrigatório ao atualizar o CPF/CNPJ para um novo valor.'
                )
            self._validate_cnpj_cpf(novo_cnpj_cpf, data.tipo)
            await self._check_duplicate_cnpj_cpf(data.cnpj_cpf, exclude_id=id)
        elif data.tipo and "tipo" in campos and data.tipo != existing.tipo.value:
            # trocou o tipo mantendo o documento: o documento precisa continuar coerente
            documento = novo_cnpj_cpf or (existing.cnpj_cpf if "cnpj_cpf" not in campos else None)
            if documento:
                self._validate_cnpj_cpf(documento, data.tipo)

        clean_data = self._sanitize_update_data(data, campos)
        if not clean_data:
            logger.info(f"Nenhum dado válido fornecido para atualização do cliente {id}.")
            return existing

        try:
            db_cliente = await self.repository.update(id=id, obj_in=clean_data)
        except UniqueConstraintError as e:
            logger.warning(f"Violação de unicidade ao atualizar cliente {id}: {e.fields}")
            raise self._duplicate_from_store(e, data) from e
        except Exception as e:
            logger.error(f"Erro ao atualizar cliente {id} no banco: {e}", exc_info=True)
            raise AppError("Erro ao atualizar cliente.", 500) from e

        if db_cliente is None:
            # removido entre a leitura e a escrita
            await self._invalidate(id)
            raise NotFoundError("Cliente", id)

        logger.info(f"Cliente atualizado: {id}")
        await self._invalidate(id)
        return Cliente.model_validate(db_cliente)

    async def delete_cliente(self, id: int) -> None:
        await self.get_cliente_by_id(id)  # verifica existência

        try:
            await self.repository.remove(id=id)
        except Exception as e:
            logger.error(f"Erro ao deletar cliente {id}: {e}", exc_info=True)
            raise AppError("Erro ao deletar cliente.", 500) from e

        logger.info(f"Cliente deletado: {id}")
        await self._invalidate(id)

    # ------------------------------------------------------------------
    # Validação e sanitização
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_nome(nome: Optional[str]) -> None:
        nome = nome.strip() if nome else ""
        if not nome:
            raise ValidationError("Nome é obrigatório")
        if not NOME_MIN <= len(nome) <= NOME_MAX:
            raise ValidationError(f"Nome deve ter entre {NOME_MIN} e {NOME_MAX} caracteres")

    @staticmethod
    def _validate_tipo(tipo: Optional[str]) -> None:
        if not tipo:
            raise ValidationError("Tipo (PF/PJ) é obrigatório")
        if tipo not in TipoCliente._value2member_map_:
            raise ValidationError("Tipo deve ser PF ou PJ")

    @staticmethod
    def _validate_cnpj_cpf(cnpj_cpf: str, tipo: Optional[str]) -> None:
        documento = limpar_documento(cnpj_cpf)
        if tipo == TipoCliente.PF.value and not is_valid_cpf(documento):
            raise ValidationError("CPF inválido")
        if tipo == TipoCliente.PJ.value and not is_valid_cnpj(documento):
            raise ValidationError("CNPJ inválido")

    def _validate_cliente_data(self, data: ClienteCreate) -> None:
        self._validate_nome(data.nome)
        self._validate_tipo(data.tipo)
        if data.cnpj_cpf:
            self._validate_cnpj_cpf(data.cnpj_cpf, data.tipo)
        if data.email and not is_valid_email(data.email.strip()):
            raise ValidationError("Email inválido")

    @staticmethod
    def _sanitize_data(data: ClienteCreate) -> Dict[str, Any]:
        clean = {
            "nome": data.nome.strip(),
            "tipo": TipoCliente(data.tipo),
            "cnpj_cpf": _digitos_ou_none(data.cnpj_cpf),
            "email": _email_ou_none(data.email),
            "telefone": _digitos_ou_none(data.telefone),
            "endereco": _texto_ou_none(data.endereco),
        }
        if data.ativo is not None:
            clean["ativo"] = data.ativo
        return clean

    @staticmethod
    def _sanitize_update_data(data: ClienteUpdate, campos) -> Dict[str, Any]:
        clean = {}
        for campo in CAMPOS_ATUALIZAVEIS:
            if campo not in campos:
                continue
            value = getattr(data, campo)
            # ativo não aceita nulo; null explícito é ignorado
            if value is None and campo == "ativo":
                continue
            clean[campo] = SANITIZADORES[campo](value)
        return clean

    # ------------------------------------------------------------------
    # Duplicidade
    # ------------------------------------------------------------------

    async def _check_duplicate_cnpj_cpf(self, cnpj_cpf: str, exclude_id: Optional[int] = None) -> None:
        filtro = ClienteFiltro(cnpj_cpf=limpar_documento(cnpj_cpf), excluir_id=exclude_id)
        try:
            existing = await self.repository.get_first(filtro=filtro)
        except Exception as e:
            logger.error(f"Erro ao verificar duplicidade de CPF/CNPJ: {e}", exc_info=True)
            raise AppError("Erro ao verificar duplicidade de CPF/CNPJ.", 500) from e

        if existing is not None:
            raise DuplicateError("CPF/CNPJ", cnpj_cpf)

    @staticmethod
    def _duplicate_from_store(
        error: UniqueConstraintError, data: Union[ClienteCreate, ClienteUpdate]
    ) -> DuplicateError:
        fields = error.fields or ["campo desconhecido"]
        value = "valor não especificado"
        if "cnpj_cpf" in fields and data.cnpj_cpf:
            value = data.cnpj_cpf
        elif "email" in fields and data.email:
            value = data.email
        return DuplicateError(", ".join(fields), value)

    # ------------------------------------------------------------------
    # Filtros, ordenação e chaves de cache
    # ------------------------------------------------------------------

    @staticmethod
    def _build_filtro(filtros: Optional[ClienteFiltros]) -> Optional[ClienteFiltro]:
        if filtros is None:
            return None

        filtro = ClienteFiltro()
        if filtros.nome:
            filtro.nome = filtros.nome
        if filtros.tipo:
            if filtros.tipo not in TipoCliente._value2member_map_:
                raise ValidationError("Tipo deve ser PF ou PJ")
            filtro.tipo = TipoCliente(filtros.tipo)
        if filtros.ativo is not None:
            filtro.ativo = filtros.ativo
        if filtros.search:
            filtro.search = filtros.search
            # busca só letras nunca compara com o CPF/CNPJ armazenado
            filtro.search_digitos = limpar_documento(filtros.search) or None
        return filtro

    @staticmethod
    def _build_order_by(paginacao: Optional[Paginacao]) -> Ordenacao:
        sort_by, sort_order = "id", "desc"
        if paginacao is not None and paginacao.sort_by:
            if paginacao.sort_by in CAMPOS_ORDENACAO:
                sort_by = CAMPOS_ORDENACAO[paginacao.sort_by]
            else:
                logger.warning(
                    f"Tentativa de ordenação por campo inválido: {paginacao.sort_by}. Usando padrão (id)."
                )
        if paginacao is not None and paginacao.sort_order in DIRECOES_ORDENACAO:
            sort_order = paginacao.sort_order
        return sort_by, sort_order

    @staticmethod
    def list_cache_key(
        page: int, limit: int, filtros: Optional[ClienteFiltros], ordenacao: Ordenacao
    ) -> str:
        filters_json = json.dumps(
            filtros.model_dump(exclude_none=True) if filtros is not None else None, sort_keys=True
        )
        order_json = json.dumps({ordenacao[0]: ordenacao[1]})
        return f"{CACHE_KEYS.CLIENTE_LIST}:page:{page}:limit:{limit}:filters:{filters_json}:orderBy:{order_json}"

    # ------------------------------------------------------------------
    # Cache (falhas nunca interrompem a operação)
    # ------------------------------------------------------------------

    async def _cache_get(self, key: str, model: Type[M]) -> Optional[M]:
        try:
            cached = await self.cache.get(key)
        except Exception as e:
            logger.warning(f"Erro ao buscar do cache {key}: {e}")
            return None
        if cached is None:
            return None
        try:
            return model.model_validate(cached)
        except PydanticValidationError as e:
            # payload de outra versão do schema: trata como miss
            logger.warning(f"Valor inválido no cache {key}, ignorando: {e}")
            return None

    async def _cache_set(self, key: str, value: Any, ttl: int) -> None:
        try:
            await self.cache.set(key, value, ttl)
        except Exception as e:
            logger.warning(f"Erro ao salvar no cache {key}: {e}")

    async def _cache_delete(self, key: str) -> None:
        try:
            await self.cache.delete(key)
        except Exception as e:
            logger.warning(f"Erro ao invalidar cache {key}: {e}")

    async def _cache_delete_pattern(self, pattern: str) -> None:
        try:
            await self.cache.delete_pattern(pattern)
        except Exception as e:
            logger.warning(f"Erro ao invalidar cache {pattern}: {e}")

    async def _invalidate(self, id: int) -> None:
        await self._cache_delete(f"{CACHE_KEYS.CLIENTE_BY_ID}:{id}")
        await self._cache_delete_pattern(f"{CACHE_KEYS.CLIENTE_LIST}:*")
