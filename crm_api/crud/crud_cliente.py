# crm_api/crud/crud_cliente.py
import re
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crm_api.db.models.cliente import Cliente, TipoCliente


class RepositoryError(Exception):
    """Falha genérica de I/O no banco."""


class UniqueConstraintError(RepositoryError):
    """Violação de unicidade reportada pelo banco, com o(s) campo(s) envolvido(s)."""

    def __init__(self, fields: List[str], message: str = ""):
        super().__init__(message or f"Unique constraint failed: {', '.join(fields)}")
        self.fields = fields


@dataclass
class ClienteFiltro:
    """
    Critérios de busca de clientes.

    Attributes:
        nome: substring do nome, sem diferenciar maiúsculas
        tipo: PF ou PJ (exato)
        ativo: flag ativo (exato)
        search: substring do nome (OR com search_digitos)
        search_digitos: substring do CPF/CNPJ armazenado
        cnpj_cpf: CPF/CNPJ exato (somente dígitos)
        excluir_id: ignora o cliente com esse id
    """
    nome: Optional[str] = None
    tipo: Optional[TipoCliente] = None
    ativo: Optional[bool] = None
    search: Optional[str] = None
    search_digitos: Optional[str] = None
    cnpj_cpf: Optional[str] = None
    excluir_id: Optional[int] = None


Ordenacao = Tuple[str, str]  # (campo, "asc" | "desc")
OperacaoLeitura = Callable[[AsyncSession], Awaitable[Any]]

# sqlite: "UNIQUE constraint failed: clientes.cnpj_cpf"
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: ([\w., ]+)")
# postgres: 'Key (cnpj_cpf)=(52998224725) already exists.'
_POSTGRES_UNIQUE = re.compile(r"Key \(([^)]+)\)=")
# postgres: 'duplicate key value violates unique constraint "ix_clientes_cnpj_cpf"'
_POSTGRES_CONSTRAINT = re.compile(r'unique constraint "([^"]+)"')

# índices/constraints únicos da tabela -> colunas
CONSTRAINTS_UNICAS = {
    "ix_clientes_cnpj_cpf": ["cnpj_cpf"],
    "clientes_cnpj_cpf_key": ["cnpj_cpf"],
}


def _campos_unicos(exc: IntegrityError) -> Optional[List[str]]:
    orig = exc.orig
    # Com asyncpg o SQLAlchemy repassa só a primeira linha da mensagem; o erro
    # do driver (constraint_name, detail) fica em __cause__.
    causa = getattr(orig, "__cause__", None)
    constraint = getattr(causa, "constraint_name", None)
    if constraint in CONSTRAINTS_UNICAS:
        return list(CONSTRAINTS_UNICAS[constraint])

    mensagem = str(orig) if orig is not None else str(exc)
    detalhe = getattr(causa, "detail", None)
    if detalhe:
        mensagem = f"{mensagem}\n{detalhe}"

    match = _POSTGRES_CONSTRAINT.search(mensagem)
    if match and match.group(1) in CONSTRAINTS_UNICAS:
        return list(CONSTRAINTS_UNICAS[match.group(1)])
    match = _SQLITE_UNIQUE.search(mensagem)
    if match:
        return [campo.strip().split(".")[-1] for campo in match.group(1).split(",")]
    match = _POSTGRES_UNIQUE.search(mensagem)
    if match:
        return [campo.strip().strip('"') for campo in match.group(1).split(",")]
    if "unique" in mensagem.lower() or "duplicate key" in mensagem.lower():
        return ["campo desconhecido"]
    return None


@contextmanager
def _erros_do_banco(operacao: str):
    try:
        yield
    except IntegrityError as exc:
        campos = _campos_unicos(exc)
        if campos is not None:
            raise UniqueConstraintError(campos, str(exc.orig)) from exc
        raise RepositoryError(f"Erro de integridade ao {operacao}: {exc.orig}") from exc
    except (SQLAlchemyError, OSError) as exc:
        raise RepositoryError(f"Erro no banco ao {operacao}: {exc}") from exc


def _where(filtro: Optional[ClienteFiltro]) -> list:
    if filtro is None:
        return []

    condicoes = []
    if filtro.nome:
        condicoes.append(Cliente.nome.icontains(filtro.nome, autoescape=True))
    if filtro.tipo is not None:
        condicoes.append(Cliente.tipo == filtro.tipo)
    if filtro.ativo is not None:
        condicoes.append(Cliente.ativo == filtro.ativo)
    if filtro.search:
        alternativas = [Cliente.nome.icontains(filtro.search, autoescape=True)]
        if filtro.search_digitos:
            alternativas.append(Cliente.cnpj_cpf.contains(filtro.search_digitos, autoescape=True))
        condicoes.append(or_(*alternativas))
    if filtro.cnpj_cpf is not None:
        condicoes.append(Cliente.cnpj_cpf == filtro.cnpj_cpf)
    if filtro.excluir_id is not None:
        condicoes.append(Cliente.id != filtro.excluir_id)
    return condicoes


def _order_by(ordenacao: Optional[Ordenacao]) -> list:
    campo, direcao = ordenacao or ("id", "desc")
    coluna = getattr(Cliente, campo)
    criterios = [coluna.asc() if direcao == "asc" else coluna.desc()]
    # desempate estável para a paginação
    if campo != "id":
        criterios.append(Cliente.id.asc() if direcao == "asc" else Cliente.id.desc())
    return criterios


class CRUDCliente:
    """
    Acesso à tabela de clientes.

    Cada método abre a própria sessão, a menos que receba `db` (usado por
    run_atomically para executar várias leituras na mesma transação).
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _sessao(self, db: Optional[AsyncSession] = None):
        if db is not None:
            yield db
        else:
            async with self.session_factory() as session:
                yield session

    async def get(self, id: int, *, db: Optional[AsyncSession] = None) -> Optional[Cliente]:
        with _erros_do_banco("buscar cliente"):
            async with self._sessao(db) as session:
                return await session.get(Cliente, id)

    async def get_first(self, *, filtro: ClienteFiltro, db: Optional[AsyncSession] = None) -> Optional[Cliente]:
        with _erros_do_banco("buscar cliente"):
            async with self._sessao(db) as session:
                query = select(Cliente).where(*_where(filtro)).limit(1)
                return (await session.execute(query)).scalars().first()

    async def get_multi(
        self,
        *,
        filtro: Optional[ClienteFiltro] = None,
        ordenacao: Optional[Ordenacao] = None,
        skip: int = 0,
        limit: int = 100,
        db: Optional[AsyncSession] = None,
    ) -> List[Cliente]:
        with _erros_do_banco("listar clientes"):
            async with self._sessao(db) as session:
                query = (
                    select(Cliente)
                    .where(*_where(filtro))
                    .order_by(*_order_by(ordenacao))
                    .offset(skip)
                    .limit(limit)
                )
                return list((await session.execute(query)).scalars().all())

    async def count(self, *, filtro: Optional[ClienteFiltro] = None, db: Optional[AsyncSession] = None) -> int:
        with _erros_do_banco("contar clientes"):
            async with self._sessao(db) as session:
                query = select(func.count()).select_from(Cliente).where(*_where(filtro))
                return (await session.execute(query)).scalar_one()

    async def create(self, *, obj_in: Dict[str, Any]) -> Cliente:
        with _erros_do_banco("criar cliente"):
            async with self.session_factory() as db:
                db_obj = Cliente(**obj_in)
                db.add(db_obj)
                await db.commit()
                await db.refresh(db_obj)
                return db_obj

    async def update(self, *, id: int, obj_in: Dict[str, Any]) -> Optional[Cliente]:
        with _erros_do_banco("atualizar cliente"):
            async with self.session_factory() as db:
                db_obj = await db.get(Cliente, id)
                if db_obj is None:
                    return None

                for field in obj_in:
                    if hasattr(db_obj, field):
                        setattr(db_obj, field, obj_in[field])

                await db.commit()
                await db.refresh(db_obj)
                return db_obj

    async def remove(self, *, id: int) -> bool:
        with _erros_do_banco("remover cliente"):
            async with self.session_factory() as db:
                result = await db.execute(delete(Cliente).where(Cliente.id == id))
                await db.commit()
                return result.rowcount > 0

    async def run_atomically(self, *ops: OperacaoLeitura) -> List[Any]:
        """Executa as operações em sequência numa única transação/conexão."""
        with _erros_do_banco("executar leitura atômica"):
            async with self.session_factory() as db:
                async with db.begin():
                    return [await op(db) for op in ops]
