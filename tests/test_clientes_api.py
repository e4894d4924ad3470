from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from crm_api.core.security import create_access_token
from crm_api.main import create_app

from .conftest import CNPJ_VALIDO, CPF_VALIDO, FakeCache

URL = "/api/v1/clientes/"


@pytest.fixture
def api_cache():
    return FakeCache()


@pytest.fixture
def client(api_cache):
    # Engine criado fora de um loop: as tabelas são criadas no startup da app
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    session_factory = async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    app = create_app(engine=engine, session_factory=session_factory, cache=api_cache)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    token = create_access_token({"sub": "operador@example.com"})
    return {"Authorization": f"Bearer {token}"}


def _criar(client, headers, **payload):
    body = {"nome": "Maria da Silva", "tipo": "PF", "cnpj_cpf": CPF_VALIDO}
    body.update(payload)
    return client.post(URL, json=body, headers=headers)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["cache"] == "connected"


def test_sem_token(client):
    response = client.get(URL)

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"
    assert response.json() == {"status": "error", "message": "Token de autenticação não fornecido."}


def test_token_invalido(client):
    response = client.get(URL, headers={"Authorization": "Bearer nao-e-um-jwt"})

    assert response.status_code == 401
    assert response.json()["message"] == "Token inválido ou expirado."


def test_token_expirado(client):
    token = create_access_token({"sub": "operador@example.com"}, expires_delta=timedelta(minutes=-1))

    response = client.get(URL, headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_criar_cliente(client, auth_headers):
    response = _criar(client, auth_headers, cnpj_cpf="529.982.247-25", telefone="(11) 99999-8888")

    assert response.status_code == 201
    data = response.json()
    assert data["id"] > 0
    assert data["tipo"] == "PF"
    assert data["cnpj_cpf"] == CPF_VALIDO
    assert data["telefone"] == "11999998888"
    assert data["ativo"] is True
    assert "created_at" in data and "updated_at" in data


def test_criar_cliente_invalido(client, auth_headers):
    response = _criar(client, auth_headers, cnpj_cpf="111.444.777-36")

    assert response.status_code == 400
    assert response.json() == {"status": "error", "message": "CPF inválido"}


def test_criar_cliente_duplicado(client, auth_headers):
    assert _criar(client, auth_headers).status_code == 201

    response = _criar(client, auth_headers, nome="Outra Maria", cnpj_cpf="529.982.247-25")

    assert response.status_code == 409
    assert response.json()["message"] == "O campo 'CPF/CNPJ' com o valor '529.982.247-25' já está em uso."


def test_buscar_por_id(client, auth_headers):
    criado = _criar(client, auth_headers).json()

    response = client.get(f"{URL}{criado['id']}", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == criado


def test_buscar_inexistente(client, auth_headers):
    response = client.get(f"{URL}999999", headers=auth_headers)

    assert response.status_code == 404
    assert response.json() == {"status": "error", "message": "Cliente com ID '999999' não encontrado(a)."}


def test_buscar_id_invalido(client, auth_headers):
    response = client.get(f"{URL}0", headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "ID inválido"


def test_listar_com_filtros_e_paginacao(client, auth_headers):
    _criar(client, auth_headers)
    _criar(client, auth_headers, nome="Empresa Exemplo Ltda", tipo="PJ", cnpj_cpf=CNPJ_VALIDO)

    response = client.get(URL, params={"tipo": "PJ", "page": 1, "limit": 5}, headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert [c["nome"] for c in body["data"]] == ["Empresa Exemplo Ltda"]
    assert body["pagination"] == {
        "page": 1,
        "limit": 5,
        "total": 1,
        "total_pages": 1,
        "has_next": False,
        "has_prev": False,
    }


def test_listar_usa_cache(client, auth_headers, api_cache):
    _criar(client, auth_headers)

    primeira = client.get(URL, params={"search": "maria"}, headers=auth_headers)
    segunda = client.get(URL, params={"search": "maria"}, headers=auth_headers)

    assert primeira.json() == segunda.json()
    assert len(api_cache.keys("cliente:list")) == 1


def test_atualizar_cliente(client, auth_headers, api_cache):
    criado = _criar(client, auth_headers, email="maria@example.com").json()
    client.get(f"{URL}{criado['id']}", headers=auth_headers)

    response = client.put(f"{URL}{criado['id']}", json={"nome": "Maria Souza"}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["nome"] == "Maria Souza"
    assert response.json()["email"] == "maria@example.com"
    assert api_cache.keys(f"cliente:id:{criado['id']}") == []


def test_atualizar_documento_sem_tipo(client, auth_headers):
    criado = _criar(client, auth_headers).json()

    response = client.put(f"{URL}{criado['id']}", json={"cnpj_cpf": "11144477735"}, headers=auth_headers)

    assert response.status_code == 400


def test_remover_cliente(client, auth_headers):
    criado = _criar(client, auth_headers).json()

    response = client.delete(f"{URL}{criado['id']}", headers=auth_headers)
    assert response.status_code == 204
    assert response.content == b""

    assert client.get(f"{URL}{criado['id']}", headers=auth_headers).status_code == 404
    assert client.delete(f"{URL}{criado['id']}", headers=auth_headers).status_code == 404
