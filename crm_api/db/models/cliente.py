import enum

from sqlalchemy import Boolean, Column, Enum, String, Text, true

from crm_api.db.base_class import Base


class TipoCliente(str, enum.Enum):
    PF = "PF"  # Pessoa Física
    PJ = "PJ"  # Pessoa Jurídica


class Cliente(Base):
    nome = Column(String(100), nullable=False, index=True)
    tipo = Column(Enum(TipoCliente, name="tipo_cliente"), nullable=False)
    # Apenas dígitos; CPF (11) ou CNPJ (14). Único entre todos os clientes.
    cnpj_cpf = Column(String(14), nullable=True, unique=True, index=True)
    email = Column(String, nullable=True, index=True)
    telefone = Column(String, nullable=True)
    endereco = Column(Text, nullable=True)
    ativo = Column(Boolean, nullable=False, default=True, server_default=true())

    def __repr__(self) -> str:
        return f"<Cliente id={self.id} nome={self.nome!r} tipo={self.tipo}>"
