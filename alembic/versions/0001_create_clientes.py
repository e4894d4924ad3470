"""create clientes table

Revision ID: 0001_create_clientes
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_create_clientes"
down_revision = None
branch_labels = None
depends_on = None

tipo_cliente = sa.Enum("PF", "PJ", name="tipo_cliente")


def upgrade() -> None:
    op.create_table(
        "clientes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("nome", sa.String(length=100), nullable=False),
        sa.Column("tipo", tipo_cliente, nullable=False),
        sa.Column("cnpj_cpf", sa.String(length=14), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("telefone", sa.String(), nullable=True),
        sa.Column("endereco", sa.Text(), nullable=True),
        sa.Column("ativo", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_clientes_id", "clientes", ["id"])
    op.create_index("ix_clientes_nome", "clientes", ["nome"])
    op.create_index("ix_clientes_cnpj_cpf", "clientes", ["cnpj_cpf"], unique=True)
    op.create_index("ix_clientes_email", "clientes", ["email"])


def downgrade() -> None:
    op.drop_index("ix_clientes_email", table_name="clientes")
    op.drop_index("ix_clientes_cnpj_cpf", table_name="clientes")
    op.drop_index("ix_clientes_nome", table_name="clientes")
    op.drop_index("ix_clientes_id", table_name="clientes")
    op.drop_table("clientes")
    tipo_cliente.drop(op.get_bind(), checkfirst=True)
