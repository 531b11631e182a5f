"""Tenants and mail accounts

Learn: workspaces.external_org_id stays nullable for workspaces that
predate identity-provider organizations, so uniqueness is enforced by a
partial index instead of a column constraint.

Revision ID: 3f1c2a9d7e10
Revises:
Create Date: 2026-10-18 09:12:40.114502
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7e10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "workspaces",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("external_org_id", sa.String(255), nullable=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "workspaces_external_org_id_unique_not_null",
        "workspaces",
        ["external_org_id"],
        unique=True,
        postgresql_where=sa.text("external_org_id IS NOT NULL"),
    )

    op.create_table(
        "accounts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("external_principal_id", sa.String(255), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "mail_accounts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("workspace_id", sa.Uuid(), sa.ForeignKey("workspaces.id"), nullable=True),
        sa.Column("provider", sa.String(20), nullable=False),
        sa.Column("email_address", sa.String(255), nullable=False),
        sa.Column("refresh_token_enc", sa.Text(), nullable=True),
        sa.Column("smtp_host", sa.String(255), nullable=True),
        sa.Column("smtp_port", sa.Integer(), nullable=True),
        sa.Column("smtp_secure", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("smtp_username_enc", sa.Text(), nullable=True),
        sa.Column("smtp_password_enc", sa.Text(), nullable=True),
        sa.Column("smtp_status", sa.String(20), nullable=False, server_default="inactive"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("mail_accounts_workspace_id_idx", "mail_accounts", ["workspace_id"])
    op.create_index("mail_accounts_user_id_idx", "mail_accounts", ["user_id"])


def downgrade() -> None:
    op.drop_index("mail_accounts_user_id_idx", table_name="mail_accounts")
    op.drop_index("mail_accounts_workspace_id_idx", table_name="mail_accounts")
    op.drop_table("mail_accounts")
    op.drop_table("accounts")
    op.drop_index("workspaces_external_org_id_unique_not_null", table_name="workspaces")
    op.drop_table("workspaces")
