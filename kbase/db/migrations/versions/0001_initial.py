"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00
"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def _base_columns():
    return [
        sa.Column("uuid", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade():
    op.create_table(
        "users",
        *_base_columns(),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("avatar_url", sa.String(512), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "documents",
        *_base_columns(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("author_id", sa.Uuid(as_uuid=True), sa.ForeignKey("users.uuid"), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False),
        sa.Column("current_version", sa.Integer(), nullable=False),
    )
    op.create_index("ix_documents_author_id", "documents", ["author_id"])
    op.create_index("ix_documents_is_public", "documents", ["is_public"])

    op.create_table(
        "document_versions",
        *_base_columns(),
        sa.Column(
            "document_id", sa.Uuid(as_uuid=True),
            sa.ForeignKey("documents.uuid", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("author_id", sa.Uuid(as_uuid=True), sa.ForeignKey("users.uuid"), nullable=False),
        sa.Column("changes", sa.String(255), nullable=False),
        sa.UniqueConstraint("document_id", "version", name="uq_document_versions_document_version"),
    )
    op.create_index("ix_document_versions_document_id", "document_versions", ["document_id"])

    permission_level = sa.Enum("view", "edit", name="permissionlevel")
    notification_type = sa.Enum("share", "mention", name="notificationtype")

    op.create_table(
        "document_collaborators",
        *_base_columns(),
        sa.Column(
            "document_id", sa.Uuid(as_uuid=True),
            sa.ForeignKey("documents.uuid", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", sa.Uuid(as_uuid=True), sa.ForeignKey("users.uuid"), nullable=False),
        sa.Column("permission", permission_level, nullable=False),
        sa.Column("added_by", sa.Uuid(as_uuid=True), sa.ForeignKey("users.uuid"), nullable=True),
        sa.UniqueConstraint("document_id", "user_id", name="uq_document_collaborators_document_user"),
    )
    op.create_index("ix_document_collaborators_document_id", "document_collaborators", ["document_id"])
    op.create_index("ix_document_collaborators_user_id", "document_collaborators", ["user_id"])

    op.create_table(
        "notifications",
        *_base_columns(),
        sa.Column("user_id", sa.Uuid(as_uuid=True), sa.ForeignKey("users.uuid"), nullable=False),
        sa.Column(
            "document_id", sa.Uuid(as_uuid=True),
            sa.ForeignKey("documents.uuid", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("type", notification_type, nullable=False),
        sa.Column("message", sa.String(500), nullable=False),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade():
    op.drop_table("notifications")
    op.drop_table("document_collaborators")
    op.drop_table("document_versions")
    op.drop_table("documents")
    op.drop_table("users")
    sa.Enum(name="notificationtype").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="permissionlevel").drop(op.get_bind(), checkfirst=True)
