"""Add image table for the relay-backed catalog

Revision ID: 2026_10_19_0001
Revises:
Create Date: 2026-10-19

One row per image stored at the relay: the relay's file references, a
unique short code, comma-joined tags, the virtual folder path, the content
digest used for dedup grouping and an optional expiry.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "2026_10_19_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "image",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("file_id", sa.String(255), nullable=False),
        sa.Column("thumb_file_id", sa.String(255), nullable=True),
        sa.Column("short_code", sa.String(16), nullable=False, unique=True),
        sa.Column("tags", sa.String(512), nullable=False, server_default="默认"),
        sa.Column("filename", sa.String(512), nullable=False, server_default=""),
        sa.Column("size", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("folder", sa.String(1024), nullable=False, server_default="/"),
        sa.Column("content_type", sa.String(128), nullable=False, server_default="image/jpeg"),
        sa.Column("digest", sa.String(64), nullable=True),
        sa.Column("expire_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(), nullable=True, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.TIMESTAMP(), nullable=True, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_image_file_id", "image", ["file_id"])
    op.create_index("ix_image_folder", "image", ["folder"])
    op.create_index("ix_image_digest", "image", ["digest"])
    op.create_index("ix_image_expire_at", "image", ["expire_at"])
    op.create_index("ix_image_created_at", "image", ["created_at"])


def downgrade() -> None:
    op.drop_table("image")
