from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import TIMESTAMP, text
from sqlmodel import Field, Session, SQLModel, select


def utcnow() -> datetime:
    return datetime.utcnow()


class AbstractModel(SQLModel):
    """Base for table models with a couple of query shortcuts."""

    @classmethod
    def by(cls, *where: Any, s: Session, order_by: Any = None) -> Sequence[Any]:
        stmt = select(cls).where(*where)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        return s.exec(stmt).all()

    def to_dict(self) -> dict:
        return self.model_dump()


class DefaultTimes(SQLModel):
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=TIMESTAMP,
        sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP"), "index": True},
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_type=TIMESTAMP,
        sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP"), "onupdate": utcnow},
    )
