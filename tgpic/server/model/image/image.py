"""Image catalog model – one row per image stored at the relay."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field as PydanticField
from sqlalchemy import BigInteger
from sqlmodel import Column, Field, String

from tgpic.server.model.abstract.model import AbstractModel, DefaultTimes

DEFAULT_TAG = "默认"
ROOT_FOLDER = "/"
EXPIRE_CHOICES = ("forever", "1", "7", "30")


class Image(AbstractModel, DefaultTimes, table=True):
    """Catalog row. ``file_id`` is the relay's reference; bytes never live here."""

    __tablename__ = "image"

    id: int = Field(default=None, primary_key=True)
    file_id: str = Field(sa_column=Column(String(255), nullable=False, index=True))
    thumb_file_id: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    short_code: str = Field(sa_column=Column(String(16), unique=True, nullable=False))
    tags: str = Field(default=DEFAULT_TAG, sa_column=Column(String(512), nullable=False))
    filename: str = Field(default="", sa_column=Column(String(512), nullable=False))
    size: int = Field(default=0, sa_column=Column(BigInteger, nullable=False))
    folder: str = Field(default=ROOT_FOLDER, sa_column=Column(String(1024), nullable=False, index=True))
    content_type: str = Field(default="image/jpeg", sa_column=Column(String(128), nullable=False))
    digest: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True, index=True))
    expire_at: Optional[datetime] = Field(default=None, index=True)


class ImageOut(BaseModel):
    id: int
    file_id: str
    thumb_file_id: Optional[str] = None
    short_code: str
    tags: str
    filename: str
    size: int
    folder: str
    content_type: str
    digest: Optional[str] = None
    expire_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ImageIdsIn(BaseModel):
    ids: List[int] = PydanticField(..., min_length=1)


class FolderRenameIn(BaseModel):
    old_path: str
    new_path: str


class FolderDeleteIn(BaseModel):
    path: str


class FolderTargetIn(BaseModel):
    ids: List[int] = PydanticField(..., min_length=1)
    target: str


class DedupIn(BaseModel):
    ids: Optional[List[int]] = None
    include_groups: bool = False
