# ========= Copyright 2025-2026 @ tgpic Authors. All Rights Reserved. =========
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ========= Copyright 2025-2026 @ tgpic Authors. All Rights Reserved. =========

"""Catalog engine and session helpers."""

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from tgpic.server.component.environment import env
from tgpic.utils import tracing

logger = tracing.get_logger("database")

DEFAULT_DATABASE_URL = "sqlite:///./tgpic.db"


def create_db_engine(url: str):
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


database_url = env("database_url", DEFAULT_DATABASE_URL)
engine = create_db_engine(database_url)


def session():
    """FastAPI dependency yielding a request-scoped session."""
    with Session(engine) as s:
        yield s


def session_make() -> Session:
    """Session for work outside a request; the caller must close it."""
    return Session(engine)


def create_all() -> None:
    # registers the table models on SQLModel.metadata
    import tgpic.server.model.image.image  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.info("Catalog tables ensured", extra={"url": engine.url.render_as_string(hide_password=True)})
