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

"""
Automatic catalog migration on server startup.

Applies the Alembic revisions shipped next to the package; when no
``alembic.ini`` can be found (e.g. an installed wheel) the tables are created
straight from the models instead.
"""

import os
import pathlib

from tgpic.server.component.database import create_all, database_url
from tgpic.utils import tracing

logger = tracing.get_logger("server_auto_migrate")

# repository root, where alembic.ini and alembic/ live
_root_dir = pathlib.Path(__file__).resolve().parent.parent.parent.parent


def run_migrations() -> bool:
    """
    Upgrade the catalog to the latest revision.

    Returns:
        True if the schema is up to date afterwards, False on error.
    """
    if os.environ.get("DISABLE_AUTO_MIGRATE", "").lower() in ("true", "1", "yes"):
        logger.info("Auto-migration disabled via DISABLE_AUTO_MIGRATE env var")
        return True

    alembic_ini = pathlib.Path(os.environ.get("ALEMBIC_CONFIG") or _root_dir / "alembic.ini")
    if not alembic_ini.exists():
        logger.warning(f"alembic.ini not found at {alembic_ini}, creating tables from models")
        try:
            create_all()
            return True
        except Exception as e:
            logger.error(f"Table creation failed: {e}", exc_info=True)
            return False

    try:
        from alembic import command
        from alembic.config import Config
        from alembic.runtime.migration import MigrationContext
        from alembic.script import ScriptDirectory
        from sqlalchemy import create_engine

        alembic_cfg = Config(str(alembic_ini))
        alembic_cfg.set_main_option("sqlalchemy.url", database_url)
        alembic_cfg.attributes["database_url"] = database_url

        # script_location in alembic.ini is relative to the ini file, not the CWD
        script_location = alembic_cfg.get_main_option("script_location")
        if script_location and not os.path.isabs(script_location):
            resolved = str(alembic_ini.parent / script_location)
            alembic_cfg.set_main_option("script_location", resolved)
            logger.debug(f"Resolved script_location: {script_location} -> {resolved}")

        engine = create_engine(database_url)
        with engine.connect() as conn:
            current_rev = MigrationContext.configure(conn).get_current_revision()
        engine.dispose()

        head_rev = ScriptDirectory.from_config(alembic_cfg).get_current_head()
        if current_rev == head_rev:
            logger.info(f"Catalog schema is up to date (revision: {current_rev})")
            return True

        logger.info(f"Running catalog migrations: {current_rev or 'none'} -> {head_rev}")
        command.upgrade(alembic_cfg, "head")
        logger.info(f"Catalog migrations completed (now at: {head_rev})")
        return True

    except Exception as e:
        logger.error(f"Auto-migration failed: {e}", exc_info=True)
        return False
