from __future__ import annotations

import logging
import sys

from storepos.application.container import build_container
from storepos.config import get_app_paths, load_backend_settings
from storepos.domain.errors import AppError
from storepos.logging_config import setup_logging
from storepos.repositories.sqlite_repo import SqliteRepository

log = logging.getLogger(__name__)


def main() -> int:
    """Initialize the configured backend and report whether it is ready."""
    paths = get_app_paths()
    setup_logging(paths.logs_dir, level=logging.INFO)

    try:
        settings = load_backend_settings()
        container = build_container(settings)
    except AppError as e:
        log.error("startup_failed: %s", e)
        print(f"storepos: {e}", file=sys.stderr)
        return 1

    repo = container.repo
    if isinstance(repo, SqliteRepository):
        status = repo.integrity_check()
        log.info("backend_ready kind=sqlite db=%s integrity=%s", repo.db_path, status)
        print(f"SQLite database ready at {repo.db_path} (integrity: {status})")
    else:
        log.info("backend_ready kind=rest url=%s rpc=%s", settings.rest_url, settings.sale_rpc or "-")
        print(f"REST backend configured at {settings.rest_url}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
