from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys

from storepos.domain.errors import ValidationError


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    db_path: Path
    logs_dir: Path


@dataclass(frozen=True)
class BackendSettings:
    kind: str = "sqlite"
    db_path: Optional[Path] = None
    rest_url: Optional[str] = None
    rest_key: Optional[str] = None
    sale_rpc: Optional[str] = None
    http_timeout: float = 10.0


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "StorePOS") -> AppPaths:
    if sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / f".{app_name.lower()}"

    logs = base / "logs"
    db = base / "storepos.db"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, db_path=db, logs_dir=logs)


def load_backend_settings(environ: Mapping[str, str] | None = None) -> BackendSettings:
    """Read backend selection from ``STOREPOS_*`` environment variables."""
    env = os.environ if environ is None else environ

    kind = env.get("STOREPOS_BACKEND", "sqlite").strip().lower() or "sqlite"
    if kind not in {"sqlite", "rest"}:
        raise ValidationError(f"Unknown backend '{kind}'. Use 'sqlite' or 'rest'.")

    raw_timeout = env.get("STOREPOS_HTTP_TIMEOUT", "").strip()
    try:
        timeout = float(raw_timeout) if raw_timeout else 10.0
    except ValueError as exc:
        raise ValidationError(f"STOREPOS_HTTP_TIMEOUT must be a number. Received: {raw_timeout}") from exc
    if timeout <= 0:
        raise ValidationError("STOREPOS_HTTP_TIMEOUT must be > 0.")

    db_path = env.get("STOREPOS_DB_PATH", "").strip()
    rest_url = env.get("STOREPOS_REST_URL", "").strip().rstrip("/") or None
    rest_key = env.get("STOREPOS_REST_KEY", "").strip() or None

    if kind == "rest" and (not rest_url or not rest_key):
        raise ValidationError("STOREPOS_REST_URL and STOREPOS_REST_KEY are required for the rest backend.")

    return BackendSettings(
        kind=kind,
        db_path=Path(db_path) if db_path else None,
        rest_url=rest_url,
        rest_key=rest_key,
        sale_rpc=env.get("STOREPOS_SALE_RPC", "").strip() or None,
        http_timeout=timeout,
    )
