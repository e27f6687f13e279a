from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any, Iterable, Protocol

from storepos.domain.errors import BackendError


class UnitOfWork(Protocol):
    def __enter__(self) -> "UnitOfWork": ...
    def __exit__(self, exc_type, exc, tb) -> None: ...
    def record_sale(self, header: dict[str, Any], items: Iterable[dict[str, Any]]) -> str: ...
    def record_purchase(self, fields: dict[str, Any]) -> str: ...


@dataclass
class RepositoryUnitOfWork:
    """Unit of Work adapter for transactional write use-cases.

    Each backend already writes a sale (header plus lines) or a purchase
    atomically where it can, and stamps ``created_at`` itself: the SQLite
    backend with local time, the REST backend through the database default.
    This class turns raw storage failures into ``BackendError`` so services
    stay persistence-agnostic.
    """

    repo: Any

    def __enter__(self) -> "RepositoryUnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def record_sale(self, header: dict[str, Any], items: Iterable[dict[str, Any]]) -> str:
        try:
            return str(self.repo.create_sale_with_items(header, list(items)))
        except sqlite3.Error as exc:
            raise BackendError(f"Could not save sale: {exc}") from exc

    def record_purchase(self, fields: dict[str, Any]) -> str:
        try:
            return str(self.repo.create_purchase(fields))
        except sqlite3.Error as exc:
            raise BackendError(f"Could not save purchase: {exc}") from exc
