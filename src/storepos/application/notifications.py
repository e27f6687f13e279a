from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class Notification:
    kind: str
    title: str
    description: Optional[str] = None


class Notifier(Protocol):
    def notify(self, note: Notification) -> None: ...


class MemoryNotifier:
    """Keeps every notification in order. Handy for tests and for UIs that poll."""

    def __init__(self) -> None:
        self.notes: list[Notification] = []

    def notify(self, note: Notification) -> None:
        self.notes.append(note)

    @property
    def last(self) -> Optional[Notification]:
        return self.notes[-1] if self.notes else None

    def of_kind(self, kind: str) -> list[Notification]:
        return [n for n in self.notes if n.kind == kind]

    def clear(self) -> None:
        self.notes.clear()
