"""In-flight operation bookkeeping for cancellation by id."""

from __future__ import annotations

from dataclasses import dataclass

from agentshell.errors import OperationExistsError
from agentshell.process import SpawnedOperation


@dataclass
class ActiveOperation:
    """Registry entry; the handle is attached once the process is spawned."""

    id: str
    handle: SpawnedOperation | None = None
    stopped: bool = False

    def stop(self) -> None:
        self.stopped = True
        if self.handle is not None:
            self.handle.kill_tree()


class OperationRegistry:
    """Operation id -> entry. Each entry is removed exactly once."""

    def __init__(self) -> None:
        self._entries: dict[str, ActiveOperation] = {}

    def reserve(self, operation_id: str) -> ActiveOperation:
        if operation_id in self._entries:
            raise OperationExistsError(f"operation '{operation_id}' is already running")
        entry = ActiveOperation(id=operation_id)
        self._entries[operation_id] = entry
        return entry

    def release(self, entry: ActiveOperation) -> bool:
        """Remove ``entry`` if it is still registered; report whether it was."""

        if self._entries.get(entry.id) is not entry:
            return False
        del self._entries[entry.id]
        return True

    def pop(self, operation_id: str) -> ActiveOperation | None:
        return self._entries.pop(operation_id, None)

    def drain(self) -> list[ActiveOperation]:
        entries = list(self._entries.values())
        self._entries.clear()
        return entries

    def ids(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, operation_id: object) -> bool:
        return operation_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
