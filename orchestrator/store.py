"""Project registry backends.

The Orchestrator keeps every project's state in a ProjectStore. The in-memory
store hands back the live object; the JSON store writes one file per project
so state survives a restart and can be approved from a separate process.
"""

import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from contracts import ProjectState
from config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class ProjectStore(ABC):
    """Keyed storage for ProjectState, one entry per order id."""

    @abstractmethod
    def create(self, state: ProjectState) -> None:
        """Insert a new project. Raises ValueError if the id is taken."""
        pass

    @abstractmethod
    def get(self, order_id: str) -> Optional[ProjectState]:
        pass

    @abstractmethod
    def update(self, state: ProjectState) -> None:
        pass

    @abstractmethod
    def list(self) -> List[ProjectState]:
        pass

    @abstractmethod
    def delete(self, order_id: str) -> bool:
        pass

    def __contains__(self, order_id: str) -> bool:
        return self.get(order_id) is not None


class InMemoryProjectStore(ProjectStore):
    """Dict-backed store. Lost on exit."""

    def __init__(self):
        self._projects: Dict[str, ProjectState] = {}
        self._lock = threading.Lock()

    def create(self, state: ProjectState) -> None:
        with self._lock:
            if state.order_id in self._projects:
                raise ValueError(f"Project already exists: {state.order_id}")
            self._projects[state.order_id] = state

    def get(self, order_id: str) -> Optional[ProjectState]:
        with self._lock:
            return self._projects.get(order_id)

    def update(self, state: ProjectState) -> None:
        with self._lock:
            self._projects[state.order_id] = state

    def list(self) -> List[ProjectState]:
        with self._lock:
            return sorted(self._projects.values(), key=lambda s: s.created_at)

    def delete(self, order_id: str) -> bool:
        with self._lock:
            return self._projects.pop(order_id, None) is not None


class JsonFileProjectStore(ProjectStore):
    """One <order_id>.json file per project under the state directory.

    Writes go to a temporary file first and are moved into place, so a
    reader never sees a half-written project.
    """

    def __init__(self, state_dir: Optional[Path] = None):
        self.state_dir = Path(state_dir or default_settings.get_state_path())
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, order_id: str) -> Path:
        if not order_id or "/" in order_id or "\\" in order_id or order_id.startswith("."):
            raise ValueError(f"Invalid order id for file store: {order_id!r}")
        return self.state_dir / f"{order_id}.json"

    def _write(self, state: ProjectState) -> None:
        path = self._path(state.order_id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(state.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp, path)

    def _read(self, path: Path) -> Optional[ProjectState]:
        try:
            return ProjectState.model_validate_json(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None

    def create(self, state: ProjectState) -> None:
        with self._lock:
            if self._path(state.order_id).exists():
                raise ValueError(f"Project already exists: {state.order_id}")
            self._write(state)

    def get(self, order_id: str) -> Optional[ProjectState]:
        with self._lock:
            return self._read(self._path(order_id))

    def update(self, state: ProjectState) -> None:
        with self._lock:
            self._write(state)

    def list(self) -> List[ProjectState]:
        projects = []
        with self._lock:
            for path in sorted(self.state_dir.glob("*.json")):
                try:
                    state = self._read(path)
                except ValueError as e:
                    logger.warning("Skipping unreadable project file %s: %s", path.name, e)
                    continue
                if state is not None:
                    projects.append(state)
        return sorted(projects, key=lambda s: s.created_at)

    def delete(self, order_id: str) -> bool:
        with self._lock:
            path = self._path(order_id)
            if not path.exists():
                return False
            path.unlink()
            return True


def build_store(cfg: Optional[Settings] = None) -> ProjectStore:
    """Store backend selected by settings.store_backend."""
    cfg = cfg or default_settings
    if cfg.store_backend == "memory":
        return InMemoryProjectStore()
    return JsonFileProjectStore(cfg.get_state_path())
