"""Definition Cache - Short-lived read cache for workflow definitions"""
import time
from typing import Callable, Dict, List, Optional, Tuple

from ..domain.models import WorkflowDefinition
from ..utils.logger import get_logger

logger = get_logger(__name__)


class DefinitionCache:
    """
    Time-bounded cache of definitions

    Holds per-id entries and the full definition list. Any write to the
    definition store must call invalidate(), which drops both.
    """

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, WorkflowDefinition]] = {}
        self._all: Optional[Tuple[float, List[WorkflowDefinition]]] = None

    def _is_fresh(self, stored_at: float) -> bool:
        return self._clock() - stored_at < self._ttl

    def get(self, definition_id: str) -> Optional[WorkflowDefinition]:
        entry = self._entries.get(definition_id)
        if entry is None:
            return None
        stored_at, definition = entry
        if not self._is_fresh(stored_at):
            self._entries.pop(definition_id, None)
            return None
        return definition

    def put(self, definition: WorkflowDefinition) -> None:
        self._entries[definition.definition_id] = (self._clock(), definition)

    def get_all(self) -> Optional[List[WorkflowDefinition]]:
        if self._all is None:
            return None
        stored_at, definitions = self._all
        if not self._is_fresh(stored_at):
            self._all = None
            return None
        return list(definitions)

    def put_all(self, definitions: List[WorkflowDefinition]) -> None:
        now = self._clock()
        self._all = (now, list(definitions))
        for definition in definitions:
            self._entries[definition.definition_id] = (now, definition)

    def invalidate(self) -> None:
        """Drop every cached entry"""
        self._entries.clear()
        self._all = None
        logger.debug("Definition cache invalidated")
