"""Job definition registry."""

import logging
from typing import Dict, List, Optional

from async_dispatch.errors import DuplicateJobTypeError
from async_dispatch.models import BackoffStrategy, JobDefinition

logger = logging.getLogger(__name__)


class JobRegistry:
    """Registry mapping job names to their definitions."""

    def __init__(self):
        self._definitions: Dict[str, JobDefinition] = {}

    def register_or_replace(self, definition: JobDefinition) -> JobDefinition:
        """Store a definition, silently replacing any previous one (hot-reload)."""
        if definition.name in self._definitions:
            logger.debug(f"Replacing job definition {definition.name}")
        self._definitions[definition.name] = definition
        return definition

    register = register_or_replace

    def register_once(self, definition: JobDefinition) -> JobDefinition:
        """Store a definition, refusing to overwrite an existing name."""
        if definition.name in self._definitions:
            raise DuplicateJobTypeError(definition.name)
        self._definitions[definition.name] = definition
        return definition

    def job(
        self,
        name: str,
        *,
        priority: int = 0,
        max_attempts: int = 3,
        backoff: BackoffStrategy = BackoffStrategy.EXPONENTIAL,
        backoff_delay_ms: int = 1000,
    ):
        """
        Decorator to register a job handler.

        Usage:
            @registry.job("process_settlements", priority=10, backoff_delay_ms=5000)
            async def process_settlements(payload):
                ...
        """

        def decorator(func):
            self.register_or_replace(
                JobDefinition(
                    name=name,
                    handler=func,
                    default_priority=priority,
                    default_max_attempts=max_attempts,
                    backoff_strategy=backoff,
                    backoff_base_delay_ms=backoff_delay_ms,
                )
            )
            return func

        return decorator

    def lookup(self, name: str) -> Optional[JobDefinition]:
        """Get a definition by name, or None if it was never registered."""
        return self._definitions.get(name)

    def names(self) -> List[str]:
        return list(self._definitions)

    def all_definitions(self) -> Dict[str, JobDefinition]:
        """Get all registered definitions."""
        return self._definitions.copy()

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)


# Global registry instance
job_registry = JobRegistry()
