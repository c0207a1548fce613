import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum

from permissio.config import PermissioConfig
from permissio.exceptions import PermissioError, ScopeResolutionError
from permissio.models import ApiKeyScope

logger = logging.getLogger(__name__)


class ScopeState(StrEnum):
    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"


class ScopeResolver:
    """Resolves the (project, environment) scope at most once at a time.

    Concurrent callers of ensure() while a lookup is in flight all await the
    same lookup. A failed lookup returns the resolver to UNRESOLVED so a later
    call may retry, unless part of the scope was configured explicitly, in
    which case the failure is logged and the explicit scope is used as is.

    Args:
        config: Configuration whose scope values are filled in.
        fetch_scope: Coroutine function returning the scope of the API key.
    """

    def __init__(self, config: PermissioConfig, fetch_scope: Callable[[], Awaitable[ApiKeyScope]]) -> None:
        self.config = config
        self._fetch_scope = fetch_scope
        self._inflight: asyncio.Task[None] | None = None
        self.state = ScopeState.RESOLVED if config.has_scope() else ScopeState.UNRESOLVED

    async def ensure(self) -> None:
        """Wait until scope is known.

        Raises:
            ScopeResolutionError: If the lookup failed and no scope was configured.
        """
        if self.state is ScopeState.RESOLVED or self.config.has_scope():
            self.state = ScopeState.RESOLVED
            return

        if self._inflight is None:
            self.state = ScopeState.RESOLVING
            self._inflight = asyncio.ensure_future(self._resolve())

        inflight = self._inflight
        try:
            # Shielded so a cancelled caller does not cancel the shared lookup
            await asyncio.shield(inflight)
        finally:
            if inflight.done() and self._inflight is inflight:
                self._inflight = None

    async def _resolve(self) -> None:
        try:
            scope = await self._fetch_scope()
        except PermissioError as exc:
            if not self.config.has_partial_scope():
                self.state = ScopeState.UNRESOLVED
                raise ScopeResolutionError(
                    "Permissio SDK: Failed to fetch API key scope. "
                    "Either provide project_id and environment_id in config, "
                    f"or ensure the API key has valid scope. Error: {exc}"
                ) from exc
            logger.warning("Scope lookup failed, using configured scope: %s", exc)
            self.state = ScopeState.RESOLVED
            return

        self.config.update_scope(scope.project_id, scope.environment_id)
        self.state = ScopeState.RESOLVED
        logger.debug(
            "Resolved scope: project_id=%s environment_id=%s",
            self.config.project_id,
            self.config.environment_id,
        )
