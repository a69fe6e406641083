"""
trackline - Registry Session Store.

Maps session id -> current Registry. This is the only shared mutable state
in the package, so it is an explicit object handed to callers rather than a
module global: tests and hosts can run independent stores side by side.

Concurrency:
- store/get/clear take one store-wide lock, so they are linearizable
- get_or_init serialises builds per session with an asyncio.Lock; a
  concurrent caller waits for the in-flight build instead of starting another
- a registry is fully built before the single swap in store(), so a reader
  never sees a half-built one and a cancelled build leaves the old entry
- clear() bumps the session's generation; a build that started before the
  clear returns its registry to its caller but does not store it
"""

import asyncio
import logging
import threading
from typing import Awaitable, Callable

from trackline.core.registry import DEFAULT_HTTP_TTL_SECONDS, Registry, TransportType
from trackline.core.registry_builder import RegistryBuildData, build_registry
from trackline.toon.errors import ToonRegistryError

logger = logging.getLogger(__name__)

FetchWorkspaceData = Callable[[], Awaitable[RegistryBuildData | dict]]


class RegistrySessionStore:
    """Session-scoped registry storage."""

    def __init__(self, ttl_seconds: int = DEFAULT_HTTP_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds
        self._registries: dict[str, Registry] = {}
        self._init_locks: dict[str, asyncio.Lock] = {}
        self._generations: dict[str, int] = {}
        self._lock = threading.RLock()

    # =========================================================================
    # Basic Operations
    # =========================================================================

    def store(self, session_id: str, registry: Registry) -> None:
        """Atomically replace the session's registry."""
        with self._lock:
            self._registries[session_id] = registry
        logger.info(f"RegistryStore: Stored registry for session {session_id}")

    def get(self, session_id: str) -> Registry | None:
        with self._lock:
            return self._registries.get(session_id)

    def clear(self, session_id: str) -> None:
        """Drop the session's registry (session teardown)."""
        with self._lock:
            removed = self._registries.pop(session_id, None)
            self._forget(session_id)
        if removed is not None:
            logger.info(f"RegistryStore: Cleared registry for session {session_id}")

    def clear_all(self) -> None:
        with self._lock:
            self._registries.clear()
            for session_id in list(self._init_locks):
                self._forget(session_id)

    def _forget(self, session_id: str) -> None:
        # Caller holds self._lock
        lock = self._init_locks.get(session_id)
        if lock is not None and lock.locked():
            # In-flight build keeps its lock; the new generation stops it storing
            self._generations[session_id] = self._generations.get(session_id, 0) + 1
        else:
            self._init_locks.pop(session_id, None)
            self._generations.pop(session_id, None)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._registries

    def __len__(self) -> int:
        with self._lock:
            return len(self._registries)

    def stats(self) -> dict:
        with self._lock:
            return {"sessions": len(self._registries)}

    # =========================================================================
    # Lazy Initialization
    # =========================================================================

    def _init_lock(self, session_id: str) -> asyncio.Lock:
        with self._lock:
            lock = self._init_locks.get(session_id)
            if lock is None:
                lock = asyncio.Lock()
                self._init_locks[session_id] = lock
            return lock

    def _generation(self, session_id: str) -> int:
        with self._lock:
            return self._generations.get(session_id, 0)

    def _usable(self, registry: Registry | None, transport: TransportType | None) -> bool:
        return registry is not None and not registry.is_stale(transport)

    async def get_or_init(
        self,
        session_id: str,
        fetch: FetchWorkspaceData,
        *,
        transport: TransportType | None = None,
        force_refresh: bool = False,
    ) -> Registry:
        """
        Return the session's registry, building it first if it is missing,
        stale, or a refresh was requested.

        Callers that arrive while a build is running wait for it and reuse
        the result. A forced refresh always performs its own build once the
        running one finishes.
        """
        existing = self.get(session_id)
        if not force_refresh and self._usable(existing, transport):
            return existing

        lock = self._init_lock(session_id)
        async with lock:
            # Someone else may have built it while we waited
            current = self.get(session_id)
            if not force_refresh and self._usable(current, transport):
                return current
            generation = self._generation(session_id)

            try:
                data = await fetch()
                registry = build_registry(
                    data,
                    transport=transport,
                    ttl_seconds=self.ttl_seconds,
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"RegistryStore: Init failed for session {session_id}: {e}")
                raise ToonRegistryError(
                    "REGISTRY_INIT_FAILED",
                    "Failed to initialize short key registry",
                    cause=str(e),
                    hint="Check backend connectivity and authentication",
                    session_id=session_id,
                ) from e

            with self._lock:
                if self._generations.get(session_id, 0) != generation:
                    logger.info(f"RegistryStore: Session {session_id} cleared during build, not storing")
                    return registry
                self._registries[session_id] = registry
            logger.info(f"RegistryStore: Stored registry for session {session_id}")
            return registry
