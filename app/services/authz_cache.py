"""
In-memory mirror of the permission store.

State lives in one immutable snapshot. Readers dereference the current
snapshot without locking; writers build a replacement and swap the reference
under a short lock. Every invalidation (explicit or TTL) bumps the snapshot
generation, and a store load that started under an older generation is
returned to its caller but never installed.
"""

import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from app.services.permission_store import PermissionStore, RoleRef

logger = logging.getLogger(__name__)

_EMPTY: Mapping = MappingProxyType({})


@dataclass(frozen=True)
class _Snapshot:
    generation: int
    created_at: float
    user_roles: Mapping[int, RoleRef]
    role_permissions: Mapping[int, frozenset[str]]


class AuthorizationCache:
    """Caches user -> role and role -> permission names; whole-cache invalidation only."""

    def __init__(
        self,
        store: PermissionStore,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._store = store
        self._ttl = ttl_seconds
        self._clock = clock
        self._write_lock = threading.Lock()
        self._snapshot = _Snapshot(0, clock(), _EMPTY, _EMPTY)

    @property
    def generation(self) -> int:
        return self._snapshot.generation

    def get(self, user_id: int) -> frozenset[str]:
        """Permission names granted to the user's role. Loads from the store on miss."""
        role = self.get_role(user_id)
        return self.role_permissions(role.id)

    def get_role(self, user_id: int) -> RoleRef:
        snap = self._current()
        role = snap.user_roles.get(user_id)
        if role is not None:
            return role
        role = self._store.load_user_role(user_id)
        self._install(snap.generation, user_roles={user_id: role})
        return role

    def role_permissions(self, role_id: int) -> frozenset[str]:
        snap = self._current()
        permissions = snap.role_permissions.get(role_id)
        if permissions is not None:
            return permissions
        permissions = self._store.load_role_permissions(role_id)
        self._install(snap.generation, role_permissions={role_id: permissions})
        return permissions

    def invalidate(self) -> None:
        """Drop every cached entry. Call after any role, permission, grant or user-role change."""
        with self._write_lock:
            generation = self._snapshot.generation + 1
            self._snapshot = _Snapshot(generation, self._clock(), _EMPTY, _EMPTY)
        logger.info("Authorization cache invalidated (generation=%s)", generation)

    def _current(self) -> _Snapshot:
        snap = self._snapshot
        if self._clock() - snap.created_at < self._ttl:
            return snap
        with self._write_lock:
            if self._snapshot is snap:
                self._snapshot = _Snapshot(snap.generation + 1, self._clock(), _EMPTY, _EMPTY)
                logger.debug("Authorization cache expired (generation=%s)", snap.generation + 1)
            return self._snapshot

    def _install(
        self,
        generation: int,
        user_roles: Mapping[int, RoleRef] | None = None,
        role_permissions: Mapping[int, frozenset[str]] | None = None,
    ) -> None:
        with self._write_lock:
            current = self._snapshot
            if current.generation != generation:
                return
            self._snapshot = _Snapshot(
                generation=current.generation,
                created_at=current.created_at,
                user_roles=MappingProxyType({**current.user_roles, **(user_roles or {})}),
                role_permissions=MappingProxyType(
                    {**current.role_permissions, **(role_permissions or {})}
                ),
            )
