"""Identity-keyed marker tables and the fork relocation registry."""

from __future__ import annotations

import logging
import os
import weakref
from typing import Any, Dict, List, NamedTuple, Optional

from .config import default_config
from .position import PositionToken

LOGGER = logging.getLogger("file marker.registry")

# Reserved marker holding the position before the most recent jump.
LAST_MARKER = "LAST"

MarkerTable = Dict[str, PositionToken]

_FORK_SAFE_REGISTRIES: "weakref.WeakSet[MarkerRegistry]" = weakref.WeakSet()
_FORK_HOOK_INSTALLED = False


class StreamIdentity(NamedTuple):
    """Per-process key of one live stream facade."""

    pid: int
    oid: int


def identity_of(stream: Any) -> StreamIdentity:
    """Identity of ``stream`` as seen from the calling process."""
    return StreamIdentity(os.getpid(), id(stream))


class MarkerRegistry:
    """Owns the marker tables of every open stream in this process.

    Tables are keyed by :class:`StreamIdentity` rather than stored on the
    stream objects. A parallel map of weak references lets :meth:`relocate`
    find live streams after ``os.fork()`` and move their tables to the
    identities they have in the child; the weak references never keep a
    stream alive, and their callbacks drop the table of a collected stream.
    """

    def __init__(self, *, fork_safe: bool = True) -> None:
        self._tables: Dict[StreamIdentity, MarkerTable] = {}
        self._streams: Dict[StreamIdentity, "weakref.ref[Any]"] = {}
        self._pid = os.getpid()
        self._hook_installed = False
        if fork_safe:
            self.install_fork_hook()

    def register(self, stream: Any) -> StreamIdentity:
        """Create an empty marker table for ``stream`` and start tracking it."""
        self._sync()
        identity = identity_of(stream)
        self._tables[identity] = {}
        self._streams[identity] = self._track(identity, stream)
        LOGGER.debug("Registered stream %s", identity)
        return identity

    def discard(self, identity: StreamIdentity) -> bool:
        """Drop the table and registry entry for ``identity``.

        Returns ``False`` when nothing was registered under that identity.
        """
        self._sync()
        table = self._tables.pop(identity, None)
        ref = self._streams.pop(identity, None)
        if table is None and ref is None:
            return False
        LOGGER.debug("Discarded stream %s", identity)
        return True

    def table(self, identity: StreamIdentity) -> MarkerTable:
        """Return the live marker table for ``identity``.

        Raises ``KeyError`` when the identity has no table.
        """
        self._sync()
        return self._tables[identity]

    def identities(self) -> List[StreamIdentity]:
        self._sync()
        return list(self._tables)

    def live_streams(self) -> List[Any]:
        self._sync()
        streams = []
        for ref in list(self._streams.values()):
            stream = ref()
            if stream is not None:
                streams.append(stream)
        return streams

    def relocate(self) -> int:
        """Re-key every tracked stream under its identity in this process.

        Runs after ``os.fork()`` in both resulting processes. Entries whose
        stream has been collected are pruned. Returns the number of moved
        entries; a second call in the same process moves nothing.
        """
        moved = 0
        for old_identity, ref in list(self._streams.items()):
            stream = ref()
            if stream is None:
                self._streams.pop(old_identity, None)
                self._tables.pop(old_identity, None)
                continue
            new_identity = identity_of(stream)
            if new_identity == old_identity:
                continue
            table = self._tables.pop(old_identity, {})
            del self._streams[old_identity]
            self._tables[new_identity] = table
            self._streams[new_identity] = self._track(new_identity, stream)
            moved += 1
        self._pid = os.getpid()
        if moved:
            LOGGER.info("Relocated %d marker table(s) into process %d", moved, self._pid)
        return moved

    def install_fork_hook(self) -> bool:
        """Run :meth:`relocate` after every ``os.fork()`` in parent and child.

        All fork-safe registries share one process-wide hook that holds them
        weakly. Returns ``False`` when the platform has no at-fork support or
        this registry is already enrolled.
        """
        global _FORK_HOOK_INSTALLED
        if self._hook_installed or not hasattr(os, "register_at_fork"):
            return False
        _FORK_SAFE_REGISTRIES.add(self)
        if not _FORK_HOOK_INSTALLED:
            os.register_at_fork(after_in_child=_relocate_all, after_in_parent=_relocate_all)
            _FORK_HOOK_INSTALLED = True
        self._hook_installed = True
        return True

    def _sync(self) -> None:
        # Covers duplicates created without the at-fork hooks running.
        if os.getpid() != self._pid:
            self.relocate()

    def _track(self, identity: StreamIdentity, stream: Any) -> "weakref.ref[Any]":
        registry_ref = weakref.ref(self)

        def _collected(ref: "weakref.ref[Any]") -> None:
            registry = registry_ref()
            if registry is None or registry._streams.get(identity) is not ref:
                return
            del registry._streams[identity]
            registry._tables.pop(identity, None)
            LOGGER.debug("Dropped markers of collected stream %s", identity)

        return weakref.ref(stream, _collected)

    def __contains__(self, identity: object) -> bool:
        self._sync()
        return identity in self._tables

    def __len__(self) -> int:
        self._sync()
        return len(self._tables)

    def __repr__(self) -> str:
        return f"MarkerRegistry(pid={self._pid}, streams={len(self._tables)})"


def _relocate_all() -> None:
    for registry in list(_FORK_SAFE_REGISTRIES):
        registry.relocate()


_DEFAULT_REGISTRY: Optional[MarkerRegistry] = None


def default_registry() -> MarkerRegistry:
    """Process-wide registry shared by streams that are not given one."""

    global _DEFAULT_REGISTRY
    if _DEFAULT_REGISTRY is None:
        _DEFAULT_REGISTRY = MarkerRegistry(fork_safe=default_config().fork_safe)
    return _DEFAULT_REGISTRY


__all__ = [
    "LAST_MARKER",
    "MarkerRegistry",
    "MarkerTable",
    "StreamIdentity",
    "default_registry",
    "identity_of",
]
