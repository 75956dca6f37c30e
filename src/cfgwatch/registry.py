"""

The Watch Registry: the single source of truth for what is currently watched.

"""
from __future__ import annotations
import pathlib, threading
from dataclasses import dataclass, field, KW_ONLY
from loguru import logger

__all__ = [
  "WatchRegistry",
]

@dataclass
class _RegistryCtx:
  handles: dict[int, pathlib.Path] = field(default_factory=dict)
  """Watch Handle -> the Directory it observes"""
  mutex: threading.RLock = field(default_factory=threading.RLock)
  """Guards `handles`; the Registry can be read from outside the Dispatcher's thread"""

@dataclass
class WatchRegistry:
  """Maps opaque Watch Handles to the logical Directory Path each one observes.

  All operations are internally synchronized; callers never lock.
  """
  _: KW_ONLY
  _ctx: _RegistryCtx = field(default_factory=_RegistryCtx)

  def __len__(self) -> int:
    with self._ctx.mutex: return len(self._ctx.handles)

  def __contains__(self, handle: int) -> bool:
    with self._ctx.mutex: return handle in self._ctx.handles

  def put(self, handle: int, path: pathlib.Path) -> bool:
    """Associate a Handle w/ a Path if the Handle is absent; never overwrites. Returns True if inserted."""
    with self._ctx.mutex:
      if handle in self._ctx.handles:
        if self._ctx.handles[handle] != path: logger.debug(f"Handle `{handle}` already observes `{self._ctx.handles[handle]}`; ignoring `{path}`")
        return False
      self._ctx.handles[handle] = path
      return True

  def get(self, handle: int) -> pathlib.Path | None:
    """The Directory a Handle observes or None if the Handle is unknown or retired"""
    with self._ctx.mutex: return self._ctx.handles.get(handle)

  def remove(self, handle: int) -> pathlib.Path | None:
    """Retire a Handle returning the Directory it observed; a no-op for unknown Handles"""
    with self._ctx.mutex: return self._ctx.handles.pop(handle, None)

  def contains_value(self, path: pathlib.Path) -> bool:
    """Is the Path currently observed by any Handle?"""
    with self._ctx.mutex: return path in self._ctx.handles.values()

  def handles_under(self, path: pathlib.Path) -> list[int]:
    """The Handles observing `path` or any of its descendants"""
    with self._ctx.mutex: return [
      handle for handle, _path in self._ctx.handles.items()
      if _path == path or path in _path.parents
    ]

  def snapshot(self) -> dict[int, pathlib.Path]:
    """A copy of the current Handle -> Directory mapping"""
    with self._ctx.mutex: return dict(self._ctx.handles)

  def clear(self) -> dict[int, pathlib.Path]:
    """Retire every Handle at once, returning what was registered"""
    with self._ctx.mutex:
      handles, self._ctx.handles = self._ctx.handles, {}
    return handles
