"""

The Recursive Registrar.

The Watch Primitive only observes a single directory level so every eligible
directory of a subtree must be registered individually. Ineligible
directories (hidden ones included) prune their whole subtree.

"""
from __future__ import annotations
import os, pathlib
from dataclasses import dataclass
from loguru import logger
from .classify import is_apt_directory
from .errors import NO_ERROR, RegistrationError
from .registry import WatchRegistry
from .linux.inotify import INotifyBackend, INotifyMask

__all__ = [
  "WATCH_MASK",
  "Registrar",
]

WATCH_MASK: INotifyMask = (
  INotifyMask.CREATE | INotifyMask.MOVED_TO
  | INotifyMask.MODIFY
  | INotifyMask.DELETE | INotifyMask.MOVED_FROM
  | INotifyMask.DELETE_SELF
  | INotifyMask.ONLYDIR
)
"""The Events every Directory is watched for: create, modify & delete of its entries plus its own removal"""

@dataclass
class Registrar:
  """Registers Directories (or whole Directory Trees) w/ the Watch Primitive & records them in the Registry."""
  registry: WatchRegistry
  backend: INotifyBackend

  def register(self, directory: pathlib.Path) -> int:
    """Watch a single Directory (non recursively) returning its Handle.

    Registering an already watched Directory yields the same Handle & leaves the Registry untouched.
    A Handle recorded under another Path means the Directory's inode was moved; the record follows it.
    """
    err, handle = self.backend['add'](self.backend['fd'], directory.as_posix(), WATCH_MASK)
    if err is not NO_ERROR: raise RegistrationError.from_error(err, f"Failed to watch `{directory}`")
    previous = self.registry.get(handle)
    if previous is not None and previous != directory:
      logger.info(f"Handle \"{handle}\" moved from \"{previous}\" to \"{directory}\".")
      self.registry.remove(handle)
    if self.registry.put(handle, directory): logger.info(f"Registered \"{directory}\" as handle \"{handle}\".")
    else: logger.trace(f"\"{directory}\" is already registered as handle \"{handle}\".")
    return handle

  def register_all(self, root: pathlib.Path) -> list[int]:
    """Depth first walk of `root` registering every apt Directory; an inapt Directory prunes its subtree.

    Symlinked directories are not descended into. A Directory that fails to register (or list)
    is logged & its subtree skipped; the rest of the walk continues.
    """
    handles: list[int] = []
    search_stack: list[pathlib.Path] = [root]
    while len(search_stack) > 0:
      _dir = search_stack.pop()
      if not is_apt_directory(_dir):
        logger.trace(f"Pruning the subtree of `{_dir}`")
        continue
      try:
        handles.append(self.register(_dir))
        with os.scandir(_dir) as entries:
          children = sorted(pathlib.Path(e.path) for e in entries if e.is_dir(follow_symlinks=False))
      except (RegistrationError, OSError) as e:
        logger.error(f"Could not register `{_dir}`; skipping its subtree: {e}")
        continue
      logger.trace(f"Pushing {len(children)} directories of `{_dir}` onto the search stack")
      search_stack.extend(reversed(children))
    return handles
