"""

The Event Dispatcher.

Each cycle blocks for the next batch of raw notifications, resolves every
event to an absolute path through the Watch Registry, classifies it & reacts:

  - a new apt Directory is registered (along with everything apt beneath it)
  - an apt File that was modified (or created as a symlink) fires `on_file_changed`
  - a File that no longer exists after a delete fires `on_file_removed`

and finally retires the Handles whose Directory went away.

"""
from __future__ import annotations
import asyncio, enum, pathlib
from dataclasses import dataclass, field, KW_ONLY
from typing import TypedDict
from loguru import logger
from .classify import is_apt_directory, is_apt_file, is_readable_directory, is_reserved
from .errors import Error, NO_ERROR, WatchError
from .reactions import Reactions
from .registrar import Registrar
from .registry import WatchRegistry
from .linux.inotify import INotifyBackend, INotifyEvent, INotifyMask

__all__ = [
  "EventKind",
  "WatchEvent",
  "EventDispatcher",
]

class EventKind(enum.Enum):
  """The Kind of change a Watch Event reports"""
  CREATED = "created"
  MODIFIED = "modified"
  DELETED = "deleted"

  @staticmethod
  def from_mask(mask: INotifyMask) -> EventKind | None:
    """Map an inotify Mask onto a Kind; None for notifications that aren't about an entry"""
    if mask & (INotifyMask.CREATE | INotifyMask.MOVED_TO): return EventKind.CREATED
    elif mask & INotifyMask.MODIFY: return EventKind.MODIFIED
    elif mask & (INotifyMask.DELETE | INotifyMask.MOVED_FROM): return EventKind.DELETED
    return None

class WatchEvent(TypedDict):
  """A change to an entry of a Watched Directory; only lives for one dispatch cycle"""
  kind: EventKind
  name: str
  """The entry's name relative to the Watched Directory"""
  is_dir: bool
  """The kernel reported the entry as a directory"""
  moved: bool
  """The entry was renamed into or out of the Watched Directory"""

  @staticmethod
  def from_inotify(event: INotifyEvent) -> WatchEvent | None:
    kind = EventKind.from_mask(event['mask'])
    if kind is None or 'name' not in event: return None
    return {
      'kind': kind,
      'name': event['name'],
      'is_dir': bool(event['mask'] & INotifyMask.ISDIR),
      'moved': bool(event['mask'] & INotifyMask.MOVE),
    }

OVERFLOW_HANDLE = -1
"""The Handle the kernel reports a queue overflow on"""

@dataclass
class _DispatcherCtx:
  cycles: int = 0
  """Completed dispatch cycles"""
  closed: bool = False

@dataclass
class EventDispatcher:
  """Drives the Await -> Resolve -> React -> Rearm cycle for a Directory Tree.

  Construction validates the root & performs the initial recursive registration;
  an unusable root raises a (fatal) `WatchError`.
  """
  root: pathlib.Path
  """The topmost Directory to watch"""
  reactions: Reactions
  registry: WatchRegistry = field(default_factory=WatchRegistry)
  backend: INotifyBackend = field(default_factory=INotifyBackend.factory)
  registrar: Registrar = field(init=False)
  _: KW_ONLY
  _ctx: _DispatcherCtx = field(default_factory=_DispatcherCtx)

  def __post_init__(self):
    logger.info("Trying to build a new watcher...")
    self.root = pathlib.Path(self.root).absolute()
    self.registrar = Registrar(self.registry, self.backend)
    try:
      if not is_readable_directory(self.root): raise WatchError('bad_root', f"Given directory '{self.root}' is no directory or cannot be read.")
      if is_reserved(self.root): logger.warning(f"The name of '{self.root}' is reserved; it will not be traversed")
      self.registrar.register_all(self.root)
      if not self.registry.contains_value(self.root): raise WatchError('unwatched_root', f"Given directory '{self.root}' could not be watched.")
    except WatchError:
      self.close()
      raise
    logger.success(f"Watching {len(self.registry)} directories under '{self.root}'")

  @property
  def closed(self) -> bool: return self._ctx.closed

  @property
  def cycles(self) -> int: return self._ctx.cycles

  def watched(self) -> list[pathlib.Path]:
    """The Directories currently watched"""
    return sorted(self.registry.snapshot().values())

  async def _await(self, cancel: asyncio.Event) -> bool:
    """Block until events are available (True) or the cancellation token is set (False)"""
    if cancel.is_set(): return False
    loop = asyncio.get_running_loop()
    readable = asyncio.Event()
    loop.add_reader(self.backend['fd'], readable.set)
    wait_readable = asyncio.create_task(readable.wait())
    wait_cancel = asyncio.create_task(cancel.wait())
    try:
      await asyncio.wait((wait_readable, wait_cancel), return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
      logger.debug("Interrupted while awaiting events")
      raise
    finally:
      loop.remove_reader(self.backend['fd'])
      wait_readable.cancel(); wait_cancel.cancel()
    return not cancel.is_set()

  def _drain(self) -> list[INotifyEvent]:
    """Read everything pending, in the order the kernel queued it"""
    pending: list[INotifyEvent] = []
    while True:
      err, events = self.backend['read'](self.backend['fd'])
      if err is not NO_ERROR:
        if err['kind'] == 'block': break
        raise WatchError.from_error(err, "Failed to read events")
      if len(events) == 0: break
      pending.extend(events)
    logger.trace(f"Drained {len(pending)} events")
    return pending

  async def run_cycle(self, cancel: asyncio.Event) -> bool:
    """Run a single dispatch cycle; returns False once cancelled, without reacting.

    Events are reacted to in queue order (a move's `MOVED_FROM` always precedes its `MOVED_TO`);
    invalidated Handles are only retired once the whole batch has been handled.
    """
    if self._ctx.closed: raise RuntimeError("The Dispatcher is closed")
    if not await self._await(cancel):
      logger.info("Shutting down watcher.")
      return False
    invalidated: dict[int, None] = {}
    for raw_event in self._drain():
      if raw_event['wd'] == OVERFLOW_HANDLE: self._overflow(raw_event)
      elif raw_event['mask'] & (INotifyMask.IGNORED | INotifyMask.UNMOUNT): invalidated[raw_event['wd']] = None
      else: self._dispatch(raw_event)
    for handle in invalidated: self._rearm(handle)
    self._ctx.cycles += 1
    return True

  def _overflow(self, raw_event: INotifyEvent):
    if not raw_event['mask'] & INotifyMask.Q_OVERFLOW: return
    logger.warning(f"The event queue overflowed; rescanning '{self.root}' for unwatched directories")
    self.registrar.register_all(self.root)

  def _dispatch(self, raw_event: INotifyEvent):
    """Resolve & React to a single event"""
    workdir = self.registry.get(raw_event['wd'])
    if workdir is None:
      logger.debug(f"Dropping an event of the unknown handle \"{raw_event['wd']}\"")
      return
    event = WatchEvent.from_inotify(raw_event)
    if event is None:
      logger.trace(f"Skipping notification {raw_event['mask']!r} on \"{workdir}\"")
      return
    path = workdir / event['name']
    logger.info(f"Detected change: {event['name']} : {event['kind'].name}")
    try: self._react(event, path)
    except Exception: logger.opt(exception=True).error(f"Could not process event '{event['kind'].name}' on '{path}'")

  def _react(self, event: WatchEvent, path: pathlib.Path):
    kind = event['kind']
    if kind is EventKind.CREATED:
      # new directory to be watched and traversed; a symlinked one is never followed
      if is_apt_directory(path) and not path.is_symlink():
        logger.info(f"Registering new paths under \"{path}\".")
        self.registrar.register_all(path)
      # symlinks are create only (no modify follows) so they're processed on creation
      elif is_apt_file(path) and path.is_symlink(): self._changed(path)
    elif kind is EventKind.MODIFIED:
      if is_apt_file(path): self._changed(path)
    elif kind is EventKind.DELETED:
      if event['moved'] and event['is_dir']: self.retire(path)
      if (
        not path.exists()
        and not event['is_dir']
        and not self.registry.contains_value(path)
      ): self._removed(path)
    else: raise NotImplementedError(kind)

  def _changed(self, path: pathlib.Path):
    logger.debug(f"Processing new or updated file \"{path}\".")
    self.reactions.on_file_changed(path)

  def _removed(self, path: pathlib.Path):
    logger.debug(f"Removing deleted file \"{path}\".")
    self.reactions.on_file_removed(path)

  def _rearm(self, handle: int):
    """inotify watches stay armed; only Handles the kernel invalidated are retired"""
    if (_dir := self.registry.remove(handle)) is not None: logger.info(f"Removing watcher for handle \"{handle}\" (\"{_dir}\").")

  def retire(self, path: pathlib.Path) -> list[int]:
    """Explicitly retire the Handles observing `path` & its descendants (ie. the tree was moved away)"""
    handles = self.registry.handles_under(path)
    for handle in handles:
      _dir = self.registry.remove(handle)
      err = self.backend['remove'](self.backend['fd'], handle)
      if err is not NO_ERROR: logger.debug(f"Handle \"{handle}\" was already released: {Error.render(err)}")
      logger.info(f"Removing watcher for handle \"{handle}\" (\"{_dir}\").")
    return handles

  def close(self):
    """Release every Watch & the Watch Primitive itself"""
    if self._ctx.closed: return
    handles = self.registry.clear()
    for handle, _dir in handles.items():
      err = self.backend['remove'](self.backend['fd'], handle)
      if err is not NO_ERROR: logger.debug(f"Failed to release handle \"{handle}\" of \"{_dir}\": {Error.render(err)}")
    err = self.backend['cleanup'](self.backend['fd'])
    if err is not NO_ERROR: logger.debug(f"Failed to cleanup the Watch Primitive: {Error.render(err)}")
    self._ctx.closed = True
    logger.debug(f"Released {len(handles)} watches")
