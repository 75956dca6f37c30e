"""

The Lifecycle of a Config Watch.

`start()` validates the root, registers the Directory Tree & begins the
repeating dispatch cycle; `stop()` cancels the cycle & releases every watch.

"""
from __future__ import annotations
import asyncio, pathlib
from collections.abc import Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, KW_ONLY
from typing import AsyncGenerator
from loguru import logger
from .dispatch import EventDispatcher
from .errors import WatchError
from .reactions import Reactions, LogReactions
from .linux.inotify import INotifyBackend

__all__ = [
  "ConfigWatch",
]

@dataclass
class _WatchCtx:
  dispatcher: EventDispatcher | None = None
  task: asyncio.Task | None = None
  """The Task repeatedly running the dispatch cycle"""
  cancel: asyncio.Event = field(default_factory=asyncio.Event)
  """The Cancellation Token handed to every dispatch cycle"""

@dataclass
class ConfigWatch:
  """Watches a mounted configuration Directory Tree, firing Reactions on changes to its Files.

  Example:
    async with ConfigWatch(pathlib.Path("/etc/app"), JSONLinesReactions()).session() as watch:
      ...
  """
  directory: pathlib.Path
  """The topmost Directory; must exist & be readable"""
  reactions: Reactions = field(default_factory=LogReactions)
  interval: float = 1.0
  """Seconds between the completion of one dispatch cycle & the start of the next"""
  backend_factory: Callable[[], INotifyBackend] = field(default=INotifyBackend.factory)
  _: KW_ONLY
  _ctx: _WatchCtx = field(default_factory=_WatchCtx)

  def __post_init__(self):
    if self.interval < 0: raise ValueError("interval must not be negative")

  @property
  def running(self) -> bool:
    """Is the dispatch cycle running?"""
    return self._ctx.task is not None and not self._ctx.task.done()

  @property
  def dispatcher(self) -> EventDispatcher | None: return self._ctx.dispatcher

  def watched(self) -> list[pathlib.Path]:
    """The Directories currently watched; empty if not started"""
    if self._ctx.dispatcher is None: return []
    return self._ctx.dispatcher.watched()

  async def start(self):
    """Register the Directory Tree & begin dispatching; raises `WatchError` if the root is unusable."""
    if self._ctx.task is not None: raise RuntimeError("The Watch has already been started")
    logger.info(f"Configured directory: {self.directory}")
    self._ctx.dispatcher = EventDispatcher(pathlib.Path(self.directory), self.reactions, backend=self.backend_factory())
    self._ctx.cancel.clear()
    self._ctx.task = asyncio.create_task(self._loop(self._ctx.dispatcher, self._ctx.cancel))
    logger.success(f"Watching '{self._ctx.dispatcher.root}'")

  async def _loop(self, dispatcher: EventDispatcher, cancel: asyncio.Event):
    try:
      while not cancel.is_set():
        if not await dispatcher.run_cycle(cancel): break
        try: await asyncio.wait_for(cancel.wait(), timeout=self.interval)
        except TimeoutError: pass
    except WatchError as e:
      logger.opt(exception=True).critical(f"The dispatch loop failed: {e}")
    finally:
      logger.debug(f"The dispatch loop exited after {dispatcher.cycles} cycles")

  async def wait(self):
    """Wait for the dispatch loop to exit"""
    if self._ctx.task is None: raise RuntimeError("The Watch is not running")
    await asyncio.shield(self._ctx.task)

  async def stop(self):
    """Cancel the dispatch cycle & release every watch"""
    if self._ctx.task is None: raise RuntimeError("The Watch is not running")
    logger.info("Stopping the watch")
    self._ctx.cancel.set()
    task = self._ctx.task
    try: await task
    except asyncio.CancelledError:
      # only the dispatch Task's own cancellation ends here; `stop()` being cancelled propagates
      if not task.cancelled(): raise
      logger.debug("The dispatch loop was cancelled")
    finally:
      assert self._ctx.dispatcher is not None
      self._ctx.dispatcher.close()
      self._ctx.task, self._ctx.dispatcher = None, None
    logger.success("The watch has been stopped")

  @asynccontextmanager
  async def session(self) -> AsyncGenerator[ConfigWatch, None]:
    """Context Manager that provides a running Watch. Releases the watches on exit."""
    await self.start()
    try: yield self
    finally: await self.stop()
