"""

Reaction Hooks: what happens once a qualifying File Event has been classified.

Hooks are called synchronously from within a dispatch cycle so they must be
fast; offload anything slow.

"""
from __future__ import annotations
import pathlib, sys, time
import blake3, orjson
from abc import abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import BinaryIO, Protocol, runtime_checkable
from loguru import logger

__all__ = [
  "Reactions",
  "LogReactions",
  "JSONLinesReactions",
  "CallbackReactions",
]

@runtime_checkable
class Reactions(Protocol):
  """The Extension Point fired by the Event Dispatcher"""

  @abstractmethod
  def on_file_changed(self, path: pathlib.Path) -> None:
    """An apt File was created (as a symlink) or modified"""
    ...

  @abstractmethod
  def on_file_removed(self, path: pathlib.Path) -> None:
    """A File was removed"""
    ...

class LogReactions(Reactions):
  """Only log the Reactions"""

  def on_file_changed(self, path: pathlib.Path) -> None:
    logger.info(f"Processing new or updated file \"{path}\".")

  def on_file_removed(self, path: pathlib.Path) -> None:
    logger.info(f"Removing deleted file \"{path}\".")

@dataclass
class JSONLinesReactions(Reactions):
  """Emit a JSON Line per Reaction; changed files carry their size & BLAKE3 content digest."""
  stream: BinaryIO = field(default_factory=lambda: sys.stdout.buffer)
  """Where to write the JSON Lines"""

  def _emit(self, record: dict) -> None:
    self.stream.write(orjson.dumps(record, option=orjson.OPT_APPEND_NEWLINE))
    self.stream.flush()

  def on_file_changed(self, path: pathlib.Path) -> None:
    content = path.read_bytes()
    digest = blake3.blake3(content).hexdigest()
    logger.debug(f"File `{path}` changed: {len(content)} bytes, blake3 {digest}")
    self._emit({
      'event': 'changed',
      'path': path.as_posix(),
      'size': len(content),
      'blake3': digest,
      'when': time.time_ns(),
    })

  def on_file_removed(self, path: pathlib.Path) -> None:
    logger.debug(f"File `{path}` removed")
    self._emit({
      'event': 'removed',
      'path': path.as_posix(),
      'when': time.time_ns(),
    })

@dataclass
class CallbackReactions(Reactions):
  """Adapt plain Callables into Reactions"""
  changed: Callable[[pathlib.Path], None]
  removed: Callable[[pathlib.Path], None]

  def on_file_changed(self, path: pathlib.Path) -> None: self.changed(path)
  def on_file_removed(self, path: pathlib.Path) -> None: self.removed(path)
