"""Errors (as Values) & the Exceptions raised at the package boundary"""
from __future__ import annotations
from typing import TypedDict

NO_ERROR_T = type('NO_ERROR', (), {})
NO_ERROR = NO_ERROR_T()

class Error(TypedDict):
  """An Error returned as a Value by the low level bindings"""

  kind: str
  """The Kind of Error"""
  message: str
  """A Human Readable description about the Error that is helpful"""

  @staticmethod
  def render(error: Error) -> str: return f"{error['kind']}: {error['message']}"

class WatchError(RuntimeError):
  """The Watch could not be established; fatal for the Watcher being constructed."""
  def __init__(self, kind: str, msg: str):
    super().__init__(kind, msg)
    self.kind = kind
    self.msg = msg

  def __str__(self) -> str: return f"{self.kind}: {self.msg}"

  @classmethod
  def from_error(cls, error: Error, context: str) -> WatchError:
    return cls(error['kind'], f"{context}: {error['message']}")

class RegistrationError(WatchError):
  """A single Directory could not be registered with the Watch Primitive."""

class ConfigError(ValueError):
  """The supplied Configuration is invalid."""
