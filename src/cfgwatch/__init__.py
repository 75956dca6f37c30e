"""

cfgwatch: recursively watch a mounted configuration Directory Tree & react to changes of its Files.

"""
from .watch import ConfigWatch
from .reactions import Reactions, LogReactions, JSONLinesReactions, CallbackReactions
from .errors import WatchError, RegistrationError, ConfigError

__version__ = "0.1.0"

__all__ = [
  "ConfigWatch",
  "Reactions",
  "LogReactions",
  "JSONLinesReactions",
  "CallbackReactions",
  "WatchError",
  "RegistrationError",
  "ConfigError",
]
