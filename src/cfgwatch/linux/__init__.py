import enum, sys

class SystemBackend(enum.Enum):
  """The Current System Backend. Selects which Watch Primitive can be used."""
  PYTHON = "python"
  """No native Watch Primitive is available."""
  LINUX = "linux"
  """The Linux `inotify(7)` API is available."""
  WINDOWS = "windows"
  MACOS = "macos"

  @staticmethod
  def get_current_backend() -> "SystemBackend":
    if sys.platform.lower().startswith("linux"): return SystemBackend.LINUX
    elif sys.platform.lower().startswith("win"): return SystemBackend.WINDOWS
    elif sys.platform.lower().startswith("darwin"): return SystemBackend.MACOS
    else: return SystemBackend.PYTHON

active_backend = SystemBackend.get_current_backend()
