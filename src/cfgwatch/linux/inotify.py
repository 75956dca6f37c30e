"""

Bindings for the Linux inotify(7) API.

The bindings use `cffi` in ABI mode against the C Library so no compiler is
needed at install time. Calls return Errors as Values (`Error | NO_ERROR`)
instead of raising; callers decide what is fatal.

An inotify watch is NOT recursive: every directory needs its own watch
descriptor (the "Watch Handle") & events only name the immediate child.

"""
from __future__ import annotations
import cffi, enum, errno, os, weakref
from collections.abc import Callable
from typing import TypedDict, NotRequired
from loguru import logger
from . import active_backend, SystemBackend
from ..errors import Error, NO_ERROR, NO_ERROR_T

if active_backend != SystemBackend.LINUX: raise RuntimeError("INotify is only supported on Linux")

_CDEF = """\
struct inotify_event {
  int      wd;
  uint32_t mask;
  uint32_t cookie;
  uint32_t len;
  char     name[];
};
int inotify_init1(int flags);
int inotify_add_watch(int fd, const char *pathname, uint32_t mask);
int inotify_rm_watch(int fd, int wd);
"""
c_lib = cffi.FFI()
c_lib.cdef(_CDEF)
linux_inotify = c_lib.dlopen(None)

c_INOTEV_SIZE: int = c_lib.sizeof("struct inotify_event")
"""The size of the fixed portion of the `inotify_event` struct"""
c_INOTEV_NAME_SIZE: int = 255 + 1
"""NAME_MAX + the terminating NULL"""
c_INOTEV_READ_SIZE: int = 256 * (c_INOTEV_SIZE + c_INOTEV_NAME_SIZE)
"""How many bytes to request per read(2); large enough for at least one event of any size"""

class INotifyError(enum.Enum):
  """INotify Error Codes"""
  NONE = 0
  BLOCK = enum.auto()
  UNDEFINED = enum.auto()
  BAD_ARGS = enum.auto()
  """A Bad Value was passed"""
  NO_MEM = enum.auto()
  """Out of Memory"""
  LIMIT = enum.auto()
  """Some File or Watch Limit was reached"""
  NO_READ = enum.auto()
  """The Path does not have read permissions"""
  ALREADY_EXIST = enum.auto()
  """The Watch for the Path already exists"""
  BAD_PATH = enum.auto()
  """The Path is invalid for some reason"""

  @staticmethod
  def from_errno(err: int) -> INotifyError: return _errno_map.get(err, INotifyError.UNDEFINED)

_errno_map: dict[int, INotifyError] = {
  0: INotifyError.NONE,
  errno.EAGAIN: INotifyError.BLOCK,
  errno.EBADF: INotifyError.BAD_ARGS,
  errno.EINVAL: INotifyError.BAD_ARGS,
  errno.ENOMEM: INotifyError.NO_MEM,
  errno.EMFILE: INotifyError.LIMIT,
  errno.ENFILE: INotifyError.LIMIT,
  errno.ENOSPC: INotifyError.LIMIT,
  errno.EACCES: INotifyError.NO_READ,
  errno.EEXIST: INotifyError.ALREADY_EXIST,
  errno.EFAULT: INotifyError.BAD_PATH,
  errno.ENOENT: INotifyError.BAD_PATH,
  errno.ENOTDIR: INotifyError.BAD_PATH,
  errno.ENAMETOOLONG: INotifyError.BAD_PATH,
  errno.ELOOP: INotifyError.BAD_PATH,
}

def _errno_error(err: int) -> Error:
  return {
    'kind': INotifyError.from_errno(err).name.lower(),
    'message': f"({errno.errorcode.get(err, err)}) {os.strerror(err)}",
  }

class INotifyMask(enum.IntFlag):
  """A Mask of INotify Events."""
  NONE = 0
  ### inotify_add_watch(2) Flags ###
  ACCESS = 0x00000001
  MODIFY = 0x00000002
  ATTRIB = 0x00000004
  CLOSE_WRITE = 0x00000008
  CLOSE_NOWRITE = 0x00000010
  OPEN = 0x00000020
  MOVED_FROM = 0x00000040
  MOVED_TO = 0x00000080
  CREATE = 0x00000100
  DELETE = 0x00000200
  DELETE_SELF = 0x00000400
  MOVE_SELF = 0x00000800
  MOVE = MOVED_FROM | MOVED_TO
  CLOSE = CLOSE_WRITE | CLOSE_NOWRITE
  ALL_EVENTS = 0x00000fff
  ### extra inotify_add_watch(2) Flags ###
  ONLYDIR = 0x01000000
  DONT_FOLLOW = 0x02000000
  EXCL_UNLINK = 0x04000000
  MASK_CREATE = 0x10000000
  MASK_ADD = 0x20000000
  ONESHOT = 0x80000000
  ### extra Flags set in the `mask` field returned by read(2) ###
  UNMOUNT = 0x00002000
  Q_OVERFLOW = 0x00004000
  IGNORED = 0x00008000
  ISDIR = 0x40000000

class INotifyInitFlag(enum.IntFlag):
  """inotify_init1(2) Flags; these share values with the Event Mask so are kept apart."""
  NONE = 0
  NONBLOCK = os.O_NONBLOCK
  CLOEXEC = os.O_CLOEXEC

_inotify_fds: set[int] = set()
def _safe_cleanup_inotify_fd(fd: int):
  try: os.close(fd)
  except OSError as e:
    if e.errno == errno.EBADF: pass # it's already closed
    else:
      logger.debug(f"Encountered unhandled OSError while cleaning up INotify Handle `{fd}`: ({e.errno}) {e.strerror}")
      raise
def _cleanup_inotify_fds(fds: set[int]):
  for fd in fds:
    logger.debug(f"INotify Instance `{fd}` was leaked; cleaning up")
    try: _safe_cleanup_inotify_fd(fd)
    except OSError: logger.opt(exception=True).warning(f"Unhandled Error encountered cleaning up Inotify Handle fd: {fd}")
__cleanup_inotify = type('_inotify_finalizer', (object,), {})()
weakref.finalize(__cleanup_inotify, _cleanup_inotify_fds, _inotify_fds)

def inotify_init(flags: INotifyInitFlag) -> tuple[Error | NO_ERROR_T, int | None]:
  """Initializes a new inotify instance"""
  fd = linux_inotify.inotify_init1(int(flags))
  if fd < 0: return _errno_error(c_lib.errno), None
  _inotify_fds.add(fd)
  logger.trace(f"Initialized INotify Instance `{fd}`")
  return NO_ERROR, fd

def inotify_add_watch(fd: int, path: str, mask: INotifyMask) -> tuple[Error | NO_ERROR_T, int | None]:
  """Add or update a filepath watch to an inotify instance; watching the same inode twice returns the same watch descriptor"""
  watchdesc = linux_inotify.inotify_add_watch(fd, os.fsencode(path), int(mask))
  if watchdesc < 0: return _errno_error(c_lib.errno), None
  return NO_ERROR, watchdesc

def inotify_rm_watch(fd: int, watchdesc: int) -> Error | NO_ERROR_T:
  """Remove a filepath watch from an inotify instance; the kernel queues an `IN_IGNORED` event for it"""
  if linux_inotify.inotify_rm_watch(fd, watchdesc) < 0: return _errno_error(c_lib.errno)
  return NO_ERROR

def inotify_cleanup(fd: int) -> Error | NO_ERROR_T:
  """Cleanup an Inotify Instance; all of its watches are released by the kernel"""
  if fd not in _inotify_fds: raise ValueError(f"fd {fd} doesn't seem to be a INotify Handle")
  try: _safe_cleanup_inotify_fd(fd)
  except OSError as e: return _errno_error(e.errno)
  _inotify_fds.remove(fd)
  return NO_ERROR

class INotifyEvent(TypedDict):
  """Wraps the `inotify_event` struct providing a Pythonic interface"""
  wd: int
  mask: INotifyMask
  cookie: int
  name: NotRequired[str]

  @staticmethod
  def read(fd: int, size: int = c_INOTEV_READ_SIZE) -> tuple[Error | NO_ERROR_T, list[INotifyEvent]]:
    """Read the next batch of events from a non-blocking inotify instance"""
    try: buffer = os.read(fd, size)
    except BlockingIOError: return { 'kind': INotifyError.BLOCK.name.lower(), 'message': 'Blocking Read' }, []
    except OSError as e: return _errno_error(e.errno), []
    return NO_ERROR, INotifyEvent.parse(buffer)

  @staticmethod
  def parse(buffer: bytes) -> list[INotifyEvent]:
    """Parse a buffer of back to back `inotify_event` structs"""
    events: list[INotifyEvent] = []
    _buffer = c_lib.from_buffer(buffer)
    offset = 0
    while offset + c_INOTEV_SIZE <= len(buffer):
      ptr = c_lib.cast("struct inotify_event *", _buffer + offset)
      events.append(INotifyEvent.from_struct(ptr))
      offset += c_INOTEV_SIZE + ptr.len
    if offset != len(buffer): logger.warning(f"Discarding {len(buffer) - offset} trailing bytes of a truncated inotify_event")
    return events

  @staticmethod
  def from_struct(ptr) -> INotifyEvent:
    """Build a INotifyEvent from a `inotify_event` struct pointer"""
    assert c_lib.typeof(ptr) == c_lib.typeof('struct inotify_event *'), f'Unexpected CType: {c_lib.typeof(ptr)}'
    inotif_event: INotifyEvent = {
      'wd': ptr.wd,
      'mask': INotifyMask(ptr.mask),
      'cookie': ptr.cookie,
    }
    if ptr.len > 0: inotif_event['name'] = os.fsdecode(c_lib.string(ptr.name, ptr.len).rstrip(b'\x00'))
    return inotif_event

class INotifyBackend(TypedDict):
  """The Watch Primitive as seen by the Registrar & Dispatcher"""
  fd: int
  """The (non-blocking) inotify instance"""
  add: Callable[[int, str, INotifyMask], tuple[Error | NO_ERROR_T, int | None]]
  remove: Callable[[int, int], Error | NO_ERROR_T]
  read: Callable[[int], tuple[Error | NO_ERROR_T, list[INotifyEvent]]]
  cleanup: Callable[[int], Error | NO_ERROR_T]

  @staticmethod
  def factory() -> INotifyBackend:
    """Initialize a new non-blocking inotify instance"""
    err, fd = inotify_init(INotifyInitFlag.NONBLOCK | INotifyInitFlag.CLOEXEC)
    if err is not NO_ERROR: raise OSError(f"Failed to initialize an INotify Instance: {Error.render(err)}")
    return {
      'fd': fd,
      'add': inotify_add_watch,
      'remove': inotify_rm_watch,
      'read': INotifyEvent.read,
      'cleanup': inotify_cleanup,
    }
