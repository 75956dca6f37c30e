"""

Decides which Paths are "apt": eligible to be watched (directories) or reacted to (files).

Orchestration volume mounts (ConfigMaps, Secrets) keep the real data in
hidden, timestamped directories (`..2024_01_01_00_00_00.123/`, `..data`) and
expose stable, non hidden symlinks (`app.conf -> ..data/app.conf`). Only the
stable layer is eligible, but a symlink is validated through to its target.

Eligibility is never cached; the filesystem can change between a notification
& its handling.

"""
from __future__ import annotations
import os, pathlib
from loguru import logger

RESERVED_PREFIX = "."
"""Entries whose name starts with this prefix are never watched nor reacted to"""

def is_reserved(path: pathlib.Path) -> bool:
  """Is the literal final path segment reserved (ie. hidden)? Symlinks are not followed."""
  return path.name.startswith(RESERVED_PREFIX)

def is_apt_directory(path: pathlib.Path | None) -> bool:
  """Check path to be an existing, readable directory not starting with a `.`

  Unresolvable paths (ie. a broken symlink) are not eligible; errors are never raised.
  """
  if path is None: return False
  try:
    return (
      path.exists()
      and path.is_dir()
      and os.access(path, os.R_OK)
      and not is_reserved(path)
    )
  except OSError as e:
    logger.trace(f"Directory `{path}` could not be resolved: ({e.errno}) {e.strerror}")
    return False

def is_apt_file(path: pathlib.Path | None) -> bool:
  """Check the file exists, is a regular file & is readable (all following symlinks),
  and the filename does not start with a `.` (NOT following the symlink!)

  Unresolvable paths (ie. a broken symlink) are not eligible; errors are never raised.
  """
  if path is None: return False
  try:
    return (
      path.exists()
      and path.is_file()
      and os.access(path, os.R_OK)
      and not is_reserved(path)
    )
  except OSError as e:
    logger.trace(f"File `{path}` could not be resolved: ({e.errno}) {e.strerror}")
    return False

def is_readable_directory(path: pathlib.Path | None) -> bool:
  """The checks a watch root must pass; unlike `is_apt_directory` the name is not considered."""
  if path is None: return False
  try: return path.exists() and path.is_dir() and os.access(path, os.R_OK)
  except OSError: return False
