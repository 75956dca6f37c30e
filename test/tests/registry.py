"""

Test the Watch Registry

"""
from __future__ import annotations
import asyncio, pathlib
from ..harness import TestResult, TestCode

__all__ = [
  "test_registry_put_never_overwrites",
  "test_registry_remove",
  "test_registry_handles_under",
  "test_registry_concurrent_access",
]

async def test_registry_put_never_overwrites(*args, **kwargs) -> TestResult:
  from cfgwatch.registry import WatchRegistry
  registry = WatchRegistry()
  try:
    assert registry.put(1, pathlib.Path("/data")) is True
    assert registry.put(1, pathlib.Path("/data")) is False, "re-putting the same handle is a no-op"
    assert registry.put(1, pathlib.Path("/elsewhere")) is False, "an existing handle is never overwritten"
    assert registry.get(1) == pathlib.Path("/data")
    assert len(registry) == 1
    assert 1 in registry and 2 not in registry
    assert registry.contains_value(pathlib.Path("/data"))
    assert not registry.contains_value(pathlib.Path("/elsewhere"))
  except AssertionError as e: return TestResult(TestCode.FAIL, str(e))
  return TestResult(TestCode.PASS)

async def test_registry_remove(*args, **kwargs) -> TestResult:
  from cfgwatch.registry import WatchRegistry
  registry = WatchRegistry()
  registry.put(1, pathlib.Path("/data"))
  registry.put(2, pathlib.Path("/data/cfg"))
  try:
    assert registry.remove(2) == pathlib.Path("/data/cfg")
    assert registry.remove(2) is None, "removing twice is a no-op"
    assert registry.get(2) is None
    assert registry.remove(42) is None, "unknown handles are a no-op"
    assert registry.snapshot() == { 1: pathlib.Path("/data") }
    cleared = registry.clear()
    assert cleared == { 1: pathlib.Path("/data") }
    assert len(registry) == 0
  except AssertionError as e: return TestResult(TestCode.FAIL, str(e))
  return TestResult(TestCode.PASS)

async def test_registry_handles_under(*args, **kwargs) -> TestResult:
  from cfgwatch.registry import WatchRegistry
  registry = WatchRegistry()
  registry.put(1, pathlib.Path("/data"))
  registry.put(2, pathlib.Path("/data/cfg"))
  registry.put(3, pathlib.Path("/data/cfg/nested"))
  registry.put(4, pathlib.Path("/data/cfgx"))
  try:
    assert sorted(registry.handles_under(pathlib.Path("/data/cfg"))) == [2, 3]
    assert sorted(registry.handles_under(pathlib.Path("/data"))) == [1, 2, 3, 4]
    assert registry.handles_under(pathlib.Path("/other")) == []
  except AssertionError as e: return TestResult(TestCode.FAIL, str(e))
  return TestResult(TestCode.PASS)

async def test_registry_concurrent_access(*args, **kwargs) -> TestResult:
  """The Registry is read & written from several threads at once"""
  from cfgwatch.registry import WatchRegistry
  registry = WatchRegistry()
  def _writer(offset: int):
    for i in range(500):
      registry.put(offset + i, pathlib.Path(f"/data/{offset + i}"))
      registry.snapshot()
  await asyncio.gather(*[asyncio.to_thread(_writer, n * 1000) for n in range(4)])
  try:
    assert len(registry) == 2000, len(registry)
    assert all(registry.get(h) == pathlib.Path(f"/data/{h}") for h in registry.snapshot())
  except AssertionError as e: return TestResult(TestCode.FAIL, str(e))
  return TestResult(TestCode.PASS)
