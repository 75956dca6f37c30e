"""

Test the recursive registration of Directory Trees

"""
from __future__ import annotations
from ..harness import TestResult, TestCode, FakeINotify, tmp_tree

__all__ = [
  "test_register_all_prunes_hidden",
  "test_register_is_idempotent",
  "test_register_all_skips_failing_subtree",
  "test_register_all_skips_symlinked_dirs",
  "test_register_follows_moved_inode",
]

async def test_register_all_prunes_hidden(*args, **kwargs) -> TestResult:
  from cfgwatch.registry import WatchRegistry
  from cfgwatch.registrar import Registrar
  fake = FakeINotify()
  registry = WatchRegistry()
  with tmp_tree("a/b/c", "a/.hidden/deeper", ".git/objects", "d") as root:
    handles = Registrar(registry, fake.backend()).register_all(root)
    try:
      watched = sorted(p.relative_to(root).as_posix() for p in registry.snapshot().values())
      assert watched == [".", "a", "a/b", "a/b/c", "d"], watched
      assert len(handles) == 5
      assert not any(".hidden" in p or ".git" in p for p in fake.watched()), "hidden subtrees are never watched"
    except AssertionError as e: return TestResult(TestCode.FAIL, str(e))
    finally: fake.cleanup(fake.rfd)
  return TestResult(TestCode.PASS)

async def test_register_is_idempotent(*args, **kwargs) -> TestResult:
  from cfgwatch.registry import WatchRegistry
  from cfgwatch.registrar import Registrar
  fake = FakeINotify()
  registry = WatchRegistry()
  with tmp_tree("a/b") as root:
    registrar = Registrar(registry, fake.backend())
    try:
      first = registrar.register(root / "a")
      second = registrar.register(root / "a")
      assert first == second, "the same directory yields the same handle"
      assert len(registry) == 1
      registrar.register_all(root)
      registrar.register_all(root)
      assert len(registry) == 3, registry.snapshot()
      assert len(set(registry.snapshot().values())) == 3, "no directory is registered twice"
    except AssertionError as e: return TestResult(TestCode.FAIL, str(e))
    finally: fake.cleanup(fake.rfd)
  return TestResult(TestCode.PASS)

async def test_register_all_skips_failing_subtree(*args, **kwargs) -> TestResult:
  from cfgwatch.registry import WatchRegistry
  from cfgwatch.registrar import Registrar
  from cfgwatch.errors import RegistrationError
  with tmp_tree("ok/inner", "bad/inner") as root:
    fake = FakeINotify(fail_paths={(root / "bad").as_posix()})
    registry = WatchRegistry()
    registrar = Registrar(registry, fake.backend())
    try:
      registrar.register_all(root)
      watched = sorted(p.relative_to(root).as_posix() for p in registry.snapshot().values())
      assert watched == [".", "ok", "ok/inner"], watched
      try:
        registrar.register(root / "bad")
        assert False, "registering a failing directory raises"
      except RegistrationError as e: assert e.kind == 'limit', e.kind
    except AssertionError as e: return TestResult(TestCode.FAIL, str(e))
    finally: fake.cleanup(fake.rfd)
  return TestResult(TestCode.PASS)

async def test_register_all_skips_symlinked_dirs(*args, **kwargs) -> TestResult:
  from cfgwatch.registry import WatchRegistry
  from cfgwatch.registrar import Registrar
  fake = FakeINotify()
  registry = WatchRegistry()
  with tmp_tree("real/inner") as root:
    (root / "loop").symlink_to(root)
    (root / "alias").symlink_to(root / "real")
    try:
      Registrar(registry, fake.backend()).register_all(root)
      watched = sorted(p.relative_to(root).as_posix() for p in registry.snapshot().values())
      assert watched == [".", "real", "real/inner"], watched
    except AssertionError as e: return TestResult(TestCode.FAIL, str(e))
    finally: fake.cleanup(fake.rfd)
  return TestResult(TestCode.PASS)

async def test_register_follows_moved_inode(*args, **kwargs) -> TestResult:
  """The kernel keeps a moved Directory's watch; registering its new Path takes over the Handle"""
  from cfgwatch.registry import WatchRegistry
  from cfgwatch.registrar import Registrar
  import os
  fake = FakeINotify()
  registry = WatchRegistry()
  with tmp_tree("a/sub/inner", "b") as root:
    registrar = Registrar(registry, fake.backend())
    try:
      registrar.register_all(root)
      sub_wd = fake.wd(root / "a/sub")
      os.rename(root / "a/sub", root / "b/sub")
      fake.rename(root / "a/sub", root / "b/sub")
      registrar.register_all(root / "b/sub")
      assert registry.get(sub_wd) == root / "b/sub", registry.get(sub_wd)
      assert not registry.contains_value(root / "a/sub")
      watched = sorted(p.relative_to(root).as_posix() for p in registry.snapshot().values())
      assert watched == [".", "a", "b", "b/sub", "b/sub/inner"], watched
    except AssertionError as e: return TestResult(TestCode.FAIL, str(e))
    finally: fake.cleanup(fake.rfd)
  return TestResult(TestCode.PASS)
