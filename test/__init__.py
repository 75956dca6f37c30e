from .harness import test_registry

from .tests.classify import (
  test_apt_directory, test_apt_file, test_mounted_volume_layout,
)
from .tests.registry import (
  test_registry_put_never_overwrites, test_registry_remove,
  test_registry_handles_under, test_registry_concurrent_access,
)
from .tests.registrar import (
  test_register_all_prunes_hidden, test_register_is_idempotent,
  test_register_all_skips_failing_subtree, test_register_all_skips_symlinked_dirs,
  test_register_follows_moved_inode,
)
from .tests.inotify import (
  test_inotify_c_integrations, test_inotify_read_events,
  test_inotify_parse_buffer, test_inotify_backend_factory,
)
from .tests.dispatch import (
  test_new_directory_is_registered, test_config_directory_scenario,
  test_symlinked_secret_fires_once, test_deleted_directory_is_retired_once,
  test_moved_directory_is_retired, test_reaction_failure_is_contained,
  test_overflow_rescans, test_cancelled_cycle_does_not_react,
  test_unusable_root_is_fatal, test_close_releases_every_watch,
  test_move_across_directories, test_symlinked_directory_is_not_registered,
  test_task_cancellation_propagates,
)
from .tests.watch import (
  test_watch_lifecycle, test_watch_session_releases, test_watch_bad_root,
  test_watch_end_to_end, test_watch_mounted_volume_end_to_end,
  test_watch_move_across_directories,
)
from .tests.config import (
  test_config_precedence, test_config_validation,
)
from .tests.web import (
  test_status_endpoints,
)
from .tests.cli import (
  test_parse_argv, test_log_level_precedence, test_check_subcommand,
)

test_registry.register("cfgwatch.classify", "apt_directory", test_apt_directory)
test_registry.register("cfgwatch.classify", "apt_file", test_apt_file)
test_registry.register("cfgwatch.classify", "mounted_volume_layout", test_mounted_volume_layout)
test_registry.register("cfgwatch.registry", "put_never_overwrites", test_registry_put_never_overwrites)
test_registry.register("cfgwatch.registry", "remove", test_registry_remove)
test_registry.register("cfgwatch.registry", "handles_under", test_registry_handles_under)
test_registry.register("cfgwatch.registry", "concurrent_access", test_registry_concurrent_access)
test_registry.register("cfgwatch.registrar", "register_all.prunes_hidden", test_register_all_prunes_hidden)
test_registry.register("cfgwatch.registrar", "register.idempotent", test_register_is_idempotent)
test_registry.register("cfgwatch.registrar", "register_all.failing_subtree", test_register_all_skips_failing_subtree)
test_registry.register("cfgwatch.registrar", "register_all.symlinked_dirs", test_register_all_skips_symlinked_dirs)
test_registry.register("cfgwatch.linux.inotify", "c_integrations", test_inotify_c_integrations)
test_registry.register("cfgwatch.linux.inotify", "read_events", test_inotify_read_events)
test_registry.register("cfgwatch.linux.inotify", "parse_buffer", test_inotify_parse_buffer)
test_registry.register("cfgwatch.linux.inotify", "backend_factory", test_inotify_backend_factory)
test_registry.register("cfgwatch.dispatch", "new_directory", test_new_directory_is_registered)
test_registry.register("cfgwatch.dispatch", "config_directory_scenario", test_config_directory_scenario)
test_registry.register("cfgwatch.dispatch", "symlinked_secret", test_symlinked_secret_fires_once)
test_registry.register("cfgwatch.dispatch", "deleted_directory", test_deleted_directory_is_retired_once)
test_registry.register("cfgwatch.dispatch", "moved_directory", test_moved_directory_is_retired)
test_registry.register("cfgwatch.dispatch", "reaction_failure", test_reaction_failure_is_contained)
test_registry.register("cfgwatch.dispatch", "overflow", test_overflow_rescans)
test_registry.register("cfgwatch.dispatch", "cancellation", test_cancelled_cycle_does_not_react)
test_registry.register("cfgwatch.dispatch", "unusable_root", test_unusable_root_is_fatal)
test_registry.register("cfgwatch.dispatch", "close", test_close_releases_every_watch)
test_registry.register("cfgwatch.watch", "lifecycle", test_watch_lifecycle)
test_registry.register("cfgwatch.watch", "session", test_watch_session_releases)
test_registry.register("cfgwatch.watch", "bad_root", test_watch_bad_root)
test_registry.register("cfgwatch.watch", "end_to_end", test_watch_end_to_end)
test_registry.register("cfgwatch.watch", "mounted_volume_end_to_end", test_watch_mounted_volume_end_to_end)
test_registry.register("cfgwatch.config", "precedence", test_config_precedence)
test_registry.register("cfgwatch.config", "validation", test_config_validation)
test_registry.register("cfgwatch.web", "status_endpoints", test_status_endpoints)
test_registry.register("cfgwatch.cli", "parse_argv", test_parse_argv)
test_registry.register("cfgwatch.cli", "check", test_check_subcommand)
test_registry.register("cfgwatch.registrar", "register.moved_inode", test_register_follows_moved_inode)
test_registry.register("cfgwatch.dispatch", "move_across_directories", test_move_across_directories)
test_registry.register("cfgwatch.dispatch", "symlinked_directory", test_symlinked_directory_is_not_registered)
test_registry.register("cfgwatch.dispatch", "task_cancellation", test_task_cancellation_propagates)
test_registry.register("cfgwatch.watch", "move_across_directories", test_watch_move_across_directories)
test_registry.register("cfgwatch.cli", "log_level_precedence", test_log_level_precedence)
