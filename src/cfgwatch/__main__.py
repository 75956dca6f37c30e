"""

Run a Config Watch stand-alone.

```
python -m cfgwatch [--config=FILE] [--dir=DIR] [--log=LEVEL] [--output=log|jsonl] [--interval=SECONDS] [--listen=URL] run|check
```

"""
from __future__ import annotations
import os, sys, pathlib, asyncio, signal
import orjson
from collections.abc import Mapping
from typing import TypedDict, NotRequired
from loguru import logger
from yarl import URL

### Local Imports
from .config import Config, load_config
from .errors import ConfigError, WatchError
from .reactions import Reactions, LogReactions, JSONLinesReactions
from .watch import ConfigWatch
from .dispatch import EventDispatcher
###

def _reactions(cfg: Config) -> Reactions:
  output = cfg.get('output', 'log')
  if output == 'log': return LogReactions()
  elif output == 'jsonl': return JSONLinesReactions()
  else: raise NotImplementedError(output)

async def cmd_run(cfg: Config) -> int:
  watch = ConfigWatch(
    pathlib.Path(cfg['directory']),
    _reactions(cfg),
    interval=cfg.get('interval', 1.0),
  )
  server = None
  shutdown = asyncio.Event()
  loop = asyncio.get_running_loop()
  for sig in (signal.SIGINT, signal.SIGTERM): loop.add_signal_handler(sig, shutdown.set)
  try:
    async with watch.session():
      if 'http' in cfg:
        from .web import StatusServer
        server = StatusServer(watch, URL(cfg['http']['listen']))
        await server.start()
      wait_shutdown = asyncio.create_task(shutdown.wait())
      wait_watch = asyncio.create_task(watch.wait())
      try: await asyncio.wait((wait_shutdown, wait_watch), return_when=asyncio.FIRST_COMPLETED)
      finally:
        wait_shutdown.cancel(); wait_watch.cancel()
        if server is not None: await server.stop()
      if not shutdown.is_set():
        logger.critical("The watch exited unexpectedly")
        return 1
      logger.info("Received a shutdown signal")
  finally:
    for sig in (signal.SIGINT, signal.SIGTERM): loop.remove_signal_handler(sig)
  return 0

def cmd_check(cfg: Config) -> int:
  """Register the Directory Tree once, report what would be watched & release everything"""
  dispatcher = EventDispatcher(pathlib.Path(cfg['directory']), LogReactions())
  try:
    sys.stdout.buffer.write(orjson.dumps({
      'root': dispatcher.root.as_posix(),
      'watched': [p.as_posix() for p in dispatcher.watched()],
    }, option=orjson.OPT_APPEND_NEWLINE))
  finally: dispatcher.close()
  return 0

def main(args: tuple[str, ...], kwargs: CLI_KWARGS, env: Mapping[str, str]) -> int:
  logger.trace(f"Starting main function with arguments: {args}\nKeywords: {kwargs}")
  if len(args) < 1: raise CLIError("No subcommand provided")
  if len(args) > 1: raise CLIError(f"Unexpected arguments: {' '.join(args[1:])}")
  subcmd = args[0]
  config_file = kwargs.get('config') or env.get('CFGWATCH_CONFIG')
  cfg = load_config(
    pathlib.Path(config_file) if config_file else None,
    env=env,
    overrides=kwargs,
  )
  setup_logging(cfg['log']) # Reconfigure logging
  if subcmd == 'run': return asyncio.run(cmd_run(cfg))
  elif subcmd == 'check': return cmd_check(cfg)
  else: raise CLIError(f"Unknown subcommand '{subcmd}'")

class CLIError(RuntimeError): pass

def setup_logging(log_level: str = os.environ.get('LOG_LEVEL', 'INFO')):
  logger.remove()
  logger.add(sys.stderr, level=log_level.upper(), enqueue=True, colorize=True)
  logger.trace(f'Log level set to {log_level}')

def finalize_logging():
  logger.complete()

class CLI_KWARGS(TypedDict):
  log: NotRequired[str]
  """The Log Level; overrides the Configuration"""
  config: NotRequired[str]
  """The YAML Configuration File"""
  dir: NotRequired[str]
  """The Directory to watch"""
  output: NotRequired[str]
  interval: NotRequired[str]
  listen: NotRequired[str]

KNOWN_KWARGS = ('log', 'config', 'dir', 'output', 'interval', 'listen')

def parse_argv(argv: list[str]) -> tuple[tuple[str, ...], CLI_KWARGS]:
  args = []
  kwargs = {}
  for idx, arg in enumerate(argv):
    if arg == '--':
      logger.trace(f"Found end of arguments at index {idx}")
      args.extend(argv[idx+1:])
      break
    elif arg.startswith('--'):
      logger.trace(f"Found keyword argument: {arg}")
      if '=' not in arg: raise CLIError(f"Keyword argument `{arg}` requires a value (ie. `{arg}=VALUE`)")
      key, value = arg[2:].split('=', 1)
      if key not in KNOWN_KWARGS: raise CLIError(f"Unknown keyword argument `--{key}`")
      kwargs[key] = value.upper() if key == 'log' else value
    else:
      logger.trace(f"Found positional argument: {arg}")
      args.append(arg)
  return tuple(args), kwargs

def cli() -> int:
  setup_logging()
  _rc = 255
  try:
    args, kwargs = parse_argv(sys.argv[1:])
    logger.trace(f"Arguments: {args}\nKeywords: {kwargs}")
    _rc = main(args, kwargs, os.environ)
  except CLIError as e:
    logger.error(str(e))
    _rc = 2
  except (ConfigError, WatchError) as e:
    logger.critical(str(e))
    _rc = 1
  except Exception:
    logger.opt(exception=True).critical('Unhandled exception')
    _rc = 3
  finally:
    finalize_logging()
    sys.stdout.flush()
    sys.stderr.flush()
  return _rc

if __name__ == '__main__':
  sys.exit(cli())
