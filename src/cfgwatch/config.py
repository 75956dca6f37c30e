"""

Configuration for running a Config Watch stand-alone.

Sources in increasing precedence: a YAML file, the environment, explicit overrides (ie. CLI flags).

```yaml
directory: /etc/app/config
interval: 1.0
log: INFO
output: jsonl
http:
  listen: tcp://0.0.0.0:8080
```

"""
from __future__ import annotations
import pathlib
import yaml
from collections.abc import Mapping
from typing import Any, Literal, TypedDict, NotRequired
from loguru import logger
from .errors import ConfigError

__all__ = [
  "Config",
  "load_config",
  "DEFAULTS",
]

LOG_LEVELS = ('TRACE', 'DEBUG', 'INFO', 'SUCCESS', 'WARNING', 'ERROR', 'CRITICAL')
OUTPUTS = ('log', 'jsonl')

class Config(TypedDict):
  directory: str
  """The topmost Directory to watch; relative paths are taken relative to the working directory"""
  interval: NotRequired[float]
  """Seconds between dispatch cycles"""
  log: NotRequired[str]
  """The Log Level"""
  output: NotRequired[Literal['log', 'jsonl']]
  """How Reactions are reported"""
  http: NotRequired[Config.HttpSpec]
  """Serve the status endpoint"""

  @staticmethod
  def validate(cfg: Config):
    logger.debug("Validating the Configuration")
    if not isinstance(cfg, dict): raise ConfigError("Configuration must be a dictionary")
    if 'directory' not in cfg: raise ConfigError("Configuration must contain a 'directory' key")
    if not isinstance(cfg['directory'], str) or cfg['directory'] == '': raise ConfigError("Configuration 'directory' must be a non empty string")
    if 'interval' in cfg:
      if isinstance(cfg['interval'], bool) or not isinstance(cfg['interval'], (int, float)): raise ConfigError("Configuration 'interval' must be a number")
      if cfg['interval'] < 0: raise ConfigError("Configuration 'interval' must not be negative")
    if 'log' in cfg and cfg['log'] not in LOG_LEVELS: raise ConfigError(f"Configuration 'log' must be one of {', '.join(LOG_LEVELS)}")
    if 'output' in cfg and cfg['output'] not in OUTPUTS: raise ConfigError(f"Configuration 'output' must be one of {', '.join(OUTPUTS)}")
    if 'http' in cfg: Config.HttpSpec.validate(cfg['http'])

  class HttpSpec(TypedDict):
    listen: str
    """Where to listen as a URL; `tcp://host:port` or `unix:///path/to/socket`"""

    @staticmethod
    def validate(spec: Config.HttpSpec):
      logger.debug("Validating config.http")
      if not isinstance(spec, dict): raise ConfigError("Configuration 'http' must be a dictionary")
      if 'listen' not in spec: raise ConfigError("Configuration 'http' must contain a 'listen' key")
      if not isinstance(spec['listen'], str): raise ConfigError("Configuration 'http.listen' must be a string")
      if not spec['listen'].startswith(('tcp://', 'unix://')): raise ConfigError("Configuration 'http.listen' must be a `tcp://` or `unix://` URL")

DEFAULTS: dict[str, Any] = {
  'interval': 1.0,
  'log': 'INFO',
  'output': 'log',
}

def _from_file(path: pathlib.Path) -> dict[str, Any]:
  logger.debug(f"Loading the Configuration File `{path}`")
  try: data = yaml.safe_load(path.read_text())
  except OSError as e: raise ConfigError(f"Can't read the Configuration File `{path}`: {e.strerror}") from e
  except yaml.YAMLError as e: raise ConfigError(f"The Configuration File `{path}` is not valid YAML: {e}") from e
  if data is None: return {}
  if not isinstance(data, dict): raise ConfigError(f"The Configuration File `{path}` must contain a mapping")
  return data

def _from_flat(src: Mapping[str, Any], keys: Mapping[str, str]) -> dict[str, Any]:
  """Pick the flat keys (ie. environment variables) that are set, renaming them to Config keys"""
  cfg: dict[str, Any] = {}
  for src_key, cfg_key in keys.items():
    value = src.get(src_key)
    if value is None or value == '': continue
    if cfg_key == 'interval' and isinstance(value, str):
      try: value = float(value)
      except ValueError as e: raise ConfigError(f"`{src_key}` must be a number, got '{value}'") from e
    if cfg_key == 'log' and isinstance(value, str): value = value.upper()
    if cfg_key == 'listen': cfg['http'] = { 'listen': value }
    else: cfg[cfg_key] = value
  return cfg

ENV_KEYS: dict[str, str] = {
  'CFGWATCH_DIR': 'directory',
  'CFGWATCH_INTERVAL': 'interval',
  'CFGWATCH_OUTPUT': 'output',
  'CFGWATCH_LISTEN': 'listen',
  'LOG_LEVEL': 'log',
}
"""Environment Variable -> Config Key"""
OVERRIDE_KEYS: dict[str, str] = {
  'dir': 'directory',
  'interval': 'interval',
  'output': 'output',
  'listen': 'listen',
  'log': 'log',
}
"""Override (ie. CLI Flag) -> Config Key"""

def load_config(
  path: pathlib.Path | None = None,
  env: Mapping[str, str] | None = None,
  overrides: Mapping[str, Any] | None = None,
) -> Config:
  """Assemble & validate the Configuration"""
  cfg: dict[str, Any] = dict(DEFAULTS)
  if path is not None: cfg |= _from_file(path)
  if env is not None: cfg |= _from_flat(env, ENV_KEYS)
  if overrides is not None: cfg |= _from_flat(overrides, OVERRIDE_KEYS)
  Config.validate(cfg)
  logger.trace(f"Loaded Configuration: {cfg}")
  return cfg
