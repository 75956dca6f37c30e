"""

An optional HTTP status surface for a running Config Watch.

  - `GET /healthz`: 200 while the dispatch cycle runs, 503 otherwise
  - `GET /watches`: the JSON list of watched Directories

"""
from __future__ import annotations
import inspect, logging
import aiohttp.web
import orjson
from dataclasses import dataclass, field, KW_ONLY
from yarl import URL
from loguru import logger
from .watch import ConfigWatch

__all__ = [
  "StatusServer",
]

class InterceptHandler(logging.Handler):
  """Route aiohttp's stdlib Log Records into loguru"""
  def emit(self, record: logging.LogRecord) -> None:
    level: str | int
    try: level = logger.level(record.levelname).name
    except ValueError: level = record.levelno

    # Find the caller the message originated from
    frame, depth = inspect.currentframe(), 0
    while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
      frame = frame.f_back
      depth += 1

    logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())

_app_logger = logging.getLogger("cfgwatch.web")
_app_logger.addHandler(InterceptHandler())
_app_logger.setLevel(logging.DEBUG)
_app_logger.propagate = False

def _json_response(data, status: int = 200) -> aiohttp.web.Response:
  return aiohttp.web.Response(body=orjson.dumps(data), status=status, content_type="application/json")

@dataclass
class _StatusServerCtx:
  runner: aiohttp.web.AppRunner | None = None
  site: aiohttp.web.BaseSite | None = None

@dataclass
class StatusServer:
  """Serves the health & the watched Directories of a Config Watch"""
  watch: ConfigWatch
  listen: URL
  """`tcp://host:port` or `unix:///path/to/socket`"""
  _: KW_ONLY
  _ctx: _StatusServerCtx = field(default_factory=_StatusServerCtx)

  @property
  def online(self) -> bool: return self._ctx.site is not None

  async def healthz(self, request: aiohttp.web.Request) -> aiohttp.web.Response:
    if self.watch.running: return _json_response({'status': 'ok', 'watched': len(self.watch.watched())})
    return _json_response({'status': 'stopped'}, status=503)

  async def watches(self, request: aiohttp.web.Request) -> aiohttp.web.Response:
    return _json_response([p.as_posix() for p in self.watch.watched()])

  def _site(self, runner: aiohttp.web.AppRunner) -> aiohttp.web.BaseSite:
    if self.listen.scheme == "tcp":
      if self.listen.path is not None and self.listen.path.lstrip('/') != "": raise ValueError("TCP URLs should not have a path")
      return aiohttp.web.TCPSite(runner=runner, host=self.listen.host, port=self.listen.port)
    elif self.listen.scheme == "unix": return aiohttp.web.UnixSite(runner=runner, path=self.listen.path)
    else: raise NotImplementedError(self.listen.scheme)

  async def start(self):
    if self._ctx.runner is not None: raise RuntimeError("The Status Server has already been started")
    logger.info(f"Starting the Status Server at {self.listen}")
    app = aiohttp.web.Application(logger=_app_logger)
    app.router.add_get("/healthz", self.healthz)
    app.router.add_get("/watches", self.watches)
    self._ctx.runner = aiohttp.web.AppRunner(
      app,
      handle_signals=False,
      logger=_app_logger,
      access_log=_app_logger,
    )
    await self._ctx.runner.setup()
    try:
      self._ctx.site = self._site(self._ctx.runner)
      await self._ctx.site.start()
    except BaseException:
      await self._ctx.runner.cleanup()
      self._ctx.runner, self._ctx.site = None, None
      raise
    logger.success(f"The Status Server is Online at {self.listen}")

  async def stop(self):
    if self._ctx.runner is None: raise RuntimeError("The Status Server is not Online")
    logger.info("Taking the Status Server Offline")
    await self._ctx.runner.cleanup()
    self._ctx.runner, self._ctx.site = None, None
    logger.success("The Status Server has been taken Offline")
