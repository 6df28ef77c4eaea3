from __future__ import annotations

import logging

from backlog_api.config import settings

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int | None = None) -> None:
  """Configure the ``backlog_api`` logger tree once per process.

  Repeated calls only adjust the level, so tests and the ASGI server can both call it.
  """
  root = logging.getLogger("backlog_api")
  resolved = level if level is not None else (settings.log_level or "INFO")
  if isinstance(resolved, str):
    resolved = logging.getLevelName(resolved.strip().upper())
    if not isinstance(resolved, int):
      resolved = logging.INFO
  root.setLevel(resolved)
  if not root.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)
