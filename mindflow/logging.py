import inspect
import logging
from pprint import pformat
from typing import Any

from pydantic import BaseModel

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class PprintLogger:
    """A logger wrapper that adds pprint support to standard logging methods.

    Engine code logs structured dicts such as
    ``{"message": "Entry committed", "map_id": ..., "action": ...}``; with
    ``pprint=True`` those are rendered with `pformat`, and Pydantic models
    (snapshots, manifests, summaries) are rendered as indented JSON.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def _format_message(self, msg: Any, pprint: bool = True) -> str:
        if not pprint:
            return str(msg)
        if isinstance(msg, BaseModel):
            return msg.model_dump_json(indent=2, by_alias=True)
        if isinstance(msg, dict):
            msg = {key: value.model_dump(by_alias=True) if isinstance(value, BaseModel) else value for key, value in msg.items()}
        return pformat(msg, width=120, depth=None)

    def debug(self, msg: Any, *args, pprint: bool = True, **kwargs) -> None:
        self._logger.debug(self._format_message(msg, pprint=pprint), *args, stacklevel=2, **kwargs)

    def info(self, msg: Any, *args, pprint: bool = True, **kwargs) -> None:
        self._logger.info(self._format_message(msg, pprint=pprint), *args, stacklevel=2, **kwargs)

    def warning(self, msg: Any, *args, pprint: bool = True, **kwargs) -> None:
        self._logger.warning(self._format_message(msg, pprint=pprint), *args, stacklevel=2, **kwargs)

    def error(self, msg: Any, *args, pprint: bool = True, **kwargs) -> None:
        self._logger.error(self._format_message(msg, pprint=pprint), *args, stacklevel=2, **kwargs)

    def exception(self, msg: Any, *args, pprint: bool = True, **kwargs) -> None:
        self._logger.exception(self._format_message(msg, pprint=pprint), *args, stacklevel=2, **kwargs)

    def __getattr__(self, name: str) -> Any:
        """Delegate any other attributes to the underlying logger."""
        return getattr(self._logger, name)


_default_level: int | str = logging.INFO
_configured: set[str] = set()


def set_default_level(level: int | str) -> None:
    """Change the level used by `setup_logging` and re-level loggers it already configured."""
    global _default_level
    _default_level = level
    for name in _configured:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)


def setup_logging(name: str | None = None, level: int | str | None = None) -> PprintLogger:
    """Set up a named logger and return it wrapped in a PprintLogger.

    When no name is given the caller's module name is used, so
    ``setup_logging()`` at module level yields ``mindflow.importer`` etc.
    A stream handler is attached only the first time a logger is configured.
    """
    if name is None:
        frame = inspect.currentframe().f_back  # type: ignore[union-attr]
        name = frame.f_globals.get("__name__", "mindflow")  # type: ignore[union-attr]
    if level is None:
        level = _default_level
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        logger.addHandler(handler)
    _configured.add(name)
    return PprintLogger(logger)
