"""Structured logging to stderr. Each entry is written on one line with
its origin, message and keyword context rendered as `Key=value` pairs.
Entries below the threshold set by `SRV_LOG_LEVEL` (or `setLevel`) are
dropped, and `logged()` tells if a logging function would write anything."""

import sys
import time
import traceback
from contextvars import ContextVar
from enum import Enum
from os import getenv
from typing import Any, Callable, NamedTuple, TypeAlias

from .term import Term

ERR = sys.stderr

TLogValue: TypeAlias = (
	bool
	| int
	| float
	| str
	| bytes
	| None
	| list[Any]
	| tuple[Any, ...]
	| dict[str, Any]
)

LogOrigin: ContextVar[str] = ContextVar("LogOrigin", default="srv")


class LogLevel(Enum):
	Debug = 0
	Info = 10
	Warning = 30
	Error = 40  # A managed error
	Exception = 50  # An un-managed error

	@property
	def color(self) -> int:
		return LEVEL_COLORS[self]


LEVEL_COLORS: dict[LogLevel, int] = {
	LogLevel.Debug: 31,
	LogLevel.Info: 75,
	LogLevel.Warning: 202,
	LogLevel.Error: 160,
	LogLevel.Exception: 124,
}


class LogEntry(NamedTuple):
	origin: str
	time: float
	level: LogLevel
	message: str
	context: dict[str, TLogValue]
	# Events are rendered with their value next to their name
	isEvent: bool = False
	value: TLogValue = None


def parseLevel(name: str | None, default: LogLevel = LogLevel.Info) -> LogLevel:
	"""Parses a level name like `debug` or `WARNING`, returning `default` when
	the name is not recognized."""
	key: str = (name or "").strip().capitalize()
	return default if key == "Exception" else LogLevel.__members__.get(key, default)


# The threshold below which entries are dropped
LOG_LEVEL: LogLevel = parseLevel(getenv("SRV_LOG_LEVEL"))


def setLevel(level: LogLevel | str) -> LogLevel:
	global LOG_LEVEL
	LOG_LEVEL = level if isinstance(level, LogLevel) else parseLevel(level)
	return LOG_LEVEL


def enabled(level: LogLevel) -> bool:
	return level.value >= LOG_LEVEL.value


# -----------------------------------------------------------------------------
#
# FORMATTING
#
# -----------------------------------------------------------------------------


def formatData(value: Any) -> str:
	if value is None or value == () or value == [] or value == {}:
		return "◌"
	elif isinstance(value, dict):
		return " ".join(
			f"{Term.BOLD}{k}{Term.RESET}={formatData(v)}" for k, v in value.items()
		)
	elif isinstance(value, (list, tuple)):
		return ",".join(formatData(v) for v in value)
	elif isinstance(value, str):
		return repr(value) if " " in value else value
	elif isinstance(value, bool):
		return "✓" if value else "✗"
	elif isinstance(value, float):
		return f"{value:0.2f}"
	else:
		return str(value)


def render(entry: LogEntry) -> str:
	prefix: str = f"{Term.Color(entry.level.color)}{Term.BOLD}[{entry.origin}]"
	if entry.isEvent:
		text = f"{prefix} {entry.message}{Term.RESET} {formatData(entry.value)}"
	else:
		text = f"{prefix}{Term.RESET} {entry.message}"
	return f"{text} {formatData(entry.context)}{Term.RESET}"


# -----------------------------------------------------------------------------
#
# API
#
# -----------------------------------------------------------------------------


def log(
	level: LogLevel,
	message: str,
	context: dict[str, TLogValue],
	*,
	origin: str | None = None,
	isEvent: bool = False,
	value: TLogValue = None,
) -> LogEntry:
	"""Creates the entry and writes it when its level is enabled."""
	res = LogEntry(
		origin=origin or LogOrigin.get(),
		time=time.time(),
		level=level,
		message=message,
		context=context,
		isEvent=isEvent,
		value=value,
	)
	if enabled(level):
		ERR.write(f"{render(res)}\n")
		ERR.flush()
	return res


def debug(message: str, *, origin: str | None = None, **context: TLogValue) -> LogEntry:
	return log(LogLevel.Debug, message, context, origin=origin)


def info(message: str, *, origin: str | None = None, **context: TLogValue) -> LogEntry:
	return log(LogLevel.Info, message, context, origin=origin)


def warning(
	message: str, *, origin: str | None = None, **context: TLogValue
) -> LogEntry:
	return log(LogLevel.Warning, message, context, origin=origin)


def error(
	message: str,
	code: int | str | None,
	*,
	origin: str | None = None,
	**context: TLogValue,
) -> LogEntry:
	"""Logs a managed error, identified by `code`."""
	return log(LogLevel.Error, message, context | {"Code": code}, origin=origin)


def event(
	name: str,
	value: TLogValue = None,
	*,
	origin: str | None = None,
	**context: TLogValue,
) -> LogEntry:
	return log(LogLevel.Info, name, context, origin=origin, isEvent=True, value=value)


def exception(exc: BaseException, message: str | None = None) -> BaseException:
	"""Writes the exception and its traceback, whatever the level. Returns
	the exception so that it can be used as `raise exception(e)`."""
	summary: str = f"[{exc.__class__.__name__}] {exc}"
	lines: list[str] = [f"!!! EXCP {f'{message}: {summary}' if message else summary}"]
	lines.extend(
		f"... in {frame.name:15s} at {frame.lineno or 0:4d} in {frame.filename}"
		for frame in traceback.extract_tb(exc.__traceback__)
	)
	ERR.write("\n".join(lines) + "\n")
	ERR.flush()
	return exc


LOGGER_LEVELS: dict[Callable[..., LogEntry], LogLevel] = {
	debug: LogLevel.Debug,
	info: LogLevel.Info,
	event: LogLevel.Info,
	warning: LogLevel.Warning,
	error: LogLevel.Error,
}


def logged(item: Callable[..., Any]) -> bool:
	"""Tells if the given logging function currently writes its entries,
	which guards against building entries that would be dropped."""
	level: LogLevel | None = LOGGER_LEVELS.get(item)
	return level is None or enabled(level)


# EOF
