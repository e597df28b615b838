from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional

import ipywidgets as w


Level = Literal["info", "warning", "error"]

_COLORS: Dict[str, str] = {"info": "#222222", "warning": "#b26a00", "error": "#b00020"}


@dataclass
class _Entry:
    level: Level
    message: str
    trial: Optional[str] = None
    count: int = 1

    def same_as(self, level: Level, message: str, trial: Optional[str]) -> bool:
        return (self.level, self.message, self.trial) == (level, message, trial)


class HtmlLog:
    """
    Run log for the bulk-analysis panel, rendered into one HTML widget.

    - warnings in orange, errors in red, with a per-level count in the header
    - entries may be tagged with the trial they refer to
    - consecutive identical entries are shown once with an (xN) suffix
    - at most max_entries are kept (oldest dropped)
    """

    def __init__(self, *, title: str | None = None, height_px: int = 220, max_entries: int = 2000) -> None:
        self._entries: List[_Entry] = []
        self._height_px = int(height_px)
        self._max_entries = int(max_entries)
        self._title = title
        self.header = w.HTML()
        self.widget = w.HTML()
        self.panel = w.VBox([self.header, self.widget]) if title else self.widget
        self.clear()

    @property
    def entries(self) -> List[tuple[Level, str, int]]:
        return [(e.level, e.message, e.count) for e in self._entries]

    def counts(self) -> Dict[str, int]:
        out = {"info": 0, "warning": 0, "error": 0}
        for e in self._entries:
            out[e.level] += e.count
        return out

    def clear(self) -> None:
        self._entries.clear()
        self._render()

    def info(self, message: str, *, trial: Optional[str] = None) -> None:
        self.add("info", message, trial=trial)

    def warning(self, message: str, *, trial: Optional[str] = None) -> None:
        self.add("warning", message, trial=trial)

    def error(self, message: str, *, trial: Optional[str] = None) -> None:
        self.add("error", message, trial=trial)

    def add(self, level: Level, message: str, *, trial: Optional[str] = None) -> None:
        msg = "" if message is None else str(message)
        last = self._entries[-1] if self._entries else None
        if last is not None and last.same_as(level, msg, trial):
            last.count += 1
        else:
            self._entries.append(_Entry(level=level, message=msg, trial=trial))
            del self._entries[: max(0, len(self._entries) - self._max_entries)]
        self._render()

    def handler(self, level: int = logging.INFO) -> "HtmlLogHandler":
        return HtmlLogHandler(self, level=level)

    def _row(self, e: _Entry) -> str:
        tag = f"<b>[{html.escape(e.trial)}]</b> " if e.trial else ""
        suffix = html.escape(f" (x{e.count})") if e.count > 1 else ""
        return (
            f"<div style='color:{_COLORS[e.level]}; white-space:pre-wrap; "
            f"font-family:ui-monospace, Menlo, Consolas, monospace;'>{tag}{html.escape(e.message)}{suffix}</div>"
        )

    def _render(self) -> None:
        if self._title:
            c = self.counts()
            self.header.value = (
                f"<b>{html.escape(str(self._title))}</b> "
                f"<span style='color:#666;'>({c['warning']} warning(s), {c['error']} error(s))</span>"
            )
        body = "".join(self._row(e) for e in self._entries) or "<div style='color:#666;'>Log is empty.</div>"
        self.widget.value = (
            f"<div style='border:1px solid #ddd; padding:8px; height:{self._height_px}px; "
            f"overflow-y:auto; background:#fff;'>{body}</div>"
        )


class HtmlLogHandler(logging.Handler):
    """Routes log records into an :class:`HtmlLog`; a ``trial`` attribute (``extra=``) tags the entry."""

    def __init__(self, log: HtmlLog, level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self._log = log
        self.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
        except Exception:
            self.handleError(record)
            return
        if record.levelno >= logging.ERROR:
            level: Level = "error"
        elif record.levelno >= logging.WARNING:
            level = "warning"
        else:
            level = "info"
        self._log.add(level, msg, trial=getattr(record, "trial", None))
