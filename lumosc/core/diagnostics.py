# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Common diagnostic structure shared by every compiler stage.

Stages never raise on bad schema input; they append `Diagnostic`s to a sink
and keep going so a single run surfaces every problem. Each diagnostic
carries a stable machine-readable `code` (UPPER_SNAKE, prefixed by the
phase family: SYNTAX_, MODULE_, RESOLVE_, ATTR_, LAYOUT_, COMPAT_).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from .span import Span


@dataclass
class Diagnostic:
	"""Represents a compiler diagnostic (error/warning)."""

	message: str
	code: str | None = None
	# Phase label: parser | modules | resolve | layout | compat.
	phase: str | None = None
	severity: str = "error"
	span: Span = field(default_factory=Span)
	notes: list[str] = field(default_factory=list)

	def __post_init__(self) -> None:
		if self.span is None:  # type: ignore[unreachable]
			self.span = Span()

	@property
	def is_error(self) -> bool:
		return self.severity == "error"

	def format_human(self) -> str:
		head = f"{self.span.short()}: {self.severity}"
		if self.code:
			head += f"[{self.code}]"
		lines = [f"{head}: {self.message}"]
		lines.extend(f"  note: {n}" for n in self.notes)
		return "\n".join(lines)


class DiagnosticSink:
	"""
	Ordered diagnostic collector.

	A sink is owned by a `Session` (or created ad hoc by a standalone stage
	call); it is never shared between sessions.
	"""

	def __init__(self, phase: Optional[str] = None) -> None:
		self.phase = phase
		self._items: list[Diagnostic] = []

	def error(self, code: str, message: str, span: Span | None = None, *, notes: Iterable[str] = (), phase: str | None = None) -> Diagnostic:
		return self._add(code, message, span, notes, phase, "error")

	def warning(self, code: str, message: str, span: Span | None = None, *, notes: Iterable[str] = (), phase: str | None = None) -> Diagnostic:
		return self._add(code, message, span, notes, phase, "warning")

	def extend(self, diags: Iterable[Diagnostic]) -> None:
		self._items.extend(diags)

	def has_errors(self) -> bool:
		return any(d.is_error for d in self._items)

	def errors(self) -> list[Diagnostic]:
		return [d for d in self._items if d.is_error]

	def __iter__(self) -> Iterator[Diagnostic]:
		return iter(self._items)

	def __len__(self) -> int:
		return len(self._items)

	def as_list(self) -> list[Diagnostic]:
		return list(self._items)

	def _add(self, code, message, span, notes, phase, severity) -> Diagnostic:
		diag = Diagnostic(
			message=message,
			code=code,
			phase=phase or self.phase,
			severity=severity,
			span=span or Span(),
			notes=list(notes),
		)
		self._items.append(diag)
		return diag


def has_errors(diags: Iterable[Diagnostic]) -> bool:
	return any(d.is_error for d in diags)


def diag_to_json(diag: Diagnostic, phase: str | None = None) -> dict:
	"""Render a Diagnostic to a structured JSON-friendly dict."""
	span = diag.span
	return {
		"phase": diag.phase or phase,
		"code": diag.code,
		"message": diag.message,
		"severity": diag.severity,
		"file": span.file,
		"line": span.line,
		"column": span.column,
		"offset": span.offset,
		"notes": list(diag.notes),
	}


__all__ = ["Diagnostic", "DiagnosticSink", "diag_to_json", "has_errors"]
