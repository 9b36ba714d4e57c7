# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Source span representation used by the AST and by diagnostics.

Lines and columns are 1-based. `offset`/`end_offset` are UTF-8 byte offsets
into the file text so tooling that works on raw bytes (editors, CI
annotators) can locate a diagnostic without re-decoding the source.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Span:
	"""Represents a source span (file/line/column plus byte offsets)."""

	file: Optional[str] = None
	line: Optional[int] = None
	column: Optional[int] = None
	end_line: Optional[int] = None
	end_column: Optional[int] = None
	offset: Optional[int] = None
	end_offset: Optional[int] = None

	@classmethod
	def from_loc(cls, loc: Any, *, file: Optional[str] = None) -> "Span":
		"""
		Construct a Span from a parser location object (lark `Meta`/`Token`,
		or another Span).

		Offsets are copied verbatim; callers that know the source text should
		prefer `SourceText.span_for` which converts character positions to
		byte offsets.
		"""
		if loc is None:
			return cls(file=file)
		if isinstance(loc, cls):
			return loc
		return cls(
			file=file,
			line=getattr(loc, "line", None),
			column=getattr(loc, "column", None),
			end_line=getattr(loc, "end_line", None),
			end_column=getattr(loc, "end_column", None),
			offset=getattr(loc, "start_pos", None),
			end_offset=getattr(loc, "end_pos", None),
		)

	def short(self) -> str:
		"""Format as `file:line:column` (unknown parts rendered as `?`)."""
		f = self.file or "<unknown>"
		l = self.line if self.line is not None else "?"
		c = self.column if self.column is not None else "?"
		return f"{f}:{l}:{c}"


class SourceText:
	"""
	Source text wrapper that maps lark character positions to byte offsets.

	ASCII sources (the common case) map 1:1; otherwise a prefix table of
	UTF-8 lengths is built lazily once per file.
	"""

	def __init__(self, path: str, text: str) -> None:
		self.path = path
		self.text = text
		self._ascii = text.isascii()
		self._byte_prefix: list[int] | None = None

	def byte_offset(self, char_pos: Optional[int]) -> Optional[int]:
		if char_pos is None:
			return None
		if self._ascii:
			return char_pos
		if self._byte_prefix is None:
			prefix = [0]
			total = 0
			for ch in self.text:
				total += len(ch.encode("utf-8"))
				prefix.append(total)
			self._byte_prefix = prefix
		pos = max(0, min(char_pos, len(self._byte_prefix) - 1))
		return self._byte_prefix[pos]

	def span_at(self, start: int, end: int) -> Span:
		"""Span for a character range of the text (1-based line and column, like lark)."""
		line = self.text.count("\n", 0, start) + 1
		end_line = line + self.text.count("\n", start, end)
		return Span(
			file=self.path,
			line=line,
			column=start - self.text.rfind("\n", 0, start),
			end_line=end_line,
			end_column=end - self.text.rfind("\n", 0, end),
			offset=self.byte_offset(start),
			end_offset=self.byte_offset(end),
		)

	def span_for(self, loc: Any) -> Span:
		"""Build a Span for a lark `Meta`/`Token`/error carrying positions."""
		if loc is None:
			return Span(file=self.path)
		start = getattr(loc, "start_pos", None)
		if start is None:
			start = getattr(loc, "pos_in_stream", None)
		end = getattr(loc, "end_pos", None)
		return Span(
			file=self.path,
			line=getattr(loc, "line", None),
			column=getattr(loc, "column", None),
			end_line=getattr(loc, "end_line", None),
			end_column=getattr(loc, "end_column", None),
			offset=self.byte_offset(start),
			end_offset=self.byte_offset(end),
		)


__all__ = ["Span", "SourceText"]
