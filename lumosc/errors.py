# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Structured exceptions for fail-fast API misuse.

Problems in schema sources never raise; they are diagnostics. These errors
cover the few operations that refuse to run on bad input: comparing invalid
schema versions, restoring a corrupt payload, building an emitter view of a
schema with errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from lumosc.core.diagnostics import Diagnostic, diag_to_json


@dataclass(eq=False)
class LumoscError(Exception):
	"""A structured, serializable error with a stable reason code."""

	reason_code: str
	message: str

	def __str__(self) -> str:
		return self.format_human()

	def to_dict(self) -> dict[str, Any]:
		return {"reason_code": self.reason_code, "message": self.message}

	def format_human(self) -> str:
		return f"[{self.reason_code}] {self.message}"


@dataclass(eq=False)
class CompatibilityError(LumoscError):
	"""A schema version handed to the analyzer carries error diagnostics."""

	side: str | None = None  # "old" | "new"
	diagnostics: list[Diagnostic] = field(default_factory=list)

	def to_dict(self) -> dict[str, Any]:
		out = super().to_dict()
		out["side"] = self.side
		out["diagnostics"] = [diag_to_json(d) for d in self.diagnostics]
		return out

	def format_human(self) -> str:
		lines = [super().format_human()]
		lines.extend(f"  {d.format_human()}" for d in self.diagnostics if d.is_error)
		return "\n".join(lines)


@dataclass(eq=False)
class PayloadError(LumoscError):
	"""A persisted SchemaVersion payload is malformed or fails its digest check."""

	sha256_expected: str | None = None
	sha256_got: str | None = None

	def to_dict(self) -> dict[str, Any]:
		out = super().to_dict()
		out["sha256_expected"] = self.sha256_expected
		out["sha256_got"] = self.sha256_got
		return out

	def format_human(self) -> str:
		text = super().format_human()
		if self.sha256_expected or self.sha256_got:
			text += f" sha256_expected={self.sha256_expected} sha256_got={self.sha256_got}"
		return text


@dataclass(eq=False)
class ViewError(LumoscError):
	"""An emitter view was requested for a schema that is not fully laid out."""

	decl_name: str | None = None

	def to_dict(self) -> dict[str, Any]:
		out = super().to_dict()
		out["decl_name"] = self.decl_name
		return out


__all__ = ["LumoscError", "CompatibilityError", "PayloadError", "ViewError"]
