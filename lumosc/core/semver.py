# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Semantic version strings used by `#[version = "X.Y.Z"]` and version tags."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering
from typing import Optional, Tuple

_SEMVER_RE = re.compile(
	r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
	r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
	r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


@total_ordering
@dataclass(frozen=True)
class SemVer:
	"""
	A parsed version. Ordering follows semver precedence: a prerelease sorts
	before its release, and prerelease identifiers compare numerically when
	both are numeric, otherwise as text, with numeric ones first. Build
	metadata is dropped at parse time.
	"""

	major: int
	minor: int
	patch: int
	pre: str = ""

	def __str__(self) -> str:
		base = f"{self.major}.{self.minor}.{self.patch}"
		return f"{base}-{self.pre}" if self.pre else base

	def precedence(self) -> Tuple:
		if not self.pre:
			return (self.major, self.minor, self.patch, (1,))
		idents = tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in self.pre.split("."))
		return (self.major, self.minor, self.patch, (0, idents))

	def __lt__(self, other: "SemVer") -> bool:
		if not isinstance(other, SemVer):
			return NotImplemented
		return self.precedence() < other.precedence()


def parse_semver(text: str) -> Optional[SemVer]:
	"""Parse `X.Y.Z[-pre][+build]`; returns None when `text` is not semver."""
	m = _SEMVER_RE.match(text.strip()) if isinstance(text, str) else None
	if m is None:
		return None
	return SemVer(int(m.group(1)), int(m.group(2)), int(m.group(3)), m.group(4) or "")


__all__ = ["SemVer", "parse_semver"]
