# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Compatibility findings, migration steps and the aggregated report."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class FindingKind(str, Enum):
	BREAKING = "Breaking"
	ADDITIVE = "Additive"
	NEUTRAL = "Neutral"


class Verdict(str, Enum):
	COMPATIBLE = "Compatible"
	ADDITIVE_ONLY = "AdditiveOnly"
	BREAKING_DETECTED = "BreakingDetected"


@dataclass(frozen=True)
class MigrationStep:
	"""
	A deterministic byte transform applied to every stored value.

	`operation` is `append_field`, `widen_field` or `rewrite_discriminator`;
	`transform` names the exact rewrite (`option_none`, `default`,
	`zero_extend:u32->u64`, `<old hex>-><new hex>`, ...). For appends,
	`fill_bytes` is the encoding written at the end; for discriminator
	rewrites it is the new discriminator.
	"""

	operation: str
	field_path: str
	transform: str
	fill_bytes: Optional[bytes] = None

	def to_dict(self) -> dict:
		return {
			"operation": self.operation,
			"field_path": self.field_path,
			"transform": self.transform,
			"fill_bytes": None if self.fill_bytes is None else self.fill_bytes.hex(),
		}


@dataclass(frozen=True)
class CompatibilityFinding:
	kind: FindingKind
	decl_name: str
	description: str
	field_path: Optional[str] = None
	suggested_migration: Optional[MigrationStep] = None

	def to_dict(self) -> dict:
		return {
			"kind": self.kind.value,
			"decl_name": self.decl_name,
			"field_path": self.field_path,
			"description": self.description,
			"suggested_migration": None if self.suggested_migration is None else self.suggested_migration.to_dict(),
		}

	def format_human(self) -> str:
		where = self.field_path or self.decl_name
		return f"[{self.kind.value}] {where}: {self.description}"


def verdict_of(findings: List[CompatibilityFinding]) -> Verdict:
	kinds = {f.kind for f in findings}
	if FindingKind.BREAKING in kinds:
		return Verdict.BREAKING_DETECTED
	if FindingKind.ADDITIVE in kinds:
		return Verdict.ADDITIVE_ONLY
	return Verdict.COMPATIBLE


@dataclass
class CompatibilityReport:
	findings: List[CompatibilityFinding] = field(default_factory=list)
	verdict: Verdict = Verdict.COMPATIBLE
	manual_migration_required: bool = False
	migration_plan: List[MigrationStep] = field(default_factory=list)
	from_version: Optional[str] = None
	to_version: Optional[str] = None

	def breaking(self) -> List[CompatibilityFinding]:
		return [f for f in self.findings if f.kind is FindingKind.BREAKING]

	def additive(self) -> List[CompatibilityFinding]:
		return [f for f in self.findings if f.kind is FindingKind.ADDITIVE]

	def neutral(self) -> List[CompatibilityFinding]:
		return [f for f in self.findings if f.kind is FindingKind.NEUTRAL]

	@property
	def is_breaking(self) -> bool:
		return self.verdict is Verdict.BREAKING_DETECTED

	def to_dict(self) -> dict:
		return {
			"verdict": self.verdict.value,
			"manual_migration_required": self.manual_migration_required,
			"from_version": self.from_version,
			"to_version": self.to_version,
			"findings": [f.to_dict() for f in self.findings],
			"migration_plan": [s.to_dict() for s in self.migration_plan],
		}

	def format_human(self) -> str:
		head = f"verdict: {self.verdict.value}"
		if self.from_version or self.to_version:
			head += f" ({self.from_version or '?'} -> {self.to_version or '?'})"
		lines = [head]
		lines.extend(f"  {f.format_human()}" for f in self.findings)
		if self.migration_plan:
			lines.append("migration plan:")
			for step in self.migration_plan:
				fill = f" fill={step.fill_bytes.hex()}" if step.fill_bytes is not None else ""
				lines.append(f"  {step.operation} {step.field_path} [{step.transform}]{fill}")
		if self.manual_migration_required:
			lines.append("manual migration required")
		return "\n".join(lines)


__all__ = [
	"FindingKind",
	"Verdict",
	"MigrationStep",
	"CompatibilityFinding",
	"CompatibilityReport",
	"verdict_of",
]
