# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Schema compatibility analysis between two compiled versions."""

from .analyzer import AnalyzerState, CompatibilityAnalyzer, compare
from .migration import encode_default, widening_transform
from .report import (
	CompatibilityFinding,
	CompatibilityReport,
	FindingKind,
	MigrationStep,
	Verdict,
)

__all__ = [
	"AnalyzerState",
	"CompatibilityAnalyzer",
	"compare",
	"encode_default",
	"widening_transform",
	"CompatibilityFinding",
	"CompatibilityReport",
	"FindingKind",
	"MigrationStep",
	"Verdict",
]
