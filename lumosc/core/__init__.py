# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
lumosc.core: types shared by every stage.

Modules:
  - span: Span / SourceText (line, column and UTF-8 byte offsets)
  - diagnostics: Diagnostic and DiagnosticSink
  - options: CompileOptions
  - types_core: ResolvedType union and the DeclTable arena
  - semver: version strings for `#[version]` and version tags
"""

__all__ = [
	"span",
	"diagnostics",
	"options",
	"types_core",
	"semver",
]
