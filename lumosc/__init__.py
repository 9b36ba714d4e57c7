# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Lumos schema compiler (`lumosc`).

Pipeline: parse -> module graph -> type resolution -> layout, then either an
emitter view or a compatibility comparison between two versions. The CLI
entrypoint is `lumosc.lumosc:main`.
"""

from lumosc.compat import CompatibilityReport, Verdict, compare
from lumosc.core.diagnostics import Diagnostic, DiagnosticSink
from lumosc.core.options import CompileOptions, DEFAULT_OPTIONS
from lumosc.errors import CompatibilityError, LumoscError, PayloadError, ViewError
from lumosc.layout import LayoutSpec, compute_layouts
from lumosc.modules import build_graph, filesystem_loader, mapping_loader
from lumosc.parser import parse
from lumosc.schema_version import SchemaVersion
from lumosc.session import Session, compile_schema
from lumosc.type_resolver import resolve
from lumosc.view import build_view

__all__ = [
	"parse",
	"build_graph",
	"resolve",
	"compute_layouts",
	"compare",
	"build_view",
	"Session",
	"compile_schema",
	"SchemaVersion",
	"CompileOptions",
	"DEFAULT_OPTIONS",
	"Diagnostic",
	"DiagnosticSink",
	"LayoutSpec",
	"CompatibilityReport",
	"Verdict",
	"filesystem_loader",
	"mapping_loader",
	"LumoscError",
	"CompatibilityError",
	"PayloadError",
	"ViewError",
]
