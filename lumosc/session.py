# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Compilation session.

A Session carries the state one compilation needs (the declaration arena
and the diagnostic sink) explicitly; no stage keeps module-level state.
Each `compile()` starts from a fresh arena and sink, so a session may be
reused, and independent sessions may run in parallel.
"""

from __future__ import annotations

import logging
from typing import Optional

from lumosc.core.diagnostics import DiagnosticSink
from lumosc.core.options import CompileOptions, DEFAULT_OPTIONS
from lumosc.core.types_core import DeclTable
from lumosc.layout import compute_layouts
from lumosc.modules import Loader, build_graph, normalize_path
from lumosc.schema_version import SchemaVersion
from lumosc.type_resolver import resolve

logger = logging.getLogger(__name__)


class Session:
	def __init__(self, loader: Loader, options: CompileOptions = DEFAULT_OPTIONS) -> None:
		self.loader = loader
		self.options = options
		self.table = DeclTable()
		self.sink = DiagnosticSink()

	def compile(self, entry: str, version_tag: Optional[str] = None) -> SchemaVersion:
		"""Run parse, module graph, resolve and layout for `entry`."""
		self.table = DeclTable()
		self.sink = DiagnosticSink()
		entry = normalize_path(entry)
		graph, _ = build_graph(entry, self.loader, options=self.options, sink=self.sink)
		resolved, _ = resolve(graph, table=self.table, options=self.options, sink=self.sink)
		layouts, _ = compute_layouts(resolved, options=self.options, sink=self.sink)
		logger.info(
			"compiled %s: %d module(s), %d declaration(s), %d diagnostic(s)",
			entry,
			len(graph),
			len(self.table),
			len(self.sink),
		)
		return SchemaVersion(
			entry=entry,
			modules=graph,
			resolved=resolved,
			layouts=layouts,
			diagnostics=tuple(self.sink),
			version_tag=version_tag,
			options=self.options,
		)


def compile_schema(
	entry: str,
	loader: Loader,
	*,
	options: CompileOptions = DEFAULT_OPTIONS,
	version_tag: Optional[str] = None,
) -> SchemaVersion:
	"""Convenience wrapper: one-shot Session."""
	return Session(loader, options).compile(entry, version_tag=version_tag)


__all__ = ["Session", "compile_schema"]
