# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Parser entry points.

`parse(text, path)` is a pure function: no filesystem access, no global
state. Module loading is the module graph builder's job.
"""

from __future__ import annotations

from typing import Optional, Tuple

from lumosc.core.diagnostics import Diagnostic, DiagnosticSink
from lumosc.core.options import CompileOptions, DEFAULT_OPTIONS

from . import ast
from .ast import SourceModule
from .parser import parse_source, split_top_level_items


def parse(
	text: str,
	path: str,
	*,
	options: CompileOptions = DEFAULT_OPTIONS,
	sink: Optional[DiagnosticSink] = None,
) -> Tuple[SourceModule, list[Diagnostic]]:
	"""Parse `text` (the contents of `path`) into a SourceModule plus diagnostics."""
	local = DiagnosticSink(phase="parser")
	module, _ = parse_source(text, path, options=options, sink=local)
	diags = local.as_list()
	if sink is not None:
		sink.extend(diags)
	return module, diags


__all__ = ["ast", "parse", "parse_source", "split_top_level_items", "SourceModule"]
