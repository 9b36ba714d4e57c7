# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Module graph builder.

Starting from an entry file, follow `mod x;` declarations through an
injected loader and merge every file into one namespace:

- `mod x;` in `dir/file.lumos` tries `dir/x.lumos`, then `dir/x/mod.lumos`.
  Both existing is an ambiguity error; neither is MODULE_NOT_FOUND.
- `use` paths are resolved once every module is loaded, so modules may
  import from each other freely.
- A private item (or a private module on the path) is visible only inside
  the subtree of the module that owns it.

The loader is the only I/O in the whole pipeline: a callable taking a
POSIX-style path and returning UTF-8 text, raising FileNotFoundError when
the path does not exist. Other read failures become MODULE_LOAD_ERROR.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from lumosc.core.diagnostics import Diagnostic, DiagnosticSink
from lumosc.core.options import CompileOptions, DEFAULT_OPTIONS
from lumosc.core.span import Span
from lumosc.parser import parse
from lumosc.parser.ast import PRIVATE, PUBLIC, Declaration, SourceModule, UseDecl

logger = logging.getLogger(__name__)

ModuleId = Tuple[str, ...]
Loader = Callable[[str], str]

ROOT: ModuleId = ()


def module_name(mid: ModuleId) -> str:
	"""Human-readable module id (`crate`, `crate::models`)."""
	return "::".join(("crate",) + tuple(mid))


def qualify(mid: ModuleId, name: str) -> str:
	"""Qualified item name; root items stay unqualified (`models::User`, `Config`)."""
	return "::".join(tuple(mid) + (name,))


def normalize_path(path: str) -> str:
	return posixpath.normpath(str(path).replace("\\", "/"))


def filesystem_loader(root: str | Path) -> Loader:
	"""Loader reading UTF-8 files below `root`."""
	base = Path(root)

	def _load(path: str) -> str:
		full = base / normalize_path(path)
		if not full.is_file():
			raise FileNotFoundError(str(full))
		return full.read_text(encoding="utf-8")

	return _load


def mapping_loader(files: Mapping[str, str]) -> Loader:
	"""Loader over an in-memory `{path: text}` mapping."""
	table = {normalize_path(k): v for k, v in files.items()}

	def _load(path: str) -> str:
		key = normalize_path(path)
		if key not in table:
			raise FileNotFoundError(key)
		return table[key]

	return _load


@dataclass(frozen=True)
class ImportBinding:
	"""A resolved `use`: `local_name` in the importing module names `item` in `target`."""

	local_name: str
	target: ModuleId
	item: str
	visibility: str
	span: Span = field(default_factory=Span, compare=False)


@dataclass
class ModuleNode:
	module_id: ModuleId
	path: str
	source: SourceModule
	parent: Optional[ModuleId]
	visibility: str
	children: Dict[str, ModuleId] = field(default_factory=dict)
	items: Dict[str, Declaration] = field(default_factory=dict)
	imports: Dict[str, ImportBinding] = field(default_factory=dict)


@dataclass(frozen=True)
class ItemRef:
	module_id: ModuleId
	name: str
	decl: Declaration


class ModuleGraph:
	"""All modules of one schema, keyed by module id, in load order."""

	def __init__(self, entry: str) -> None:
		self.entry = entry
		self.modules: Dict[ModuleId, ModuleNode] = {}

	@property
	def root(self) -> ModuleNode:
		return self.modules[ROOT]

	def get(self, mid: ModuleId) -> Optional[ModuleNode]:
		return self.modules.get(mid)

	def files(self) -> Dict[str, str]:
		return {node.path: node.source.text for node in self.modules.values()}

	def __iter__(self):
		return iter(self.modules.values())

	def __len__(self) -> int:
		return len(self.modules)

	# ---- path resolution -------------------------------------------------

	def resolve_module_prefix(
		self,
		origin: ModuleId,
		segments: Tuple[str, ...],
		sink: DiagnosticSink,
		span: Span,
	) -> Optional[ModuleId]:
		"""
		Walk the module part of a path (`crate::a::b`, `super::x`, `a::b`).

		Bare paths start at the current module; when the first segment is not
		a child there, the crate root is tried.
		"""
		if not segments:
			return origin
		head = segments[0]
		rest = segments[1:]
		if head == "crate":
			current = ROOT
		elif head == "self":
			current = origin
		elif head == "super":
			current = origin
			rest = segments
			while rest and rest[0] == "super":
				if not current:
					sink.error(
						"MODULE_SUPER_AT_ROOT",
						"cannot use 'super' in the root module",
						span,
						phase="modules",
					)
					return None
				current = current[:-1]
				rest = rest[1:]
		else:
			node = self.modules.get(origin)
			if node is not None and head in node.children:
				current = origin
			else:
				current = ROOT
			rest = segments
		for seg in rest:
			node = self.modules.get(current)
			if node is None or seg not in node.children:
				sink.error(
					"RESOLVE_UNKNOWN_MODULE",
					f"module '{seg}' not found in {module_name(current)}",
					span,
					phase="resolve",
				)
				return None
			child = node.children[seg]
			child_node = self.modules[child]
			if child_node.visibility != PUBLIC and not _within(origin, current):
				sink.error(
					"RESOLVE_PRIVATE_ITEM",
					f"module {module_name(child)} is private to {module_name(current)}",
					span,
					phase="resolve",
					notes=[f"declare it with `pub mod {seg};` to use it from {module_name(origin)}"],
				)
				return None
			current = child
		return current

	def resolve_item_path(
		self,
		origin: ModuleId,
		segments: Tuple[str, ...],
		sink: DiagnosticSink,
		span: Span,
		*,
		_depth: int = 0,
	) -> Optional[ItemRef]:
		"""Resolve a full item path (module prefix + item name) with visibility checks."""
		target = self.resolve_module_prefix(origin, segments[:-1], sink, span)
		if target is None:
			return None
		name = segments[-1]
		node = self.modules[target]
		decl = node.items.get(name)
		if decl is not None:
			if decl.visibility != PUBLIC and not _within(origin, target):
				sink.error(
					"RESOLVE_PRIVATE_ITEM",
					f"'{name}' is private to {module_name(target)}",
					span,
					phase="resolve",
					notes=[f"mark it `pub` to use it from {module_name(origin)}"],
				)
				return None
			return ItemRef(module_id=target, name=name, decl=decl)
		reexport = _find_use(node.source.uses, name)
		if reexport is not None and reexport.visibility == PUBLIC and _depth < 16:
			return self.resolve_item_path(target, reexport.path, sink, span, _depth=_depth + 1)
		sink.error(
			"RESOLVE_UNKNOWN_IMPORT",
			f"'{name}' not found in {module_name(target)}",
			span,
			phase="resolve",
		)
		return None


def _within(origin: ModuleId, owner: ModuleId) -> bool:
	"""True when `origin` is `owner` or one of its descendants."""
	return tuple(origin[: len(owner)]) == tuple(owner)


def _find_use(uses: Tuple[UseDecl, ...], local: str) -> Optional[UseDecl]:
	for use in uses:
		if use.local_name == local:
			return use
	return None


class _GraphBuilder:
	def __init__(self, loader: Loader, options: CompileOptions, sink: DiagnosticSink) -> None:
		self.loader = loader
		self.options = options
		self.sink = sink
		self.loaded_paths: Dict[str, ModuleId] = {}

	def build(self, entry: str) -> ModuleGraph:
		entry = normalize_path(entry)
		graph = ModuleGraph(entry)
		try:
			text = self.loader(entry)
		except FileNotFoundError:
			self.sink.error(
				"MODULE_NOT_FOUND",
				f"entry file '{entry}' not found",
				Span(file=entry),
				phase="modules",
			)
			return graph
		except (UnicodeDecodeError, OSError) as exc:
			self._load_error(entry, exc, Span(file=entry))
			return graph
		self._load(graph, entry, text, ROOT, None, PUBLIC, [])
		for node in graph.modules.values():
			self._bind_imports(graph, node)
		return graph

	def _load(
		self,
		graph: ModuleGraph,
		path: str,
		text: str,
		mid: ModuleId,
		parent: Optional[ModuleId],
		visibility: str,
		stack: List[str],
	) -> None:
		logger.debug("loading module %s from %s", module_name(mid), path)
		source, _diags = parse(text, path, options=self.options, sink=self.sink)
		node = ModuleNode(module_id=mid, path=path, source=source, parent=parent, visibility=visibility)
		graph.modules[mid] = node
		self.loaded_paths[path] = mid
		self._collect_items(node)
		stack = stack + [path]
		for mod in source.mods:
			if mod.name in node.children:
				self.sink.error(
					"MODULE_DUPLICATE",
					f"module '{mod.name}' is declared more than once in {path}",
					mod.span,
					phase="modules",
				)
				continue
			child_path, child_text = self._locate(path, mod.name, mod.span)
			if child_path is None:
				continue
			if child_path in stack:
				chain = " -> ".join(stack + [child_path])
				self.sink.error(
					"MODULE_CYCLE",
					f"circular module declaration: {chain}",
					mod.span,
					phase="modules",
				)
				continue
			if child_path in self.loaded_paths:
				self.sink.error(
					"MODULE_CYCLE",
					f"file '{child_path}' is already loaded as {module_name(self.loaded_paths[child_path])}",
					mod.span,
					phase="modules",
				)
				continue
			child_id = mid + (mod.name,)
			node.children[mod.name] = child_id
			self._load(graph, child_path, child_text, child_id, mid, mod.visibility, stack)

	def _locate(self, current: str, name: str, span: Span) -> tuple[Optional[str], Optional[str]]:
		base = posixpath.dirname(current)
		sibling = normalize_path(posixpath.join(base, name + self.options.file_extension))
		index = normalize_path(posixpath.join(base, name, self.options.index_file))
		found: List[tuple[str, str]] = []
		unreadable = False
		for candidate in (sibling, index):
			try:
				found.append((candidate, self.loader(candidate)))
			except FileNotFoundError:
				continue
			except (UnicodeDecodeError, OSError) as exc:
				self._load_error(candidate, exc, span)
				unreadable = True
		if unreadable:
			return None, None
		if len(found) == 2:
			self.sink.error(
				"MODULE_AMBIGUOUS",
				f"module '{name}' is ambiguous: both '{sibling}' and '{index}' exist",
				span,
				phase="modules",
				notes=["remove one of the two files"],
			)
			return None, None
		if not found:
			self.sink.error(
				"MODULE_NOT_FOUND",
				f"module '{name}' not found",
				span,
				phase="modules",
				notes=[f"tried '{sibling}'", f"tried '{index}'"],
			)
			return None, None
		return found[0]

	def _load_error(self, path: str, exc: Exception, span: Span) -> None:
		reason = "not valid UTF-8" if isinstance(exc, UnicodeDecodeError) else (exc.strerror or str(exc))
		self.sink.error(
			"MODULE_LOAD_ERROR",
			f"cannot read '{path}': {reason}",
			span,
			phase="modules",
		)

	def _collect_items(self, node: ModuleNode) -> None:
		for decl in node.source.decls:
			prev = node.items.get(decl.name)
			if prev is not None:
				self.sink.error(
					"RESOLVE_DUPLICATE_DECL",
					f"'{decl.name}' is declared more than once in {module_name(node.module_id)}",
					decl.span,
					phase="resolve",
					notes=[f"first declared at {prev.span.short()}"],
				)
				continue
			node.items[decl.name] = decl

	def _bind_imports(self, graph: ModuleGraph, node: ModuleNode) -> None:
		for use in node.source.uses:
			if len(use.path) < 2 or use.path[-1] in ("crate", "super", "self"):
				continue  # already reported by the parser
			local = use.local_name
			if local in node.items:
				self.sink.error(
					"RESOLVE_AMBIGUOUS_IMPORT",
					f"import '{local}' conflicts with a declaration of the same name in {module_name(node.module_id)}",
					use.span,
					phase="resolve",
				)
				continue
			if local in node.imports:
				self.sink.error(
					"RESOLVE_AMBIGUOUS_IMPORT",
					f"'{local}' is imported more than once in {module_name(node.module_id)}",
					use.span,
					phase="resolve",
					notes=[f"previous import at {node.imports[local].span.short()}"],
				)
				continue
			ref = graph.resolve_item_path(node.module_id, use.path, self.sink, use.span)
			if ref is None:
				continue
			node.imports[local] = ImportBinding(
				local_name=local,
				target=ref.module_id,
				item=ref.name,
				visibility=use.visibility,
				span=use.span,
			)


def build_graph(
	entry: str,
	loader: Loader,
	*,
	options: CompileOptions = DEFAULT_OPTIONS,
	sink: Optional[DiagnosticSink] = None,
) -> tuple[ModuleGraph, list[Diagnostic]]:
	"""Load `entry` and every module it declares; resolve `use` imports."""
	local = DiagnosticSink(phase="modules")
	graph = _GraphBuilder(loader, options, local).build(entry)
	diags = local.as_list()
	if sink is not None:
		sink.extend(diags)
	return graph, diags


__all__ = [
	"ModuleId",
	"Loader",
	"ROOT",
	"module_name",
	"qualify",
	"normalize_path",
	"filesystem_loader",
	"mapping_loader",
	"ImportBinding",
	"ModuleNode",
	"ItemRef",
	"ModuleGraph",
	"build_graph",
]
