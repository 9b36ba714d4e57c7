# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Type resolver: turns every `TypeRef` of a module graph into a `ResolvedType`.

Lookup order for a bare name is: local declarations, then `use` imports,
then the builtin table (primitives, `String`, `PublicKey`, `Option<T>`,
`Vec<T>` and the builtin aliases). Multi-segment names go through the module
graph's path resolution, which also enforces visibility.

Nominal types are interned in a `DeclTable` before their bodies are
resolved, so self-references and mutual references simply yield the same
id; the layout engine decides whether such a cycle is legal. Generic
templates are never stored; each concrete `Name<Args>` becomes its own
declaration (cached by canonical key) whose body is resolved with the
parameters substituted. Instantiation depth is capped by
`CompileOptions.max_generic_depth`. Every template body is also checked
once on its own, so errors in templates nobody uses are still reported.

Aliases are expanded eagerly and never survive into a ResolvedType.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Mapping, Optional, Set, Tuple

from lumosc.core.diagnostics import Diagnostic, DiagnosticSink
from lumosc.core.options import CompileOptions, DEFAULT_OPTIONS
from lumosc.core.semver import parse_semver
from lumosc.core.span import Span
from lumosc.core.types_core import (
	ENUM_KIND,
	PRIMITIVE_WIDTHS,
	STRUCT_KIND,
	DeclId,
	DeclTable,
	DynArray,
	EnumRef,
	FixedArray,
	OptionOf,
	PublicKeyLike,
	ResolvedDecl,
	ResolvedField,
	ResolvedType,
	ResolvedVariant,
	Str,
	StructRef,
	primitive,
	render_type,
)
from lumosc.modules import ItemRef, ModuleGraph, ModuleId, module_name, qualify
from lumosc.parser.ast import (
	Attribute,
	Declaration,
	DynArrayType,
	EnumDecl,
	Field,
	FixedArrayType,
	PathType,
	StructDecl,
	TypeAliasDecl,
	TypeRef,
	find_attribute,
)

logger = logging.getLogger(__name__)

KNOWN_ATTRIBUTES = frozenset(
	{
		"account",
		"max",
		"default",
		"deprecated",
		"doc",
		"derive",
		"version",
		"renamed_from",
		"solana",
		"dynamic",
		"key",
		"seeds",
	}
)

SIGNATURE_BYTES = 64

# Spellings that resolve away exactly like a user alias would.
BUILTIN_ALIASES: Dict[str, ResolvedType] = {
	"number": primitive("u64"),
	"string": Str(),
	"boolean": primitive("bool"),
	"Signature": FixedArray(primitive("u8"), SIGNATURE_BYTES),
}

_PUBKEY_NAMES = ("PublicKey", "Pubkey")
_NOT_BUILTIN = object()
# Bound to type parameters while checking uninstantiated generic bodies.
_STAND_IN: ResolvedType = primitive("u8")


@dataclass
class ResolvedTypeGraph:
	"""
	Output of the resolver.

	`decls` maps the qualified name of every non-generic struct/enum in the
	source to its id; generic instantiations live only in `table` (keyed
	`Name<args>`). `aliases` holds the expansion of every non-generic alias.
	"""

	modules: ModuleGraph
	table: DeclTable
	options: CompileOptions = DEFAULT_OPTIONS
	decls: Dict[str, DeclId] = field(default_factory=dict)
	aliases: Dict[str, ResolvedType] = field(default_factory=dict)
	templates: Dict[str, Declaration] = field(default_factory=dict)
	invalid: Set[DeclId] = field(default_factory=set)

	def lookup(self, name: str) -> Optional[ResolvedDecl]:
		"""Find a declaration by qualified name or instantiation key."""
		decl_id = self.table.lookup(name)
		if decl_id is None or not self.table.is_defined(decl_id):
			return None
		return self.table.get(decl_id)

	def is_valid(self, decl_id: DeclId) -> bool:
		return decl_id not in self.invalid and self.table.is_defined(decl_id)

	def source_decls(self) -> List[ResolvedDecl]:
		"""Non-generic declarations in source order."""
		return [self.table.get(i) for i in self.decls.values() if self.table.is_defined(i)]

	def render(self, ty: ResolvedType) -> str:
		return render_type(ty, self.table)


@dataclass(frozen=True)
class _Ctx:
	module: ModuleId
	env: Mapping[str, ResolvedType]
	depth: int = 0
	aliases: Tuple[str, ...] = ()


@dataclass(frozen=True)
class _Pending:
	decl_id: DeclId
	key: str
	template: str
	module: ModuleId
	decl: Declaration
	args: Tuple[ResolvedType, ...]
	depth: int


class _Resolver:
	def __init__(self, graph: ModuleGraph, table: DeclTable, options: CompileOptions, sink: DiagnosticSink) -> None:
		self.graph = graph
		self.table = table
		self.options = options
		self.sink = sink
		self.result = ResolvedTypeGraph(modules=graph, table=table, options=options)
		self._queue: Deque[_Pending] = deque()
		self._bad_templates: Set[str] = set()
		self._reported_cycles: Set[str] = set()
		self._template_sites: List[Tuple[ModuleId, Declaration]] = []

	def run(self) -> ResolvedTypeGraph:
		for node in self.graph:
			mid = node.module_id
			for decl in node.source.decls:
				if node.items.get(decl.name) is not decl:
					continue  # duplicate name, already reported
				qual = qualify(mid, decl.name)
				attrs_ok = self._check_attributes(decl)
				if decl.type_params:
					self.result.templates[qual] = decl
					self._template_sites.append((mid, decl))
					if not attrs_ok:
						self._bad_templates.add(qual)
					continue
				if isinstance(decl, TypeAliasDecl):
					ty = self._expand_alias(ItemRef(mid, decl.name, decl), (), _Ctx(mid, {}), decl.span)
					if ty is not None:
						self.result.aliases[qual] = ty
					continue
				ref = self._nominal(mid, decl, (), 0, decl.span)
				if ref is None:
					continue
				self.result.decls[qual] = ref.decl_id
				if not attrs_ok:
					self.result.invalid.add(ref.decl_id)
				self._drain()
		self._drain()
		self._check_templates()
		return self.result

	# ---- declarations ---------------------------------------------------

	def _drain(self) -> None:
		while self._queue:
			self._define(self._queue.popleft())

	def _nominal(self, mid: ModuleId, decl: Declaration, args: Tuple[ResolvedType, ...], depth: int, span: Span):
		kind = ENUM_KIND if isinstance(decl, EnumDecl) else STRUCT_KIND
		qual = qualify(mid, decl.name)
		key = qual
		if args:
			if depth > self.options.max_generic_depth:
				self.sink.error(
					"RESOLVE_GENERIC_DEPTH",
					f"generic instantiation of '{qual}' exceeds the maximum depth of {self.options.max_generic_depth}",
					span,
					notes=["a generic type that instantiates itself with ever-growing arguments never terminates"],
				)
				return None
			key = f"{qual}<{', '.join(render_type(a, self.table) for a in args)}>"
		decl_id, created = self.table.intern(key, kind)
		if created:
			self._queue.append(_Pending(decl_id, key, qual, mid, decl, args, depth))
		return EnumRef(decl_id) if kind == ENUM_KIND else StructRef(decl_id)

	def _define(self, p: _Pending) -> None:
		errors_before = len(self.sink.errors())
		decl = p.decl
		ctx = _Ctx(module=p.module, env=dict(zip(decl.type_params, p.args)), depth=p.depth)
		ok = True
		fields: Tuple[ResolvedField, ...] = ()
		variants: List[ResolvedVariant] = []
		if isinstance(decl, StructDecl):
			fields, ok = self._resolve_fields(decl.fields, ctx)
		else:
			variants, ok = self._resolve_variants(decl, ctx)
		name = decl.name
		if p.args:
			name = f"{decl.name}<{', '.join(render_type(a, self.table) for a in p.args)}>"
		self.table.define(
			ResolvedDecl(
				decl_id=p.decl_id,
				name=name,
				qualname=p.key,
				module=p.module,
				kind=self.table.kind_of(p.decl_id),
				visibility=decl.visibility,
				attributes=decl.attributes,
				doc=decl.doc,
				fields=fields,
				variants=tuple(variants),
				type_args=p.args,
				template=p.template if p.args else None,
				span=decl.span,
			)
		)
		if not ok or len(self.sink.errors()) > errors_before or (p.args and p.template in self._bad_templates):
			self.result.invalid.add(p.decl_id)
		logger.debug("resolved %s as #%d", p.key, p.decl_id)

	def _check_templates(self) -> None:
		"""
		Resolve each generic body once with stand-in arguments so that errors in
		templates nobody instantiates are still reported.

		Runs against a scratch table and sink: nothing is interned or queued
		for layout, and only errors carry over (warnings such as an unused
		`#[max]` depend on the real arguments). Errors already reported by a
		real instantiation are dropped later by `dedupe_diagnostics`.
		"""
		if not self._template_sites:
			return
		table, sink = self.table, self.sink
		self.table = DeclTable()
		self.sink = DiagnosticSink(phase=sink.phase)
		try:
			for mid, decl in self._template_sites:
				ctx = _Ctx(module=mid, env={p: _STAND_IN for p in decl.type_params})
				if isinstance(decl, TypeAliasDecl):
					self._resolve_type(decl.target, _Ctx(mid, ctx.env, aliases=(qualify(mid, decl.name),)))
				elif isinstance(decl, StructDecl):
					self._resolve_fields(decl.fields, ctx)
				else:
					self._resolve_variants(decl, ctx)
			found = self.sink.errors()
		finally:
			self._queue.clear()
			self.table, self.sink = table, sink
		sink.extend(found)

	def _resolve_variants(self, decl: EnumDecl, ctx: _Ctx) -> tuple[List[ResolvedVariant], bool]:
		variants: List[ResolvedVariant] = []
		ok = True
		seen: Dict[str, Span] = {}
		for idx, v in enumerate(decl.variants):
			if v.name in seen:
				self.sink.error(
					"RESOLVE_DUPLICATE_VARIANT",
					f"variant '{v.name}' is declared more than once in '{decl.name}'",
					v.span,
					notes=[f"first declared at {seen[v.name].short()}"],
				)
				ok = False
				continue
			seen[v.name] = v.span
			vfields, vok = self._resolve_fields(v.fields, ctx)
			ok = ok and vok
			variants.append(
				ResolvedVariant(
					name=v.name,
					index=idx,
					kind=v.kind,
					fields=vfields,
					attributes=v.attributes,
					doc=v.doc,
					span=v.span,
				)
			)
		return variants, ok

	def _resolve_fields(self, fields: Tuple[Field, ...], ctx: _Ctx) -> tuple[Tuple[ResolvedField, ...], bool]:
		out: List[ResolvedField] = []
		ok = True
		seen: Dict[str, Span] = {}
		for f in fields:
			if f.name in seen:
				self.sink.error(
					"RESOLVE_DUPLICATE_FIELD",
					f"field '{f.name}' is declared more than once",
					f.span,
					notes=[f"first declared at {seen[f.name].short()}"],
				)
				ok = False
				continue
			seen[f.name] = f.span
			ty = self._resolve_type(f.type_ref, ctx)
			max_attr = find_attribute(f.attributes, "max")
			if ty is not None and max_attr is not None:
				ty = self._apply_max(ty, max_attr, f)
			if ty is None:
				ok = False
				continue
			out.append(
				ResolvedField(
					name=f.name,
					type=ty,
					attributes=f.attributes,
					doc=f.doc,
					visibility=f.visibility,
					span=f.span,
				)
			)
		return tuple(out), ok

	# ---- types ----------------------------------------------------------

	def _resolve_type(self, ref: TypeRef, ctx: _Ctx) -> Optional[ResolvedType]:
		if isinstance(ref, FixedArrayType):
			elem = self._resolve_type(ref.elem, ctx)
			return None if elem is None else FixedArray(elem, ref.length)
		if isinstance(ref, DynArrayType):
			elem = self._resolve_type(ref.elem, ctx)
			return None if elem is None else DynArray(elem)
		assert isinstance(ref, PathType)
		segments = ref.segments
		if len(segments) == 1:
			name = segments[0]
			if name in ctx.env:
				if ref.args:
					self.sink.error(
						"RESOLVE_GENERIC_ARITY",
						f"type parameter '{name}' does not take type arguments",
						ref.span,
					)
					return None
				return ctx.env[name]
			target = self._lookup_scope(ctx.module, name)
			if target is None:
				builtin = self._builtin(ref, ctx)
				if builtin is not _NOT_BUILTIN:
					return builtin
				self.sink.error(
					"RESOLVE_UNKNOWN_TYPE",
					f"unknown type '{name}' in {module_name(ctx.module)}",
					ref.span,
				)
				return None
		else:
			target = self.graph.resolve_item_path(ctx.module, segments, self.sink, ref.span)
			if target is None:
				return None
		return self._resolve_item(target, ref, ctx)

	def _lookup_scope(self, mid: ModuleId, name: str) -> Optional[ItemRef]:
		node = self.graph.get(mid)
		if node is None:
			return None
		decl = node.items.get(name)
		if decl is not None:
			return ItemRef(mid, name, decl)
		binding = node.imports.get(name)
		if binding is not None:
			return ItemRef(binding.target, binding.item, self.graph.modules[binding.target].items[binding.item])
		return None

	def _builtin(self, ref: PathType, ctx: _Ctx):
		name = ref.segments[0]
		if name in ("Option", "Vec"):
			if len(ref.args) != 1:
				self.sink.error(
					"RESOLVE_GENERIC_ARITY",
					f"'{name}' expects 1 type argument, got {len(ref.args)}",
					ref.span,
				)
				return None
			inner = self._resolve_type(ref.args[0], ctx)
			if inner is None:
				return None
			return OptionOf(inner) if name == "Option" else DynArray(inner)
		if name in PRIMITIVE_WIDTHS:
			ty: ResolvedType = primitive(name)
		elif name in _PUBKEY_NAMES:
			ty = PublicKeyLike()
		elif name == "String":
			ty = Str()
		elif name in BUILTIN_ALIASES:
			ty = BUILTIN_ALIASES[name]
		else:
			return _NOT_BUILTIN
		if ref.args:
			self.sink.error(
				"RESOLVE_GENERIC_ARITY",
				f"builtin type '{name}' does not take type arguments",
				ref.span,
			)
			return None
		return ty

	def _resolve_args(self, ref: PathType, ctx: _Ctx) -> Optional[Tuple[ResolvedType, ...]]:
		out: List[ResolvedType] = []
		for arg in ref.args:
			ty = self._resolve_type(arg, ctx)
			if ty is None:
				return None
			out.append(ty)
		return tuple(out)

	def _check_arity(self, qual: str, params: Tuple[str, ...], ref: PathType) -> bool:
		if len(params) == len(ref.args):
			return True
		self.sink.error(
			"RESOLVE_GENERIC_ARITY",
			f"'{qual}' expects {len(params)} type argument(s), got {len(ref.args)}",
			ref.span,
		)
		return False

	def _resolve_item(self, target: ItemRef, ref: PathType, ctx: _Ctx) -> Optional[ResolvedType]:
		decl = target.decl
		if isinstance(decl, TypeAliasDecl):
			return self._expand_alias(target, ref.args, ctx, ref.span)
		if not self._check_arity(qualify(target.module_id, decl.name), decl.type_params, ref):
			return None
		args = self._resolve_args(ref, ctx)
		if args is None:
			return None
		depth = ctx.depth + 1 if args else 0
		return self._nominal(target.module_id, decl, args, depth, ref.span)

	def _expand_alias(self, target: ItemRef, arg_refs: Tuple[TypeRef, ...], ctx: _Ctx, span: Span) -> Optional[ResolvedType]:
		decl = target.decl
		qual = qualify(target.module_id, decl.name)
		if qual in ctx.aliases:
			chain = ctx.aliases[ctx.aliases.index(qual):] + (qual,)
			if not self._reported_cycles.intersection(chain):
				self.sink.error(
					"RESOLVE_ALIAS_CYCLE",
					f"type alias cycle: {' -> '.join(chain)}",
					decl.span,
				)
				self._reported_cycles.update(chain)
			return None
		if len(arg_refs) != len(decl.type_params):
			self.sink.error(
				"RESOLVE_GENERIC_ARITY",
				f"'{qual}' expects {len(decl.type_params)} type argument(s), got {len(arg_refs)}",
				span,
			)
			return None
		args: List[ResolvedType] = []
		for arg in arg_refs:
			ty = self._resolve_type(arg, ctx)
			if ty is None:
				return None
			args.append(ty)
		depth = ctx.depth + 1 if args else ctx.depth
		if depth > self.options.max_generic_depth:
			self.sink.error(
				"RESOLVE_GENERIC_DEPTH",
				f"expansion of alias '{qual}' exceeds the maximum depth of {self.options.max_generic_depth}",
				span,
			)
			return None
		inner = _Ctx(
			module=target.module_id,
			env=dict(zip(decl.type_params, args)),
			depth=depth,
			aliases=ctx.aliases + (qual,),
		)
		return self._resolve_type(decl.target, inner)

	# ---- attributes -----------------------------------------------------

	def _apply_max(self, ty: ResolvedType, attr: Attribute, f: Field) -> Optional[ResolvedType]:
		bounds = attr.positional()
		valid = bool(bounds) and len(bounds) == len(attr.args) and all(
			isinstance(b, int) and not isinstance(b, bool) and b > 0 for b in bounds
		)
		if not valid:
			self.sink.error(
				"ATTR_INVALID_MAX",
				f"#[max] on '{f.name}' takes one or more positive integer bounds, got {attr.render()}",
				attr.span,
			)
			return None
		bound, rest = _bind_max(ty, list(bounds))
		if rest:
			self.sink.warning(
				"ATTR_UNUSED_MAX",
				f"{len(rest)} bound(s) of {attr.render()} on '{f.name}' match no String or dynamic array",
				attr.span,
			)
		return bound

	def _check_attributes(self, decl: Declaration) -> bool:
		"""Warn on unknown attributes; validate `version` and `renamed_from`. Returns False on error."""
		ok = True
		groups: List[Tuple[Attribute, ...]] = [decl.attributes]
		if isinstance(decl, StructDecl):
			groups.extend(f.attributes for f in decl.fields)
		elif isinstance(decl, EnumDecl):
			for v in decl.variants:
				groups.append(v.attributes)
				groups.extend(f.attributes for f in v.fields)
		for attrs in groups:
			for attr in attrs:
				if attr.name not in KNOWN_ATTRIBUTES and self.options.warn_unknown_attributes:
					self.sink.warning(
						"ATTR_UNKNOWN",
						f"unknown attribute #[{attr.name}] is ignored",
						attr.span,
					)
				elif attr.name == "renamed_from" and not _single_string(attr):
					self.sink.error(
						"ATTR_INVALID_RENAME",
						f"#[renamed_from] takes one string argument, got {attr.render()}",
						attr.span,
					)
					ok = False
		version = find_attribute(decl.attributes, "version")
		if version is not None:
			if not _single_string(version) or parse_semver(version.args[0].value) is None:
				self.sink.error(
					"ATTR_INVALID_VERSION",
					f"#[version] on '{decl.name}' must be a semantic version string like \"1.2.0\", got {version.render()}",
					version.span,
				)
				ok = False
		return ok


def _single_string(attr: Attribute) -> bool:
	return len(attr.args) == 1 and attr.args[0].name is None and isinstance(attr.args[0].value, str)


def _bind_max(ty: ResolvedType, bounds: List[int]) -> tuple[ResolvedType, List[int]]:
	"""Attach bounds outermost-first to String / dynamic array nodes."""
	if not bounds:
		return ty, bounds
	if isinstance(ty, Str):
		return Str(max_len=bounds[0]), bounds[1:]
	if isinstance(ty, DynArray):
		elem, rest = _bind_max(ty.elem, bounds[1:])
		return DynArray(elem, max_len=bounds[0]), rest
	if isinstance(ty, OptionOf):
		inner, rest = _bind_max(ty.inner, bounds)
		return OptionOf(inner), rest
	if isinstance(ty, FixedArray):
		elem, rest = _bind_max(ty.elem, bounds)
		return FixedArray(elem, ty.length), rest
	return ty, bounds


def dedupe_diagnostics(diags: List[Diagnostic]) -> List[Diagnostic]:
	"""Drop repeats (same code, message and span) keeping first occurrence order."""
	seen = set()
	out: List[Diagnostic] = []
	for d in diags:
		key = (d.code, d.message, d.severity, d.span)
		if key in seen:
			continue
		seen.add(key)
		out.append(d)
	return out


def resolve(
	graph: ModuleGraph,
	*,
	table: Optional[DeclTable] = None,
	options: CompileOptions = DEFAULT_OPTIONS,
	sink: Optional[DiagnosticSink] = None,
) -> tuple[ResolvedTypeGraph, list[Diagnostic]]:
	"""
	Resolve every declaration of `graph`.

	Errors in generic templates surface once per distinct location even when
	the template is instantiated many times.
	"""
	table = table if table is not None else DeclTable()
	local = DiagnosticSink(phase="resolve")
	result = _Resolver(graph, table, options, local).run()
	diags = dedupe_diagnostics(local.as_list())
	if sink is not None:
		sink.extend(diags)
	return result, diags


__all__ = [
	"KNOWN_ATTRIBUTES",
	"BUILTIN_ALIASES",
	"ResolvedTypeGraph",
	"resolve",
	"dedupe_diagnostics",
]
