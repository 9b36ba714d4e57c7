# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Layout engine: canonical byte layout for every resolved declaration.

Sizes follow the Borsh/Anchor account-space convention:

    integers, floats, bool   fixed width
    PublicKey                32
    String                   4 + max           (#[max(N)] required under an account)
    [T; N]                   N * size(T)       (T must be bounded)
    [T] / Vec<T>             4 + max * size(T)
    Option<T>                1 + size(T)
    struct                   sum of fields (+ 8-byte discriminator for #[account])
    enum                     1 + largest variant payload

A layout is "fixed" when it has a finite upper bound; an unbounded String
or dynamic array makes everything containing it dynamic. Layouts are
computed bottom-up with memoization keyed by DeclId, so the result does not
depend on visiting order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from lumosc.core.diagnostics import Diagnostic, DiagnosticSink
from lumosc.core.options import CompileOptions
from lumosc.core.types_core import (
	ENUM_KIND,
	DeclId,
	DynArray,
	EnumRef,
	FixedArray,
	OptionOf,
	Primitive,
	PublicKeyLike,
	PUBKEY_BYTES,
	ResolvedDecl,
	ResolvedField,
	ResolvedType,
	Str,
	StructRef,
)
from lumosc.parser.ast import find_attribute
from lumosc.type_resolver import ResolvedTypeGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LayoutSpec:
	"""
	Byte layout of a type or declaration.

	`fixed_size_bytes` is the exact (maximum) size when `is_fixed_size`, and
	the statically known part otherwise. `variable_overhead_bytes` counts the
	length-prefix bytes included in it.
	"""

	is_fixed_size: bool
	fixed_size_bytes: int
	variable_overhead_bytes: int = 0
	variant_discriminant_bytes: int = 0
	account_discriminator_bytes: int = 0

	@classmethod
	def fixed(cls, size: int, overhead: int = 0) -> "LayoutSpec":
		return cls(is_fixed_size=True, fixed_size_bytes=size, variable_overhead_bytes=overhead)

	def to_dict(self) -> dict:
		return {
			"is_fixed_size": self.is_fixed_size,
			"fixed_size_bytes": self.fixed_size_bytes,
			"variable_overhead_bytes": self.variable_overhead_bytes,
			"variant_discriminant_bytes": self.variant_discriminant_bytes,
			"account_discriminator_bytes": self.account_discriminator_bytes,
		}


@dataclass(frozen=True)
class FieldLayout:
	"""Field layout. `offset` is None once a preceding field has a variable-length encoding."""

	name: str
	layout: LayoutSpec
	offset: Optional[int] = None


@dataclass(frozen=True)
class VariantLayout:
	name: str
	index: int
	payload_bytes: int
	is_fixed_size: bool
	fields: Tuple[FieldLayout, ...] = ()


@dataclass(frozen=True)
class DeclLayout:
	decl_id: DeclId
	qualname: str
	spec: LayoutSpec
	fields: Tuple[FieldLayout, ...] = ()
	variants: Tuple[VariantLayout, ...] = ()
	is_account: bool = False
	# True when every value of the type encodes to the same number of bytes.
	constant_encoding: bool = False

	@property
	def is_dynamic(self) -> bool:
		return not self.spec.is_fixed_size


DeclSpecLookup = Callable[[DeclId], Optional[LayoutSpec]]


def type_layout(
	ty: ResolvedType,
	decl_spec: DeclSpecLookup,
	options: CompileOptions,
	problems: Optional[List[ResolvedType]] = None,
) -> Optional[LayoutSpec]:
	"""
	Layout of a resolved type.

	Returns None when a referenced declaration has no layout, or when a fixed
	array has an unbounded element (the offending array is appended to
	`problems`). Nested declarations never carry an account discriminator.
	"""
	prefix = options.length_prefix_bytes
	if isinstance(ty, Primitive):
		return LayoutSpec.fixed(ty.width)
	if isinstance(ty, PublicKeyLike):
		return LayoutSpec.fixed(ty.width)
	if isinstance(ty, Str):
		if ty.max_len is None:
			return LayoutSpec(is_fixed_size=False, fixed_size_bytes=prefix, variable_overhead_bytes=prefix)
		return LayoutSpec.fixed(prefix + ty.max_len, prefix)
	if isinstance(ty, FixedArray):
		elem = type_layout(ty.elem, decl_spec, options, problems)
		if elem is None:
			return None
		if not elem.is_fixed_size:
			if problems is not None:
				problems.append(ty)
			return None
		return LayoutSpec.fixed(ty.length * elem.fixed_size_bytes, ty.length * elem.variable_overhead_bytes)
	if isinstance(ty, DynArray):
		elem = type_layout(ty.elem, decl_spec, options, problems)
		if elem is None:
			return None
		if ty.max_len is None or not elem.is_fixed_size:
			return LayoutSpec(is_fixed_size=False, fixed_size_bytes=prefix, variable_overhead_bytes=prefix)
		return LayoutSpec.fixed(
			prefix + ty.max_len * elem.fixed_size_bytes,
			prefix + ty.max_len * elem.variable_overhead_bytes,
		)
	if isinstance(ty, OptionOf):
		inner = type_layout(ty.inner, decl_spec, options, problems)
		if inner is None:
			return None
		return LayoutSpec(
			is_fixed_size=inner.is_fixed_size,
			fixed_size_bytes=options.option_tag_bytes + inner.fixed_size_bytes,
			variable_overhead_bytes=inner.variable_overhead_bytes,
		)
	if isinstance(ty, (StructRef, EnumRef)):
		spec = decl_spec(ty.decl_id)
		if spec is None:
			return None
		return LayoutSpec(
			is_fixed_size=spec.is_fixed_size,
			fixed_size_bytes=spec.fixed_size_bytes - spec.account_discriminator_bytes,
			variable_overhead_bytes=spec.variable_overhead_bytes,
			variant_discriminant_bytes=spec.variant_discriminant_bytes,
		)
	raise TypeError(f"unknown resolved type {ty!r}")


def _direct_unbounded(ty: ResolvedType) -> bool:
	"""Unbounded String/array reachable without passing through another declaration."""
	if isinstance(ty, Str):
		return ty.max_len is None
	if isinstance(ty, DynArray):
		return ty.max_len is None or _direct_unbounded(ty.elem)
	if isinstance(ty, FixedArray):
		return _direct_unbounded(ty.elem)
	if isinstance(ty, OptionOf):
		return _direct_unbounded(ty.inner)
	return False


class LayoutGraph:
	"""Layouts of every valid declaration, keyed by DeclId."""

	def __init__(self, resolved: ResolvedTypeGraph, layouts: Dict[DeclId, DeclLayout], options: CompileOptions) -> None:
		self.resolved = resolved
		self.layouts = layouts
		self.options = options

	def get(self, decl_id: DeclId) -> Optional[DeclLayout]:
		return self.layouts.get(decl_id)

	def by_name(self, name: str) -> Optional[DeclLayout]:
		decl_id = self.resolved.table.lookup(name)
		return None if decl_id is None else self.layouts.get(decl_id)

	def layout_of(self, ty: ResolvedType) -> Optional[LayoutSpec]:
		return type_layout(ty, self._spec, self.options)

	def size_of(self, name: str) -> Optional[int]:
		"""Exact byte size of a fixed-size declaration, else None."""
		dl = self.by_name(name)
		if dl is None or dl.is_dynamic:
			return None
		return dl.spec.fixed_size_bytes

	def _spec(self, decl_id: DeclId) -> Optional[LayoutSpec]:
		dl = self.layouts.get(decl_id)
		return None if dl is None else dl.spec

	def __contains__(self, decl_id: object) -> bool:
		return decl_id in self.layouts

	def __iter__(self) -> Iterator[DeclLayout]:
		for decl_id in sorted(self.layouts):
			yield self.layouts[decl_id]

	def __len__(self) -> int:
		return len(self.layouts)


_VISITING = "visiting"
_DONE = "done"
_FAILED = "failed"


class _LayoutEngine:
	def __init__(self, resolved: ResolvedTypeGraph, options: CompileOptions, sink: DiagnosticSink) -> None:
		self.resolved = resolved
		self.table = resolved.table
		self.options = options
		self.sink = sink
		self.layouts: Dict[DeclId, DeclLayout] = {}
		self.state: Dict[DeclId, str] = {}
		self.stack: List[DeclId] = []
		self.in_cycle: set[DeclId] = set()

	def run(self) -> LayoutGraph:
		for decl_id in self.table.ids():
			self._decl(decl_id)
		return LayoutGraph(self.resolved, self.layouts, self.options)

	def _decl(self, decl_id: DeclId) -> Optional[DeclLayout]:
		state = self.state.get(decl_id)
		if state == _DONE:
			return self.layouts[decl_id]
		if state == _FAILED:
			return None
		if state == _VISITING:
			self._report_cycle(decl_id)
			return None
		if not self.resolved.is_valid(decl_id):
			self.state[decl_id] = _FAILED
			return None
		self.state[decl_id] = _VISITING
		self.stack.append(decl_id)
		try:
			decl = self.table.get(decl_id)
			if decl.kind == ENUM_KIND:
				layout = self._enum(decl)
			else:
				layout = self._struct(decl)
		finally:
			self.stack.pop()
		if layout is None or decl_id in self.in_cycle:
			self.state[decl_id] = _FAILED
			return None
		self.state[decl_id] = _DONE
		self.layouts[decl_id] = layout
		logger.debug(
			"layout %s: %s %d bytes",
			decl.qualname,
			"fixed" if layout.spec.is_fixed_size else "dynamic",
			layout.spec.fixed_size_bytes,
		)
		return layout

	def _report_cycle(self, decl_id: DeclId) -> None:
		cycle = self.stack[self.stack.index(decl_id):]
		names = [self.table.key_of(i) for i in cycle] + [self.table.key_of(decl_id)]
		for member in cycle:
			if member in self.in_cycle:
				continue
			self.in_cycle.add(member)
			self.sink.error(
				"LAYOUT_RECURSIVE_TYPE",
				f"'{self.table.key_of(member)}' contains itself by value: {' -> '.join(names)}",
				self.table.get(member).span,
				notes=["refer to the other value through a PublicKey (or a #[key] field) instead"],
			)

	def _nested_spec(self, decl_id: DeclId) -> Optional[LayoutSpec]:
		dl = self._decl(decl_id)
		return None if dl is None else dl.spec

	def _constant(self, ty: ResolvedType) -> bool:
		if isinstance(ty, (Primitive, PublicKeyLike)):
			return True
		if isinstance(ty, FixedArray):
			return self._constant(ty.elem)
		if isinstance(ty, (StructRef, EnumRef)):
			dl = self.layouts.get(ty.decl_id)
			return dl is not None and dl.constant_encoding
		return False

	def _is_key_reference(self, f: ResolvedField) -> bool:
		if find_attribute(f.attributes, "key") is None:
			return False
		ty = f.type
		return isinstance(ty, StructRef) and self.table.is_defined(ty.decl_id) and self.table.get(ty.decl_id).is_account

	def _key_reference(self, f: ResolvedField, owner: ResolvedDecl) -> bool:
		"""`#[key]` on a field referencing an account stores the account's 32-byte address."""
		if find_attribute(f.attributes, "key") is None:
			return False
		if self._is_key_reference(f):
			return True
		self.sink.warning(
			"ATTR_IGNORED",
			f"#[key] on '{owner.name}.{f.name}' is ignored: it only applies to fields referencing an #[account] struct",
			f.span,
		)
		return False

	def _fields(self, fields: Tuple[ResolvedField, ...], owner: ResolvedDecl, start: int):
		"""Lay out a field sequence starting at byte `start`. Returns (layouts, constant) or None."""
		out: List[FieldLayout] = []
		offset: Optional[int] = start
		constant = True
		failed = False
		for f in fields:
			if self._key_reference(f, owner):
				spec: Optional[LayoutSpec] = LayoutSpec.fixed(PUBKEY_BYTES)
				field_constant = True
			else:
				problems: List[ResolvedType] = []
				spec = type_layout(f.type, self._nested_spec, self.options, problems)
				for arr in problems:
					self.sink.error(
						"LAYOUT_UNBOUNDED_ELEMENT",
						f"fixed array in '{owner.name}.{f.name}' has an element type without a size bound: "
						f"{self.resolved.render(arr)}",
						f.span,
						notes=["bound the element with #[max(...)] or use a dynamic array"],
					)
				field_constant = self._constant(f.type)
			if spec is None:
				failed = True
				continue
			out.append(FieldLayout(name=f.name, layout=spec, offset=offset))
			if offset is not None and field_constant:
				offset += spec.fixed_size_bytes
			else:
				offset = None
			constant = constant and field_constant
		if failed:
			return None
		return tuple(out), constant

	def _struct(self, decl: ResolvedDecl) -> Optional[DeclLayout]:
		is_account = decl.is_account
		disc = self.options.account_discriminator_bytes if is_account else 0
		laid = self._fields(decl.fields, decl, disc)
		if laid is None:
			return None
		fields, constant = laid
		fixed = all(fl.layout.is_fixed_size for fl in fields)
		spec = LayoutSpec(
			is_fixed_size=fixed,
			fixed_size_bytes=disc + sum(fl.layout.fixed_size_bytes for fl in fields),
			variable_overhead_bytes=sum(fl.layout.variable_overhead_bytes for fl in fields),
			account_discriminator_bytes=disc,
		)
		if is_account and not fixed and not self._account_may_be_dynamic(decl):
			return None
		return DeclLayout(
			decl_id=decl.decl_id,
			qualname=decl.qualname,
			spec=spec,
			fields=fields,
			is_account=is_account,
			constant_encoding=constant,
		)

	def _account_may_be_dynamic(self, decl: ResolvedDecl) -> bool:
		"""Report unbounded account content. False means the account gets no layout."""
		flagged = decl.attribute("dynamic") is not None
		direct = [f for f in decl.fields if _direct_unbounded(f.type) and not self._is_key_reference(f)]
		if direct and not flagged:
			for f in direct:
				self.sink.error(
					"LAYOUT_UNBOUNDED_FIELD",
					f"field '{f.name}' of account '{decl.name}' has no size bound: {self.resolved.render(f.type)}",
					f.span,
					notes=[
						"add #[max(N)] to bound it",
						"or mark the account #[dynamic] if it is reallocated at runtime",
					],
				)
			return False
		if not flagged:
			self.sink.warning(
				"LAYOUT_DYNAMIC_ACCOUNT",
				f"account '{decl.name}' is dynamically sized through a nested unbounded type",
				decl.span,
				notes=["mark it #[dynamic] to acknowledge, or bound the nested fields with #[max(N)]"],
			)
		return True

	def _enum(self, decl: ResolvedDecl) -> Optional[DeclLayout]:
		if decl.attribute("account") is not None:
			self.sink.warning(
				"ATTR_IGNORED",
				f"#[account] on enum '{decl.name}' is ignored; only structs can be accounts",
				decl.attribute("account").span,
			)
		if len(decl.variants) > self.options.max_variants:
			self.sink.error(
				"LAYOUT_TOO_MANY_VARIANTS",
				f"enum '{decl.name}' has {len(decl.variants)} variants; the limit is {self.options.max_variants}",
				decl.span,
				notes=[f"the discriminant is {self.options.variant_discriminant_bytes} byte(s) wide"],
			)
			return None
		disc = self.options.variant_discriminant_bytes
		variants: List[VariantLayout] = []
		failed = False
		constant = True
		for v in decl.variants:
			laid = self._fields(v.fields, decl, disc)
			if laid is None:
				failed = True
				continue
			fields, v_constant = laid
			constant = constant and v_constant
			variants.append(
				VariantLayout(
					name=v.name,
					index=v.index,
					payload_bytes=sum(fl.layout.fixed_size_bytes for fl in fields),
					is_fixed_size=all(fl.layout.is_fixed_size for fl in fields),
					fields=fields,
				)
			)
		if failed:
			return None
		payloads = [v.payload_bytes for v in variants]
		spec = LayoutSpec(
			is_fixed_size=all(v.is_fixed_size for v in variants),
			fixed_size_bytes=disc + max(payloads, default=0),
			variable_overhead_bytes=max(
				(sum(fl.layout.variable_overhead_bytes for fl in v.fields) for v in variants),
				default=0,
			),
			variant_discriminant_bytes=disc,
		)
		return DeclLayout(
			decl_id=decl.decl_id,
			qualname=decl.qualname,
			spec=spec,
			variants=tuple(variants),
			constant_encoding=constant and len(set(payloads)) <= 1,
		)


def compute_layouts(
	resolved: ResolvedTypeGraph,
	*,
	options: Optional[CompileOptions] = None,
	sink: Optional[DiagnosticSink] = None,
) -> tuple[LayoutGraph, list[Diagnostic]]:
	"""
	Compute layouts for every valid declaration of `resolved`.

	Declarations the resolver marked invalid, and everything depending on
	them, are skipped without further diagnostics.
	"""
	local = DiagnosticSink(phase="layout")
	graph = _LayoutEngine(resolved, options or resolved.options, local).run()
	diags = local.as_list()
	if sink is not None:
		sink.extend(diags)
	return graph, diags


__all__ = [
	"LayoutSpec",
	"FieldLayout",
	"VariantLayout",
	"DeclLayout",
	"LayoutGraph",
	"type_layout",
	"compute_layouts",
]
