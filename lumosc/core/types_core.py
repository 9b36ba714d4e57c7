# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Resolved type core.

`ResolvedType` is a small tagged union. Nominal types (structs, enums) are
referenced by `DeclId`, an opaque int handle into a `DeclTable` arena, so a
recursive schema never becomes a cyclic Python object graph: recursion shows
up as an id that refers back to itself, which the layout engine rejects.

Aliases never appear here; the resolver expands them before building a
ResolvedType.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import ClassVar, Dict, Iterator, Optional, Tuple

from lumosc.core.span import Span
from lumosc.parser.ast import Attribute, PRIVATE, PUBLIC, find_attribute


DeclId = int  # opaque handle into the DeclTable


class TypeKind(Enum):
	"""Tags of the ResolvedType union."""

	PRIMITIVE = auto()
	PUBKEY = auto()
	STR = auto()
	STRUCT = auto()
	ENUM = auto()
	FIXED_ARRAY = auto()
	DYN_ARRAY = auto()
	OPTION = auto()


# name -> byte width
PRIMITIVE_WIDTHS: Dict[str, int] = {
	"u8": 1,
	"u16": 2,
	"u32": 4,
	"u64": 8,
	"u128": 16,
	"i8": 1,
	"i16": 2,
	"i32": 4,
	"i64": 8,
	"i128": 16,
	"f32": 4,
	"f64": 8,
	"bool": 1,
}

PUBKEY_BYTES = 32


class ResolvedType:
	"""Base of the resolved type union; `tag` identifies the variant."""

	tag: ClassVar[TypeKind]


@dataclass(frozen=True)
class Primitive(ResolvedType):
	name: str
	width: int
	tag: ClassVar[TypeKind] = TypeKind.PRIMITIVE

	@property
	def is_unsigned(self) -> bool:
		return self.name.startswith("u")

	@property
	def is_signed(self) -> bool:
		return self.name.startswith("i")

	@property
	def is_float(self) -> bool:
		return self.name.startswith("f")


@dataclass(frozen=True)
class PublicKeyLike(ResolvedType):
	width: int = PUBKEY_BYTES
	tag: ClassVar[TypeKind] = TypeKind.PUBKEY


@dataclass(frozen=True)
class Str(ResolvedType):
	max_len: Optional[int] = None
	tag: ClassVar[TypeKind] = TypeKind.STR


@dataclass(frozen=True)
class StructRef(ResolvedType):
	decl_id: DeclId
	tag: ClassVar[TypeKind] = TypeKind.STRUCT


@dataclass(frozen=True)
class EnumRef(ResolvedType):
	decl_id: DeclId
	tag: ClassVar[TypeKind] = TypeKind.ENUM


@dataclass(frozen=True)
class FixedArray(ResolvedType):
	elem: ResolvedType
	length: int
	tag: ClassVar[TypeKind] = TypeKind.FIXED_ARRAY


@dataclass(frozen=True)
class DynArray(ResolvedType):
	elem: ResolvedType
	max_len: Optional[int] = None
	tag: ClassVar[TypeKind] = TypeKind.DYN_ARRAY


@dataclass(frozen=True)
class OptionOf(ResolvedType):
	inner: ResolvedType
	tag: ClassVar[TypeKind] = TypeKind.OPTION


def primitive(name: str) -> Primitive:
	return Primitive(name=name, width=PRIMITIVE_WIDTHS[name])


def referenced_decls(ty: ResolvedType) -> Iterator[DeclId]:
	"""Yield every DeclId a type refers to by value."""
	if isinstance(ty, (StructRef, EnumRef)):
		yield ty.decl_id
	elif isinstance(ty, (FixedArray, DynArray)):
		yield from referenced_decls(ty.elem)
	elif isinstance(ty, OptionOf):
		yield from referenced_decls(ty.inner)


STRUCT_KIND = "struct"
ENUM_KIND = "enum"


@dataclass(frozen=True)
class ResolvedField:
	name: str
	type: ResolvedType
	attributes: Tuple[Attribute, ...] = ()
	doc: Optional[str] = None
	visibility: str = PRIVATE
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class ResolvedVariant:
	name: str
	index: int
	kind: str
	fields: Tuple[ResolvedField, ...] = ()
	attributes: Tuple[Attribute, ...] = ()
	doc: Optional[str] = None
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class ResolvedDecl:
	"""
	A concrete (non-generic) struct or enum.

	Generic templates are never stored; each instantiation is its own decl
	named `Name<arg, ...>` with `template` pointing at the template's
	qualified name.
	"""

	decl_id: DeclId
	name: str
	qualname: str
	module: Tuple[str, ...]
	kind: str
	visibility: str = PRIVATE
	attributes: Tuple[Attribute, ...] = ()
	doc: Optional[str] = None
	fields: Tuple[ResolvedField, ...] = ()
	variants: Tuple[ResolvedVariant, ...] = ()
	type_args: Tuple[ResolvedType, ...] = ()
	template: Optional[str] = None
	span: Span = field(default_factory=Span, compare=False)

	@property
	def is_account(self) -> bool:
		return self.kind == STRUCT_KIND and find_attribute(self.attributes, "account") is not None

	@property
	def is_public(self) -> bool:
		return self.visibility == PUBLIC

	def attribute(self, name: str) -> Optional[Attribute]:
		return find_attribute(self.attributes, name)


class DeclTable:
	"""
	Arena of resolved declarations keyed by qualified name.

	Ids are handed out in first-request order, which is deterministic because
	the resolver walks modules and declarations in source order.
	"""

	def __init__(self) -> None:
		self._defs: Dict[DeclId, ResolvedDecl] = {}
		self._by_key: Dict[str, DeclId] = {}
		self._keys: Dict[DeclId, str] = {}
		self._kinds: Dict[DeclId, str] = {}
		self._next_id: DeclId = 1  # reserve 0 for "invalid"

	def intern(self, key: str, kind: str) -> tuple[DeclId, bool]:
		"""Return the id for `key`, allocating it if new. Second item: newly created."""
		existing = self._by_key.get(key)
		if existing is not None:
			return existing, False
		decl_id = self._next_id
		self._next_id += 1
		self._by_key[key] = decl_id
		self._keys[decl_id] = key
		self._kinds[decl_id] = kind
		return decl_id, True

	def define(self, decl: ResolvedDecl) -> None:
		self._defs[decl.decl_id] = decl

	def get(self, decl_id: DeclId) -> ResolvedDecl:
		return self._defs[decl_id]

	def is_defined(self, decl_id: DeclId) -> bool:
		return decl_id in self._defs

	def key_of(self, decl_id: DeclId) -> str:
		return self._keys[decl_id]

	def kind_of(self, decl_id: DeclId) -> str:
		return self._kinds[decl_id]

	def lookup(self, key: str) -> Optional[DeclId]:
		return self._by_key.get(key)

	def ids(self) -> list[DeclId]:
		return sorted(self._defs)

	def __iter__(self) -> Iterator[ResolvedDecl]:
		for decl_id in self.ids():
			yield self._defs[decl_id]

	def __len__(self) -> int:
		return len(self._defs)


def render_type(ty: ResolvedType, keys: "DeclTable | None" = None) -> str:
	"""Canonical text form of a resolved type (also used for instantiation keys)."""
	if isinstance(ty, Primitive):
		return ty.name
	if isinstance(ty, PublicKeyLike):
		return "PublicKey"
	if isinstance(ty, Str):
		return "String" if ty.max_len is None else f"String<max {ty.max_len}>"
	if isinstance(ty, (StructRef, EnumRef)):
		return keys.key_of(ty.decl_id) if keys is not None else f"#{ty.decl_id}"
	if isinstance(ty, FixedArray):
		return f"[{render_type(ty.elem, keys)}; {ty.length}]"
	if isinstance(ty, DynArray):
		inner = render_type(ty.elem, keys)
		return f"[{inner}]" if ty.max_len is None else f"[{inner}; max {ty.max_len}]"
	if isinstance(ty, OptionOf):
		return f"Option<{render_type(ty.inner, keys)}>"
	raise TypeError(f"unknown resolved type {ty!r}")


__all__ = [
	"DeclId",
	"TypeKind",
	"PRIMITIVE_WIDTHS",
	"PUBKEY_BYTES",
	"ResolvedType",
	"Primitive",
	"PublicKeyLike",
	"Str",
	"StructRef",
	"EnumRef",
	"FixedArray",
	"DynArray",
	"OptionOf",
	"primitive",
	"referenced_decls",
	"STRUCT_KIND",
	"ENUM_KIND",
	"ResolvedField",
	"ResolvedVariant",
	"ResolvedDecl",
	"DeclTable",
	"render_type",
]
