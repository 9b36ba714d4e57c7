# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Per-file AST for `.lumos` schema sources.

Nodes are frozen: a SourceModule is never mutated after the parser builds
it. Every node carries a `Span` so later stages can report precise
locations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from lumosc.core.span import Span


PUBLIC = "pub"
PRIVATE = "private"


@dataclass(frozen=True)
class PathLit:
	"""Bare identifier path used as an attribute argument (`Debug`, `a::B`)."""

	segments: Tuple[str, ...]

	def __str__(self) -> str:
		return "::".join(self.segments)


AttrValue = Union[int, float, str, bool, PathLit]


@dataclass(frozen=True)
class AttrArg:
	"""Positional (`name is None`) or named (`key = value`) attribute argument."""

	value: AttrValue
	name: Optional[str] = None
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class Attribute:
	"""
	Open `{name, args}` attribute.

	`#[name = v]` is stored as a single positional arg with `assigned=True`,
	so consumers can read it the same way as `#[name(v)]`.
	"""

	name: str
	args: Tuple[AttrArg, ...] = ()
	assigned: bool = False
	span: Span = field(default_factory=Span, compare=False)

	def positional(self) -> Tuple[AttrValue, ...]:
		return tuple(a.value for a in self.args if a.name is None)

	def named(self, key: str) -> Optional[AttrValue]:
		for a in self.args:
			if a.name == key:
				return a.value
		return None

	def render(self) -> str:
		if self.assigned and self.args:
			return f"#[{self.name} = {_render_value(self.args[0].value)}]"
		if not self.args:
			return f"#[{self.name}]"
		parts = []
		for a in self.args:
			val = _render_value(a.value)
			parts.append(f"{a.name} = {val}" if a.name else val)
		return f"#[{self.name}({', '.join(parts)})]"


def _render_value(value: AttrValue) -> str:
	if isinstance(value, bool):
		return "true" if value else "false"
	if isinstance(value, str):
		return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
	return str(value)


def find_attribute(attributes: Tuple[Attribute, ...], name: str) -> Optional[Attribute]:
	for attr in attributes:
		if attr.name == name:
			return attr
	return None


def has_attribute(attributes: Tuple[Attribute, ...], name: str) -> bool:
	return find_attribute(attributes, name) is not None


class TypeRef:
	"""Base class for unresolved type references."""

	span: Span


@dataclass(frozen=True)
class PathType(TypeRef):
	"""`Name`, `a::b::Name`, `crate::Name<T, U>`, `Option<T>`, `Vec<T>`."""

	segments: Tuple[str, ...]
	args: Tuple[TypeRef, ...] = ()
	span: Span = field(default_factory=Span, compare=False)

	@property
	def name(self) -> str:
		return self.segments[-1]

	def __str__(self) -> str:
		base = "::".join(self.segments)
		if not self.args:
			return base
		return f"{base}<{', '.join(str(a) for a in self.args)}>"


@dataclass(frozen=True)
class FixedArrayType(TypeRef):
	elem: TypeRef
	length: int
	span: Span = field(default_factory=Span, compare=False)

	def __str__(self) -> str:
		return f"[{self.elem}; {self.length}]"


@dataclass(frozen=True)
class DynArrayType(TypeRef):
	elem: TypeRef
	span: Span = field(default_factory=Span, compare=False)

	def __str__(self) -> str:
		return f"[{self.elem}]"


@dataclass(frozen=True)
class Field:
	name: str
	type_ref: TypeRef
	attributes: Tuple[Attribute, ...] = ()
	doc: Optional[str] = None
	visibility: str = PRIVATE
	span: Span = field(default_factory=Span, compare=False)


UNIT = "unit"
TUPLE = "tuple"
STRUCT = "struct"


@dataclass(frozen=True)
class Variant:
	"""Enum variant; tuple variants name their fields `_0`, `_1`, ..."""

	name: str
	kind: str = UNIT
	fields: Tuple[Field, ...] = ()
	attributes: Tuple[Attribute, ...] = ()
	doc: Optional[str] = None
	span: Span = field(default_factory=Span, compare=False)


class Declaration:
	"""Base class for top-level declarations (struct, enum, type alias)."""

	name: str
	visibility: str
	type_params: Tuple[str, ...]
	attributes: Tuple[Attribute, ...]
	doc: Optional[str]
	span: Span


@dataclass(frozen=True)
class StructDecl(Declaration):
	name: str
	fields: Tuple[Field, ...] = ()
	visibility: str = PRIVATE
	type_params: Tuple[str, ...] = ()
	attributes: Tuple[Attribute, ...] = ()
	doc: Optional[str] = None
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class EnumDecl(Declaration):
	name: str
	variants: Tuple[Variant, ...] = ()
	visibility: str = PRIVATE
	type_params: Tuple[str, ...] = ()
	attributes: Tuple[Attribute, ...] = ()
	doc: Optional[str] = None
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class TypeAliasDecl(Declaration):
	name: str
	target: TypeRef
	visibility: str = PRIVATE
	type_params: Tuple[str, ...] = ()
	attributes: Tuple[Attribute, ...] = ()
	doc: Optional[str] = None
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class ModDecl:
	"""`[pub] mod name;`"""

	name: str
	visibility: str = PRIVATE
	attributes: Tuple[Attribute, ...] = ()
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class UseDecl:
	"""`use crate::a::Item [as Alias];`. `path` keeps any `crate`/`super`/`self` head."""

	path: Tuple[str, ...]
	alias: Optional[str] = None
	visibility: str = PRIVATE
	span: Span = field(default_factory=Span, compare=False)

	@property
	def local_name(self) -> str:
		return self.alias or self.path[-1]


@dataclass(frozen=True)
class SourceModule:
	path: str
	text: str
	mods: Tuple[ModDecl, ...] = ()
	uses: Tuple[UseDecl, ...] = ()
	decls: Tuple[Declaration, ...] = ()


__all__ = [
	"PUBLIC",
	"PRIVATE",
	"PathLit",
	"AttrValue",
	"AttrArg",
	"Attribute",
	"find_attribute",
	"has_attribute",
	"TypeRef",
	"PathType",
	"FixedArrayType",
	"DynArrayType",
	"Field",
	"Variant",
	"UNIT",
	"TUPLE",
	"STRUCT",
	"Declaration",
	"StructDecl",
	"EnumDecl",
	"TypeAliasDecl",
	"ModDecl",
	"UseDecl",
	"SourceModule",
]
