# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Read-only per-declaration view for code emitters.

Emitters for every target language read this view instead of walking the
resolver and layout graphs themselves, so they all agree on names, order,
sizes and the account discriminator.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

from lumosc.core.types_core import ENUM_KIND, ResolvedDecl, ResolvedType
from lumosc.errors import ViewError
from lumosc.layout import DeclLayout, FieldLayout, LayoutSpec
from lumosc.parser.ast import PUBLIC, Attribute
from lumosc.schema_version import SchemaVersion


def account_discriminator(name: str, width: int = 8) -> bytes:
	"""Anchor-style discriminator: first bytes of sha256("account:<Name>")."""
	return hashlib.sha256(f"account:{name}".encode("utf-8")).digest()[:width]


@dataclass(frozen=True)
class FieldView:
	name: str
	type: ResolvedType
	type_name: str
	layout: LayoutSpec
	offset: Optional[int]
	attributes: Tuple[Attribute, ...] = ()
	doc: Optional[str] = None


@dataclass(frozen=True)
class VariantView:
	name: str
	discriminant: int
	kind: str
	payload_bytes: int
	fields: Tuple[FieldView, ...] = ()
	attributes: Tuple[Attribute, ...] = ()
	doc: Optional[str] = None


@dataclass(frozen=True)
class DeclView:
	name: str
	qualname: str
	kind: str
	visibility: str
	attributes: Tuple[Attribute, ...]
	doc: Optional[str]
	layout: LayoutSpec
	fields: Tuple[FieldView, ...] = ()
	variants: Tuple[VariantView, ...] = ()
	is_account: bool = False
	discriminator: Optional[bytes] = None

	@property
	def is_fixed_size(self) -> bool:
		return self.layout.is_fixed_size

	@property
	def size(self) -> Optional[int]:
		"""Exact byte length when fixed, else None."""
		return self.layout.fixed_size_bytes if self.layout.is_fixed_size else None

	@property
	def is_public(self) -> bool:
		return self.visibility == PUBLIC


@dataclass(frozen=True)
class SchemaView:
	version_tag: Optional[str]
	decls: Tuple[DeclView, ...]

	def __iter__(self) -> Iterator[DeclView]:
		return iter(self.decls)

	def __len__(self) -> int:
		return len(self.decls)

	def get(self, qualname: str) -> Optional[DeclView]:
		for d in self.decls:
			if d.qualname == qualname:
				return d
		return None

	def accounts(self) -> Tuple[DeclView, ...]:
		return tuple(d for d in self.decls if d.is_account)

	def size_constants(self) -> Dict[str, int]:
		"""Qualified name -> exact size for every fixed-size declaration."""
		return {d.qualname: d.layout.fixed_size_bytes for d in self.decls if d.is_fixed_size}


def build_view(version: SchemaVersion) -> SchemaView:
	"""Build the emitter view. Raises ViewError if the schema is not fully valid."""
	errors = version.errors()
	if errors:
		raise ViewError(
			"VIEW_SCHEMA_HAS_ERRORS",
			f"schema '{version.entry}' has {len(errors)} error(s): {errors[0].format_human()}",
		)
	resolved = version.resolved
	out = []
	for decl in resolved.table:
		layout = version.layouts.get(decl.decl_id)
		if layout is None:
			raise ViewError(
				"VIEW_MISSING_LAYOUT",
				f"declaration '{decl.qualname}' has no layout",
				decl_name=decl.qualname,
			)
		out.append(_decl_view(version, decl, layout))
	return SchemaView(version_tag=version.version_tag, decls=tuple(out))


def _field_views(version: SchemaVersion, fields, layouts: Tuple[FieldLayout, ...]) -> Tuple[FieldView, ...]:
	by_name = {fl.name: fl for fl in layouts}
	return tuple(
		FieldView(
			name=f.name,
			type=f.type,
			type_name=version.resolved.render(f.type),
			layout=by_name[f.name].layout,
			offset=by_name[f.name].offset,
			attributes=f.attributes,
			doc=f.doc,
		)
		for f in fields
	)


def _decl_view(version: SchemaVersion, decl: ResolvedDecl, layout: DeclLayout) -> DeclView:
	variants: Tuple[VariantView, ...] = ()
	fields: Tuple[FieldView, ...] = ()
	if decl.kind == ENUM_KIND:
		by_name = {vl.name: vl for vl in layout.variants}
		variants = tuple(
			VariantView(
				name=v.name,
				discriminant=v.index,
				kind=v.kind,
				payload_bytes=by_name[v.name].payload_bytes,
				fields=_field_views(version, v.fields, by_name[v.name].fields),
				attributes=v.attributes,
				doc=v.doc,
			)
			for v in decl.variants
		)
	else:
		fields = _field_views(version, decl.fields, layout.fields)
	discriminator = None
	if layout.is_account:
		discriminator = account_discriminator(decl.name, layout.spec.account_discriminator_bytes)
	return DeclView(
		name=decl.name,
		qualname=decl.qualname,
		kind=decl.kind,
		visibility=decl.visibility,
		attributes=decl.attributes,
		doc=decl.doc,
		layout=layout.spec,
		fields=fields,
		variants=variants,
		is_account=layout.is_account,
		discriminator=discriminator,
	)


__all__ = [
	"FieldView",
	"VariantView",
	"DeclView",
	"SchemaView",
	"account_discriminator",
	"build_view",
]
