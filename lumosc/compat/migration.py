# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Deterministic byte transforms used by migration plans.

Only two kinds of change can be migrated mechanically: widening a numeric
field in place, and appending a field whose initial bytes are known (an
absent `Option` or an explicit `#[default(...)]`).
"""

from __future__ import annotations

import struct
from typing import Callable, Optional

from lumosc.core.types_core import (
	EnumRef,
	OptionOf,
	Primitive,
	PublicKeyLike,
	ResolvedType,
	Str,
)
from lumosc.parser.ast import AttrValue, PathLit

ZERO_EXTEND = "zero_extend"
SIGN_EXTEND = "sign_extend"
FLOAT_WIDEN = "float_widen"

# (decl_id, variant name) -> index of a unit variant, or None
UnitVariantLookup = Callable[[int, str], Optional[int]]


def widening_transform(old: ResolvedType, new: ResolvedType) -> Optional[str]:
	"""Name the transform turning an `old` value into a `new` one, if lossless."""
	if not isinstance(old, Primitive) or not isinstance(new, Primitive):
		return None
	if old.name == "bool" or new.name == "bool":
		return None
	if old.is_float and new.is_float:
		return FLOAT_WIDEN if new.width > old.width else None
	if old.is_float or new.is_float:
		return None
	if new.width <= old.width:
		return None
	if old.is_unsigned:
		return ZERO_EXTEND
	if old.is_signed and new.is_signed:
		return SIGN_EXTEND
	return None


def option_none_bytes(option_tag_bytes: int = 1) -> bytes:
	return bytes(option_tag_bytes)


def encode_default(
	ty: ResolvedType,
	value: AttrValue,
	*,
	length_prefix_bytes: int = 4,
	unit_variant: Optional[UnitVariantLookup] = None,
) -> Optional[bytes]:
	"""
	Encode an attribute literal as the bytes of a `ty` value.

	Returns None when the literal does not fit the type or the type has no
	literal form.
	"""
	if isinstance(ty, Primitive):
		if ty.name == "bool":
			return (b"\x01" if value else b"\x00") if isinstance(value, bool) else None
		if isinstance(value, bool):
			return None
		if ty.is_float:
			if not isinstance(value, (int, float)):
				return None
			return struct.pack("<f" if ty.width == 4 else "<d", float(value))
		if not isinstance(value, int):
			return None
		try:
			return value.to_bytes(ty.width, "little", signed=ty.is_signed)
		except OverflowError:
			return None
	if isinstance(ty, Str):
		if not isinstance(value, str):
			return None
		raw = value.encode("utf-8")
		if ty.max_len is not None and len(raw) > ty.max_len:
			return None
		return len(raw).to_bytes(length_prefix_bytes, "little") + raw
	if isinstance(ty, PublicKeyLike):
		if value == 0 and not isinstance(value, bool):
			return bytes(ty.width)
		if isinstance(value, str) and len(value) == ty.width * 2:
			try:
				return bytes.fromhex(value)
			except ValueError:
				return None
		return None
	if isinstance(ty, EnumRef) and isinstance(value, PathLit) and unit_variant is not None:
		index = unit_variant(ty.decl_id, value.segments[-1])
		return None if index is None else index.to_bytes(1, "little")
	if isinstance(ty, OptionOf):
		inner = encode_default(ty.inner, value, length_prefix_bytes=length_prefix_bytes, unit_variant=unit_variant)
		return None if inner is None else b"\x01" + inner
	return None


__all__ = [
	"ZERO_EXTEND",
	"SIGN_EXTEND",
	"FLOAT_WIDEN",
	"widening_transform",
	"option_none_bytes",
	"encode_default",
]
