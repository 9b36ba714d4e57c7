# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import struct

from lumosc.compat import encode_default, widening_transform
from lumosc.compat.migration import option_none_bytes
from lumosc.core.types_core import EnumRef, OptionOf, PublicKeyLike, Str, primitive
from lumosc.parser.ast import PathLit


def test_widening_transforms() -> None:
	assert widening_transform(primitive("u8"), primitive("u64")) == "zero_extend"
	assert widening_transform(primitive("u32"), primitive("i64")) == "zero_extend"
	assert widening_transform(primitive("i16"), primitive("i32")) == "sign_extend"
	assert widening_transform(primitive("f32"), primitive("f64")) == "float_widen"


def test_non_widening_changes() -> None:
	assert widening_transform(primitive("u64"), primitive("u32")) is None
	assert widening_transform(primitive("i8"), primitive("u16")) is None
	assert widening_transform(primitive("u32"), primitive("f64")) is None
	assert widening_transform(primitive("bool"), primitive("u8")) is None
	assert widening_transform(Str(), Str(10)) is None


def test_encode_integers_little_endian() -> None:
	assert encode_default(primitive("u16"), 7) == b"\x07\x00"
	assert encode_default(primitive("i32"), -1) == b"\xff\xff\xff\xff"
	assert encode_default(primitive("u64"), 0x0102) == b"\x02\x01" + bytes(6)
	assert encode_default(primitive("u8"), 256) is None
	assert encode_default(primitive("u8"), -1) is None
	assert encode_default(primitive("u8"), True) is None


def test_encode_bool_and_float() -> None:
	assert encode_default(primitive("bool"), False) == b"\x00"
	assert encode_default(primitive("bool"), 1) is None
	assert encode_default(primitive("f32"), 1.5) == struct.pack("<f", 1.5)
	assert encode_default(primitive("f64"), 2) == struct.pack("<d", 2.0)


def test_encode_strings() -> None:
	assert encode_default(Str(8), "hi") == b"\x02\x00\x00\x00hi"
	assert encode_default(Str(), "é", length_prefix_bytes=2) == b"\x02\x00\xc3\xa9"
	assert encode_default(Str(1), "toolong") is None
	assert encode_default(Str(8), 3) is None


def test_encode_public_key() -> None:
	assert encode_default(PublicKeyLike(), 0) == bytes(32)
	assert encode_default(PublicKeyLike(), "ab" * 32) == b"\xab" * 32
	assert encode_default(PublicKeyLike(), "zz" * 32) is None
	assert encode_default(PublicKeyLike(), "abcd") is None


def test_encode_enum_and_option() -> None:
	def lookup(decl_id: int, name: str):
		return {"Off": 0, "On": 1}.get(name) if decl_id == 5 else None

	assert encode_default(EnumRef(5), PathLit(("Mode", "On")), unit_variant=lookup) == b"\x01"
	assert encode_default(EnumRef(5), PathLit(("Missing",)), unit_variant=lookup) is None
	assert encode_default(EnumRef(5), PathLit(("On",))) is None
	assert encode_default(OptionOf(primitive("u8")), 3) == b"\x01\x03"
	assert option_none_bytes() == b"\x00"
