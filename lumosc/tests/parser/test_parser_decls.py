# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from lumosc.parser import parse, split_top_level_items
from lumosc.parser.ast import (
	PRIVATE,
	PUBLIC,
	STRUCT,
	TUPLE,
	UNIT,
	DynArrayType,
	EnumDecl,
	FixedArrayType,
	PathLit,
	PathType,
	StructDecl,
	TypeAliasDecl,
)


def test_parse_account_struct() -> None:
	mod, diags = parse(
		"""
/// A user wallet.
#[account]
pub struct Wallet {
	pub owner: PublicKey,
	balance: u64,
	bump: u8,
}
""",
		"main.lumos",
	)
	assert diags == []
	assert len(mod.decls) == 1
	decl = mod.decls[0]
	assert isinstance(decl, StructDecl)
	assert decl.name == "Wallet"
	assert decl.visibility == PUBLIC
	assert decl.doc == "A user wallet."
	assert [a.name for a in decl.attributes] == ["account"]
	assert [f.name for f in decl.fields] == ["owner", "balance", "bump"]
	assert decl.fields[0].visibility == PUBLIC
	assert decl.fields[1].visibility == PRIVATE
	assert isinstance(decl.fields[0].type_ref, PathType)
	assert decl.fields[0].type_ref.name == "PublicKey"


def test_parse_enum_variant_kinds() -> None:
	mod, diags = parse(
		"enum Event { Idle, Moved { x: i32, y: i32 }, Tagged(u8, [u8; 4]) }",
		"main.lumos",
	)
	assert diags == []
	decl = mod.decls[0]
	assert isinstance(decl, EnumDecl)
	kinds = [(v.name, v.kind) for v in decl.variants]
	assert kinds == [("Idle", UNIT), ("Moved", STRUCT), ("Tagged", TUPLE)]
	tagged = decl.variants[2]
	assert [f.name for f in tagged.fields] == ["_0", "_1"]
	assert isinstance(tagged.fields[1].type_ref, FixedArrayType)
	assert tagged.fields[1].type_ref.length == 4


def test_parse_attribute_argument_forms() -> None:
	mod, diags = parse(
		"""
#[derive(Debug, Clone)]
#[version = "1.2.0"]
#[solana(seeds = "vault", bump = 255, strict = true)]
struct Config {
	#[max(8, 16)] tags: Vec<String>,
	#[deprecated("use `fee`")] #[default(0x10)] legacy: u16,
}
""",
		"main.lumos",
	)
	assert diags == []
	decl = mod.decls[0]
	derive, version, solana = decl.attributes
	assert derive.positional() == (PathLit(("Debug",)), PathLit(("Clone",)))
	assert version.assigned is True
	assert version.positional() == ("1.2.0",)
	assert solana.named("seeds") == "vault"
	assert solana.named("bump") == 255
	assert solana.named("strict") is True
	tags, legacy = decl.fields
	assert tags.attributes[0].positional() == (8, 16)
	assert str(tags.type_ref) == "Vec<String>"
	assert [a.name for a in legacy.attributes] == ["deprecated", "default"]
	assert legacy.attributes[1].positional() == (16,)
	assert legacy.attributes[0].render() == '#[deprecated("use `fee`")]'


def test_parse_mod_use_and_alias() -> None:
	mod, diags = parse(
		"""
mod models;
pub mod accounts;
use crate::models::User;
use super::Config as Cfg;
use self::accounts::Vault;
pub type UserId = PublicKey;
type Pair<T> = [T; 2];
type Bytes = [u8];
""",
		"lib/mod.lumos",
	)
	assert diags == []
	assert [(m.name, m.visibility) for m in mod.mods] == [("models", PRIVATE), ("accounts", PUBLIC)]
	assert [u.path for u in mod.uses] == [
		("crate", "models", "User"),
		("super", "Config"),
		("self", "accounts", "Vault"),
	]
	assert [u.local_name for u in mod.uses] == ["User", "Cfg", "Vault"]
	aliases = mod.decls
	assert all(isinstance(a, TypeAliasDecl) for a in aliases)
	assert aliases[1].type_params == ("T",)
	assert isinstance(aliases[2].target, DynArrayType)


def test_parse_generic_struct() -> None:
	mod, diags = parse("pub struct Page<T, U> { items: [T; 8], cursor: Option<U> }", "main.lumos")
	assert diags == []
	decl = mod.decls[0]
	assert decl.type_params == ("T", "U")
	cursor = decl.fields[1].type_ref
	assert isinstance(cursor, PathType)
	assert cursor.name == "Option"
	assert [str(a) for a in cursor.args] == ["U"]


def test_parse_comments_are_ignored() -> None:
	mod, diags = parse(
		"""
// line comment
/* block
   comment */
struct A { a: u8 } // trailing
""",
		"main.lumos",
	)
	assert diags == []
	assert [d.name for d in mod.decls] == ["A"]
	assert mod.decls[0].doc is None


def test_recovery_keeps_good_items() -> None:
	mod, diags = parse(
		"struct Good { a: u8 }\nstruct Broken { a: }\nstruct AlsoGood { b: u16 }\n",
		"main.lumos",
	)
	assert [d.name for d in mod.decls] == ["Good", "AlsoGood"]
	assert len(diags) == 1
	assert diags[0].code.startswith("SYNTAX_")
	assert diags[0].span.line == 2
	assert diags[0].phase == "parser"


def test_error_offset_is_utf8_bytes() -> None:
	# "é" is two bytes in UTF-8; the `}` sits at character 22, byte 23.
	_mod, diags = parse("// café\nstruct X { a: }", "main.lumos")
	assert len(diags) == 1
	assert diags[0].span.line == 2
	assert diags[0].span.offset == 23


def test_glob_use_is_rejected() -> None:
	_mod, diags = parse("use crate::models::*;\nstruct A { a: u8 }", "main.lumos")
	assert [d.code for d in diags] == ["SYNTAX_UNEXPECTED_CHARACTER"]


def test_array_length_bounds() -> None:
	_mod, diags = parse("struct A { a: [u8; 0], b: [u8; 4096], c: [u8; 32] }", "main.lumos")
	assert [d.code for d in diags] == ["SYNTAX_INVALID_ARRAY_LENGTH", "SYNTAX_INVALID_ARRAY_LENGTH"]


def test_invalid_use_paths() -> None:
	_mod, diags = parse("use Single;\nuse crate::a::crate;\nuse a::super::B;\n", "main.lumos")
	codes = [d.code for d in diags]
	assert codes == ["SYNTAX_INVALID_PATH"] * 4


def test_split_top_level_items_ignores_nested_and_strings() -> None:
	text = 'mod a;\n#[doc("};")]\nstruct S { f: [u8; 2] }\n'
	ranges = split_top_level_items(text)
	assert [text[s:e].strip() for s, e in ranges] == ["mod a;", '#[doc("};")]\nstruct S { f: [u8; 2] }']


def test_legacy_import_statement_is_one_diagnostic() -> None:
	mod, diags = parse(
		'struct A { a: u8 }\n// shared types\nimport { UserId, Timestamp } from "./types.lumos";\nstruct B { b: u16 }\n',
		"main.lumos",
	)
	assert [d.name for d in mod.decls] == ["A", "B"]
	assert [d.code for d in diags] == ["SYNTAX_LEGACY_IMPORT"]
	span = diags[0].span
	assert (span.line, span.column, span.end_line) == (3, 1, 3)
	assert span.offset == len("struct A { a: u8 }\n// shared types\n")
	assert "`use`" in diags[0].notes[0]
