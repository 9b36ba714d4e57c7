# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from lumosc.errors import ViewError
from lumosc.modules import mapping_loader
from lumosc.session import Session
from lumosc.view import account_discriminator, build_view


def _compile(source: str, **extra: str):
	files = {"main.lumos": source}
	files.update({name + ".lumos": text for name, text in extra.items()})
	return Session(mapping_loader(files)).compile("main.lumos", version_tag="1.0.0")


def test_account_discriminator() -> None:
	assert account_discriminator("Wallet").hex() == "18593b8b519ae85f"
	assert account_discriminator("Wallet", 4).hex() == "18593b8b"


def test_view_of_account_and_enum() -> None:
	version = _compile(
		"""
/// Wallet owned by a user.
#[account]
pub struct Wallet {
	/// Owner key.
	pub owner: PublicKey,
	balance: u64,
	kind: Kind,
}

pub enum Kind { Basic, Premium { tier: u8 }, Custom(u16, u16) }
"""
	)
	view = build_view(version)
	assert view.version_tag == "1.0.0"
	assert [d.qualname for d in view] == ["Wallet", "Kind"]
	wallet = view.get("Wallet")
	assert wallet.is_account
	assert wallet.is_public
	assert wallet.doc == "Wallet owned by a user."
	assert wallet.discriminator.hex() == "18593b8b519ae85f"
	assert wallet.size == 8 + 32 + 8 + 5
	assert [(f.name, f.type_name, f.offset) for f in wallet.fields] == [
		("owner", "PublicKey", 8),
		("balance", "u64", 40),
		("kind", "Kind", 48),
	]
	assert wallet.fields[0].doc == "Owner key."
	kind = view.get("Kind")
	assert kind.discriminator is None
	assert kind.size == 5
	assert [(v.name, v.discriminant, v.kind, v.payload_bytes) for v in kind.variants] == [
		("Basic", 0, "unit", 0),
		("Premium", 1, "struct", 1),
		("Custom", 2, "tuple", 4),
	]
	assert [f.name for f in kind.variants[2].fields] == ["_0", "_1"]
	assert [a.name for a in view.accounts()] == ["Wallet"]


def test_size_constants_skip_dynamic_decls() -> None:
	version = _compile("struct Fixed { a: u32 }\nstruct Dyn { s: String }\n")
	view = build_view(version)
	assert view.size_constants() == {"Fixed": 4}
	assert view.get("Dyn").size is None
	assert view.get("Dyn").fields[0].type_name == "String"


def test_view_includes_modules_and_generic_instances() -> None:
	version = _compile(
		"mod shared;\nstruct Root { p: shared::Pair<u8> }\n",
		shared="pub struct Pair<T> { a: T, b: T }\n",
	)
	view = build_view(version)
	assert [d.qualname for d in view] == ["Root", "shared::Pair<u8>"]
	assert view.get("shared::Pair<u8>").name == "Pair<u8>"
	assert len(view) == 2


def test_view_refuses_schema_with_errors() -> None:
	version = _compile("struct S { x: Missing }")
	with pytest.raises(ViewError) as info:
		build_view(version)
	assert info.value.reason_code == "VIEW_SCHEMA_HAS_ERRORS"
	assert "RESOLVE_UNKNOWN_TYPE" in info.value.message


def test_view_allows_warnings() -> None:
	version = _compile("#[frobnicate]\nstruct S { x: u8 }\n")
	assert version.diagnostics
	view = build_view(version)
	assert view.get("S").size == 1
