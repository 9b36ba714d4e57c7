# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import itertools

import pytest

from lumosc.compat import AnalyzerState, CompatibilityAnalyzer, FindingKind, Verdict, compare
from lumosc.errors import CompatibilityError
from lumosc.modules import mapping_loader
from lumosc.session import Session


def _version(source: str, tag: str | None = None):
	return Session(mapping_loader({"main.lumos": source})).compile("main.lumos", version_tag=tag)


def _compare(old: str, new: str, *, old_tag: str | None = None, new_tag: str | None = None):
	return compare(_version(old, old_tag), _version(new, new_tag))


def _summary(report) -> list[tuple[str, str | None]]:
	return [(f.kind.value, f.field_path) for f in report.findings]


WALLET = """
#[account]
struct Wallet {
	owner: PublicKey,
	balance: u64,
	bump: u8,
}
"""


def test_identical_schemas_are_compatible() -> None:
	report = _compare(WALLET, WALLET)
	assert report.verdict is Verdict.COMPATIBLE
	assert report.findings == []
	assert not report.manual_migration_required
	assert not report.is_breaking


def test_documentation_change_is_neutral() -> None:
	report = _compare(WALLET, "/// Holds lamports.\n" + WALLET.lstrip())
	assert report.verdict is Verdict.COMPATIBLE
	assert [f.description for f in report.neutral()] == ["documentation changed"]


def test_removed_field_is_breaking() -> None:
	report = _compare(WALLET, "#[account]\nstruct Wallet { owner: PublicKey, balance: u64 }\n")
	assert report.verdict is Verdict.BREAKING_DETECTED
	assert _summary(report) == [("Breaking", "Wallet.bump")]
	assert "removed" in report.findings[0].description
	assert report.manual_migration_required


def test_appended_option_field_is_additive() -> None:
	report = _compare("struct Config { a: u64 }", "struct Config { a: u64, b: Option<u32> }")
	assert report.verdict is Verdict.ADDITIVE_ONLY
	assert _summary(report) == [("Additive", "Config.b")]
	step = report.findings[0].suggested_migration
	assert (step.operation, step.field_path, step.transform, step.fill_bytes) == (
		"append_field",
		"Config.b",
		"option_none",
		b"\x00",
	)
	assert report.migration_plan == [step]
	assert not report.manual_migration_required


def test_appended_field_with_defaults() -> None:
	report = _compare(
		"enum Mode { Off, On }\nstruct S { a: u8 }\n",
		"""
enum Mode { Off, On }
struct S {
	a: u8,
	#[default(7)] b: u16,
	#[default(true)] c: bool,
	#[default("hi")] #[max(8)] d: String,
	#[default(On)] e: Mode,
}
""",
	)
	assert report.verdict is Verdict.ADDITIVE_ONLY
	fills = {s.field_path: s.fill_bytes.hex() for s in report.migration_plan}
	assert fills == {
		"S.b": "0700",
		"S.c": "01",
		"S.d": "020000006869",
		"S.e": "01",
	}
	assert all(s.transform == "default" for s in report.migration_plan)


def test_appended_field_with_unencodable_default_needs_manual_migration() -> None:
	report = _compare("struct S { a: u8 }", "struct S { a: u8, #[default(300)] b: u8 }")
	assert report.verdict is Verdict.ADDITIVE_ONLY
	assert report.migration_plan == []
	assert report.manual_migration_required


def test_appended_field_without_default_is_breaking() -> None:
	report = _compare("struct S { a: u64 }", "struct S { a: u64, c: u16 }")
	assert _summary(report) == [("Breaking", "S.c")]
	assert "safe default" in report.findings[0].description


def test_inserted_field_is_breaking() -> None:
	report = _compare("struct S { a: u64, b: u8 }", "struct S { a: u64, x: Option<u8>, b: u8 }")
	assert _summary(report) == [("Breaking", "S.x")]


def test_reordered_fields_are_breaking() -> None:
	report = _compare("struct S { a: u64, b: u32 }", "struct S { b: u32, a: u64 }")
	assert _summary(report) == [("Breaking", "S.a"), ("Breaking", "S.b")]
	assert all("moved from position" in f.description for f in report.findings)


_FIELD_TYPES = {"a": "u8", "b": "u16", "c": "u32", "d": "u64"}


@pytest.mark.parametrize("order", [p for p in itertools.permutations("abcd") if p != tuple("abcd")])
def test_every_field_permutation_is_breaking(order: tuple[str, ...]) -> None:
	def struct(names) -> str:
		return "struct S { " + ", ".join(f"{n}: {_FIELD_TYPES[n]}" for n in names) + " }"

	report = _compare(struct("abcd"), struct(order))
	assert report.verdict is Verdict.BREAKING_DETECTED
	moved = {f"S.{n}" for i, n in enumerate(order) if "abcd".index(n) != i}
	assert {f.field_path for f in report.findings} == moved
	assert all(f.kind is FindingKind.BREAKING for f in report.findings)
	assert all("moved from position" in f.description for f in report.findings)


def test_widened_field_has_migration_step() -> None:
	report = _compare("struct S { a: u32, b: u8 }", "struct S { a: u64, b: u8 }")
	assert report.verdict is Verdict.BREAKING_DETECTED
	step = report.findings[0].suggested_migration
	assert (step.operation, step.field_path, step.transform) == ("widen_field", "S.a", "zero_extend:u32->u64")
	assert not report.manual_migration_required


def test_narrowed_or_changed_type_is_breaking() -> None:
	report = _compare("struct S { a: u64, b: i32 }", "struct S { a: u32, b: u32 }")
	assert _summary(report) == [("Breaking", "S.a"), ("Breaking", "S.b")]
	assert report.findings[0].suggested_migration is None


def test_string_bound_growth() -> None:
	last = _compare("struct S { a: u8, #[max(10)] s: String }", "struct S { a: u8, #[max(20)] s: String }")
	assert _summary(last) == [("Additive", "S.s")]
	assert "grew from 14 to 24 bytes" in last.findings[0].description
	middle = _compare(
		"struct S { #[max(10)] s: String, a: u8 }",
		"struct S { #[max(20)] s: String, a: u8 }",
	)
	assert _summary(middle) == [("Breaking", "S.s")]
	shrunk = _compare("struct S { #[max(20)] s: String }", "struct S { #[max(10)] s: String }")
	assert _summary(shrunk) == [("Breaking", "S.s")]


def test_nested_growth_propagates_to_containers() -> None:
	report = _compare(
		"struct Inner { a: u8 }\nstruct Outer { i: Inner, x: u8 }\n",
		"struct Inner { a: u8, b: Option<u8> }\nstruct Outer { i: Inner, x: u8 }\n",
	)
	assert report.verdict is Verdict.BREAKING_DETECTED
	assert ("Additive", "Inner.b") in _summary(report)
	outer = [f for f in report.findings if f.decl_name == "Outer"]
	assert [(f.kind, f.field_path) for f in outer] == [(FindingKind.BREAKING, "Outer.i")]
	assert "grew from 1 to 3 bytes" in outer[0].description


def test_appended_and_inserted_variants() -> None:
	appended = _compare("enum E { A, B }", "enum E { A, B, C { x: u8 } }")
	assert appended.verdict is Verdict.ADDITIVE_ONLY
	assert _summary(appended) == [("Additive", "E::C")]
	inserted = _compare("enum E { A, B }", "enum E { A, X, B }")
	assert _summary(inserted) == [("Breaking", "E::X")]
	removed = _compare("enum E { A, B }", "enum E { A }")
	assert _summary(removed) == [("Breaking", "E::B")]


def test_variant_payload_changes_are_breaking() -> None:
	report = _compare("enum E { A { x: u8 }, B }", "enum E { A { x: u8, y: Option<u8> }, B(u8) }")
	assert _summary(report) == [("Breaking", "E::A.y"), ("Breaking", "E::B")]


def test_declaration_added_and_removed() -> None:
	report = _compare("struct Old { a: u8 }", "struct New { a: u8 }")
	assert sorted(_summary(report)) == [("Additive", None), ("Breaking", None)]
	assert {f.decl_name for f in report.findings} == {"Old", "New"}


def test_explicit_renames_are_neutral() -> None:
	report = _compare(
		"struct Old { a: u8 }",
		'#[renamed_from("Old")]\nstruct New { #[renamed_from("a")] b: u8 }\n',
	)
	assert report.verdict is Verdict.COMPATIBLE
	assert [f.description for f in report.findings] == [
		"renamed from 'Old' (#[renamed_from])",
		"field renamed from 'a' (#[renamed_from])",
	]


def test_renamed_account_rewrites_discriminator() -> None:
	report = _compare(
		"#[account]\nstruct Vault { a: u64 }\n",
		'#[account]\n#[renamed_from("Vault")]\nstruct Treasury { a: u64 }\n',
	)
	assert report.verdict is Verdict.BREAKING_DETECTED
	assert _summary(report) == [("Breaking", None)]
	assert "discriminator changes" in report.findings[0].description
	assert not report.manual_migration_required
	step = report.findings[0].suggested_migration
	assert (step.operation, step.field_path) == ("rewrite_discriminator", "Treasury")
	assert step.transform == "d308e82b02987577->eeef7bee5901a8fd"
	assert step.fill_bytes == bytes.fromhex("eeef7bee5901a8fd")
	assert report.migration_plan == [step]


def test_kind_and_account_changes() -> None:
	kind = _compare("struct S { a: u8 }", "enum S { A }")
	assert _summary(kind) == [("Breaking", None)]
	assert kind.manual_migration_required
	account = _compare("struct S { a: u8 }", "#[account]\nstruct S { a: u8 }\n")
	assert "#[account] added" in account.findings[0].description


def test_attribute_changes_are_neutral() -> None:
	report = _compare("struct S { a: u8 }", "#[derive(Debug)]\nstruct S { #[deprecated] a: u8 }\n")
	assert report.verdict is Verdict.COMPATIBLE
	assert [(f.field_path, f.description) for f in report.findings] == [
		("S.a", "attributes changed: +#[deprecated]"),
		(None, "attributes changed: +#[derive(Debug)]"),
	]


def test_declaration_version_must_bump_major_on_breaking_change() -> None:
	report = _compare(
		'#[version = "1.0.0"]\nstruct S { a: u32 }\n',
		'#[version = "1.1.0"]\nstruct S { a: u64 }\n',
	)
	descriptions = [f.description for f in report.breaking()]
	assert "breaking changes require a major version bump (1.0.0 -> 1.1.0)" in descriptions
	bumped = _compare(
		'#[version = "1.0.0"]\nstruct S { a: u32 }\n',
		'#[version = "2.0.0"]\nstruct S { a: u64 }\n',
	)
	assert len(bumped.breaking()) == 1


def test_version_decrease_is_breaking() -> None:
	report = _compare('#[version = "1.2.0"]\nstruct S { a: u8 }\n', '#[version = "1.1.0"]\nstruct S { a: u8 }\n')
	assert report.verdict is Verdict.BREAKING_DETECTED
	assert report.findings[0].description == "version decreased from 1.2.0 to 1.1.0"


def test_prerelease_of_same_version_is_a_decrease() -> None:
	down = _compare("struct S { a: u8 }", "struct S { a: u8 }", old_tag="1.0.0", new_tag="1.0.0-alpha")
	assert _summary(down) == [("Breaking", None)]
	assert down.findings[0].description == "version decreased from 1.0.0 to 1.0.0-alpha"
	up = _compare("struct S { a: u8 }", "struct S { a: u8 }", old_tag="1.0.0-rc.1", new_tag="1.0.0")
	assert up.findings == []


def test_schema_version_tags() -> None:
	old = "struct S { a: u32 }"
	new = "struct S { a: u64 }"
	report = _compare(old, new, old_tag="1.0.0", new_tag="1.1.0")
	schema = [f for f in report.findings if f.decl_name == "crate"]
	assert len(schema) == 1
	assert report.from_version == "1.0.0"
	assert report.to_version == "1.1.0"
	zero = _compare(old, new, old_tag="0.1.0", new_tag="0.2.0")
	assert [f for f in zero.findings if f.decl_name == "crate"] == []


def test_invalid_input_is_rejected() -> None:
	with pytest.raises(CompatibilityError) as info:
		_compare("struct S { a: u8 }", "struct S { a: Missing }")
	err = info.value
	assert err.reason_code == "COMPAT_INVALID_INPUT"
	assert err.side == "new"
	assert [d.code for d in err.diagnostics] == ["RESOLVE_UNKNOWN_TYPE"]
	assert err.to_dict()["diagnostics"][0]["code"] == "RESOLVE_UNKNOWN_TYPE"


def test_analyzer_runs_once() -> None:
	analyzer = CompatibilityAnalyzer(_version(WALLET), _version(WALLET))
	assert analyzer.state is AnalyzerState.IDLE
	analyzer.run()
	assert analyzer.state is AnalyzerState.DONE
	with pytest.raises(RuntimeError):
		analyzer.run()


def test_report_serialization() -> None:
	report = _compare("struct Config { a: u64 }", "struct Config { a: u64, b: Option<u32> }", old_tag="1.0.0", new_tag="1.1.0")
	data = report.to_dict()
	assert data["verdict"] == "AdditiveOnly"
	assert data["migration_plan"] == [
		{"operation": "append_field", "field_path": "Config.b", "transform": "option_none", "fill_bytes": "00"},
	]
	text = report.format_human()
	assert text.splitlines()[0] == "verdict: AdditiveOnly (1.0.0 -> 1.1.0)"
	assert "append_field Config.b [option_none] fill=00" in text
