# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from lumosc.modules import ROOT, build_graph, filesystem_loader, mapping_loader, module_name, qualify
from lumosc.session import Session


def _codes(diags) -> list[str]:
	return [d.code for d in diags]


def test_graph_follows_sibling_and_index_files() -> None:
	files = {
		"main.lumos": "mod models;\npub mod accounts;\nuse models::User;\nstruct Root { user: User }\n",
		"models.lumos": "pub struct User { id: u64 }\n",
		"accounts/mod.lumos": "pub mod inner;\npub struct Vault { owner: crate::models::User }\n",
		"accounts/inner.lumos": "use super::super::models::User;\npub struct Deep { u: User }\n",
	}
	graph, diags = build_graph("main.lumos", mapping_loader(files))
	assert diags == []
	assert list(graph.modules) == [ROOT, ("models",), ("accounts",), ("accounts", "inner")]
	assert graph.get(("accounts", "inner")).path == "accounts/inner.lumos"
	assert graph.root.children == {"models": ("models",), "accounts": ("accounts",)}
	binding = graph.root.imports["User"]
	assert (binding.target, binding.item) == (("models",), "User")
	deep = graph.get(("accounts", "inner")).imports["User"]
	assert deep.target == ("models",)
	assert set(graph.files()) == set(files)


def test_module_names() -> None:
	assert module_name(ROOT) == "crate"
	assert module_name(("a", "b")) == "crate::a::b"
	assert qualify(ROOT, "Config") == "Config"
	assert qualify(("models",), "User") == "models::User"


def test_missing_entry() -> None:
	graph, diags = build_graph("main.lumos", mapping_loader({}))
	assert _codes(diags) == ["MODULE_NOT_FOUND"]
	assert len(graph) == 0


def test_missing_module_lists_candidates() -> None:
	_graph, diags = build_graph("main.lumos", mapping_loader({"main.lumos": "mod gone;\n"}))
	assert _codes(diags) == ["MODULE_NOT_FOUND"]
	assert diags[0].notes == ["tried 'gone.lumos'", "tried 'gone/mod.lumos'"]
	assert diags[0].span.line == 1


def test_ambiguous_module_file() -> None:
	files = {
		"main.lumos": "mod a;\n",
		"a.lumos": "struct A { x: u8 }\n",
		"a/mod.lumos": "struct A { x: u8 }\n",
	}
	graph, diags = build_graph("main.lumos", mapping_loader(files))
	assert _codes(diags) == ["MODULE_AMBIGUOUS"]
	assert ("a",) not in graph.modules


def test_module_cycle() -> None:
	files = {
		"main.lumos": "mod a;\n",
		"a.lumos": "mod b;\n",
		"b.lumos": "mod a;\n",
	}
	_graph, diags = build_graph("main.lumos", mapping_loader(files))
	assert _codes(diags) == ["MODULE_CYCLE"]
	assert "main.lumos -> a.lumos -> b.lumos -> a.lumos" in diags[0].message


def test_duplicate_mod_declaration() -> None:
	files = {"main.lumos": "mod a;\nmod a;\n", "a.lumos": ""}
	_graph, diags = build_graph("main.lumos", mapping_loader(files))
	assert _codes(diags) == ["MODULE_DUPLICATE"]
	assert diags[0].span.line == 2


def test_super_in_root_module() -> None:
	_graph, diags = build_graph("main.lumos", mapping_loader({"main.lumos": "use super::X;\n"}))
	assert _codes(diags) == ["MODULE_SUPER_AT_ROOT"]


def test_private_item_is_not_importable_from_outside() -> None:
	files = {
		"main.lumos": "mod models;\nuse models::Hidden;\n",
		"models.lumos": "struct Hidden { a: u8 }\n",
	}
	_graph, diags = build_graph("main.lumos", mapping_loader(files))
	assert _codes(diags) == ["RESOLVE_PRIVATE_ITEM"]
	assert diags[0].notes == ["mark it `pub` to use it from crate"]


def test_private_module_on_path() -> None:
	files = {
		"main.lumos": "pub mod a;\nuse a::b::Item;\n",
		"a/mod.lumos": "mod b;\n",
		"a/b.lumos": "pub struct Item { x: u8 }\n",
	}
	_graph, diags = build_graph("main.lumos", mapping_loader(files))
	assert _codes(diags) == ["RESOLVE_PRIVATE_ITEM"]
	assert "crate::a::b" in diags[0].message


def test_pub_use_reexport() -> None:
	files = {
		"main.lumos": "mod api;\nuse api::Thing;\n",
		"api/mod.lumos": "mod impls;\npub use self::impls::Thing;\n",
		"api/impls.lumos": "pub struct Thing { a: u8 }\n",
	}
	graph, diags = build_graph("main.lumos", mapping_loader(files))
	assert diags == []
	binding = graph.root.imports["Thing"]
	assert binding.target == ("api", "impls")


def test_unknown_module_and_item() -> None:
	files = {
		"main.lumos": "mod a;\nuse nope::X;\nuse a::Missing;\n",
		"a.lumos": "",
	}
	_graph, diags = build_graph("main.lumos", mapping_loader(files))
	assert _codes(diags) == ["RESOLVE_UNKNOWN_MODULE", "RESOLVE_UNKNOWN_IMPORT"]


def test_import_conflicts() -> None:
	files = {
		"main.lumos": "mod a;\nuse a::X;\nuse a::Y as X;\nuse a::Y;\nstruct Y { b: u8 }\n",
		"a.lumos": "pub struct X { a: u8 }\npub struct Y { a: u8 }\n",
	}
	_graph, diags = build_graph("main.lumos", mapping_loader(files))
	assert _codes(diags) == ["RESOLVE_AMBIGUOUS_IMPORT", "RESOLVE_AMBIGUOUS_IMPORT"]


def test_duplicate_declaration() -> None:
	_graph, diags = build_graph(
		"main.lumos",
		mapping_loader({"main.lumos": "struct A { a: u8 }\nenum A { X }\n"}),
	)
	assert _codes(diags) == ["RESOLVE_DUPLICATE_DECL"]
	assert diags[0].span.line == 2


def test_filesystem_loader(tmp_path) -> None:
	(tmp_path / "schema").mkdir()
	(tmp_path / "schema" / "main.lumos").write_text("mod types;\n", encoding="utf-8")
	(tmp_path / "schema" / "types.lumos").write_text("pub struct T { a: u8 }\n", encoding="utf-8")
	loader = filesystem_loader(tmp_path / "schema")
	graph, diags = build_graph("main.lumos", loader)
	assert diags == []
	assert graph.get(("types",)).path == "types.lumos"
	with pytest.raises(FileNotFoundError):
		loader("nope.lumos")


def test_unreadable_module_file_is_a_diagnostic(tmp_path) -> None:
	(tmp_path / "main.lumos").write_text("mod m;\nstruct Ok { a: u8 }\n", encoding="utf-8")
	(tmp_path / "m.lumos").write_bytes(b"struct \xff {}")
	version = Session(filesystem_loader(tmp_path)).compile("main.lumos")
	assert _codes(version.diagnostics) == ["MODULE_LOAD_ERROR"]
	assert "'m.lumos'" in version.diagnostics[0].message
	assert "not valid UTF-8" in version.diagnostics[0].message
	assert version.diagnostics[0].span.line == 1
	assert version.size_of("Ok") == 1


def test_loader_os_errors_become_diagnostics() -> None:
	def loader(path: str) -> str:
		if path == "main.lumos":
			return "mod locked;\n"
		raise PermissionError(13, "Permission denied", path)

	graph, diags = build_graph("main.lumos", loader)
	assert _codes(diags) == ["MODULE_LOAD_ERROR"]
	assert diags[0].message == "cannot read 'locked.lumos': Permission denied"
	assert list(graph.modules) == [ROOT]

	def broken_entry(path: str) -> str:
		raise IsADirectoryError(21, "Is a directory", path)

	graph, diags = build_graph("main.lumos", broken_entry)
	assert _codes(diags) == ["MODULE_LOAD_ERROR"]
	assert diags[0].span.file == "main.lumos"
	assert graph.modules == {}
