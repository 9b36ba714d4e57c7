# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Command-line driver.

    python -m lumosc check ENTRY [--root DIR] [--json] [--emit-payload OUT]
    python -m lumosc compat OLD NEW [--json]

`compat` accepts either schema entry files or payloads written by
`check --emit-payload`. Everything the driver does
is available through `Session`, `compare` and `build_view`.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from lumosc.compat import compare
from lumosc.core.diagnostics import Diagnostic, diag_to_json
from lumosc.core.options import CompileOptions
from lumosc.errors import LumoscError
from lumosc.modules import filesystem_loader
from lumosc.schema_version import SchemaVersion
from lumosc.session import Session

logger = logging.getLogger(__name__)


def _configure_logging(verbosity: int) -> None:
	if verbosity <= 0:
		return
	logging.basicConfig(
		level=logging.DEBUG if verbosity > 1 else logging.INFO,
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
		stream=sys.stderr,
	)


def _options_from_args(args: argparse.Namespace) -> CompileOptions:
	return CompileOptions(
		max_generic_depth=args.max_generic_depth,
		warn_unknown_attributes=not args.no_unknown_attribute_warnings,
	)


def _compile_path(path: Path, root: Optional[Path], options: CompileOptions, version_tag: Optional[str]) -> SchemaVersion:
	root = root if root is not None else path.parent
	try:
		entry = path.resolve().relative_to(root.resolve()).as_posix()
	except ValueError:
		entry = path.name
	return Session(filesystem_loader(root), options).compile(entry, version_tag=version_tag)


def _load_version(path: Path, options: CompileOptions, version_tag: Optional[str]) -> SchemaVersion:
	"""Schema source files compile; anything else is read as a persisted payload."""
	if path.suffix == options.file_extension:
		return _compile_path(path, None, options, version_tag)
	return SchemaVersion.from_payload(path.read_bytes())


def _print_diagnostics(diags) -> None:
	for d in diags:
		print(d.format_human(), file=sys.stderr)


def _error_json(exit_code: int, err: LumoscError) -> str:
	return json.dumps({"exit_code": exit_code, "error": err.to_dict(), "diagnostics": []})


def _cmd_check(args: argparse.Namespace) -> int:
	options = _options_from_args(args)
	version = _compile_path(args.entry, args.root, options, args.version_tag)
	diags: list[Diagnostic] = list(version.diagnostics)
	exit_code = 1 if version.has_errors() else 0
	sizes = {dl.qualname: dl.spec.fixed_size_bytes for dl in version.layouts if not dl.is_dynamic}
	if exit_code == 0 and args.emit_payload is not None:
		args.emit_payload.write_bytes(version.to_payload())
	if args.json:
		payload = {
			"exit_code": exit_code,
			"entry": version.entry,
			"diagnostics": [diag_to_json(d) for d in diags],
			"sizes": sizes,
		}
		print(json.dumps(payload))
		return exit_code
	_print_diagnostics(diags)
	if exit_code == 0:
		for name, size in sorted(sizes.items()):
			print(f"{name}: {size} bytes")
	return exit_code


def _cmd_compat(args: argparse.Namespace) -> int:
	options = _options_from_args(args)
	try:
		old = _load_version(args.old, options, args.from_version)
		new = _load_version(args.new, options, args.to_version)
		report = compare(old, new)
	except LumoscError as err:
		if args.json:
			print(_error_json(1, err))
		else:
			print(f"error: {err.format_human()}", file=sys.stderr)
		return 1
	exit_code = 1 if report.is_breaking else 0
	if args.json:
		out = report.to_dict()
		out["exit_code"] = exit_code
		print(json.dumps(out))
	else:
		print(report.format_human())
	return exit_code


def main(argv: list[str] | None = None) -> int:
	"""Entry point for the lumosc CLI."""
	parser = argparse.ArgumentParser(prog="lumosc", description="Lumos schema compiler")
	parser.add_argument("-v", "--verbose", action="count", default=0, help="Log progress (-vv for debug traces)")
	parser.add_argument(
		"--max-generic-depth",
		type=int,
		default=CompileOptions.max_generic_depth,
		help="Maximum nesting of generic instantiations",
	)
	parser.add_argument(
		"--no-unknown-attribute-warnings",
		action="store_true",
		help="Do not warn about attributes the compiler does not interpret",
	)
	sub = parser.add_subparsers(dest="command", required=True)

	check = sub.add_parser("check", help="Parse, resolve and lay out a schema")
	check.add_argument("entry", type=Path, help="Entry schema file")
	check.add_argument("--root", type=Path, default=None, help="Module root (defaults to the entry's directory)")
	check.add_argument("--json", action="store_true", help="Emit diagnostics and sizes as JSON")
	check.add_argument("--version-tag", default=None, help="Version tag recorded in the emitted payload")
	check.add_argument("--emit-payload", type=Path, default=None, help="Write the persisted schema payload here")
	check.set_defaults(func=_cmd_check)

	compat = sub.add_parser("compat", help="Compare two schema versions")
	compat.add_argument("old", type=Path, help="Old schema entry file or payload")
	compat.add_argument("new", type=Path, help="New schema entry file or payload")
	compat.add_argument("--json", action="store_true", help="Emit the report as JSON")
	compat.add_argument("--from-version", default=None, help="Version tag of OLD (source files only)")
	compat.add_argument("--to-version", default=None, help="Version tag of NEW (source files only)")
	compat.set_defaults(func=_cmd_compat)

	args = parser.parse_args(argv)
	_configure_logging(args.verbose)
	return args.func(args)


__all__ = ["main"]
