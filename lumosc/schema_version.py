# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
SchemaVersion: one fully compiled schema, and its persisted form.

A SchemaVersion is immutable. Callers that need to keep one around (for a
later compatibility check) persist it with `to_payload()`: canonical JSON of
the sources and options plus a sha256 digest. `from_payload()` verifies the
digest and recompiles, which is cheap and deterministic, instead of
serializing the resolved graph itself.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from lumosc.core.diagnostics import Diagnostic
from lumosc.core.options import CompileOptions, DEFAULT_OPTIONS
from lumosc.core.types_core import ResolvedDecl
from lumosc.errors import PayloadError
from lumosc.layout import DeclLayout, LayoutGraph
from lumosc.modules import ModuleGraph, mapping_loader
from lumosc.type_resolver import ResolvedTypeGraph

PAYLOAD_FORMAT = "lumosc-schema"
PAYLOAD_VERSION = 1


def sha256_hex(data: bytes) -> str:
	"""Return sha256 hex digest for `data`."""
	return hashlib.sha256(data).hexdigest()


def canonical_json_bytes(obj: Any) -> bytes:
	"""
	Render JSON deterministically.

	Rules:
	- UTF-8
	- no insignificant whitespace
	- stable key ordering
	"""
	return json.dumps(obj, sort_keys=True, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


@dataclass(frozen=True, eq=False)
class SchemaVersion:
	entry: str
	modules: ModuleGraph
	resolved: ResolvedTypeGraph
	layouts: LayoutGraph
	diagnostics: Tuple[Diagnostic, ...] = ()
	version_tag: Optional[str] = None
	options: CompileOptions = DEFAULT_OPTIONS

	def has_errors(self) -> bool:
		return any(d.is_error for d in self.diagnostics)

	def errors(self) -> list[Diagnostic]:
		return [d for d in self.diagnostics if d.is_error]

	def sources(self) -> Dict[str, str]:
		return self.modules.files()

	def decl(self, name: str) -> Optional[ResolvedDecl]:
		return self.resolved.lookup(name)

	def layout(self, name: str) -> Optional[DeclLayout]:
		return self.layouts.by_name(name)

	def size_of(self, name: str) -> Optional[int]:
		return self.layouts.size_of(name)

	# ---- persistence -----------------------------------------------------

	def _payload_body(self) -> dict[str, Any]:
		return {
			"format": PAYLOAD_FORMAT,
			"format_version": PAYLOAD_VERSION,
			"entry": self.entry,
			"version_tag": self.version_tag,
			"options": self.options.to_dict(),
			"sources": self.sources(),
		}

	def to_payload(self) -> bytes:
		body = self._payload_body()
		return canonical_json_bytes({"schema": body, "sha256": sha256_hex(canonical_json_bytes(body))})

	@classmethod
	def from_payload(cls, data: bytes) -> "SchemaVersion":
		try:
			obj = json.loads(data.decode("utf-8"))
		except (UnicodeDecodeError, ValueError) as err:
			raise PayloadError("PAYLOAD_MALFORMED", f"payload is not UTF-8 JSON: {err}") from err
		if not isinstance(obj, dict) or not isinstance(obj.get("schema"), dict) or not isinstance(obj.get("sha256"), str):
			raise PayloadError("PAYLOAD_MALFORMED", "payload must be an object with 'schema' and 'sha256'")
		body = obj["schema"]
		got = sha256_hex(canonical_json_bytes(body))
		if got != obj["sha256"]:
			raise PayloadError(
				"PAYLOAD_DIGEST_MISMATCH",
				"payload digest does not match its contents",
				sha256_expected=obj["sha256"],
				sha256_got=got,
			)
		if body.get("format") != PAYLOAD_FORMAT or body.get("format_version") != PAYLOAD_VERSION:
			raise PayloadError(
				"PAYLOAD_UNSUPPORTED",
				f"unsupported payload format {body.get('format')!r} version {body.get('format_version')!r}",
			)
		sources = body.get("sources")
		entry = body.get("entry")
		if not isinstance(sources, dict) or not isinstance(entry, str) or entry not in sources:
			raise PayloadError("PAYLOAD_MALFORMED", "payload does not contain its entry source")
		options = CompileOptions.from_dict(body.get("options") or {})

		from lumosc.session import Session

		return Session(mapping_loader(sources), options).compile(entry, version_tag=body.get("version_tag"))


__all__ = ["SchemaVersion", "canonical_json_bytes", "sha256_hex", "PAYLOAD_FORMAT", "PAYLOAD_VERSION"]
