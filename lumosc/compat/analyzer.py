# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Compatibility analyzer.

Compares two compiled schema versions and classifies every change by its
effect on data already stored in the old layout:

- Breaking: existing bytes no longer decode (or decode to something else).
- Additive: existing bytes still decode once a deterministic suffix is
  appended, or need no change at all.
- Neutral: no layout effect (docs, attributes, explicit renames of
  anything but an account, whose discriminator is derived from its name).

Declarations are matched by qualified name; `#[renamed_from("Old")]` on the
new declaration (or field, or variant) marks a rename, otherwise a rename is
a removal plus an addition. Fields and variants are compared positionally
because their order is part of the encoding.

The run is a fixed sequence of states, without retries:
Idle -> MatchDeclarations -> DiffPairs -> Classify -> Aggregate -> Done.
Invalid input on either side raises CompatibilityError before matching.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from lumosc.core.semver import SemVer, parse_semver
from lumosc.core.types_core import (
	ENUM_KIND,
	DeclId,
	DynArray,
	EnumRef,
	FixedArray,
	OptionOf,
	Primitive,
	PublicKeyLike,
	ResolvedDecl,
	ResolvedField,
	ResolvedType,
	Str,
	StructRef,
)
from lumosc.errors import CompatibilityError
from lumosc.layout import FieldLayout
from lumosc.modules import qualify
from lumosc.parser.ast import UNIT, Attribute, find_attribute
from lumosc.schema_version import SchemaVersion
from lumosc.view import account_discriminator

from .migration import encode_default, option_none_bytes, widening_transform
from .report import (
	CompatibilityFinding,
	CompatibilityReport,
	FindingKind,
	MigrationStep,
	Verdict,
	verdict_of,
)

logger = logging.getLogger(__name__)

SCHEMA_DECL_NAME = "crate"

# Attributes whose effect is already visible through the resolved type or
# that are checked separately.
_LAYOUT_ATTRIBUTES = frozenset({"max", "key", "account", "renamed_from", "version"})


class AnalyzerState(Enum):
	IDLE = "Idle"
	MATCH_DECLARATIONS = "MatchDeclarations"
	DIFF_PAIRS = "DiffPairs"
	CLASSIFY = "Classify"
	AGGREGATE = "Aggregate"
	DONE = "Done"


class _Status(Enum):
	SAME = "same"
	GREW = "grew"
	WIDENED = "widened"
	CHANGED = "changed"


@dataclass(frozen=True)
class _Change:
	finding: CompatibilityFinding
	# Stored data needs rewriting and no migration step covers it.
	manual: bool = False


_Pair = Tuple[Optional[DeclId], Optional[DeclId]]


class CompatibilityAnalyzer:
	def __init__(self, old: SchemaVersion, new: SchemaVersion) -> None:
		self.old = old
		self.new = new
		self.state = AnalyzerState.IDLE
		self.pairs: List[_Pair] = []
		self.decl_renames: Dict[str, str] = {}
		self._changes: Dict[_Pair, List[_Change]] = {}
		self._verdicts: Dict[_Pair, Verdict] = {}
		self._in_progress: set[_Pair] = set()
		self._extra: List[_Change] = []

	def run(self) -> CompatibilityReport:
		if self.state is not AnalyzerState.IDLE:
			raise RuntimeError("CompatibilityAnalyzer.run() may only be called once")
		self._check_inputs()
		self._advance(AnalyzerState.MATCH_DECLARATIONS)
		self._match()
		self._advance(AnalyzerState.DIFF_PAIRS)
		for pair in self.pairs:
			self._diff_pair(pair)
		self._advance(AnalyzerState.CLASSIFY)
		self._classify_versions()
		self._advance(AnalyzerState.AGGREGATE)
		report = self._aggregate()
		self._advance(AnalyzerState.DONE)
		return report

	def _advance(self, state: AnalyzerState) -> None:
		logger.debug("compat: %s -> %s", self.state.value, state.value)
		self.state = state

	# ---- Idle: preconditions --------------------------------------------

	def _check_inputs(self) -> None:
		for side, version in (("old", self.old), ("new", self.new)):
			errors = version.errors()
			if errors:
				raise CompatibilityError(
					"COMPAT_INVALID_INPUT",
					f"{side} schema '{version.entry}' has {len(errors)} error(s); fix them before comparing",
					side=side,
					diagnostics=errors,
				)
			for decl in version.resolved.source_decls():
				if version.layouts.get(decl.decl_id) is None:
					raise CompatibilityError(
						"COMPAT_MISSING_LAYOUT",
						f"{side} schema '{version.entry}' has no layout for '{decl.qualname}'",
						side=side,
					)

	# ---- MatchDeclarations ----------------------------------------------

	def _match(self) -> None:
		old_decls = self.old.resolved.decls
		new_decls = self.new.resolved.decls
		for new_name, new_id in new_decls.items():
			marker = _rename_source(self.new.resolved.table.get(new_id).attributes)
			if marker is None:
				continue
			decl = self.new.resolved.table.get(new_id)
			old_name = marker if "::" in marker else qualify(decl.module, marker)
			if old_name in old_decls and old_name not in new_decls and new_name not in old_decls:
				self.decl_renames[old_name] = new_name
		matched_new = set()
		for old_name, old_id in old_decls.items():
			new_name = self.decl_renames.get(old_name, old_name)
			new_id = new_decls.get(new_name)
			if new_id is not None:
				matched_new.add(new_name)
			self.pairs.append((old_id, new_id))
		for new_name, new_id in new_decls.items():
			if new_name not in matched_new:
				self.pairs.append((None, new_id))

	# ---- DiffPairs --------------------------------------------------------

	def _diff_pair(self, pair: _Pair) -> None:
		old_id, new_id = pair
		if old_id is not None and new_id is not None:
			self._diff(old_id, new_id)
			return
		if old_id is not None:
			od = self.old.resolved.table.get(old_id)
			self._changes[pair] = [
				_Change(
					CompatibilityFinding(
						FindingKind.BREAKING,
						od.qualname,
						f"declaration '{od.qualname}' removed",
					),
					manual=True,
				)
			]
			return
		nd = self.new.resolved.table.get(new_id)
		self._changes[pair] = [
			_Change(CompatibilityFinding(FindingKind.ADDITIVE, nd.qualname, f"declaration '{nd.qualname}' added"))
		]

	def _diff(self, old_id: DeclId, new_id: DeclId) -> Verdict:
		pair = (old_id, new_id)
		if pair in self._verdicts:
			return self._verdicts[pair]
		if pair in self._in_progress:
			return Verdict.COMPATIBLE
		self._in_progress.add(pair)
		changes: List[_Change] = []
		self._changes[pair] = changes
		od = self.old.resolved.table.get(old_id)
		nd = self.new.resolved.table.get(new_id)
		name = nd.qualname
		if od.qualname != nd.qualname and od.template is None:
			changes.append(self._decl_rename(od, nd))
		if od.kind != nd.kind:
			changes.append(_breaking(name, None, f"changed from {od.kind} to {nd.kind}", manual=True))
		else:
			if od.is_account != nd.is_account:
				what = "added" if nd.is_account else "removed"
				changes.append(_breaking(name, None, f"#[account] {what}; the account discriminator changes", manual=True))
			if od.kind == ENUM_KIND:
				changes.extend(self._diff_variants(od, nd))
			else:
				changes.extend(
					self._diff_fields(
						name,
						name,
						od.fields,
						nd.fields,
						self._field_layouts(self.old, old_id),
						self._field_layouts(self.new, new_id),
						struct_mode=True,
					)
				)
		changes.extend(_attribute_changes(name, None, od.attributes, nd.attributes, od.doc, nd.doc))
		verdict = verdict_of([c.finding for c in changes])
		self._in_progress.discard(pair)
		self._verdicts[pair] = verdict
		return verdict

	def _decl_rename(self, od: ResolvedDecl, nd: ResolvedDecl) -> _Change:
		"""An account's discriminator hashes its name, so renaming one rewrites every stored header."""
		name = nd.qualname
		if not (od.is_account and nd.is_account and od.name != nd.name):
			return _neutral(name, None, f"renamed from '{od.qualname}' (#[renamed_from])")
		width = self.new.options.account_discriminator_bytes
		old_disc = account_discriminator(od.name, self.old.options.account_discriminator_bytes)
		new_disc = account_discriminator(nd.name, width)
		step = MigrationStep("rewrite_discriminator", name, f"{old_disc.hex()}->{new_disc.hex()}", new_disc)
		return _Change(
			CompatibilityFinding(
				FindingKind.BREAKING,
				name,
				f"account renamed from '{od.qualname}'; the stored discriminator changes",
				None,
				step,
			)
		)

	def _field_layouts(self, version: SchemaVersion, decl_id: DeclId, variant: Optional[str] = None) -> Dict[str, FieldLayout]:
		dl = version.layouts.get(decl_id)
		if dl is None:
			return {}
		if variant is None:
			return {fl.name: fl for fl in dl.fields}
		for vl in dl.variants:
			if vl.name == variant:
				return {fl.name: fl for fl in vl.fields}
		return {}

	def _diff_fields(
		self,
		decl_name: str,
		label: str,
		old_fields: Tuple[ResolvedField, ...],
		new_fields: Tuple[ResolvedField, ...],
		old_layouts: Dict[str, FieldLayout],
		new_layouts: Dict[str, FieldLayout],
		*,
		struct_mode: bool,
	) -> List[_Change]:
		"""
		Positional diff of two field lists.

		In struct mode appending a field with a safe default is Additive; in
		a variant payload any added field is Breaking because the enum has no
		room to grow a variant in place.
		"""
		out: List[_Change] = []
		old_names = [f.name for f in old_fields]
		renames = _field_renames(old_names, new_fields)
		new_ids = [renames.get(f.name, f.name) for f in new_fields]
		old_index = {n: i for i, n in enumerate(old_names)}
		new_index = {n: i for i, n in enumerate(new_ids)}

		for name in old_names:
			if name not in new_index:
				out.append(
					_breaking(decl_name, f"{label}.{name}", f"field '{name}' removed (was at position {old_index[name]})", manual=True)
				)

		common_old = [n for n in old_names if n in new_index]
		common_new = [n for n in new_ids if n in old_index]
		if common_old != common_new:
			for rel, name in enumerate(common_old):
				if common_new.index(name) != rel:
					out.append(
						_breaking(
							decl_name,
							f"{label}.{name}",
							f"field '{name}' moved from position {old_index[name]} to {new_index[name]}",
							manual=True,
						)
					)

		last_common = max((new_index[n] for n in common_new), default=-1)
		for idx, nf in enumerate(new_fields):
			ident = new_ids[idx]
			path = f"{label}.{nf.name}"
			if ident not in old_index:
				if idx < last_common:
					out.append(
						_breaking(
							decl_name,
							path,
							f"field '{nf.name}' inserted at position {idx} before existing fields",
							manual=True,
						)
					)
				elif not struct_mode:
					out.append(_breaking(decl_name, path, f"field '{nf.name}' added to the variant payload", manual=True))
				else:
					out.append(self._appended_field(decl_name, path, nf))
				continue
			of = old_fields[old_index[ident]]
			if of.name != nf.name:
				out.append(_neutral(decl_name, path, f"field renamed from '{of.name}' (#[renamed_from])"))
			out.extend(
				self._compare_field(
					decl_name,
					path,
					of,
					nf,
					old_layouts.get(of.name),
					new_layouts.get(nf.name),
					is_last=struct_mode and idx == len(new_fields) - 1,
				)
			)
			out.extend(_attribute_changes(decl_name, path, of.attributes, nf.attributes, of.doc, nf.doc))
		return out

	def _appended_field(self, decl_name: str, path: str, nf: ResolvedField) -> _Change:
		default = find_attribute(nf.attributes, "default")
		if default is not None:
			values = default.positional()
			fill = None
			if len(values) == 1:
				fill = encode_default(
					nf.type,
					values[0],
					length_prefix_bytes=self.new.options.length_prefix_bytes,
					unit_variant=self._unit_variant,
				)
			if fill is None:
				return _Change(
					CompatibilityFinding(
						FindingKind.ADDITIVE,
						decl_name,
						f"field '{nf.name}' appended with {default.render()}, which has no byte encoding for "
						f"{self.new.resolved.render(nf.type)}",
						path,
					),
					manual=True,
				)
			step = MigrationStep("append_field", path, "default", fill)
			return _Change(
				CompatibilityFinding(
					FindingKind.ADDITIVE,
					decl_name,
					f"field '{nf.name}' appended with {default.render()}",
					path,
					step,
				)
			)
		if isinstance(nf.type, OptionOf):
			step = MigrationStep("append_field", path, "option_none", option_none_bytes(self.new.options.option_tag_bytes))
			return _Change(
				CompatibilityFinding(
					FindingKind.ADDITIVE,
					decl_name,
					f"field '{nf.name}' appended as {self.new.resolved.render(nf.type)} (defaults to None)",
					path,
					step,
				)
			)
		return _breaking(
			decl_name,
			path,
			f"field '{nf.name}' appended without a safe default; use Option<T> or #[default(...)]",
			manual=True,
		)

	def _unit_variant(self, decl_id: int, name: str) -> Optional[int]:
		table = self.new.resolved.table
		if not table.is_defined(decl_id):
			return None
		for v in table.get(decl_id).variants:
			if v.name == name and v.kind == UNIT:
				return v.index
		return None

	def _compare_field(
		self,
		decl_name: str,
		path: str,
		of: ResolvedField,
		nf: ResolvedField,
		old_layout: Optional[FieldLayout],
		new_layout: Optional[FieldLayout],
		*,
		is_last: bool,
	) -> List[_Change]:
		old_key = find_attribute(of.attributes, "key") is not None
		new_key = find_attribute(nf.attributes, "key") is not None
		old_txt = self.old.resolved.render(of.type)
		new_txt = self.new.resolved.render(nf.type)
		if old_key or new_key:
			if old_key != new_key or not self._same_nominal(of.type, nf.type):
				return [_breaking(decl_name, path, f"key reference changed from {old_txt} to {new_txt}", manual=True)]
			return []
		status, transform = self._type_change(of.type, nf.type)
		if status is _Status.SAME:
			return []
		if status is _Status.CHANGED:
			return [_breaking(decl_name, path, f"type changed from {old_txt} to {new_txt}", manual=True)]
		if status is _Status.WIDENED:
			step = MigrationStep("widen_field", path, f"{transform}:{old_txt}->{new_txt}")
			return [
				_Change(
					CompatibilityFinding(
						FindingKind.BREAKING,
						decl_name,
						f"widened from {old_txt} to {new_txt}; stored values need rewriting",
						path,
						step,
					)
				)
			]
		old_size = old_layout.layout.fixed_size_bytes if old_layout is not None else None
		new_size = new_layout.layout.fixed_size_bytes if new_layout is not None else None
		if old_size == new_size:
			return [
				_Change(
					CompatibilityFinding(
						FindingKind.ADDITIVE,
						decl_name,
						f"{new_txt} changed additively; size unchanged",
						path,
					)
				)
			]
		if is_last:
			return [
				_Change(
					CompatibilityFinding(
						FindingKind.ADDITIVE,
						decl_name,
						f"{new_txt} grew from {old_size} to {new_size} bytes; it is the last field",
						path,
					)
				)
			]
		return [
			_breaking(
				decl_name,
				path,
				f"{new_txt} grew from {old_size} to {new_size} bytes and shifts the fields after it",
				manual=True,
			)
		]

	def _same_nominal(self, old_ty: ResolvedType, new_ty: ResolvedType) -> bool:
		if not isinstance(old_ty, (StructRef, EnumRef)) or type(old_ty) is not type(new_ty):
			return False
		od = self.old.resolved.table.get(old_ty.decl_id)
		nd = self.new.resolved.table.get(new_ty.decl_id)
		old_name = od.template or od.qualname
		new_name = nd.template or nd.qualname
		if self.decl_renames.get(old_name, old_name) != new_name:
			return False
		if len(od.type_args) != len(nd.type_args):
			return False
		return all(self._type_change(a, b)[0] is _Status.SAME for a, b in zip(od.type_args, nd.type_args))

	def _type_change(self, old: ResolvedType, new: ResolvedType) -> tuple[_Status, Optional[str]]:
		if isinstance(old, Primitive) and isinstance(new, Primitive):
			if old.name == new.name:
				return _Status.SAME, None
			transform = widening_transform(old, new)
			if transform is not None:
				return _Status.WIDENED, transform
			return _Status.CHANGED, None
		if type(old) is not type(new):
			return _Status.CHANGED, None
		if isinstance(old, PublicKeyLike):
			return (_Status.SAME if old.width == new.width else _Status.CHANGED), None
		if isinstance(old, Str):
			return _bound_change(old.max_len, new.max_len), None
		if isinstance(old, DynArray):
			inner, _ = self._type_change(old.elem, new.elem)
			if inner is not _Status.SAME:
				return _Status.CHANGED, None
			return _bound_change(old.max_len, new.max_len), None
		if isinstance(old, FixedArray):
			inner, _ = self._type_change(old.elem, new.elem)
			if old.length != new.length or inner is not _Status.SAME:
				return _Status.CHANGED, None
			return _Status.SAME, None
		if isinstance(old, OptionOf):
			inner, _ = self._type_change(old.inner, new.inner)
			if inner is _Status.WIDENED:
				return _Status.CHANGED, None
			return inner, None
		if isinstance(old, (StructRef, EnumRef)):
			if not self._same_nominal(old, new):
				return _Status.CHANGED, None
			verdict = self._diff(old.decl_id, new.decl_id)
			if verdict is Verdict.COMPATIBLE:
				return _Status.SAME, None
			if verdict is Verdict.ADDITIVE_ONLY:
				return _Status.GREW, None
			return _Status.CHANGED, None
		return _Status.CHANGED, None

	def _diff_variants(self, od: ResolvedDecl, nd: ResolvedDecl) -> List[_Change]:
		name = nd.qualname
		out: List[_Change] = []
		old_names = [v.name for v in od.variants]
		renames = _field_renames(old_names, nd.variants)
		new_ids = [renames.get(v.name, v.name) for v in nd.variants]
		old_index = {n: i for i, n in enumerate(old_names)}
		new_index = {n: i for i, n in enumerate(new_ids)}

		for vname in old_names:
			if vname not in new_index:
				out.append(
					_breaking(name, f"{name}::{vname}", f"variant '{vname}' removed (was discriminant {old_index[vname]})", manual=True)
				)
		common_old = [n for n in old_names if n in new_index]
		common_new = [n for n in new_ids if n in old_index]
		if common_old != common_new:
			for rel, vname in enumerate(common_old):
				if common_new.index(vname) != rel:
					out.append(
						_breaking(
							name,
							f"{name}::{vname}",
							f"variant '{vname}' moved from position {old_index[vname]} to {new_index[vname]}",
							manual=True,
						)
					)
		last_common = max((new_index[n] for n in common_new), default=-1)
		for idx, nv in enumerate(nd.variants):
			ident = new_ids[idx]
			path = f"{name}::{nv.name}"
			if ident not in old_index:
				if idx < last_common:
					out.append(
						_breaking(
							name,
							path,
							f"variant '{nv.name}' inserted at position {idx}; later discriminants shift",
							manual=True,
						)
					)
				else:
					out.append(
						_Change(
							CompatibilityFinding(
								FindingKind.ADDITIVE,
								name,
								f"variant '{nv.name}' appended (discriminant {idx})",
								path,
							)
						)
					)
				continue
			ov = od.variants[old_index[ident]]
			if ov.name != nv.name:
				out.append(_neutral(name, path, f"variant renamed from '{ov.name}' (#[renamed_from])"))
			if ov.kind != nv.kind:
				out.append(_breaking(name, path, f"payload changed from {ov.kind} to {nv.kind}", manual=True))
			else:
				out.extend(
					self._diff_fields(
						name,
						path,
						ov.fields,
						nv.fields,
						self._field_layouts(self.old, od.decl_id, ov.name),
						self._field_layouts(self.new, nd.decl_id, nv.name),
						struct_mode=False,
					)
				)
			out.extend(_attribute_changes(name, path, ov.attributes, nv.attributes, ov.doc, nv.doc))
		return out

	# ---- Classify -------------------------------------------------------

	def _classify_versions(self) -> None:
		for pair in self.pairs:
			old_id, new_id = pair
			if old_id is None or new_id is None:
				continue
			od = self.old.resolved.table.get(old_id)
			nd = self.new.resolved.table.get(new_id)
			old_v = _version_attr(od)
			new_v = _version_attr(nd)
			if old_v is None or new_v is None:
				continue
			finding = _version_finding(nd.qualname, old_v, new_v, self._verdicts.get(pair) is Verdict.BREAKING_DETECTED)
			if finding is not None:
				self._changes[pair].append(_Change(finding))
		old_tag = parse_semver(self.old.version_tag) if self.old.version_tag else None
		new_tag = parse_semver(self.new.version_tag) if self.new.version_tag else None
		if old_tag is not None and new_tag is not None:
			breaking = any(c.finding.kind is FindingKind.BREAKING for cs in self._changes.values() for c in cs)
			finding = _version_finding(SCHEMA_DECL_NAME, old_tag, new_tag, breaking)
			if finding is not None:
				self._extra.append(_Change(finding))

	# ---- Aggregate ------------------------------------------------------

	def _aggregate(self) -> CompatibilityReport:
		changes = [c for cs in self._changes.values() for c in cs] + self._extra
		findings = [c.finding for c in changes]
		report = CompatibilityReport(
			findings=findings,
			verdict=verdict_of(findings),
			manual_migration_required=any(c.manual for c in changes),
			migration_plan=[f.suggested_migration for f in findings if f.suggested_migration is not None],
			from_version=self.old.version_tag,
			to_version=self.new.version_tag,
		)
		logger.info(
			"compat %s -> %s: %s (%d finding(s))",
			self.old.entry,
			self.new.entry,
			report.verdict.value,
			len(findings),
		)
		return report


def _breaking(decl_name: str, path: Optional[str], description: str, *, manual: bool = False) -> _Change:
	return _Change(CompatibilityFinding(FindingKind.BREAKING, decl_name, description, path), manual=manual)


def _neutral(decl_name: str, path: Optional[str], description: str) -> _Change:
	return _Change(CompatibilityFinding(FindingKind.NEUTRAL, decl_name, description, path))


def _bound_change(old_max: Optional[int], new_max: Optional[int]) -> _Status:
	if old_max == new_max:
		return _Status.SAME
	if old_max is not None and new_max is not None and new_max > old_max:
		return _Status.GREW
	return _Status.CHANGED


def _rename_source(attributes: Tuple[Attribute, ...]) -> Optional[str]:
	attr = find_attribute(attributes, "renamed_from")
	if attr is None:
		return None
	values = attr.positional()
	if len(values) != 1 or not isinstance(values[0], str):
		return None
	return values[0]


def _field_renames(old_names: List[str], new_items) -> Dict[str, str]:
	"""new name -> old name for items carrying a usable #[renamed_from]."""
	new_names = {item.name for item in new_items}
	out: Dict[str, str] = {}
	for item in new_items:
		source = _rename_source(item.attributes)
		if source is not None and source in old_names and source not in new_names and item.name not in old_names:
			out[item.name] = source
	return out


def _attribute_changes(
	decl_name: str,
	path: Optional[str],
	old_attrs: Tuple[Attribute, ...],
	new_attrs: Tuple[Attribute, ...],
	old_doc: Optional[str],
	new_doc: Optional[str],
) -> List[_Change]:
	out: List[_Change] = []
	old_set = [a.render() for a in old_attrs if a.name not in _LAYOUT_ATTRIBUTES]
	new_set = [a.render() for a in new_attrs if a.name not in _LAYOUT_ATTRIBUTES]
	added = [a for a in new_set if a not in old_set]
	removed = [a for a in old_set if a not in new_set]
	if added or removed:
		parts = [f"+{a}" for a in added] + [f"-{a}" for a in removed]
		out.append(_neutral(decl_name, path, f"attributes changed: {', '.join(parts)}"))
	if (old_doc or None) != (new_doc or None):
		out.append(_neutral(decl_name, path, "documentation changed"))
	return out


def _version_attr(decl: ResolvedDecl) -> Optional[SemVer]:
	attr = decl.attribute("version")
	if attr is None:
		return None
	values = attr.positional()
	if len(values) != 1 or not isinstance(values[0], str):
		return None
	return parse_semver(values[0])


def _major_bumped(old: SemVer, new: SemVer) -> bool:
	if new.major > old.major:
		return True
	# 0.x releases treat a minor bump as major.
	return old.major == 0 and new.major == 0 and new.minor > old.minor


def _version_finding(decl_name: str, old: SemVer, new: SemVer, breaking: bool) -> Optional[CompatibilityFinding]:
	if new < old:
		return CompatibilityFinding(
			FindingKind.BREAKING,
			decl_name,
			f"version decreased from {old} to {new}",
		)
	if breaking and not _major_bumped(old, new):
		return CompatibilityFinding(
			FindingKind.BREAKING,
			decl_name,
			f"breaking changes require a major version bump ({old} -> {new})",
		)
	return None


def compare(old: SchemaVersion, new: SchemaVersion) -> CompatibilityReport:
	"""Compare two compiled schema versions. Raises CompatibilityError on invalid input."""
	return CompatibilityAnalyzer(old, new).run()


__all__ = ["AnalyzerState", "CompatibilityAnalyzer", "SCHEMA_DECL_NAME", "compare"]
