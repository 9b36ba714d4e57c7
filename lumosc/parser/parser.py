# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Lark-backed parser for `.lumos` schema sources.

`parse_source` never raises on malformed input: a failed whole-file parse
falls back to parsing each top-level item on its own, so one broken struct
costs one diagnostic instead of the whole file. Positions stay exact because
each item is parsed inside a copy of the file where everything before it is
blanked out (newlines kept).
"""

from __future__ import annotations

import codecs
import logging
import re
from pathlib import Path
from typing import List, Optional, Tuple

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from lumosc.core.diagnostics import DiagnosticSink
from lumosc.core.options import CompileOptions, DEFAULT_OPTIONS
from lumosc.core.span import SourceText, Span

from .ast import (
	PRIVATE,
	PUBLIC,
	STRUCT,
	TUPLE,
	UNIT,
	AttrArg,
	Attribute,
	Declaration,
	DynArrayType,
	EnumDecl,
	Field,
	FixedArrayType,
	ModDecl,
	PathLit,
	PathType,
	SourceModule,
	StructDecl,
	TypeAliasDecl,
	TypeRef,
	UseDecl,
	Variant,
)

logger = logging.getLogger(__name__)

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	start="start",
	propagate_positions=True,
	maybe_placeholders=False,
)

_PATH_HEADS = {"crate", "super", "self"}

# `import { A, B } from "./x.lumos";` splits into two item ranges at the `}`.
_LEGACY_IMPORT_HEAD = re.compile(r"(?:\s|//[^\n]*|/\*.*?\*/)*(?P<kw>import)\s*\{[^{}]*\}\s*\Z", re.S)
_LEGACY_IMPORT_TAIL = re.compile(r'\s*from\s*"[^"\n]*"\s*;\s*\Z')


def _decode_string_token(tok: Token) -> str:
	"""
	Decode STRING tokens. Python-style escapes are interpreted first
	(unicode_escape), then the code points are reinterpreted as raw bytes and
	decoded as UTF-8 so non-ASCII text round-trips.
	"""
	content = tok.value[1:-1]
	unescaped = codecs.decode(content, "unicode_escape")
	try:
		return unescaped.encode("latin-1").decode("utf-8")
	except (UnicodeEncodeError, UnicodeDecodeError):
		return unescaped


def _parse_int(text: str) -> int:
	cleaned = text.replace("_", "")
	neg = cleaned.startswith("-")
	if neg:
		cleaned = cleaned[1:]
	value = int(cleaned, 16) if cleaned.lower().startswith("0x") else int(cleaned)
	return -value if neg else value


def parse_source(
	text: str,
	path: str,
	*,
	options: CompileOptions = DEFAULT_OPTIONS,
	sink: Optional[DiagnosticSink] = None,
) -> Tuple[SourceModule, DiagnosticSink]:
	"""Parse one file into a SourceModule; diagnostics go to `sink`."""
	sink = sink if sink is not None else DiagnosticSink(phase="parser")
	src = SourceText(path, text)
	builder = _TreeAdapter(src, sink, options)
	try:
		tree = _PARSER.parse(text)
	except UnexpectedInput:
		logger.debug("full parse of %s failed; recovering item by item", path)
		items: List[Tree] = []
		ranges = split_top_level_items(text)
		skip = False
		for idx, (start, end) in enumerate(ranges):
			if skip:
				skip = False
				continue
			legacy = _legacy_import(text, ranges, idx)
			if legacy is not None:
				sink.error(
					"SYNTAX_LEGACY_IMPORT",
					"JavaScript-style 'import { ... } from \"...\"' is not supported",
					src.span_at(*legacy),
					phase="parser",
					notes=["declare the file with `mod name;` and bring items into scope with `use`"],
				)
				skip = True
				continue
			chunk = _blank(text[:start]) + text[start:end]
			try:
				sub = _PARSER.parse(chunk)
			except UnexpectedInput as err:
				sink.error(_syntax_code(err), _syntax_message(err), src.span_for(err), phase="parser")
				continue
			items.extend(c for c in sub.children if isinstance(c, Tree))
		tree = Tree("start", items)
	return builder.build_module(tree), sink


def _legacy_import(text: str, ranges: List[Tuple[int, int]], idx: int) -> Optional[Tuple[int, int]]:
	if idx + 1 >= len(ranges):
		return None
	start, end = ranges[idx]
	head = _LEGACY_IMPORT_HEAD.match(text, start, end)
	if head is None:
		return None
	tail_start, tail_end = ranges[idx + 1]
	if _LEGACY_IMPORT_TAIL.match(text, tail_start, tail_end) is None:
		return None
	return head.start("kw"), tail_end


def _blank(prefix: str) -> str:
	return "".join(ch if ch == "\n" else " " for ch in prefix)


def split_top_level_items(text: str) -> List[Tuple[int, int]]:
	"""
	Split source text into top-level item ranges.

	An item ends at a `;` at nesting depth zero or at the `}` that returns the
	depth to zero. Strings and comments are skipped. An unterminated item runs
	to the end of the file.
	"""
	ranges: List[Tuple[int, int]] = []
	depth = 0
	start = 0
	i = 0
	n = len(text)
	while i < n:
		ch = text[i]
		if ch == "/" and text.startswith("//", i):
			nl = text.find("\n", i)
			i = n if nl < 0 else nl + 1
			continue
		if ch == "/" and text.startswith("/*", i):
			close = text.find("*/", i + 2)
			i = n if close < 0 else close + 2
			continue
		if ch == '"':
			i += 1
			while i < n and text[i] != '"':
				i += 2 if text[i] == "\\" else 1
			i += 1
			continue
		if ch in "{[(":
			depth += 1
		elif ch in "}])":
			depth = max(0, depth - 1)
			if ch == "}" and depth == 0:
				ranges.append((start, i + 1))
				start = i + 1
		elif ch == ";" and depth == 0:
			ranges.append((start, i + 1))
			start = i + 1
		i += 1
	if text[start:].strip():
		ranges.append((start, n))
	return ranges


def _syntax_code(err: UnexpectedInput) -> str:
	if isinstance(err, UnexpectedEOF):
		return "SYNTAX_UNEXPECTED_EOF"
	if isinstance(err, UnexpectedCharacters):
		return "SYNTAX_UNEXPECTED_CHARACTER"
	if isinstance(err, UnexpectedToken) and err.token.type == "$END":
		return "SYNTAX_UNEXPECTED_EOF"
	return "SYNTAX_UNEXPECTED_TOKEN"


def _syntax_message(err: UnexpectedInput) -> str:
	if isinstance(err, UnexpectedToken):
		if err.token.type == "$END":
			return "unexpected end of input"
		expected = sorted(e for e in (err.expected or ()) if not e.startswith("__"))
		msg = f"unexpected token {err.token.value!r}"
		if expected:
			msg += f"; expected one of: {', '.join(expected[:8])}"
		return msg
	if isinstance(err, UnexpectedCharacters):
		return f"unexpected character {err.char!r}"
	return "unexpected end of input"


class _TreeAdapter:
	"""Builds frozen AST nodes from lark trees for a single file."""

	def __init__(self, src: SourceText, sink: DiagnosticSink, options: CompileOptions) -> None:
		self.src = src
		self.sink = sink
		self.options = options

	def span(self, node: Tree | Token) -> Span:
		if isinstance(node, Tree):
			return self.src.span_for(node.meta)
		return self.src.span_for(node)

	def build_module(self, tree: Tree) -> SourceModule:
		mods: List[ModDecl] = []
		uses: List[UseDecl] = []
		decls: List[Declaration] = []
		for item in tree.children:
			if not isinstance(item, Tree) or _name(item) != "item":
				continue
			attrs, doc, vis, body = self._split_prefix(item.children)
			if body is None:
				continue
			kind = _name(body)
			if kind == "mod_decl":
				mods.append(ModDecl(name=_tok(body, "NAME").value, visibility=vis, attributes=attrs, span=self.span(item)))
			elif kind == "use_decl":
				uses.append(self._build_use(body, vis, item))
			elif kind == "struct_decl":
				decls.append(self._build_struct(body, attrs, doc, vis, item))
			elif kind == "enum_decl":
				decls.append(self._build_enum(body, attrs, doc, vis, item))
			elif kind == "alias_decl":
				decls.append(self._build_alias(body, attrs, doc, vis, item))
		return SourceModule(
			path=self.src.path,
			text=self.src.text,
			mods=tuple(mods),
			uses=tuple(uses),
			decls=tuple(decls),
		)

	def _split_prefix(self, children) -> tuple[tuple[Attribute, ...], Optional[str], str, Optional[Tree]]:
		"""Separate leading attributes/doc comments/`pub` from the item body."""
		attrs: List[Attribute] = []
		doc_lines: List[str] = []
		vis = PRIVATE
		body: Optional[Tree] = None
		for child in children:
			if isinstance(child, Token):
				if child.type == "DOC_COMMENT":
					doc_lines.append(_doc_text(child.value))
				elif child.type == "PUB":
					vis = PUBLIC
				continue
			name = _name(child)
			if name.startswith("attr_"):
				attrs.append(self._build_attribute(child))
			else:
				body = child
		doc = "\n".join(doc_lines) if doc_lines else None
		return tuple(attrs), doc, vis, body

	# ---- attributes ---------------------------------------------------

	def _build_attribute(self, tree: Tree) -> Attribute:
		kind = _name(tree)
		name = _tok(tree, "NAME").value
		span = self.span(tree)
		if kind == "attr_flag":
			return Attribute(name=name, span=span)
		if kind == "attr_assign":
			lit = next(c for c in tree.children if isinstance(c, Tree))
			return Attribute(
				name=name,
				args=(AttrArg(value=self._build_literal(lit), span=self.span(lit)),),
				assigned=True,
				span=span,
			)
		args: List[AttrArg] = []
		args_node = next((c for c in tree.children if isinstance(c, Tree) and _name(c) == "attr_args"), None)
		if args_node is not None:
			for arg in args_node.children:
				if not isinstance(arg, Tree):
					continue
				lit = next(c for c in arg.children if isinstance(c, Tree))
				key = None
				if _name(arg) == "named_arg":
					key = _tok(arg, "NAME").value
				args.append(AttrArg(value=self._build_literal(lit), name=key, span=self.span(arg)))
		return Attribute(name=name, args=tuple(args), span=span)

	def _build_literal(self, tree: Tree):
		kind = _name(tree)
		toks = [c for c in tree.children if isinstance(c, Token)]
		if kind == "int_lit":
			return _parse_int(toks[0].value)
		if kind == "float_lit":
			return float(toks[0].value.replace("_", ""))
		if kind == "str_lit":
			return _decode_string_token(toks[0])
		if kind == "true_lit":
			return True
		if kind == "false_lit":
			return False
		return PathLit(tuple(t.value for t in toks))

	# ---- declarations -------------------------------------------------

	def _build_use(self, body: Tree, vis: str, item: Tree) -> UseDecl:
		path_node = next(c for c in body.children if isinstance(c, Tree) and _name(c) == "path")
		segments = self._build_path(path_node)
		alias_tok = [c for c in body.children if isinstance(c, Token) and c.type == "NAME"]
		alias = alias_tok[-1].value if alias_tok else None
		if len(segments) < 2:
			self.sink.error(
				"SYNTAX_INVALID_PATH",
				f"`use {'::'.join(segments)}` must name an item inside a module",
				self.span(path_node),
			)
		elif segments[-1] in _PATH_HEADS:
			self.sink.error(
				"SYNTAX_INVALID_PATH",
				f"`use` path must end in an item name, not '{segments[-1]}'",
				self.span(path_node),
			)
		return UseDecl(path=segments, alias=alias, visibility=vis, span=self.span(item))

	def _build_path(self, node: Tree) -> tuple[str, ...]:
		toks = [c for c in node.children if isinstance(c, Token)]
		segments = tuple(t.value for t in toks)
		for idx, tok in enumerate(toks):
			if tok.type == "CRATE" and idx != 0:
				self.sink.error("SYNTAX_INVALID_PATH", "'crate' can only appear at the start of a path", self.span(tok))
			elif tok.type == "SELF" and idx != 0:
				self.sink.error("SYNTAX_INVALID_PATH", "'self' can only appear at the start of a path", self.span(tok))
			elif tok.type == "SUPER" and any(t.type not in ("SUPER", "SELF") for t in toks[:idx]):
				self.sink.error("SYNTAX_INVALID_PATH", "'super' must precede every named segment", self.span(tok))
		return segments

	def _generic_params(self, body: Tree) -> tuple[str, ...]:
		node = next((c for c in body.children if isinstance(c, Tree) and _name(c) == "generic_params"), None)
		if node is None:
			return ()
		return tuple(c.value for c in node.children if isinstance(c, Token))

	def _build_struct(self, body: Tree, attrs, doc, vis, item: Tree) -> StructDecl:
		fl = next((c for c in body.children if isinstance(c, Tree) and _name(c) == "field_list"), None)
		return StructDecl(
			name=_tok(body, "NAME").value,
			fields=self._build_fields(fl),
			visibility=vis,
			type_params=self._generic_params(body),
			attributes=attrs,
			doc=doc,
			span=self.span(item),
		)

	def _build_fields(self, field_list: Optional[Tree]) -> tuple[Field, ...]:
		if field_list is None:
			return ()
		out: List[Field] = []
		for node in field_list.children:
			if not isinstance(node, Tree):
				continue
			attrs, doc, vis, ty_node = self._split_prefix(node.children)
			out.append(
				Field(
					name=_tok(node, "NAME").value,
					type_ref=self._build_type(ty_node),
					attributes=attrs,
					doc=doc,
					visibility=vis,
					span=self.span(node),
				)
			)
		return tuple(out)

	def _build_enum(self, body: Tree, attrs, doc, vis, item: Tree) -> EnumDecl:
		vl = next((c for c in body.children if isinstance(c, Tree) and _name(c) == "variant_list"), None)
		variants: List[Variant] = []
		if vl is not None:
			for node in vl.children:
				if isinstance(node, Tree):
					variants.append(self._build_variant(node))
		return EnumDecl(
			name=_tok(body, "NAME").value,
			variants=tuple(variants),
			visibility=vis,
			type_params=self._generic_params(body),
			attributes=attrs,
			doc=doc,
			span=self.span(item),
		)

	def _build_variant(self, node: Tree) -> Variant:
		v_attrs, v_doc, _vis, payload = self._split_prefix(node.children)
		name = _tok(node, "NAME").value
		kind = UNIT
		fields: tuple[Field, ...] = ()
		if payload is not None and _name(payload) == "struct_body":
			kind = STRUCT
			fl = next((c for c in payload.children if isinstance(c, Tree) and _name(c) == "field_list"), None)
			fields = self._build_fields(fl)
		elif payload is not None and _name(payload) == "tuple_body":
			kind = TUPLE
			tl = next((c for c in payload.children if isinstance(c, Tree) and _name(c) == "type_list"), None)
			types = [c for c in tl.children if isinstance(c, Tree)] if tl is not None else []
			fields = tuple(
				Field(name=f"_{idx}", type_ref=self._build_type(t), span=self.span(t))
				for idx, t in enumerate(types)
			)
		return Variant(name=name, kind=kind, fields=fields, attributes=v_attrs, doc=v_doc, span=self.span(node))

	def _build_alias(self, body: Tree, attrs, doc, vis, item: Tree) -> TypeAliasDecl:
		target = [c for c in body.children if isinstance(c, Tree) and _name(c) != "generic_params"][-1]
		return TypeAliasDecl(
			name=_tok(body, "NAME").value,
			target=self._build_type(target),
			visibility=vis,
			type_params=self._generic_params(body),
			attributes=attrs,
			doc=doc,
			span=self.span(item),
		)

	# ---- types --------------------------------------------------------

	def _build_type(self, node: Tree) -> TypeRef:
		kind = _name(node)
		span = self.span(node)
		if kind == "fixed_array":
			elem_node = next(c for c in node.children if isinstance(c, Tree))
			len_tok = _tok(node, "INT")
			length = _parse_int(len_tok.value)
			if length < 1 or length > self.options.max_array_length:
				self.sink.error(
					"SYNTAX_INVALID_ARRAY_LENGTH",
					f"array length {length} must be between 1 and {self.options.max_array_length}",
					self.span(len_tok),
					notes=["use a dynamic array `[T]` with #[max(N)] for larger collections"],
				)
			return FixedArrayType(elem=self._build_type(elem_node), length=length, span=span)
		if kind == "dyn_array":
			elem_node = next(c for c in node.children if isinstance(c, Tree))
			return DynArrayType(elem=self._build_type(elem_node), span=span)
		path_node = next(c for c in node.children if isinstance(c, Tree) and _name(c) == "path")
		args_node = next((c for c in node.children if isinstance(c, Tree) and _name(c) == "type_args"), None)
		args: tuple[TypeRef, ...] = ()
		if args_node is not None:
			args = tuple(self._build_type(c) for c in args_node.children if isinstance(c, Tree))
		return PathType(segments=self._build_path(path_node), args=args, span=span)


def _doc_text(raw: str) -> str:
	text = raw[3:]
	return text[1:] if text.startswith(" ") else text


def _tok(tree: Tree, ttype: str) -> Token:
	return next(c for c in tree.children if isinstance(c, Token) and c.type == ttype)


def _name(node: Tree | Token) -> str:
	if isinstance(node, Tree):
		data = node.data
		if isinstance(data, Token):
			return data.value
		return data
	if isinstance(node, Token):
		return node.type
	return str(node)


__all__ = ["parse_source", "split_top_level_items"]
