# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Compiler configuration threaded through a Session."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Mapping


@dataclass(frozen=True)
class CompileOptions:
	"""
	Knobs shared by every stage.

	Defaults are the canonical layout constants; changing the discriminator or
	prefix widths produces layouts that other emitters will not agree with, so
	they exist for experimentation and tests only.
	"""

	file_extension: str = ".lumos"
	index_file: str = "mod.lumos"
	max_generic_depth: int = 32
	max_variants: int = 256
	account_discriminator_bytes: int = 8
	variant_discriminant_bytes: int = 1
	length_prefix_bytes: int = 4
	option_tag_bytes: int = 1
	max_array_length: int = 1024
	warn_unknown_attributes: bool = True

	def to_dict(self) -> dict[str, Any]:
		return asdict(self)

	@classmethod
	def from_dict(cls, data: Mapping[str, Any]) -> "CompileOptions":
		known = {f.name for f in fields(cls)}
		return cls(**{k: v for k, v in data.items() if k in known})


DEFAULT_OPTIONS = CompileOptions()

__all__ = ["CompileOptions", "DEFAULT_OPTIONS"]
