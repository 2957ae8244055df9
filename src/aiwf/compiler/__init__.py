# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Compiler pipeline: type registries, schema resolution, spec loading and IR building."""

from aiwf.compiler.ir_builder import build_ir
from aiwf.compiler.loader import load_spec, load_spec_text
from aiwf.compiler.registry import collect_refs, parse_type_definition, parse_types, resolve_refs, walk
from aiwf.compiler.schema import (
    ID_SCHEME,
    check_schema_document,
    load_schema_file,
    schema_to_typedef,
    type_identifier,
    typedef_to_schema,
)

__all__ = [
    "parse_type_definition",
    "parse_types",
    "resolve_refs",
    "collect_refs",
    "walk",
    "ID_SCHEME",
    "type_identifier",
    "load_schema_file",
    "check_schema_document",
    "schema_to_typedef",
    "typedef_to_schema",
    "load_spec",
    "load_spec_text",
    "build_ir",
]
