# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Jinja environment and literal helpers shared by the code generation backends."""

from __future__ import annotations

import json
from pathlib import PurePosixPath
from typing import Any

from jinja2 import Environment, PackageLoader, StrictUndefined

from aiwf.naming import pascal_case

# ###############
# Public Interface
# ###############


def create_environment() -> Environment:
    """Return a fresh template environment.

    A new environment is built for every generation call so no rendered
    state survives between calls.
    """
    env = Environment(
        loader=PackageLoader("aiwf.backends", "templates"),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.filters["quote"] = quote_string
    env.filters["single_quote"] = single_quote_string
    return env


def quote_string(value: str) -> str:
    """Render ``value`` as a double-quoted literal valid in Go, Python and TypeScript."""
    return json.dumps(value, ensure_ascii=False)


def single_quote_string(value: str) -> str:
    """Render ``value`` as a single-quoted PHP literal."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def pretty_json(value: Any) -> str:
    """Serialize ``value`` as stable, sorted, indented JSON."""
    return json.dumps(value, indent=2, sort_keys=True, ensure_ascii=False)


def output_path(output_dir: str, filename: str) -> str:
    """Join ``filename`` onto ``output_dir`` using forward slashes."""
    if not output_dir:
        return filename
    return str(PurePosixPath(output_dir) / filename)


def identifier(name: str, fallback: str) -> str:
    """Return ``name`` if it is a usable identifier, prefixing or replacing it otherwise."""
    if not name:
        return fallback
    if name[0].isdigit():
        return f"{fallback}{name}"
    return name


def unique_name(name: str, used: set[str], separator: str = "") -> str:
    """Return ``name``, or ``name`` plus the first free numeric suffix, and mark it used."""
    candidate = name
    suffix = 2
    while candidate in used:
        candidate = f"{name}{separator}{suffix}"
        suffix += 1
    used.add(candidate)
    return candidate


def registry_type_name(module: str | None, name: str) -> str:
    """Return the generated identifier of registry type ``name`` owned by import ``module``."""
    prefix = pascal_case(module) if module else ""
    return identifier(prefix + pascal_case(name), "Type")
