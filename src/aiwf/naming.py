# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Identifier case conversions shared by the registry and the code generators."""

import re

# ###############
# Public Interface
# ###############


def pascal_case(name: str) -> str:
    """Convert ``snake_case``, ``kebab-case`` or ``camelCase`` text to ``PascalCase``.

    Existing camelCase boundaries are preserved, so ``blogPost`` becomes
    ``BlogPost`` rather than ``Blogpost``.
    """
    return "".join(part[:1].upper() + part[1:] for part in _split_words(name))


def camel_case(name: str) -> str:
    """Convert ``name`` to ``camelCase``."""
    pascal = pascal_case(name)
    return pascal[:1].lower() + pascal[1:]


def snake_case(name: str) -> str:
    """Convert ``name`` to ``snake_case``."""
    words: list[str] = []
    for part in _split_words(name):
        words.extend(w.lower() for w in _CAMEL_BOUNDARY.split(part) if w)
    return "_".join(words)


# ################
# Implementation
# ################

_SEPARATORS = re.compile(r"[^0-9A-Za-z]+")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def _split_words(name: str) -> list[str]:
    return [part for part in _SEPARATORS.split(name) if part]
