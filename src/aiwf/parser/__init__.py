# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Parser for the embedded type expression language."""

from aiwf.parser.type_parser import parse_type_expression

__all__ = [
    "parse_type_expression",
]
