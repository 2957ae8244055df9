# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Recursive-descent parser for the compact type expression language.

Examples of accepted expressions::

    string(1..100)
    string(email)
    int(0..)
    $User[]
    $blog.Post[](min:1,max:10)
    enum(draft, published, archived)
    map(string, $Tag[])
"""

from __future__ import annotations

from collections.abc import Callable
from typing import NoReturn

from aiwf.errors import TypeSyntaxError
from aiwf.model.types import (
    AnyType,
    ArrayType,
    BoolType,
    DatetimeType,
    DateType,
    EnumType,
    IntType,
    MapType,
    NumberType,
    RefType,
    StringType,
    TypeDef,
    UUIDType,
)

# ###############
# Public Interface
# ###############


def parse_type_expression(expression: str) -> TypeDef:
    """Parse a type expression into a TypeDef.

    Args:
        expression: The expression text, e.g. ``"$Comment[]"``.

    Returns:
        The parsed type tree. References are returned as RefType nodes and are
        not checked against any registry.

    Raises:
        TypeSyntaxError: If the expression is empty or malformed.
    """
    return _Parser(expression).parse()


# ################
# Implementation
# ################

_SIMPLE_TYPES: dict[str, Callable[[], TypeDef]] = {
    "string": StringType,
    "int": IntType,
    "number": NumberType,
    "bool": BoolType,
    "datetime": DatetimeType,
    "date": DateType,
    "uuid": UUIDType,
    "any": AnyType,
}


class _Parser:
    """Character-level cursor over a single type expression."""

    def __init__(self, source: str) -> None:
        self._source = source
        self._pos = 0

    def parse(self) -> TypeDef:
        """Parse the whole expression and reject trailing input."""
        self._skip_whitespace()
        if self._at_end():
            raise TypeSyntaxError("empty type expression")
        typedef = self._parse_postfix()
        self._skip_whitespace()
        if not self._at_end():
            self._error(f"unexpected '{self._current()}' after type")
        return typedef

    # ------------------------------------------------------------------
    # Low-level character access helpers
    # ------------------------------------------------------------------

    def _current(self) -> str:
        if self._pos < len(self._source):
            return self._source[self._pos]
        return ""

    def _at_end(self) -> bool:
        return self._pos >= len(self._source)

    def _advance(self) -> str:
        ch = self._current()
        self._pos += 1
        return ch

    def _startswith(self, text: str) -> bool:
        return self._source.startswith(text, self._pos)

    def _skip_whitespace(self) -> None:
        while self._current() in (" ", "\t"):
            self._pos += 1

    def _expect(self, ch: str) -> None:
        self._skip_whitespace()
        if self._current() != ch:
            found = repr(self._current()) if self._current() else "end of expression"
            self._error(f"expected '{ch}', found {found}")
        self._advance()

    def _error(self, message: str, pos: int | None = None) -> NoReturn:
        column = (self._pos if pos is None else pos) + 1
        raise TypeSyntaxError(message, expression=self._source, column=column)

    # ------------------------------------------------------------------
    # Grammar
    # ------------------------------------------------------------------

    def _parse_postfix(self) -> TypeDef:
        """Parse a primary type followed by any number of ``[]`` suffixes."""
        typedef = self._parse_primary()
        self._skip_whitespace()
        while self._startswith("[]"):
            self._pos += 2
            min_items: int | None = None
            max_items: int | None = None
            if self._current() == "(":
                min_items, max_items = self._parse_item_bounds()
            typedef = ArrayType(items=typedef, min_items=min_items, max_items=max_items)
            self._skip_whitespace()
        return typedef

    def _parse_primary(self) -> TypeDef:
        self._skip_whitespace()
        start = self._pos

        if self._current() == "$":
            self._advance()
            name = self._read_qualified_name()
            if not name:
                self._error("expected a type name after '$'")
            return _make_ref(name)

        word = self._read_identifier()
        if not word:
            found = repr(self._current()) if self._current() else "end of expression"
            self._error(f"expected a type, found {found}")

        if word == "enum":
            return self._parse_enum()
        if word == "map":
            return self._parse_map()
        if word in _SIMPLE_TYPES:
            if self._current() == "(":
                return self._parse_constrained(word, start)
            return _SIMPLE_TYPES[word]()

        if self._current() == ".":
            self._advance()
            member = self._read_identifier()
            if not member:
                self._error(f"expected a type name after '{word}.'")
            word = f"{word}.{member}"
        if self._current() == "(":
            self._error(f"unknown type '{word}' does not accept parameters", start)
        return _make_ref(word)

    def _parse_enum(self) -> EnumType:
        open_pos = self._pos
        self._expect("(")
        body = self._read_group_body(open_pos)
        values = [value.strip() for value in body.split(",")]
        if values == [""]:
            self._error("enum requires at least one value", open_pos)
        if any(not value for value in values):
            self._error("enum values must not be empty", open_pos)
        return EnumType(values=tuple(values))

    def _parse_map(self) -> MapType:
        self._expect("(")
        self._skip_whitespace()
        key_pos = self._pos
        key = self._read_identifier()
        if key != "string":
            self._error(f"map key type must be 'string', got '{key or self._current()}'", key_pos)
        self._expect(",")
        value_type = self._parse_postfix()
        self._expect(")")
        return MapType(value_type=value_type)

    def _parse_constrained(self, keyword: str, start: int) -> TypeDef:
        open_pos = self._pos
        self._advance()
        body = self._read_group_body(open_pos).strip()

        if keyword == "string":
            if ".." in body:
                min_length, max_length = self._parse_range(body, int, open_pos)
                return StringType(min_length=min_length, max_length=max_length)
            if not body:
                self._error("string constraint must be a length range or a format", open_pos)
            if _is_number(body):
                self._error(f"single bound '{body}' is not a valid constraint, use 'a..b'", open_pos)
            return StringType(format=body)

        if keyword in ("int", "number"):
            if ".." not in body:
                self._error(f"numeric constraint '{body}' must be a range 'a..b'", open_pos)
            if keyword == "int":
                low, high = self._parse_range(body, int, open_pos)
                return IntType(min=low, max=high)
            low_f, high_f = self._parse_range(body, float, open_pos)
            return NumberType(min=low_f, max=high_f)

        self._error(f"type '{keyword}' does not accept parameters", start)

    def _parse_range(
        self, body: str, convert: Callable[[str], float], pos: int
    ) -> tuple[float | None, float | None]:
        low_text, _, high_text = body.partition("..")
        if ".." in high_text:
            self._error(f"invalid range '{body}'", pos)
        bounds: list[float | None] = []
        for text in (low_text.strip(), high_text.strip()):
            if not text:
                bounds.append(None)
                continue
            try:
                bounds.append(convert(text))
            except ValueError:
                self._error(f"invalid bound '{text}' in range '{body}'", pos)
        low, high = bounds
        if low is not None and high is not None and low > high:
            self._error(f"lower bound exceeds upper bound in range '{body}'", pos)
        return low, high

    def _parse_item_bounds(self) -> tuple[int | None, int | None]:
        open_pos = self._pos
        self._advance()
        body = self._read_group_body(open_pos)
        bounds: dict[str, int] = {}
        for part in body.split(","):
            part = part.strip()
            if not part:
                continue
            key, sep, value = part.partition(":")
            key = key.strip()
            if not sep or key not in ("min", "max"):
                self._error(f"invalid array bound '{part}', expected 'min:N' or 'max:N'", open_pos)
            if key in bounds:
                self._error(f"duplicate array bound '{key}'", open_pos)
            try:
                bounds[key] = int(value.strip())
            except ValueError:
                self._error(f"invalid {key} value '{value.strip()}'", open_pos)
            if bounds[key] < 0:
                self._error(f"array bound '{key}' must not be negative", open_pos)
        if "min" in bounds and "max" in bounds and bounds["min"] > bounds["max"]:
            self._error("array min bound exceeds max bound", open_pos)
        return bounds.get("min"), bounds.get("max")

    # ------------------------------------------------------------------
    # Token readers
    # ------------------------------------------------------------------

    def _read_identifier(self) -> str:
        start = self._pos
        while self._current() and (self._current().isalnum() or self._current() == "_"):
            self._pos += 1
        return self._source[start : self._pos]

    def _read_qualified_name(self) -> str:
        name = self._read_identifier()
        if name and self._current() == ".":
            self._advance()
            member = self._read_identifier()
            if not member:
                self._error(f"expected a type name after '{name}.'")
            name = f"{name}.{member}"
        return name

    def _read_group_body(self, open_pos: int) -> str:
        """Consume raw text up to the closing parenthesis of a flat group."""
        start = self._pos
        while not self._at_end() and self._current() != ")":
            if self._current() == "(":
                self._error("nested parentheses are not allowed here")
            self._pos += 1
        if self._at_end():
            self._error("unclosed '('", open_pos)
        body = self._source[start : self._pos]
        self._advance()
        return body


def _make_ref(name: str) -> RefType:
    if "." in name:
        module, target = name.split(".", 1)
        return RefType(target_name=target, module=module)
    return RefType(target_name=name)


def _is_number(text: str) -> bool:
    try:
        float(text)
    except ValueError:
        return False
    return True
