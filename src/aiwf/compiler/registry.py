# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Builds type registries from raw ``types`` sections and checks their references."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from aiwf.errors import TypeSyntaxError, UnresolvedReferenceError
from aiwf.model.types import (
    ArrayType,
    MapType,
    ObjectType,
    Property,
    RefType,
    TypeDef,
    TypeRegistry,
)
from aiwf.naming import pascal_case
from aiwf.parser.type_parser import parse_type_expression

# ###############
# Public Interface
# ###############


def parse_type_definition(name: str, raw: Any) -> TypeDef:
    """Parse a single entry of a ``types`` section.

    Args:
        name: The type name the entry is declared under.
        raw: An expression string, a field mapping, or a one-element list.

    Returns:
        The parsed TypeDef. Field mappings become an ObjectType named ``name``.

    Raises:
        TypeSyntaxError: If the entry or any nested field is malformed.
    """
    if isinstance(raw, dict):
        return _parse_object(name, raw, name)
    return _parse_field(name, raw, name)


def parse_types(
    raw_definitions: Mapping[str, Any],
    *,
    imports: Mapping[str, TypeRegistry] | None = None,
) -> TypeRegistry:
    """Parse a raw ``types`` mapping into a TypeRegistry.

    References are not checked here; use :func:`resolve_refs` once every
    registry the types may refer to has been assembled.

    Args:
        raw_definitions: Mapping of type name to raw definition.
        imports: Already-built registries to attach under their aliases.

    Returns:
        A new TypeRegistry holding every parsed definition.

    Raises:
        TypeSyntaxError: On the first malformed definition, prefixed with its name.
    """
    registry = TypeRegistry()
    for alias, imported in (imports or {}).items():
        registry.add_import(alias, imported)
    for name, raw in raw_definitions.items():
        if not isinstance(name, str) or not name:
            raise TypeSyntaxError(f"type names must be non-empty strings, got {name!r}")
        try:
            typedef = parse_type_definition(name, raw)
        except TypeSyntaxError as exc:
            raise TypeSyntaxError(f"failed to parse type '{name}': {exc}") from exc
        registry.define(name, typedef)
    return registry


def resolve_refs(
    typedef: TypeDef,
    registry: TypeRegistry,
    *,
    module: str | None = None,
) -> list[UnresolvedReferenceError]:
    """Check that every reference inside ``typedef`` resolves in ``registry``.

    Referenced definitions are looked up but never inlined, so recursive
    type graphs are checked in a single pass. ``module`` names the import
    alias that owns ``typedef``; its unqualified references are looked up in
    that import.

    Returns:
        One error per unresolved reference, in walk order. Empty when all
        references resolve.
    """
    problems: list[UnresolvedReferenceError] = []
    for ref in collect_refs(typedef):
        try:
            registry.resolve_ref(ref, module)
        except UnresolvedReferenceError as exc:
            problems.append(exc)
    return problems


def collect_refs(typedef: TypeDef) -> list[RefType]:
    """Return every RefType node inside ``typedef`` in walk order."""
    return [node for node in walk(typedef) if isinstance(node, RefType)]


def walk(typedef: TypeDef) -> Iterator[TypeDef]:
    """Yield ``typedef`` and every nested type in depth-first pre-order.

    References are yielded as-is and not followed.
    """
    yield typedef
    if isinstance(typedef, ArrayType):
        yield from walk(typedef.items)
    elif isinstance(typedef, MapType):
        yield from walk(typedef.value_type)
    elif isinstance(typedef, ObjectType):
        for prop in typedef.properties.values():
            yield from walk(prop.type)


# ################
# Implementation
# ################


def _parse_object(type_name: str, fields: dict[Any, Any], path: str) -> ObjectType:
    properties: dict[str, Property] = {}
    for key, value in fields.items():
        if not isinstance(key, str):
            raise TypeSyntaxError(f"{path}: field name must be a string, got {key!r}")
        optional = key.endswith("?")
        field_name = key[:-1] if optional else key
        if not field_name:
            raise TypeSyntaxError(f"{path}: empty field name")
        if field_name in properties:
            raise TypeSyntaxError(f"{path}: duplicate field '{field_name}'")
        field_type = _parse_field(f"{type_name}{pascal_case(field_name)}", value, f"{path}.{field_name}")
        properties[field_name] = Property(type=field_type, optional=optional)
    return ObjectType(name=type_name, properties=properties)


def _parse_field(type_name: str, value: Any, path: str) -> TypeDef:
    if isinstance(value, str):
        try:
            return parse_type_expression(value)
        except TypeSyntaxError as exc:
            raise TypeSyntaxError(f"{path}: {exc}") from exc
    if isinstance(value, dict):
        return _parse_object(type_name, value, path)
    if isinstance(value, list):
        if not value:
            raise TypeSyntaxError(f"{path}: empty array definition")
        # Only the first element is used as the item template.
        return ArrayType(items=_parse_field(f"{type_name}Item", value[0], f"{path}[0]"))
    raise TypeSyntaxError(f"{path}: unsupported type definition of kind '{type(value).__name__}'")
