# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Adapter between JSON Schema documents and the closed type model.

Structured-schema types are lowered into TypeDef trees so that every backend
only ever sees one type representation. The reverse direction exports a
TypeDef as a self-contained JSON Schema for embedding in generated code.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

import yaml
from jsonschema import Draft202012Validator
from jsonschema import exceptions as jsonschema_exceptions
from jsonschema.validators import validator_for
from referencing import Registry, Resource
from referencing.exceptions import NoSuchResource, Unresolvable
from referencing.jsonschema import DRAFT202012

from aiwf.errors import SchemaError, UnresolvedReferenceError
from aiwf.model.spec import SchemaDocument
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
    ObjectType,
    Property,
    RefType,
    StringType,
    TypeDef,
    TypeRegistry,
    UUIDType,
)
from aiwf.naming import pascal_case

# ###############
# Public Interface
# ###############

ID_SCHEME = "aiwf://"
JSON_SCHEMA_DIALECT = "https://json-schema.org/draft/2020-12/schema"
SCHEMA_FILE_SUFFIXES: tuple[str, ...] = (".json", ".yaml", ".yml")


def type_identifier(name: str, alias: str | None = None) -> str:
    """Return the identifier of a DSL type, e.g. ``aiwf://blog/Post`` or ``aiwf://Post``."""
    if alias:
        return f"{ID_SCHEME}{alias}/{name}"
    return f"{ID_SCHEME}{name}"


def load_schema_file(path: Path) -> dict[str, Any]:
    """Read a JSON or YAML schema file.

    Raises:
        SchemaError: If the file cannot be read, parsed, or is not a mapping.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SchemaError(f"cannot read schema file '{path}': {exc}") from exc
    try:
        data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise SchemaError(f"cannot parse schema file '{path}': {exc}") from exc
    if not isinstance(data, dict):
        raise SchemaError(f"schema file '{path}' must contain a mapping")
    return data


def check_schema_document(document: SchemaDocument, documents: Mapping[str, SchemaDocument]) -> None:
    """Compile a schema against every known identifier.

    The schema must satisfy its meta-schema, and every ``$ref`` it contains
    must resolve, either to another registered document, to a fragment of
    itself, or to a schema file next to it.

    Args:
        document: The schema to check.
        documents: All registered schema documents keyed by identifier.

    Raises:
        SchemaError: If the schema is invalid or a reference cannot be resolved.
            The message names the source file of ``document``.
    """
    validator_cls = validator_for(document.schema, default=Draft202012Validator)
    try:
        validator_cls.check_schema(document.schema)
    except jsonschema_exceptions.SchemaError as exc:
        raise SchemaError(f"{document.source}: invalid schema: {exc.message}") from exc

    resources = [(doc.id, _as_resource(doc.schema)) for doc in documents.values()]
    resources.append((document.id, _as_resource(document.schema)))
    registry: Registry = Registry(retrieve=_retrieve_schema_file).with_resources(resources)
    resolver = registry.resolver(base_uri=document.id)
    for ref in sorted(set(_iter_refs(document.schema))):
        try:
            resolver.lookup(ref)
        except Unresolvable as exc:
            raise SchemaError(f"{document.source}: cannot resolve $ref '{ref}'") from exc


def schema_to_typedef(
    schema: Mapping[str, Any],
    name: str,
    *,
    known_refs: Mapping[str, RefType] | None = None,
) -> TypeDef:
    """Lower a JSON Schema into a TypeDef.

    ``$ref`` values naming a registered identifier become RefType nodes.
    Local ``#/...`` pointers are inlined, with cycles cut to AnyType. Any
    other reference lowers to AnyType.

    Args:
        schema: The schema mapping.
        name: Name given to the root ObjectType; nested objects are named
            ``<Parent><Field>``.
        known_refs: Identifier to reference table for registered types.
    """
    return _SchemaLowering(schema, known_refs or {}).lower(schema, name)


def typedef_to_schema(
    typedef: TypeDef,
    registry: TypeRegistry,
    *,
    module: str | None = None,
) -> dict[str, Any]:
    """Export a TypeDef as a self-contained JSON Schema.

    Referenced registry types are emitted once each under ``$defs``, so
    recursive graphs export to finite documents. Output is deterministic.

    Args:
        typedef: The type to export.
        registry: Registry used to resolve references.
        module: Import alias owning ``typedef``, for unqualified references
            inside imported types.
    """
    return _SchemaExporter(registry).export(typedef, module)


def identifier_to_ref(identifier: str) -> RefType | None:
    """Map an ``aiwf://[module/]Name`` identifier to a RefType, or None for other schemes."""
    if not identifier.startswith(ID_SCHEME):
        return None
    parts = [part for part in identifier[len(ID_SCHEME) :].split("/") if part]
    if not parts:
        return None
    if len(parts) == 1:
        return RefType(target_name=parts[0])
    return RefType(target_name=parts[-1], module=parts[-2])


# ################
# Implementation
# ################


def _as_resource(contents: dict[str, Any]) -> Resource:
    return Resource.from_contents(contents, default_specification=DRAFT202012)


def _retrieve_schema_file(uri: str) -> Resource:
    parsed = urlparse(uri)
    if parsed.scheme != "file":
        raise NoSuchResource(ref=uri)
    path = Path(url2pathname(unquote(parsed.path)))
    try:
        contents = load_schema_file(path)
    except SchemaError as exc:
        raise NoSuchResource(ref=uri) from exc
    return _as_resource(contents)


def _iter_refs(node: Any) -> Iterator[str]:
    if isinstance(node, dict):
        ref = node.get("$ref")
        if isinstance(ref, str):
            yield ref
        for key, value in node.items():
            if key in ("enum", "const", "examples", "default"):
                continue
            yield from _iter_refs(value)
    elif isinstance(node, list):
        for item in node:
            yield from _iter_refs(item)


def _schema_type(schema: Mapping[str, Any]) -> str | None:
    declared = schema.get("type")
    if isinstance(declared, list):
        non_null = [t for t in declared if t != "null"]
        return non_null[0] if non_null else None
    return declared


class _SchemaLowering:
    """Walks one schema document, tracking local pointers being inlined."""

    def __init__(self, root: Mapping[str, Any], known_refs: Mapping[str, RefType]) -> None:
        self._root = root
        self._known_refs = known_refs
        self._in_progress: set[str] = set()

    def lower(self, schema: Mapping[str, Any], name: str) -> TypeDef:
        ref = schema.get("$ref")
        if isinstance(ref, str):
            return self._lower_ref(ref)

        values = schema.get("enum")
        if isinstance(values, list) and values and all(isinstance(v, str) for v in values):
            return EnumType(values=tuple(values))

        kind = _schema_type(schema)
        if kind == "object" or (kind is None and "properties" in schema):
            return self._lower_object(schema, name)
        if kind == "array":
            items = schema.get("items")
            item_type = self.lower(items, f"{name}Item") if isinstance(items, dict) else AnyType()
            return ArrayType(items=item_type, min_items=schema.get("minItems"), max_items=schema.get("maxItems"))
        if kind == "string":
            return _lower_string(schema)
        if kind == "integer":
            return IntType(min=schema.get("minimum"), max=schema.get("maximum"))
        if kind == "number":
            return NumberType(min=schema.get("minimum"), max=schema.get("maximum"))
        if kind == "boolean":
            return BoolType()
        return AnyType()

    def _lower_object(self, schema: Mapping[str, Any], name: str) -> TypeDef:
        properties = schema.get("properties") or {}
        additional = schema.get("additionalProperties")
        if not properties and (additional is True or isinstance(additional, dict)):
            value_type = self.lower(additional, f"{name}Value") if isinstance(additional, dict) else AnyType()
            return MapType(value_type=value_type)
        required = set(schema.get("required") or [])
        lowered: dict[str, Property] = {}
        for field_name, field_schema in properties.items():
            field_type = (
                self.lower(field_schema, f"{name}{pascal_case(field_name)}")
                if isinstance(field_schema, dict)
                else AnyType()
            )
            lowered[field_name] = Property(type=field_type, optional=field_name not in required)
        return ObjectType(name=name, properties=lowered, description=schema.get("description"))

    def _lower_ref(self, ref: str) -> TypeDef:
        if ref in self._known_refs:
            return self._known_refs[ref]
        if ref.startswith("#"):
            if ref in self._in_progress:
                return AnyType()
            target = self._follow_pointer(ref[1:])
            if target is None:
                return AnyType()
            self._in_progress.add(ref)
            try:
                segment = ref.rsplit("/", 1)[-1]
                return self.lower(target, pascal_case(segment) or "Root")
            finally:
                self._in_progress.discard(ref)
        return identifier_to_ref(ref) or AnyType()

    def _follow_pointer(self, pointer: str) -> Mapping[str, Any] | None:
        node: Any = self._root
        for raw in pointer.split("/")[1:] if pointer else []:
            segment = unquote(raw).replace("~1", "/").replace("~0", "~")
            if not isinstance(node, Mapping) or segment not in node:
                return None
            node = node[segment]
        return node if isinstance(node, Mapping) else None


def _lower_string(schema: Mapping[str, Any]) -> TypeDef:
    fmt = schema.get("format")
    if fmt == "date-time":
        return DatetimeType()
    if fmt == "date":
        return DateType()
    if fmt == "uuid":
        return UUIDType()
    return StringType(
        min_length=schema.get("minLength"),
        max_length=schema.get("maxLength"),
        pattern=schema.get("pattern"),
        format=fmt,
    )


class _SchemaExporter:
    """Exports TypeDefs, collecting referenced registry types into ``$defs``."""

    def __init__(self, registry: TypeRegistry) -> None:
        self._registry = registry
        self._defs: dict[str, dict[str, Any]] = {}

    def export(self, typedef: TypeDef, module: str | None) -> dict[str, Any]:
        body = self._convert(typedef, module)
        schema: dict[str, Any] = {"$schema": JSON_SCHEMA_DIALECT}
        schema.update(body)
        if self._defs:
            schema["$defs"] = {key: self._defs[key] for key in sorted(self._defs)}
        return schema

    def _convert(self, typedef: TypeDef, module: str | None) -> dict[str, Any]:
        if isinstance(typedef, StringType):
            out: dict[str, Any] = {"type": "string"}
            _put(out, "minLength", typedef.min_length)
            _put(out, "maxLength", typedef.max_length)
            _put(out, "pattern", typedef.pattern)
            _put(out, "format", typedef.format)
            return out
        if isinstance(typedef, IntType | NumberType):
            out = {"type": "integer" if isinstance(typedef, IntType) else "number"}
            _put(out, "minimum", typedef.min)
            _put(out, "maximum", typedef.max)
            return out
        if isinstance(typedef, BoolType):
            return {"type": "boolean"}
        if isinstance(typedef, DatetimeType):
            return {"type": "string", "format": "date-time"}
        if isinstance(typedef, DateType):
            return {"type": "string", "format": "date"}
        if isinstance(typedef, UUIDType):
            return {"type": "string", "format": "uuid"}
        if isinstance(typedef, EnumType):
            return {"type": "string", "enum": list(typedef.values)}
        if isinstance(typedef, ArrayType):
            out = {"type": "array", "items": self._convert(typedef.items, module)}
            _put(out, "minItems", typedef.min_items)
            _put(out, "maxItems", typedef.max_items)
            return out
        if isinstance(typedef, MapType):
            return {"type": "object", "additionalProperties": self._convert(typedef.value_type, module)}
        if isinstance(typedef, ObjectType):
            out = {
                "type": "object",
                "properties": {name: self._convert(prop.type, module) for name, prop in typedef.properties.items()},
                "required": [name for name, prop in typedef.properties.items() if not prop.optional],
                "additionalProperties": False,
            }
            if typedef.description:
                out["description"] = typedef.description
            return out
        if isinstance(typedef, RefType):
            return self._convert_ref(typedef, module)
        return {}

    def _convert_ref(self, ref: RefType, module: str | None) -> dict[str, Any]:
        try:
            owner, target = self._registry.resolve_ref(ref, module)
        except UnresolvedReferenceError:
            return {}
        key = f"{owner}.{ref.target_name}" if owner else ref.target_name
        if key not in self._defs:
            # Reserve the slot before converting so recursive references terminate.
            self._defs[key] = {}
            self._defs[key] = self._convert(target, owner)
        return {"$ref": f"#/$defs/{key}"}


def _put(out: dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        out[key] = value
