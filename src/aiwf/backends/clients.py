# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Thin HTTP client backends for PHP, Python and TypeScript.

Each client posts to ``/agent/<name>`` on an AIWF server. Object inputs are
sent as the request body and object outputs are read from the response body.
Any other input is wrapped as ``{"input": ...}`` and any other output is read
from the ``output`` key of the response.
"""

from __future__ import annotations

import keyword
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from aiwf.backends.templating import (
    create_environment,
    identifier,
    output_path,
    quote_string,
    registry_type_name,
    single_quote_string,
    unique_name,
)
from aiwf.errors import UnresolvedReferenceError
from aiwf.model.ir import IR
from aiwf.model.types import (
    AnyType,
    ArrayType,
    BoolType,
    EnumType,
    IntType,
    MapType,
    NumberType,
    ObjectType,
    RefType,
    TypeDef,
    TypeRegistry,
)
from aiwf.naming import camel_case, pascal_case, snake_case

logger = logging.getLogger(__name__)

# ###############
# Public Interface
# ###############


@dataclass(frozen=True)
class ClientOptions:
    """Options shared by the thin client backends.

    Attributes:
        output_dir: Relative directory prefixed to the emitted file.
        base_url: Default server URL baked into the client constructor.
        name: Class name of the generated client.
    """

    output_dir: str = ""
    base_url: str = "http://localhost:8080"
    name: str = "AIWFClient"


def generate_php(ir: IR, options: ClientOptions | None = None) -> dict[str, bytes]:
    """Render ``AIWFClient.php``: PHP 8.1 enums, data classes and a curl-based client."""
    return _render_client(ir, options or ClientOptions(), _PhpDialect())


def generate_python(ir: IR, options: ClientOptions | None = None) -> dict[str, bytes]:
    """Render ``aiwf_client.py``: dataclasses and a urllib-based client."""
    return _render_client(ir, options or ClientOptions(), _PythonDialect())


def generate_typescript(ir: IR, options: ClientOptions | None = None) -> dict[str, bytes]:
    """Render ``aiwfClient.ts``: interfaces, literal unions and a fetch-based client."""
    return _render_client(ir, options or ClientOptions(), _TypeScriptDialect())


# ################
# Implementation
# ################


@dataclass(frozen=True)
class _Shape:
    """Language-neutral view of a type as seen on the wire."""

    kind: str
    name: str = ""
    item: _Shape | None = None

    @property
    def converts(self) -> bool:
        if self.kind in ("object", "enum"):
            return True
        return self.item is not None and self.item.converts


@dataclass
class _FieldShape:
    name: str
    shape: _Shape
    optional: bool


@dataclass
class _NamedShape:
    name: str
    kind: str
    fields: list[_FieldShape] = field(default_factory=list)
    values: tuple[str, ...] = ()
    description: str = ""


class _ShapeCollector:
    """Collects the named objects and enums reachable from the assistants.

    Objects and enums become named declarations. Aliases in the registry are
    followed and inlined; cyclic aliases degrade to ``any``.
    """

    def __init__(self, registry: TypeRegistry) -> None:
        self._registry = registry
        self._resolving: set[str] = set()
        self.named: dict[str, _NamedShape] = {}

    def shape(self, typedef: TypeDef, context: str, module: str | None) -> _Shape:
        if isinstance(typedef, IntType):
            return _Shape("int")
        if isinstance(typedef, NumberType):
            return _Shape("number")
        if isinstance(typedef, BoolType):
            return _Shape("bool")
        if isinstance(typedef, AnyType):
            return _Shape("any")
        if isinstance(typedef, ArrayType):
            return _Shape("array", item=self.shape(typedef.items, f"{context}Item", module))
        if isinstance(typedef, MapType):
            return _Shape("map", item=self.shape(typedef.value_type, f"{context}Value", module))
        if isinstance(typedef, ObjectType):
            self._declare_object(context, typedef, module)
            return _Shape("object", name=context)
        if isinstance(typedef, EnumType):
            self.named.setdefault(context, _NamedShape(name=context, kind="enum", values=typedef.values))
            return _Shape("enum", name=context)
        if isinstance(typedef, RefType):
            return self._ref_shape(typedef, module)
        # Strings, dates, datetimes and UUIDs all travel as JSON strings.
        return _Shape("string")

    def _ref_shape(self, ref: RefType, module: str | None) -> _Shape:
        try:
            owner, target = self._registry.resolve_ref(ref, module)
        except UnresolvedReferenceError:
            return _Shape("any")
        name = registry_type_name(owner, ref.target_name)
        if isinstance(target, ObjectType | EnumType):
            return self.shape(target, name, owner)
        if name in self._resolving:
            logger.debug("Cyclic alias %s lowered to any", name)
            return _Shape("any")
        self._resolving.add(name)
        try:
            return self.shape(target, name, owner)
        finally:
            self._resolving.discard(name)

    def _declare_object(self, name: str, typedef: ObjectType, module: str | None) -> None:
        if name in self.named:
            return
        named = _NamedShape(name=name, kind="object", description=typedef.description or "")
        self.named[name] = named
        for field_name in sorted(typedef.properties):
            prop = typedef.properties[field_name]
            field_shape = self.shape(prop.type, f"{name}{pascal_case(field_name)}", module)
            named.fields.append(_FieldShape(name=field_name, shape=field_shape, optional=prop.optional))


def _render_client(ir: IR, options: ClientOptions, dialect: _Dialect) -> dict[str, bytes]:
    collector = _ShapeCollector(ir.registry)
    methods: list[dict[str, Any]] = []
    for name in sorted(ir.assistants):
        assistant = ir.assistants[name]
        pascal = identifier(pascal_case(name), "Agent")
        input_def = assistant.input_type if assistant.input_type is not None else MapType(value_type=AnyType())
        input_shape = collector.shape(input_def, f"{pascal}Input", None)
        output_shape = collector.shape(assistant.output_type, f"{pascal}Output", None)
        methods.append(dialect.method(name, assistant.system_prompt, input_shape, output_shape))

    types = [dialect.declaration(collector.named[name]) for name in sorted(collector.named)]
    template = create_environment().get_template(dialect.template)
    text = template.render(
        client_name=options.name,
        base_url=options.base_url,
        types=types,
        methods=methods,
    )
    logger.debug("Rendered %s client with %d method(s)", dialect.filename, len(methods))
    return {output_path(options.output_dir, dialect.filename): text.encode("utf-8")}


class _Dialect:
    """Maps shapes to the syntax of one target language."""

    template = ""
    filename = ""

    def type_name(self, shape: _Shape) -> str:
        raise NotImplementedError

    def dump(self, shape: _Shape, expr: str, depth: int = 0) -> str:
        raise NotImplementedError

    def load(self, shape: _Shape, expr: str, depth: int = 0) -> str:
        raise NotImplementedError

    def member_name(self, name: str) -> str:
        return name

    def method_name(self, name: str) -> str:
        return camel_case(name) or "call"

    def declaration(self, named: _NamedShape) -> dict[str, Any]:
        if named.kind == "enum":
            used: set[str] = set()
            cases = [
                {"name": unique_name(self.case_name(value), used, "_"), "value": value}
                for value in named.values
            ]
            return {"kind": "enum", "name": named.name, "cases": cases}

        fields = []
        members: set[str] = set()
        for f in named.fields:
            member = unique_name(self.member_name(f.name), members, "_")
            access = self.member_expr(member)
            raw = self.data_expr(f.name)
            dump = self.dump(f.shape, access)
            load = self.load(f.shape, raw)
            if f.optional and f.shape.converts:
                dump = self.guard(access, dump)
                load = self.guard(self.optional_expr(raw), load)
            elif f.optional:
                load = self.optional_expr(raw)
            fields.append(
                {
                    "name": f.name,
                    "member": member,
                    "type": self.type_name(f.shape),
                    "optional": f.optional,
                    "dump": dump,
                    "load": load,
                }
            )
        fields.sort(key=lambda f: (f["optional"], f["name"]))
        return {"kind": "object", "name": named.name, "description": named.description, "fields": fields}

    def case_name(self, value: str) -> str:
        return identifier(snake_case(value).upper(), "VALUE_")

    def member_expr(self, member: str) -> str:
        raise NotImplementedError

    def data_expr(self, key: str) -> str:
        raise NotImplementedError

    def optional_expr(self, raw: str) -> str:
        return raw

    def guard(self, check: str, converted: str) -> str:
        return converted

    def method(self, name: str, prompt: str, input_shape: _Shape, output_shape: _Shape) -> dict[str, Any]:
        wrap_input = input_shape.kind != "object"
        wrap_output = output_shape.kind != "object"
        response = self.response_expr(wrap_output)
        return {
            "agent": name,
            "name": self.method_name(name),
            "doc": [line.strip() for line in prompt.splitlines() if line.strip()],
            "input_type": self.type_name(input_shape),
            "output_type": self.type_name(output_shape),
            "wrap_input": wrap_input,
            "wrap_output": wrap_output,
            "dump": self.dump(input_shape, self.argument_expr()),
            "load": self.load(output_shape, response),
        }

    def argument_expr(self) -> str:
        raise NotImplementedError

    def response_expr(self, wrapped: bool) -> str:
        raise NotImplementedError


_PHP_IDENTIFIER = re.compile(r"\W")


class _PhpDialect(_Dialect):
    template = "clients/php.j2"
    filename = "AIWFClient.php"

    def type_name(self, shape: _Shape) -> str:
        if shape.kind in ("object", "enum"):
            return shape.name
        return {"string": "string", "int": "int", "number": "float", "bool": "bool", "any": "mixed"}.get(
            shape.kind, "array"
        )

    def member_name(self, name: str) -> str:
        return identifier(_PHP_IDENTIFIER.sub("_", name), "_")

    def member_expr(self, member: str) -> str:
        return f"$this->{member}"

    def data_expr(self, key: str) -> str:
        return f"$data[{single_quote_string(key)}]"

    def optional_expr(self, raw: str) -> str:
        return f"{raw} ?? null"

    def guard(self, check: str, converted: str) -> str:
        return f"({check}) === null ? null : {converted}"

    def argument_expr(self) -> str:
        return "$request"

    def response_expr(self, wrapped: bool) -> str:
        return "$response['output'] ?? null" if wrapped else "$response"

    def dump(self, shape: _Shape, expr: str, depth: int = 0) -> str:
        if shape.kind == "object":
            return f"{expr}->toArray()"
        if shape.kind == "enum":
            return f"{expr}->value"
        if shape.item is not None and shape.item.converts:
            var = f"$item{depth}"
            return f"array_map(fn({var}) => {self.dump(shape.item, var, depth + 1)}, {expr})"
        return expr

    def load(self, shape: _Shape, expr: str, depth: int = 0) -> str:
        if shape.kind == "object":
            return f"{shape.name}::fromArray({expr})"
        if shape.kind == "enum":
            return f"{shape.name}::from({expr})"
        if shape.item is not None and shape.item.converts:
            var = f"$item{depth}"
            return f"array_map(fn({var}) => {self.load(shape.item, var, depth + 1)}, {expr})"
        return expr


class _PythonDialect(_Dialect):
    template = "clients/python.j2"
    filename = "aiwf_client.py"

    def type_name(self, shape: _Shape) -> str:
        if shape.kind in ("object", "enum"):
            return shape.name
        if shape.kind == "array":
            return f"list[{self.type_name(shape.item or _Shape('any'))}]"
        if shape.kind == "map":
            return f"dict[str, {self.type_name(shape.item or _Shape('any'))}]"
        return {"string": "str", "int": "int", "number": "float", "bool": "bool"}.get(shape.kind, "Any")

    def method_name(self, name: str) -> str:
        return self.member_name(name)

    def member_name(self, name: str) -> str:
        member = identifier(snake_case(name), "field_")
        if keyword.iskeyword(member):
            member += "_"
        return member

    def member_expr(self, member: str) -> str:
        return f"self.{member}"

    def data_expr(self, key: str) -> str:
        return f"data.get({quote_string(key)})"

    def guard(self, check: str, converted: str) -> str:
        return f"None if {check} is None else {converted}"

    def argument_expr(self) -> str:
        return "request"

    def response_expr(self, wrapped: bool) -> str:
        return 'response.get("output")' if wrapped else "response"

    def dump(self, shape: _Shape, expr: str, depth: int = 0) -> str:
        if shape.kind == "object":
            return f"{expr}.to_dict()"
        if shape.kind == "enum":
            return f"{expr}.value"
        if shape.item is not None and shape.item.converts:
            var = f"item{depth}"
            inner = self.dump(shape.item, var, depth + 1)
            if shape.kind == "map":
                return f"{{key{depth}: {inner} for key{depth}, {var} in {expr}.items()}}"
            return f"[{inner} for {var} in {expr}]"
        return expr

    def load(self, shape: _Shape, expr: str, depth: int = 0) -> str:
        if shape.kind == "object":
            return f"{shape.name}.from_dict({expr})"
        if shape.kind == "enum":
            return f"{shape.name}({expr})"
        if shape.item is not None and shape.item.converts:
            var = f"item{depth}"
            inner = self.load(shape.item, var, depth + 1)
            if shape.kind == "map":
                return f"{{key{depth}: {inner} for key{depth}, {var} in {expr}.items()}}"
            return f"[{inner} for {var} in {expr}]"
        return expr


_TS_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


class _TypeScriptDialect(_Dialect):
    template = "clients/typescript.j2"
    filename = "aiwfClient.ts"

    def type_name(self, shape: _Shape) -> str:
        if shape.kind in ("object", "enum"):
            return shape.name
        if shape.kind == "array":
            item = self.type_name(shape.item or _Shape("any"))
            return f"{item}[]" if _TS_IDENTIFIER.match(item) else f"Array<{item}>"
        if shape.kind == "map":
            return f"Record<string, {self.type_name(shape.item or _Shape('any'))}>"
        return {"string": "string", "int": "number", "number": "number", "bool": "boolean"}.get(shape.kind, "unknown")

    def member_name(self, name: str) -> str:
        return name if _TS_IDENTIFIER.match(name) else quote_string(name)

    def member_expr(self, member: str) -> str:
        return member

    def data_expr(self, key: str) -> str:
        return key

    def argument_expr(self) -> str:
        return "request"

    def response_expr(self, wrapped: bool) -> str:
        return 'response["output"]' if wrapped else "response"

    # JSON already matches the interfaces, so no conversion is needed.
    def dump(self, shape: _Shape, expr: str, depth: int = 0) -> str:
        return expr

    def load(self, shape: _Shape, expr: str, depth: int = 0) -> str:
        return f"{expr} as {self.type_name(shape)}"

    def declaration(self, named: _NamedShape) -> dict[str, Any]:
        declaration = super().declaration(named)
        if named.kind == "object":
            declaration["fields"].sort(key=lambda f: f["name"])
        return declaration
