# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Closed type model produced by parsing type expressions and schema documents."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from aiwf.errors import UnknownModuleError, UnknownTypeError

# ###############
# Public Interface
# ###############


class _TypeModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class StringType(_TypeModel):
    """A string, optionally constrained by length, pattern or a format token."""

    kind: Literal["string"] = "string"
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    format: str | None = None


class IntType(_TypeModel):
    """An integer with optional inclusive bounds."""

    kind: Literal["int"] = "int"
    min: int | None = None
    max: int | None = None


class NumberType(_TypeModel):
    """A floating point number with optional inclusive bounds."""

    kind: Literal["number"] = "number"
    min: float | None = None
    max: float | None = None


class BoolType(_TypeModel):
    kind: Literal["bool"] = "bool"


class DatetimeType(_TypeModel):
    kind: Literal["datetime"] = "datetime"


class DateType(_TypeModel):
    kind: Literal["date"] = "date"


class UUIDType(_TypeModel):
    kind: Literal["uuid"] = "uuid"


class AnyType(_TypeModel):
    """An opaque value; every backend maps it to its dynamic placeholder."""

    kind: Literal["any"] = "any"


class EnumType(_TypeModel):
    """A closed set of string values in declaration order."""

    kind: Literal["enum"] = "enum"
    values: tuple[str, ...]


class ArrayType(_TypeModel):
    """A homogeneous list with optional item-count bounds."""

    kind: Literal["array"] = "array"
    items: TypeDef
    min_items: int | None = None
    max_items: int | None = None


class MapType(_TypeModel):
    """A string-keyed dictionary. Keys are always strings."""

    kind: Literal["map"] = "map"
    value_type: TypeDef


class Property(_TypeModel):
    """A single field of an object type."""

    type: TypeDef
    optional: bool = False


class ObjectType(_TypeModel):
    """A named record type. Properties keep their declaration order."""

    kind: Literal["object"] = "object"
    name: str
    properties: dict[str, Property] = Field(default_factory=dict)
    description: str | None = None


class RefType(_TypeModel):
    """A by-name reference to a registry entry.

    References are never inlined, which keeps self- and mutually-recursive
    type graphs finite.
    """

    kind: Literal["ref"] = "ref"
    target_name: str
    module: str | None = None

    @property
    def qualified_name(self) -> str:
        if self.module:
            return f"{self.module}.{self.target_name}"
        return self.target_name


# The closed type union. The `kind` discriminator keeps serialization unambiguous.
TypeDef = Annotated[
    StringType
    | IntType
    | NumberType
    | BoolType
    | DatetimeType
    | DateType
    | UUIDType
    | AnyType
    | EnumType
    | ArrayType
    | MapType
    | ObjectType
    | RefType,
    Field(discriminator="kind"),
]


class TypeRegistry:
    """A namespace of named type definitions with aliased sub-registries.

    Attributes:
        types: Locally defined types keyed by name.
        imports: Imported registries keyed by their import alias.
    """

    def __init__(
        self,
        types: dict[str, TypeDef] | None = None,
        imports: dict[str, TypeRegistry] | None = None,
    ) -> None:
        self.types: dict[str, TypeDef] = dict(types or {})
        self.imports: dict[str, TypeRegistry] = dict(imports or {})

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TypeRegistry):
            return NotImplemented
        return self.types == other.types and self.imports == other.imports

    def __repr__(self) -> str:
        return f"TypeRegistry(types={sorted(self.types)!r}, imports={sorted(self.imports)!r})"

    def define(self, name: str, typedef: TypeDef) -> None:
        """Register a type under ``name``.

        Raises:
            ValueError: If the name is already defined in this registry.
        """
        if name in self.types:
            raise ValueError(f"type '{name}' is already defined")
        self.types[name] = typedef

    def add_import(self, alias: str, registry: TypeRegistry) -> None:
        """Attach ``registry`` under ``alias``.

        Raises:
            ValueError: If the alias is already in use.
        """
        if alias in self.imports:
            raise ValueError(f"import alias '{alias}' is already in use")
        self.imports[alias] = registry

    def resolve(self, name: str) -> TypeDef:
        """Look up a bare or module-qualified type name.

        A leading ``$`` is ignored. ``module.Name`` resolves the alias first
        and then the name inside the imported registry.

        Raises:
            UnknownModuleError: If the module alias was never imported.
            UnknownTypeError: If the name is not defined.
        """
        module, type_name = split_reference(name)
        if module is None:
            if type_name not in self.types:
                raise UnknownTypeError(f"type '{type_name}' is not defined", name=name)
            return self.types[type_name]
        if module not in self.imports:
            raise UnknownModuleError(f"module '{module}' not imported", name=name)
        imported = self.imports[module]
        if type_name not in imported.types:
            raise UnknownTypeError(f"type '{type_name}' not found in module '{module}'", name=name)
        return imported.types[type_name]

    def resolve_ref(self, ref: RefType, module: str | None = None) -> tuple[str | None, TypeDef]:
        """Resolve ``ref`` as written inside the registry of ``module``.

        Unqualified references inside an imported type refer to that import's
        own types, so ``module`` supplies the owning alias for them.

        Returns:
            The alias the target lives in (None for local types) and its definition.
        """
        owner = ref.module or module
        if owner is None:
            return None, self.resolve(ref.target_name)
        return owner, self.resolve(f"{owner}.{ref.target_name}")

    def contains(self, name: str) -> bool:
        """Return True if ``name`` resolves without error."""
        try:
            self.resolve(name)
        except (UnknownModuleError, UnknownTypeError):
            return False
        return True

    def iter_types(self) -> Iterator[tuple[str | None, str, TypeDef]]:
        """Yield ``(module, name, typedef)`` for every type in sorted order.

        Local types come first with a module of None, followed by each import
        alias in sorted order.
        """
        for name in sorted(self.types):
            yield None, name, self.types[name]
        for alias in sorted(self.imports):
            imported = self.imports[alias]
            for name in sorted(imported.types):
                yield alias, name, imported.types[name]


def split_reference(name: str) -> tuple[str | None, str]:
    """Split ``$module.Name`` into ``("module", "Name")`` and ``Name`` into ``(None, "Name")``."""
    name = name.removeprefix("$")
    if "." in name:
        module, type_name = name.split(".", 1)
        return module, type_name
    return None, name


# Resolve forward references for models that use TypeDef.
ArrayType.model_rebuild()
MapType.model_rebuild()
Property.model_rebuild()
ObjectType.model_rebuild()
