# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Domain models for type definitions, spec documents and the intermediate representation."""

from aiwf.model.ir import IR, IRAssistant, IRStep, IRWorkflow
from aiwf.model.spec import (
    AssistantSpec,
    DialogSpec,
    ImportSpec,
    ResolvedAssistant,
    ResolvedSpec,
    ScatterSpec,
    SchemaDocument,
    SchemaRegistrySpec,
    Spec,
    StepSpec,
    ThreadBinding,
    ThreadSpec,
    WorkflowSpec,
)
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
    split_reference,
)

__all__ = [
    # Type system
    "StringType",
    "IntType",
    "NumberType",
    "BoolType",
    "DatetimeType",
    "DateType",
    "UUIDType",
    "AnyType",
    "EnumType",
    "ArrayType",
    "MapType",
    "Property",
    "ObjectType",
    "RefType",
    "TypeDef",
    "TypeRegistry",
    "split_reference",
    # Spec documents
    "ImportSpec",
    "SchemaRegistrySpec",
    "ThreadSpec",
    "ThreadBinding",
    "DialogSpec",
    "ScatterSpec",
    "StepSpec",
    "WorkflowSpec",
    "AssistantSpec",
    "Spec",
    "SchemaDocument",
    "ResolvedAssistant",
    "ResolvedSpec",
    # Intermediate representation
    "IRAssistant",
    "IRStep",
    "IRWorkflow",
    "IR",
]
