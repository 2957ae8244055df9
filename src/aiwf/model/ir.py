# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Immutable intermediate representation consumed by the code generation backends."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from aiwf.model.spec import DialogSpec, ScatterSpec, ThreadBinding, ThreadSpec
from aiwf.model.types import TypeDef, TypeRegistry

# ###############
# Public Interface
# ###############


class _IRModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)


class IRAssistant(_IRModel):
    """A validated, generation-ready assistant.

    Attributes:
        output_schema: JSON Schema of the output, embedded verbatim by the
            full SDK backend.
        input_type: None when the assistant declares no input; backends fall
            back to an untyped mapping.
    """

    name: str
    use: str = ""
    model: str = ""
    system_prompt: str = ""
    input_type: TypeDef | None = None
    output_type: TypeDef
    input_schema_ref: str = ""
    output_schema_ref: str = ""
    output_schema: dict[str, Any] = Field(default_factory=dict)
    depends_on: tuple[str, ...] = ()
    thread: ThreadBinding | None = None
    dialog: DialogSpec | None = None


class IRStep(_IRModel):
    """A validated workflow step."""

    name: str
    assistant: str
    needs: tuple[str, ...] = ()
    scatter: ScatterSpec | None = None
    input_binding: dict[str, Any] = Field(default_factory=dict)
    thread: ThreadBinding | None = None
    dialog: DialogSpec | None = None
    approval: dict[str, Any] | None = None
    next: str | None = None


class IRWorkflow(_IRModel):
    """A validated workflow with steps in declaration order."""

    name: str
    description: str = ""
    thread: ThreadBinding | None = None
    steps: tuple[IRStep, ...] = ()


class IR(_IRModel):
    """The complete intermediate representation of one spec.

    All collections are copies of the resolved spec; mutating the spec after
    building does not affect an existing IR.
    """

    assistants: dict[str, IRAssistant] = Field(default_factory=dict)
    workflows: dict[str, IRWorkflow] = Field(default_factory=dict)
    threads: dict[str, ThreadSpec] = Field(default_factory=dict)
    registry: TypeRegistry = Field(default_factory=TypeRegistry)
