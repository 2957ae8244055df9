# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Pydantic models for the YAML spec document and its resolved form."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from aiwf.model.types import TypeDef, TypeRegistry

# ###############
# Public Interface
# ###############

THREAD_STRATEGIES: tuple[str, ...] = ("append", "reset_before_step")
DEFAULT_THREAD_STRATEGY = "append"

# A *_type value: an expression string, an inline field mapping or a one-element list.
RawTypeSpec = str | dict[str, Any] | list[Any]


class _SpecModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class ImportSpec(_SpecModel):
    """A cross-file type import bound to an alias."""

    as_: str = Field(alias="as", default="")
    path: str = ""


class SchemaRegistrySpec(_SpecModel):
    """Root directory for structured-schema file references."""

    root: str = ""


class ThreadSpec(_SpecModel):
    """A named conversation-thread policy."""

    provider: str = ""
    strategy: str = ""
    create: bool = True
    close_on_finish: bool = False
    ttl_hours: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)


class ThreadBinding(_SpecModel):
    """Binds an assistant, workflow or step to a thread policy."""

    use: str = ""
    strategy: str = ""


class DialogSpec(_SpecModel):
    """Multi-round dialog settings. Requires a thread binding on assistants."""

    max_rounds: int = 0
    decider: str | None = None


class ScatterSpec(_SpecModel):
    """Fan-out over a collection produced by an earlier step."""

    from_: str = Field(alias="from", default="")
    as_: str = Field(alias="as", default="")
    concurrency: int = 0


class StepSpec(_SpecModel):
    """One entry of a workflow's ``dag`` list."""

    step: str = ""
    assistant: str = ""
    needs: list[str] = Field(default_factory=list)
    scatter: ScatterSpec | None = None
    input_binding: dict[str, Any] = Field(default_factory=dict)
    thread: ThreadBinding | None = None
    dialog: DialogSpec | None = None
    approval: dict[str, Any] | None = None
    next: str | None = None


class WorkflowSpec(_SpecModel):
    """A named, ordered pipeline of assistant steps."""

    description: str = ""
    thread: ThreadBinding | None = None
    dag: list[StepSpec] = Field(default_factory=list)

    @field_validator("dag", mode="before")
    @classmethod
    def _null_dag_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class AssistantSpec(_SpecModel):
    """A typed LLM agent definition."""

    use: str = ""
    model: str = ""
    system_prompt: str = ""
    input_type: RawTypeSpec | None = None
    output_type: RawTypeSpec | None = None
    input_schema_ref: str = ""
    output_schema_ref: str = ""
    depends_on: list[str] = Field(default_factory=list)
    thread: ThreadBinding | None = None
    dialog: DialogSpec | None = None


class Spec(_SpecModel):
    """The parsed top-level spec document."""

    version: str = ""
    schema_registry: SchemaRegistrySpec | None = None
    imports: list[ImportSpec] = Field(default_factory=list)
    types: dict[str, Any] = Field(default_factory=dict)
    threads: dict[str, ThreadSpec] = Field(default_factory=dict)
    assistants: dict[str, AssistantSpec] = Field(default_factory=dict)
    workflows: dict[str, WorkflowSpec] = Field(default_factory=dict)

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_string(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, int | float):
            return str(value)
        return value

    @field_validator("imports", "types", "threads", "assistants", "workflows", mode="before")
    @classmethod
    def _null_section_is_empty(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return [] if info.field_name == "imports" else {}
        return value


@dataclass(frozen=True)
class SchemaDocument:
    """A structured schema registered under an identifier.

    Attributes:
        id: Identifier such as ``aiwf://blog/Post``.
        name: Short type name.
        source: File the schema was read from.
        alias: Import alias, or empty for local and file-referenced schemas.
        schema: The JSON Schema mapping.
    """

    id: str
    name: str
    source: str
    alias: str
    schema: dict[str, Any]


@dataclass
class ResolvedAssistant:
    """Resolved input and output types of a single assistant."""

    input_type: TypeDef | None = None
    output_type: TypeDef | None = None
    input_schema: SchemaDocument | None = None
    output_schema: SchemaDocument | None = None


@dataclass
class ResolvedSpec:
    """A spec together with its type registry and per-assistant resolutions.

    Attributes:
        spec: The parsed document with defaults normalized.
        registry: Root type registry with one sub-registry per import alias.
        assistants: Resolution result for every assistant, keyed by name.
        documents: Every known schema document keyed by identifier.
        base_dir: Directory relative paths in the document are resolved from.
    """

    spec: Spec
    registry: TypeRegistry
    assistants: dict[str, ResolvedAssistant] = field(default_factory=dict)
    documents: dict[str, SchemaDocument] = field(default_factory=dict)
    base_dir: Path = field(default_factory=Path)
