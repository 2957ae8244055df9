# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Full Go SDK backend: runtime contract, typed agents, workflow runners and contracts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from aiwf.backends.templating import (
    create_environment,
    identifier,
    output_path,
    pretty_json,
    quote_string,
    registry_type_name,
    unique_name,
)
from aiwf.errors import GenerationError, StructuralError, UnresolvedReferenceError
from aiwf.model.ir import IR, IRAssistant, IRWorkflow
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
    RefType,
    StringType,
    TypeDef,
    TypeRegistry,
    UUIDType,
)
from aiwf.naming import camel_case, pascal_case

logger = logging.getLogger(__name__)

GO_VERSION = "1.22"

# Package-level identifiers declared by service.go, agents.go and workflows.go.
RUNTIME_NAMES = frozenset(
    {
        "Agents",
        "ModelCall",
        "ModelClient",
        "NewService",
        "Service",
        "ThreadBinding",
        "Tokens",
        "Trace",
        "Workflows",
        "agents",
        "mergeTraces",
        "rebind",
        "workflows",
    }
)

# ###############
# Public Interface
# ###############


@dataclass(frozen=True)
class GoOptions:
    """Options of the Go SDK backend.

    Attributes:
        package: Go package name of every emitted file.
        output_dir: Relative directory prefixed to every output path.
        module: Module path; when set a ``go.mod`` is emitted as well.
    """

    package: str = "aiwfgen"
    output_dir: str = ""
    module: str | None = None


def generate_go(ir: IR, options: GoOptions | None = None) -> dict[str, bytes]:
    """Render the Go SDK for ``ir``.

    The result maps relative output paths to file contents. ``workflows.go``
    is only present when the IR declares at least one workflow.

    Registry types whose Go name is already taken by the runtime, by a
    generated agent or workflow identifier, or by an earlier registry type
    are emitted with a ``Type`` suffix instead.

    Raises:
        StructuralError: If a workflow step names an assistant or input
            source that the IR does not contain.
        GenerationError: If two assistants or workflows map to the same Go
            identifier.
    """
    return _GoGenerator(ir, options or GoOptions()).generate()


# ################
# Implementation
# ################


@dataclass
class _Declaration:
    name: str
    kind: str
    doc: list[str] = field(default_factory=list)
    target: str = ""
    lines: list[str] = field(default_factory=list)


class _ContractBuilder:
    """Lowers TypeDefs into Go declarations keyed by their Go name."""

    def __init__(self, registry: TypeRegistry, names: dict[tuple[str | None, str], str], reserved: set[str]) -> None:
        self._registry = registry
        self._names = names
        self._taken = set(reserved) | set(names.values())
        self.declarations: dict[str, _Declaration] = {}
        self.uses_time = False

    def declare_registry_types(self) -> None:
        for module, name, typedef in self._registry.iter_types():
            self.declare(self._names[(module, name)], typedef, module, [])

    def declare(self, name: str, typedef: TypeDef, module: str | None, doc: list[str]) -> None:
        if name in self.declarations:
            logger.debug("Go declaration %s already emitted, skipping", name)
            return
        if isinstance(typedef, ObjectType):
            self._declare_struct(name, typedef, module, doc)
        elif isinstance(typedef, EnumType):
            self._declare_enum(name, typedef, doc)
        else:
            target = self.go_type(typedef, name, module)
            if target != name:
                self.declarations[name] = _Declaration(name=name, kind="alias", doc=doc, target=target)

    def go_type(self, typedef: TypeDef, context: str, module: str | None) -> str:
        if isinstance(typedef, StringType | DateType | UUIDType):
            return "string"
        if isinstance(typedef, IntType):
            return "int"
        if isinstance(typedef, NumberType):
            return "float64"
        if isinstance(typedef, BoolType):
            return "bool"
        if isinstance(typedef, DatetimeType):
            self.uses_time = True
            return "time.Time"
        if isinstance(typedef, AnyType):
            return "any"
        if isinstance(typedef, ArrayType):
            return "[]" + self.go_type(typedef.items, f"{context}Item", module)
        if isinstance(typedef, MapType):
            return "map[string]" + self.go_type(typedef.value_type, f"{context}Value", module)
        if isinstance(typedef, ObjectType | EnumType):
            nested = unique_name(context, self._taken)
            self.declare(nested, typedef, module, [])
            return nested
        return self._ref_name(typedef, module)

    def _ref_name(self, ref: RefType, module: str | None) -> str:
        try:
            owner, _ = self._registry.resolve_ref(ref, module)
        except UnresolvedReferenceError:
            logger.debug("Unresolved reference %s lowered to any", ref.qualified_name)
            return "any"
        return self._names.get((owner, ref.target_name), registry_type_name(owner, ref.target_name))

    def _declare_struct(self, name: str, typedef: ObjectType, module: str | None, doc: list[str]) -> None:
        declaration = _Declaration(name=name, kind="struct", doc=doc)
        # Registered before the fields so self-referencing structs terminate.
        self.declarations[name] = declaration
        if typedef.description and not doc:
            declaration.doc = typedef.description.splitlines()

        rows: list[tuple[str, str, str]] = []
        used: set[str] = set()
        for json_name in sorted(typedef.properties):
            prop = typedef.properties[json_name]
            field_name = unique_name(identifier(pascal_case(json_name), "Field"), used)
            field_type = self.go_type(prop.type, f"{name}{pascal_case(json_name)}", module)
            nillable = field_type.startswith(("[]", "map[")) or field_type == "any"
            if prop.optional:
                tag = f'`json:"{json_name},omitempty"`'
            else:
                tag = f'`json:"{json_name}"`'
            # A struct cannot contain itself by value.
            if field_type == name or (prop.optional and not nillable):
                field_type = "*" + field_type
            rows.append((field_name, field_type, tag))
        declaration.lines = _align(rows)

    def _declare_enum(self, name: str, typedef: EnumType, doc: list[str]) -> None:
        rows = []
        for value in typedef.values:
            constant = unique_name(name + identifier(pascal_case(value), "Value"), self._taken)
            rows.append((constant, name, f"= {quote_string(value)}"))
        rows.sort()
        self.declarations[name] = _Declaration(name=name, kind="enum", doc=doc, lines=_align(rows))


class _GoGenerator:
    def __init__(self, ir: IR, options: GoOptions) -> None:
        self._ir = ir
        self._options = options
        self._env = create_environment()

    def generate(self) -> dict[str, bytes]:
        reserved = self._reserved_names()
        contracts = _ContractBuilder(self._ir.registry, self._registry_names(reserved), reserved)
        agents = [self._agent_context(name, contracts) for name in sorted(self._ir.assistants)]
        contracts.declare_registry_types()
        workflows = [self._workflow_context(name) for name in sorted(self._ir.workflows)]

        files: dict[str, bytes] = {}
        files[self._path("service.go")] = self._render("go/service.go.j2")
        files[self._path("agents.go")] = self._render("go/agents.go.j2", agents=agents)
        if workflows:
            files[self._path("workflows.go")] = self._render(
                "go/workflows.go.j2",
                workflows=workflows,
                uses_fmt=any(workflow["steps"] for workflow in workflows),
            )
        files[self._path("contracts.go")] = self._render(
            "go/contracts.go.j2",
            declarations=list(contracts.declarations.values()),
            uses_time=contracts.uses_time,
        )
        if self._options.module:
            files[self._path("go.mod")] = self._render(
                "go/go.mod.j2", module=self._options.module, go_version=GO_VERSION
            )
        logger.debug("Rendered %d Go file(s)", len(files))
        return files

    def _reserved_names(self) -> set[str]:
        """Collect every package-level identifier the templates declare.

        Raises:
            GenerationError: If two assistants or workflows produce the same identifier.
        """
        owners = dict.fromkeys(RUNTIME_NAMES, "the SDK runtime")
        generated: list[tuple[str, list[str]]] = []
        for name in sorted(self._ir.assistants):
            pascal = identifier(pascal_case(name), "Agent")
            struct = camel_case(pascal)
            names = [f"{pascal}Agent", f"{struct}Agent", f"{pascal}Input", f"{pascal}Output"]
            generated.append((f"assistant '{name}'", [*names, f"{struct}OutputSchemaJSON"]))
        for name in sorted(self._ir.workflows):
            pascal = identifier(pascal_case(name), "Workflow")
            struct = camel_case(pascal)
            names = [f"{pascal}Workflow", f"{struct}Workflow", f"{pascal}WorkflowInput", f"{pascal}WorkflowOutput"]
            generated.append((f"workflow '{name}'", names))

        for owner, names in generated:
            for go_name in names:
                if go_name in owners:
                    raise GenerationError(
                        f"Go identifier '{go_name}' of {owner} is already declared by {owners[go_name]}"
                    )
                owners[go_name] = owner
        return set(owners)

    def _registry_names(self, reserved: set[str]) -> dict[tuple[str | None, str], str]:
        """Assign each registry type a Go name that no other declaration uses."""
        taken = set(reserved)
        names: dict[tuple[str | None, str], str] = {}
        for module, name, _ in self._ir.registry.iter_types():
            go_name = registry_type_name(module, name)
            if go_name in taken:
                logger.debug("Registry type %s renamed to avoid clashing with %s", name, go_name)
                go_name = f"{go_name}Type"
            names[(module, name)] = unique_name(go_name, taken)
        return names

    def _path(self, filename: str) -> str:
        return output_path(self._options.output_dir, filename)

    def _render(self, template: str, **context: Any) -> bytes:
        text = self._env.get_template(template).render(package=self._options.package, **context)
        return text.encode("utf-8")

    def _agent_context(self, name: str, contracts: _ContractBuilder) -> dict[str, Any]:
        assistant = self._ir.assistants[name]
        pascal = identifier(pascal_case(name), "Agent")
        input_type = f"{pascal}Input"
        output_type = f"{pascal}Output"
        input_def = assistant.input_type if assistant.input_type is not None else MapType(value_type=AnyType())
        contracts.declare(input_type, input_def, None, [f"{input_type} is the input of the {name} assistant."])
        contracts.declare(
            output_type, assistant.output_type, None, [f"{output_type} is the output of the {name} assistant."]
        )

        return {
            "name": name,
            "method": pascal,
            "interface": f"{pascal}Agent",
            "struct": f"{camel_case(pascal)}Agent",
            "input_type": input_type,
            "output_type": output_type,
            "schema_var": f"{camel_case(pascal)}OutputSchemaJSON",
            "schema_literal": quote_string(pretty_json(assistant.output_schema)),
            "model": assistant.model,
            "system_prompt": assistant.system_prompt,
            "input_schema_ref": assistant.input_schema_ref,
            "output_schema_ref": assistant.output_schema_ref,
            "thread": self._thread_context(assistant),
        }

    def _thread_context(self, assistant: IRAssistant) -> dict[str, str] | None:
        if assistant.thread is None:
            return None
        policy = self._ir.threads.get(assistant.thread.use)
        return {
            "policy": assistant.thread.use,
            "provider": policy.provider if policy else "",
            "strategy": assistant.thread.strategy or (policy.strategy if policy else "") or "append",
        }

    def _workflow_context(self, name: str) -> dict[str, Any]:
        workflow = self._ir.workflows[name]
        pascal = identifier(pascal_case(name), "Workflow")
        steps = self._step_contexts(workflow)
        if steps:
            input_target = steps[0]["input_type"]
            output_target = steps[-1]["output_type"]
        else:
            input_target = output_target = "map[string]any"

        doc = [f"{pascal}Workflow runs the {name} workflow."]
        if workflow.description:
            doc.extend(workflow.description.splitlines())
        return {
            "name": name,
            "method": pascal,
            "interface": f"{pascal}Workflow",
            "struct": f"{camel_case(pascal)}Workflow",
            "input_alias": f"{pascal}WorkflowInput",
            "output_alias": f"{pascal}WorkflowOutput",
            "input_target": input_target,
            "output_target": output_target,
            "doc": doc,
            "steps": steps,
        }

    def _step_contexts(self, workflow: IRWorkflow) -> list[dict[str, Any]]:
        declared: set[str] = set()
        steps: list[dict[str, Any]] = []
        for step in workflow.steps:
            if step.assistant not in self._ir.assistants:
                raise StructuralError(
                    f"workflow '{workflow.name}' step '{step.name}' uses unknown assistant '{step.assistant}'"
                )
            source = step.needs[0] if step.needs else None
            if source is not None and source not in declared:
                raise StructuralError(
                    f"workflow '{workflow.name}' step '{step.name}' reads from undeclared step '{source}'"
                )
            declared.add(step.name)

            scatter = ""
            if step.scatter is not None:
                scatter = f"from {step.scatter.from_} as {step.scatter.as_}"
                if step.scatter.concurrency:
                    scatter += f" (concurrency {step.scatter.concurrency})"
            pascal = identifier(pascal_case(step.assistant), "Agent")
            steps.append(
                {
                    "name": step.name,
                    "method": pascal,
                    "input_type": f"{pascal}Input",
                    "output_type": f"{pascal}Output",
                    "source": source,
                    "scatter": scatter,
                }
            )
        return steps


def _align(rows: list[tuple[str, str, str]]) -> list[str]:
    """Pad the first two columns the way gofmt aligns struct fields and constants."""
    if not rows:
        return []
    first = max(len(row[0]) for row in rows)
    second = max(len(row[1]) for row in rows)
    return [f"{a.ljust(first)} {b.ljust(second)} {c}" for a, b, c in rows]
