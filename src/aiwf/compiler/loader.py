# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Loads a spec document and resolves every type and schema reference it makes.

The loader never stops at the first problem: every section is checked and
all diagnostics are raised together as a single MultiError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import pydantic
import yaml

from aiwf.compiler.registry import parse_type_definition, resolve_refs
from aiwf.compiler.schema import (
    SCHEMA_FILE_SUFFIXES,
    check_schema_document,
    load_schema_file,
    schema_to_typedef,
    type_identifier,
    typedef_to_schema,
)
from aiwf.errors import MultiError, SchemaError, SpecSyntaxError, TypeSyntaxError
from aiwf.model.spec import (
    DEFAULT_THREAD_STRATEGY,
    THREAD_STRATEGIES,
    AssistantSpec,
    DialogSpec,
    ImportSpec,
    RawTypeSpec,
    ResolvedAssistant,
    ResolvedSpec,
    SchemaDocument,
    SchemaRegistrySpec,
    Spec,
    ThreadBinding,
    ThreadSpec,
    WorkflowSpec,
)
from aiwf.model.types import RefType, StringType, TypeDef, TypeRegistry, split_reference
from aiwf.naming import pascal_case

logger = logging.getLogger(__name__)

# ###############
# Public Interface
# ###############


def load_spec(path: Path) -> ResolvedSpec:
    """Load, validate and resolve a spec document from disk.

    Relative import and schema paths are resolved from the directory that
    contains ``path``.

    Args:
        path: Path to the spec YAML file.

    Returns:
        The resolved spec.

    Raises:
        SpecSyntaxError: If the file cannot be read or is not valid YAML.
        MultiError: If the document has any fatal problem. All problems
            found are reported together.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SpecSyntaxError(f"Cannot read spec file '{path}': {exc}") from exc
    return load_spec_text(text, base_dir=path.parent, source_label=str(path))


def load_spec_text(text: str, base_dir: Path, source_label: str = "<string>") -> ResolvedSpec:
    """Load a spec document from a string.

    Args:
        text: Raw YAML content.
        base_dir: Directory relative paths are resolved from.
        source_label: Human-readable label used in error messages.

    Raises:
        SpecSyntaxError: If the YAML is unparseable or not a mapping.
        MultiError: If the document has any fatal problem.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise SpecSyntaxError(f"Invalid YAML in {source_label}: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise SpecSyntaxError(f"{source_label}: spec document must be a YAML mapping")

    logger.debug("Loading spec from %s", source_label)
    return _SpecLoader(base_dir, source_label).load(data)


# ################
# Implementation
# ################

_ModelT = TypeVar("_ModelT", bound=pydantic.BaseModel)


def _format_location(prefix: str, loc: tuple[int | str, ...]) -> str:
    """Render a pydantic error location as a dotted/bracketed field path."""
    path = prefix
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        elif path:
            path += f".{part}"
        else:
            path = str(part)
    return path


@dataclass
class _PendingSchema:
    """A structured import entry whose lowering waits for the full identifier table."""

    alias: str
    name: str
    field: str
    document: SchemaDocument


class _SpecLoader:
    """Runs every loading step over one document, accumulating diagnostics."""

    def __init__(self, base_dir: Path, source_label: str) -> None:
        self._base_dir = base_dir
        self._source_label = source_label
        self._errors = MultiError()
        self._registry = TypeRegistry()
        self._documents: dict[str, SchemaDocument] = {}
        self._known_refs: dict[str, RefType] = {}
        self._ids_by_name: dict[tuple[str | None, str], str] = {}
        self._file_documents: dict[str, SchemaDocument] = {}

    def load(self, data: dict[str, Any]) -> ResolvedSpec:
        spec = self._parse_document(data)
        self._normalize_threads(spec)
        self._check_bindings(spec)
        self._build_imports(spec)
        self._build_local_types(spec)
        assistants = {
            name: self._resolve_assistant(name, assistant, spec) for name, assistant in spec.assistants.items()
        }
        self._check_workflow_assistants(spec)

        if self._errors.has_errors:
            logger.debug("Spec %s has %d error(s)", self._source_label, len(self._errors.errors))
            raise self._errors
        return ResolvedSpec(
            spec=spec,
            registry=self._registry,
            assistants=assistants,
            documents=dict(self._documents),
            base_dir=self._base_dir,
        )

    def _error(self, field_path: str, message: str) -> None:
        self._errors.add_error(field_path, message)

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def _parse_document(self, data: dict[str, Any]) -> Spec:
        """Validate each section independently so one bad entry does not hide the rest."""
        known = set(Spec.model_fields)
        for key in data:
            if key not in known:
                self._error(str(key), "unknown top-level field")

        version = data.get("version")
        if isinstance(version, int | float) and not isinstance(version, bool):
            version = str(version)
        if version is not None and not isinstance(version, str):
            self._error("version", "must be a string")
            version = None

        schema_registry = None
        if data.get("schema_registry") is not None:
            schema_registry = self._validate(SchemaRegistrySpec, data["schema_registry"], "schema_registry")

        imports: list[ImportSpec] = []
        for index, entry in enumerate(self._section(data, "imports", list)):
            imported = self._validate(ImportSpec, entry, f"imports[{index}]")
            if imported is not None:
                imports.append(imported)

        types = self._section(data, "types", dict)
        threads = self._validate_mapping(ThreadSpec, self._section(data, "threads", dict), "threads")
        raw_assistants = self._section(data, "assistants", dict)
        if not raw_assistants:
            self._error("assistants", "at least one assistant is required")
        assistants = self._validate_mapping(AssistantSpec, raw_assistants, "assistants")
        workflows = self._validate_mapping(WorkflowSpec, self._section(data, "workflows", dict), "workflows")

        return Spec(
            version=version or "",
            schema_registry=schema_registry,
            imports=imports,
            types=types,
            threads=threads,
            assistants=assistants,
            workflows=workflows,
        )

    def _section(self, data: dict[str, Any], key: str, expected: type) -> Any:
        value = data.get(key)
        if value is None:
            return expected()
        if not isinstance(value, expected):
            kind = "list" if expected is list else "mapping"
            self._error(key, f"must be a {kind}")
            return expected()
        return value

    def _validate(self, model: type[_ModelT], raw: Any, field_path: str) -> _ModelT | None:
        try:
            return model.model_validate(raw if raw is not None else {})
        except pydantic.ValidationError as exc:
            for detail in exc.errors():
                self._error(_format_location(field_path, detail["loc"]), detail["msg"])
            return None

    def _validate_mapping(self, model: type[_ModelT], raw: dict[Any, Any], field_path: str) -> dict[str, _ModelT]:
        result: dict[str, _ModelT] = {}
        for name, entry in raw.items():
            if not isinstance(name, str) or not name.strip():
                self._error(field_path, f"entry names must be non-empty strings, got {name!r}")
                continue
            validated = self._validate(model, entry, f"{field_path}.{name}")
            if validated is not None:
                result[name] = validated
        return result

    # ------------------------------------------------------------------
    # Threads and bindings
    # ------------------------------------------------------------------

    def _normalize_threads(self, spec: Spec) -> None:
        for name, thread in spec.threads.items():
            field_path = f"threads.{name}"
            if not thread.provider:
                self._error(f"{field_path}.provider", "is required")
            if not thread.strategy:
                spec.threads[name] = thread = thread.model_copy(update={"strategy": DEFAULT_THREAD_STRATEGY})
            if thread.strategy not in THREAD_STRATEGIES:
                self._error(f"{field_path}.strategy", _strategy_message(thread.strategy))
            if thread.ttl_hours < 0:
                self._error(f"{field_path}.ttl_hours", "must not be negative")

    def _check_bindings(self, spec: Spec) -> None:
        for name, assistant in spec.assistants.items():
            field_path = f"assistants.{name}"
            self._check_thread_binding(spec, assistant.thread, f"{field_path}.thread")
            self._check_dialog(assistant.dialog, f"{field_path}.dialog")
            if assistant.dialog is not None and assistant.thread is None:
                self._error(f"{field_path}.dialog", "dialog mode requires a thread binding")

        for wf_name, workflow in spec.workflows.items():
            field_path = f"workflows.{wf_name}"
            self._check_thread_binding(spec, workflow.thread, f"{field_path}.thread")
            for index, step in enumerate(workflow.dag):
                step_path = f"{field_path}.dag[{index}]"
                self._check_thread_binding(spec, step.thread, f"{step_path}.thread")
                self._check_dialog(step.dialog, f"{step_path}.dialog")

    def _check_thread_binding(self, spec: Spec, binding: ThreadBinding | None, field_path: str) -> None:
        if binding is None:
            return
        if not binding.use:
            self._error(f"{field_path}.use", "is required")
        elif binding.use not in spec.threads:
            self._error(f"{field_path}.use", f"unknown thread policy '{binding.use}'")
        if binding.strategy and binding.strategy not in THREAD_STRATEGIES:
            self._error(f"{field_path}.strategy", _strategy_message(binding.strategy))

    def _check_dialog(self, dialog: DialogSpec | None, field_path: str) -> None:
        if dialog is not None and dialog.max_rounds < 0:
            self._error(f"{field_path}.max_rounds", "must not be negative")

    # ------------------------------------------------------------------
    # Type registry
    # ------------------------------------------------------------------

    def _build_imports(self, spec: Spec) -> None:
        pending: list[_PendingSchema] = []
        dsl_entries: list[tuple[str, str, str]] = []

        for index, entry in enumerate(spec.imports):
            field_path = f"imports[{index}]"
            if not entry.path:
                self._error(f"{field_path}.path", "is required")
                continue
            if not entry.as_:
                self._error(f"{field_path}.as", "is required")
                continue
            if entry.as_ in self._registry.imports:
                self._error(f"{field_path}.as", f"duplicate import alias '{entry.as_}'")
                continue

            source = self._base_dir / entry.path
            raw_types = self._read_import(source, field_path)
            if raw_types is None:
                continue

            alias = entry.as_
            module = TypeRegistry()
            self._registry.add_import(alias, module)
            logger.debug("Importing %d type(s) from %s as '%s'", len(raw_types), source, alias)

            for name, raw in raw_types.items():
                type_path = f"{field_path}.types.{name}"
                if isinstance(raw, dict) and "$id" in raw:
                    identifier = raw["$id"]
                    if not isinstance(identifier, str) or not identifier:
                        self._error(f"{type_path}.$id", "must be a non-empty string")
                        continue
                    document = SchemaDocument(id=identifier, name=name, source=str(source), alias=alias, schema=raw)
                    if self._register_document(document, type_path):
                        pending.append(_PendingSchema(alias, name, type_path, document))
                    continue

                try:
                    typedef = parse_type_definition(name, raw)
                except TypeSyntaxError as exc:
                    self._error(type_path, str(exc))
                    continue
                document = SchemaDocument(
                    id=type_identifier(name, alias), name=name, source=str(source), alias=alias, schema={}
                )
                if self._register_document(document, type_path):
                    module.define(name, typedef)
                    dsl_entries.append((alias, name, type_path))

        # Structured entries may reference each other, so lower them only
        # after every identifier is known.
        for item in pending:
            typedef = schema_to_typedef(item.document.schema, item.name, known_refs=self._known_refs)
            self._registry.imports[item.alias].define(item.name, typedef)

        for alias, name, type_path in dsl_entries:
            typedef = self._registry.imports[alias].types[name]
            self._check_refs(typedef, type_path, module=alias)
            self._export_document(type_identifier(name, alias), typedef, alias)

        for item in pending:
            try:
                check_schema_document(item.document, self._documents)
            except SchemaError as exc:
                self._error(item.field, str(exc))
                continue
            self._check_refs(self._registry.imports[item.alias].types[item.name], item.field, module=item.alias)

    def _read_import(self, source: Path, field_path: str) -> dict[str, Any] | None:
        try:
            text = source.read_text(encoding="utf-8")
        except FileNotFoundError:
            self._error(field_path, f"file not found: {source}")
            return None
        except OSError as exc:
            self._error(field_path, f"cannot read {source}: {exc}")
            return None
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            self._error(field_path, f"cannot parse types in {source}: {exc}")
            return None
        if not isinstance(data, dict) or not isinstance(data.get("types") or {}, dict):
            self._error(field_path, f"{source}: expected a mapping with a 'types' mapping")
            return None
        return data.get("types") or {}

    def _register_document(self, document: SchemaDocument, field_path: str) -> bool:
        previous = self._documents.get(document.id)
        if previous is not None:
            self._error(
                field_path,
                f"duplicate identifier '{document.id}' declared in {previous.source} and {document.source}",
            )
            return False
        self._documents[document.id] = document
        module = document.alias or None
        self._known_refs[document.id] = RefType(target_name=document.name, module=module)
        self._ids_by_name[(module, document.name)] = document.id
        return True

    def _export_document(self, identifier: str, typedef: TypeDef, module: str | None) -> None:
        """Replace a DSL document's placeholder schema with the exported JSON Schema."""
        document = self._documents[identifier]
        schema = typedef_to_schema(typedef, self._registry, module=module)
        schema["$id"] = identifier
        self._documents[identifier] = SchemaDocument(
            id=document.id, name=document.name, source=document.source, alias=document.alias, schema=schema
        )

    def _build_local_types(self, spec: Spec) -> None:
        local: list[tuple[str, TypeDef]] = []
        for name, raw in spec.types.items():
            field_path = f"types.{name}"
            if not isinstance(name, str) or not name or "." in name:
                self._error("types", f"invalid type name {name!r}")
                continue
            try:
                typedef = parse_type_definition(name, raw)
            except TypeSyntaxError as exc:
                self._error(field_path, str(exc))
                continue
            document = SchemaDocument(
                id=type_identifier(name), name=name, source=self._source_label, alias="", schema={}
            )
            if self._register_document(document, field_path):
                self._registry.define(name, typedef)
                local.append((name, typedef))

        for name, typedef in local:
            self._check_refs(typedef, f"types.{name}")
            self._export_document(type_identifier(name), typedef, None)

    def _check_refs(self, typedef: TypeDef, field_path: str, module: str | None = None) -> bool:
        problems = resolve_refs(typedef, self._registry, module=module)
        for problem in problems:
            self._error(field_path, str(problem))
        return not problems

    # ------------------------------------------------------------------
    # Assistants
    # ------------------------------------------------------------------

    def _resolve_assistant(self, name: str, assistant: AssistantSpec, spec: Spec) -> ResolvedAssistant:
        field_path = f"assistants.{name}"
        resolved = ResolvedAssistant()
        pascal = pascal_case(name)

        for direction in ("input", "output"):
            type_value: RawTypeSpec | None = getattr(assistant, f"{direction}_type")
            schema_ref: str = getattr(assistant, f"{direction}_schema_ref")
            type_name = f"{pascal}{direction.capitalize()}"

            if type_value is not None and schema_ref:
                self._error(
                    f"{field_path}.{direction}_type",
                    f"declare either {direction}_type or {direction}_schema_ref, not both",
                )
                continue

            if schema_ref:
                result = self._resolve_schema_ref(schema_ref, type_name, f"{field_path}.{direction}_schema_ref", spec)
                if result is not None:
                    document, typedef = result
                    setattr(resolved, f"{direction}_schema", document)
                    setattr(resolved, f"{direction}_type", typedef)
            elif type_value is not None:
                typedef = self._resolve_type_spec(type_value, type_name, f"{field_path}.{direction}_type")
                setattr(resolved, f"{direction}_type", typedef)
            elif direction == "output":
                logger.debug("Assistant '%s' declares no output type; defaulting to string", name)
                resolved.output_type = StringType()

        for dependency in assistant.depends_on:
            if dependency not in spec.assistants:
                self._error(f"{field_path}.depends_on", f"unknown assistant '{dependency}'")
        return resolved

    def _resolve_type_spec(self, raw: RawTypeSpec, type_name: str, field_path: str) -> TypeDef | None:
        if isinstance(raw, str):
            expression = raw.strip()
            if not expression:
                self._error(field_path, "must not be empty")
                return None
            if self._registry.contains(expression):
                module, target = split_reference(expression)
                return RefType(target_name=target, module=module)
        try:
            typedef = parse_type_definition(type_name, raw.strip() if isinstance(raw, str) else raw)
        except TypeSyntaxError as exc:
            self._error(field_path, f"cannot resolve type: {exc}")
            return None
        if not self._check_refs(typedef, field_path):
            return None
        return typedef

    def _resolve_schema_ref(
        self, ref: str, type_name: str, field_path: str, spec: Spec
    ) -> tuple[SchemaDocument, TypeDef] | None:
        if "://" in ref:
            document = self._documents.get(ref)
            if document is None:
                self._error(field_path, f"unknown schema identifier '{ref}'")
                return None
            return document, self._known_refs[ref]

        if ref.endswith(SCHEMA_FILE_SUFFIXES):
            document = self._load_schema_file(ref, spec, field_path)
            if document is None:
                return None
            return document, schema_to_typedef(document.schema, type_name, known_refs=self._known_refs)

        if self._registry.contains(ref):
            module, target = split_reference(ref)
            identifier = self._ids_by_name.get((module, target))
            document = self._documents.get(identifier) if identifier else None
            if document is not None:
                return document, RefType(target_name=target, module=module)
        self._error(field_path, f"unknown schema reference '{ref}'")
        return None

    def _load_schema_file(self, ref: str, spec: Spec, field_path: str) -> SchemaDocument | None:
        root = self._base_dir
        if spec.schema_registry is not None and spec.schema_registry.root:
            root = self._base_dir / spec.schema_registry.root
        path = (root / ref).resolve()
        identifier = path.as_uri()
        if identifier in self._file_documents:
            return self._file_documents[identifier]

        try:
            schema = load_schema_file(path)
        except SchemaError as exc:
            self._error(field_path, str(exc))
            return None
        document = SchemaDocument(id=identifier, name=pascal_case(path.stem), source=str(path), alias="", schema=schema)
        try:
            check_schema_document(document, self._documents)
        except SchemaError as exc:
            self._error(field_path, str(exc))
            return None
        self._file_documents[identifier] = document
        return document

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def _check_workflow_assistants(self, spec: Spec) -> None:
        for wf_name, workflow in spec.workflows.items():
            for index, step in enumerate(workflow.dag):
                if step.assistant and step.assistant not in spec.assistants:
                    self._error(
                        f"workflows.{wf_name}.dag[{index}].assistant",
                        f"unknown assistant '{step.assistant}'",
                    )


def _strategy_message(strategy: str) -> str:
    expected = ", ".join(THREAD_STRATEGIES)
    return f"unsupported strategy '{strategy}' (expected one of: {expected})"
