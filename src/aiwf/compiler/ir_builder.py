# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Validates a resolved spec and lowers it into the immutable IR."""

from __future__ import annotations

import copy
import logging

from aiwf.compiler.schema import typedef_to_schema
from aiwf.errors import MultiError
from aiwf.model.ir import IR, IRAssistant, IRStep, IRWorkflow
from aiwf.model.spec import ResolvedSpec, StepSpec, WorkflowSpec

logger = logging.getLogger(__name__)

# ###############
# Public Interface
# ###############


def build_ir(resolved: ResolvedSpec) -> tuple[IR | None, MultiError]:
    """Validate ``resolved`` and build its intermediate representation.

    Every assistant, workflow and step is checked; problems never stop the
    pass early. The returned IR is None exactly when at least one fatal
    diagnostic was found. Warnings alone still yield a usable IR.

    Args:
        resolved: Output of the spec loader.

    Returns:
        A tuple of the IR (or None) and every diagnostic collected.
    """
    return _IRBuilder(resolved).build()


# ################
# Implementation
# ################


class _IRBuilder:
    """Single-use builder holding the diagnostics of one pass."""

    def __init__(self, resolved: ResolvedSpec) -> None:
        self._resolved = resolved
        self._diagnostics = MultiError()
        self._assistants: dict[str, IRAssistant] = {}
        self._used_assistants: set[str] = set()

    def build(self) -> tuple[IR | None, MultiError]:
        spec = self._resolved.spec
        for name in spec.assistants:
            self._build_assistant(name)

        workflows: dict[str, IRWorkflow] = {}
        for wf_name, workflow in spec.workflows.items():
            workflows[wf_name] = self._build_workflow(wf_name, workflow)

        for name in spec.assistants:
            if name not in self._used_assistants:
                self._diagnostics.add_warning(f"assistants.{name}", "assistant is not used by any workflow step")

        if self._diagnostics.has_errors:
            logger.debug("IR build failed with %d error(s)", len(self._diagnostics.errors))
            return None, self._diagnostics

        ir = IR(
            assistants=self._assistants,
            workflows=workflows,
            threads={name: thread.model_copy(deep=True) for name, thread in spec.threads.items()},
            registry=copy.deepcopy(self._resolved.registry),
        )
        logger.debug("Built IR with %d assistant(s) and %d workflow(s)", len(ir.assistants), len(ir.workflows))
        return ir, self._diagnostics

    def _build_assistant(self, name: str) -> None:
        spec = self._resolved.spec.assistants[name]
        resolution = self._resolved.assistants.get(name)
        if resolution is None or resolution.output_type is None:
            self._diagnostics.add_error(f"assistants.{name}.output_type", "output type is not resolved")
            return

        if resolution.output_schema is not None:
            output_schema = copy.deepcopy(resolution.output_schema.schema)
        else:
            output_schema = typedef_to_schema(resolution.output_type, self._resolved.registry)

        self._assistants[name] = IRAssistant(
            name=name,
            use=spec.use,
            model=spec.model,
            system_prompt=spec.system_prompt,
            input_type=copy.deepcopy(resolution.input_type),
            output_type=copy.deepcopy(resolution.output_type),
            input_schema_ref=spec.input_schema_ref,
            output_schema_ref=spec.output_schema_ref,
            output_schema=output_schema,
            depends_on=tuple(spec.depends_on),
            thread=spec.thread.model_copy(deep=True) if spec.thread else None,
            dialog=spec.dialog.model_copy(deep=True) if spec.dialog else None,
        )

    def _build_workflow(self, wf_name: str, workflow: WorkflowSpec) -> IRWorkflow:
        prefix = f"workflows.{wf_name}"
        if not workflow.dag:
            self._diagnostics.add_warning(prefix, "workflow has no steps")

        seen: dict[str, int] = {}
        steps: list[IRStep] = []
        for index, step in enumerate(workflow.dag):
            ir_step = self._build_step(f"{prefix}.dag[{index}]", index, step, seen)
            if ir_step is not None:
                steps.append(ir_step)

        for index, step in enumerate(workflow.dag):
            if step.next is not None and step.next not in seen:
                self._diagnostics.add_error(f"{prefix}.dag[{index}].next", f"unknown step '{step.next}'")

        return IRWorkflow(
            name=wf_name,
            description=workflow.description,
            thread=workflow.thread.model_copy(deep=True) if workflow.thread else None,
            steps=tuple(steps),
        )

    def _build_step(self, field_path: str, index: int, step: StepSpec, seen: dict[str, int]) -> IRStep | None:
        if not step.step:
            self._diagnostics.add_error(f"{field_path}.step", "step name is required")
            return None
        if not step.assistant:
            self._diagnostics.add_error(f"{field_path}.assistant", "assistant is required")
            return None
        if step.assistant not in self._assistants:
            self._diagnostics.add_error(f"{field_path}.assistant", f"assistant '{step.assistant}' not found")
            return None
        self._used_assistants.add(step.assistant)

        if step.step in seen:
            first = seen[step.step]
            self._diagnostics.add_error(
                f"{field_path}.step",
                f"duplicate step '{step.step}' at dag[{index}], first declared at dag[{first}]",
            )
            return None
        seen[step.step] = index

        valid = True
        for need in step.needs:
            if need not in seen or need == step.step:
                self._diagnostics.add_error(f"{field_path}.needs", f"'{need}' refers to a step not yet declared")
                valid = False

        if step.scatter is not None:
            if not step.scatter.from_:
                self._diagnostics.add_error(f"{field_path}.scatter.from", "is required")
                valid = False
            if not step.scatter.as_:
                self._diagnostics.add_error(f"{field_path}.scatter.as", "is required")
                valid = False
            if step.scatter.concurrency < 0:
                self._diagnostics.add_error(f"{field_path}.scatter.concurrency", "must not be negative")
                valid = False

        if not valid:
            return None
        return IRStep(
            name=step.step,
            assistant=step.assistant,
            needs=tuple(step.needs),
            scatter=step.scatter.model_copy(deep=True) if step.scatter else None,
            input_binding=copy.deepcopy(step.input_binding),
            thread=step.thread.model_copy(deep=True) if step.thread else None,
            dialog=step.dialog.model_copy(deep=True) if step.dialog else None,
            approval=copy.deepcopy(step.approval),
            next=step.next,
        )
