# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Tests for validating resolved specs and building the IR."""

from pathlib import Path

import pydantic
import pytest

from aiwf.compiler.ir_builder import build_ir
from aiwf.compiler.loader import load_spec_text
from aiwf.errors import MultiError
from aiwf.model.ir import IR
from aiwf.model.spec import ResolvedSpec
from aiwf.model.types import StringType

# ###############
# Test Helpers
# ###############

_HEADER = """\
types:
  Draft:
    title: string
    content: string
threads:
  chat:
    provider: openai
    strategy: reset_before_step
assistants:
  writer:
    model: gpt-4o-mini
    output_type: Draft
  critic:
    model: gpt-4o-mini
    input_type: Draft
    output_type: string
"""


def _resolve(workflows: str) -> ResolvedSpec:
    return load_spec_text(_HEADER + workflows, base_dir=Path("."))


def _build(workflows: str) -> tuple[IR | None, MultiError]:
    return build_ir(_resolve(workflows))


def _messages(diagnostics: MultiError) -> list[tuple[str, str]]:
    return [(error.field, error.message) for error in diagnostics.errors]


_VALID = """\
workflows:
  blog:
    description: Draft and review.
    thread: {use: chat}
    dag:
      - step: draft
        assistant: writer
        input_binding: {topic: "{{ input.topic }}"}
      - step: review
        assistant: critic
        needs: [draft]
"""


# ###############
# Successful Builds
# ###############


class TestBuild:
    def test_valid_spec(self) -> None:
        ir, diagnostics = _build(_VALID)
        assert ir is not None
        assert not diagnostics.has_errors
        assert not diagnostics.has_warnings
        assert list(ir.assistants) == ["writer", "critic"]
        steps = ir.workflows["blog"].steps
        assert [step.name for step in steps] == ["draft", "review"]
        assert steps[1].needs == ("draft",)
        assert ir.workflows["blog"].description == "Draft and review."

    def test_output_schema_is_exported_from_type(self) -> None:
        ir, _ = _build(_VALID)
        assert ir is not None
        schema = ir.assistants["writer"].output_schema
        assert schema["$ref"] == "#/$defs/Draft"
        assert schema["$defs"]["Draft"]["required"] == ["title", "content"]
        assert ir.assistants["critic"].output_schema["type"] == "string"

    def test_output_schema_ref_embeds_document(self, tmp_path: Path) -> None:
        (tmp_path / "draft.json").write_text('{"type": "object", "title": "Draft"}', encoding="utf-8")
        resolved = load_spec_text(
            "assistants:\n  writer:\n    output_schema_ref: draft.json\n", base_dir=tmp_path
        )
        ir, _ = build_ir(resolved)
        assert ir is not None
        assert ir.assistants["writer"].output_schema == {"type": "object", "title": "Draft"}

    def test_threads_are_copied(self) -> None:
        ir, _ = _build(_VALID)
        assert ir is not None
        assert ir.threads["chat"].strategy == "reset_before_step"
        assert ir.workflows["blog"].thread is not None

    def test_missing_output_type_is_string_in_ir(self) -> None:
        resolved = load_spec_text("assistants:\n  echo: {}\n", base_dir=Path("."))
        ir, diagnostics = build_ir(resolved)
        assert ir is not None
        assert ir.assistants["echo"].output_type == StringType()
        assert diagnostics.warnings[0].field == "assistants.echo"


class TestWarnings:
    def test_unused_assistant(self) -> None:
        ir, diagnostics = _build("workflows:\n  blog:\n    dag:\n      - {step: draft, assistant: writer}\n")
        assert ir is not None
        assert [(w.field, w.message) for w in diagnostics.warnings] == [
            ("assistants.critic", "assistant is not used by any workflow step")
        ]

    def test_empty_workflow(self) -> None:
        ir, diagnostics = _build("workflows:\n  idle:\n    dag: []\n")
        assert ir is not None
        assert ("workflows.idle", "workflow has no steps") in [(w.field, w.message) for w in diagnostics.warnings]
        assert ir.workflows["idle"].steps == ()


# ###############
# Structural Errors
# ###############


class TestStructuralErrors:
    def test_duplicate_step(self) -> None:
        ir, diagnostics = _build(
            """\
workflows:
  blog:
    dag:
      - {step: draft, assistant: writer}
      - {step: draft, assistant: critic}
"""
        )
        assert ir is None
        assert _messages(diagnostics) == [
            ("workflows.blog.dag[1].step", "duplicate step 'draft' at dag[1], first declared at dag[0]")
        ]

    def test_forward_reference_in_needs(self) -> None:
        ir, diagnostics = _build(
            """\
workflows:
  blog:
    dag:
      - {step: review, assistant: critic, needs: [draft]}
      - {step: draft, assistant: writer}
"""
        )
        assert ir is None
        assert _messages(diagnostics) == [
            ("workflows.blog.dag[0].needs", "'draft' refers to a step not yet declared")
        ]

    def test_step_cannot_need_itself(self) -> None:
        _, diagnostics = _build("workflows:\n  blog:\n    dag:\n      - {step: a, assistant: writer, needs: [a]}\n")
        assert _messages(diagnostics) == [("workflows.blog.dag[0].needs", "'a' refers to a step not yet declared")]

    def test_scatter_fields(self) -> None:
        ir, diagnostics = _build(
            """\
workflows:
  blog:
    dag:
      - {step: draft, assistant: writer}
      - step: review
        assistant: critic
        needs: [draft]
        scatter: {from: "", as: item, concurrency: -2}
"""
        )
        assert ir is None
        assert [field for field, _ in _messages(diagnostics)] == [
            "workflows.blog.dag[1].scatter.from",
            "workflows.blog.dag[1].scatter.concurrency",
        ]

    def test_valid_scatter(self) -> None:
        ir, _ = _build(
            """\
workflows:
  blog:
    dag:
      - {step: draft, assistant: writer}
      - step: review
        assistant: critic
        needs: [draft]
        scatter: {from: draft.sections, as: section, concurrency: 4}
"""
        )
        assert ir is not None
        scatter = ir.workflows["blog"].steps[1].scatter
        assert scatter is not None
        assert (scatter.from_, scatter.as_, scatter.concurrency) == ("draft.sections", "section", 4)

    def test_zero_concurrency_is_accepted(self) -> None:
        ir, diagnostics = _build(
            """\
workflows:
  blog:
    dag:
      - {step: draft, assistant: writer}
      - step: review
        assistant: critic
        needs: [draft]
        scatter: {from: draft.sections, as: section, concurrency: 0}
"""
        )
        assert ir is not None
        assert not diagnostics.has_errors
        scatter = ir.workflows["blog"].steps[1].scatter
        assert scatter is not None
        assert scatter.concurrency == 0

    def test_unknown_next(self) -> None:
        _, diagnostics = _build("workflows:\n  blog:\n    dag:\n      - {step: a, assistant: writer, next: z}\n")
        assert _messages(diagnostics) == [("workflows.blog.dag[0].next", "unknown step 'z'")]

    def test_missing_step_name(self) -> None:
        _, diagnostics = _build("workflows:\n  blog:\n    dag:\n      - {assistant: writer}\n")
        assert _messages(diagnostics) == [("workflows.blog.dag[0].step", "step name is required")]

    def test_errors_from_every_workflow_are_collected(self) -> None:
        ir, diagnostics = _build(
            """\
workflows:
  one:
    dag:
      - {step: a, assistant: writer, needs: [x]}
  two:
    dag:
      - {step: b, assistant: critic, next: y}
"""
        )
        assert ir is None
        assert [field for field, _ in _messages(diagnostics)] == [
            "workflows.one.dag[0].needs",
            "workflows.two.dag[0].next",
        ]


# ###############
# Immutability
# ###############


class TestImmutability:
    def test_ir_is_frozen(self) -> None:
        ir, _ = _build(_VALID)
        assert ir is not None
        with pytest.raises(pydantic.ValidationError):
            ir.workflows["blog"].steps[0].name = "other"  # type: ignore[misc]

    def test_ir_does_not_share_state_with_spec(self) -> None:
        resolved = _resolve(_VALID)
        ir, _ = build_ir(resolved)
        assert ir is not None

        resolved.spec.workflows["blog"].dag[0].input_binding["topic"] = "changed"
        resolved.spec.threads["chat"].metadata["team"] = "x"
        resolved.registry.define("Extra", StringType())

        assert ir.workflows["blog"].steps[0].input_binding == {"topic": "{{ input.topic }}"}
        assert ir.threads["chat"].metadata == {}
        assert not ir.registry.contains("Extra")
