# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Tests for the Go SDK backend."""

from pathlib import Path

import pytest

from aiwf.backends.go import GO_VERSION, GoOptions, generate_go
from aiwf.compiler.ir_builder import build_ir
from aiwf.compiler.loader import load_spec_text
from aiwf.errors import GenerationError, StructuralError
from aiwf.model.ir import IR, IRAssistant, IRStep, IRWorkflow
from aiwf.model.types import StringType

# ###############
# Test Helpers
# ###############

_SPEC = """\
types:
  Draft:
    title: string
    content: string
    status: enum(draft, live)
    summary?: string
    published_at?: datetime
    meta:
      score: number
threads:
  chat:
    provider: openai
    strategy: reset_before_step
assistants:
  writer:
    model: gpt-4o-mini
    system_prompt: You write.
    input_type: string
    output_type: Draft
    thread: {use: chat}
  critic:
    model: gpt-4o-mini
    input_type: Draft
    output_type:
      verdict: string
      notes?: string[]
"""

_WORKFLOWS = """\
workflows:
  blog:
    description: Draft then review.
    dag:
      - step: draft
        assistant: writer
      - step: review
        assistant: critic
        needs: [draft]
"""


def _ir(text: str, base_dir: Path = Path(".")) -> IR:
    ir, diagnostics = build_ir(load_spec_text(text, base_dir=base_dir))
    assert ir is not None, str(diagnostics)
    return ir


def _text(files: dict[str, bytes], name: str) -> str:
    return files[name].decode("utf-8")


def _normalized(text: str) -> list[str]:
    """Collapse runs of whitespace so assertions do not depend on column alignment."""
    return [" ".join(line.split()) for line in text.splitlines()]


# ###############
# Output Files
# ###############


class TestOutputFiles:
    def test_four_files_with_workflows(self) -> None:
        files = generate_go(_ir(_SPEC + _WORKFLOWS))
        assert sorted(files) == ["agents.go", "contracts.go", "service.go", "workflows.go"]

    def test_every_go_file_is_marked_generated(self) -> None:
        files = generate_go(_ir(_SPEC + _WORKFLOWS), GoOptions(package="blogsdk"))
        for content in files.values():
            text = content.decode("utf-8")
            assert text.startswith("// Code generated by aiwf. DO NOT EDIT.\n\npackage blogsdk\n")

    def test_workflows_file_omitted_without_workflows(self) -> None:
        files = generate_go(_ir(_SPEC))
        assert sorted(files) == ["agents.go", "contracts.go", "service.go"]

    def test_other_files_do_not_depend_on_workflows(self) -> None:
        with_workflows = generate_go(_ir(_SPEC + _WORKFLOWS))
        without_workflows = generate_go(_ir(_SPEC))
        for name in ("agents.go", "contracts.go", "service.go"):
            assert with_workflows[name] == without_workflows[name]

    def test_output_is_byte_identical_across_runs(self) -> None:
        first = generate_go(_ir(_SPEC + _WORKFLOWS))
        second = generate_go(_ir(_SPEC + _WORKFLOWS))
        assert first == second

    def test_go_mod_only_with_module(self) -> None:
        files = generate_go(_ir(_SPEC), GoOptions(module="example.com/blog"))
        assert _text(files, "go.mod") == f"module example.com/blog\n\ngo {GO_VERSION}\n"
        assert "go.mod" not in generate_go(_ir(_SPEC))

    def test_output_dir_prefixes_paths(self) -> None:
        files = generate_go(_ir(_SPEC), GoOptions(output_dir="sdk/go"))
        assert sorted(files) == ["sdk/go/agents.go", "sdk/go/contracts.go", "sdk/go/service.go"]

    def test_files_end_with_newline(self) -> None:
        for content in generate_go(_ir(_SPEC + _WORKFLOWS)).values():
            assert content.endswith(b"\n")


# ###############
# Contracts
# ###############


class TestContracts:
    def test_assistant_contracts(self) -> None:
        lines = _normalized(_text(generate_go(_ir(_SPEC)), "contracts.go"))
        assert "type WriterInput = string" in lines
        assert "type WriterOutput = Draft" in lines
        assert "type CriticInput = Draft" in lines
        assert "type CriticOutput struct {" in lines
        assert 'Verdict string `json:"verdict"`' in lines

    def test_registry_struct_fields(self) -> None:
        lines = _normalized(_text(generate_go(_ir(_SPEC)), "contracts.go"))
        assert "type Draft struct {" in lines
        assert 'Title string `json:"title"`' in lines
        assert 'Content string `json:"content"`' in lines
        assert 'Meta DraftMeta `json:"meta"`' in lines
        assert 'Score float64 `json:"score"`' in lines

    def test_optional_fields_are_pointers_with_omitempty(self) -> None:
        lines = _normalized(_text(generate_go(_ir(_SPEC)), "contracts.go"))
        assert 'Summary *string `json:"summary,omitempty"`' in lines
        assert 'PublishedAt *time.Time `json:"published_at,omitempty"`' in lines
        assert 'Notes []string `json:"notes,omitempty"`' in lines

    def test_fields_are_aligned(self) -> None:
        text = _text(generate_go(_ir(_SPEC)), "contracts.go")
        assert '\tNotes   []string `json:"notes,omitempty"`\n' in text
        assert '\tVerdict string   `json:"verdict"`\n' in text

    def test_enum_constants(self) -> None:
        text = _text(generate_go(_ir(_SPEC)), "contracts.go")
        assert "type DraftStatus string\n" in text
        lines = _normalized(text)
        assert 'DraftStatusDraft DraftStatus = "draft"' in lines
        assert 'DraftStatusLive DraftStatus = "live"' in lines

    def test_time_import_only_when_needed(self) -> None:
        assert 'import "time"' in _text(generate_go(_ir(_SPEC)), "contracts.go")
        plain = "assistants:\n  echo:\n    output_type: string\n"
        assert 'import "time"' not in _text(generate_go(_ir(plain)), "contracts.go")

    def test_missing_input_is_untyped_map(self) -> None:
        text = _text(generate_go(_ir("assistants:\n  echo: {}\n")), "contracts.go")
        assert "type EchoInput = map[string]any\n" in text
        assert "type EchoOutput = string\n" in text

    def test_imported_types_are_prefixed_with_alias(self, tmp_path: Path) -> None:
        (tmp_path / "blog.yaml").write_text(
            "types:\n  Comment:\n    body: string\n  Post:\n    title: string\n    comments?: $Comment[]\n",
            encoding="utf-8",
        )
        text = "imports:\n  - {path: blog.yaml, as: blog}\nassistants:\n  writer: {output_type: blog.Post}\n"
        lines = _normalized(_text(generate_go(_ir(text, tmp_path)), "contracts.go"))
        assert "type WriterOutput = BlogPost" in lines
        assert "type BlogPost struct {" in lines
        assert 'Comments []BlogComment `json:"comments,omitempty"`' in lines
        assert "type BlogComment struct {" in lines

    def test_recursive_type(self) -> None:
        text = "types:\n  Node:\n    children?: $Node[]\nassistants:\n  tree: {output_type: Node}\n"
        lines = _normalized(_text(generate_go(_ir(text)), "contracts.go"))
        assert 'Children []Node `json:"children,omitempty"`' in lines
        assert lines.count("type Node struct {") == 1

    def test_required_self_reference_is_pointer(self) -> None:
        text = (
            "types:\n  Comment:\n    body: string\n    parent: $Comment\n"
            "assistants:\n  reply: {output_type: Comment}\n"
        )
        lines = _normalized(_text(generate_go(_ir(text)), "contracts.go"))
        assert 'Parent *Comment `json:"parent"`' in lines
        assert 'Body string `json:"body"`' in lines

    def test_inline_output_becomes_struct(self) -> None:
        text = "assistants:\n  writer:\n    output_type:\n      title: string\n      content: string\n"
        lines = _normalized(_text(generate_go(_ir(text)), "contracts.go"))
        assert "type WriterOutput struct {" in lines
        assert 'Title string `json:"title"`' in lines
        assert 'Content string `json:"content"`' in lines
        assert lines.index('Content string `json:"content"`') < lines.index('Title string `json:"title"`')


# ###############
# Name Clashes
# ###############


class TestNameClashes:
    def test_registry_type_named_like_runtime_type(self) -> None:
        text = (
            "types:\n  Trace:\n    id: string\n  Log:\n    entries: $Trace[]\n"
            "assistants:\n  audit: {output_type: Log}\n"
        )
        files = generate_go(_ir(text))
        contracts = _text(files, "contracts.go")
        lines = _normalized(contracts)
        assert "type TraceType struct {" in lines
        assert 'Entries []TraceType `json:"entries"`' in lines
        assert "type Trace struct" not in contracts
        assert "type Trace struct {" in _text(files, "service.go")

    def test_registry_type_named_like_assistant_contract(self) -> None:
        text = "types:\n  WriterOutput:\n    title: string\nassistants:\n  writer: {output_type: WriterOutput}\n"
        lines = _normalized(_text(generate_go(_ir(text)), "contracts.go"))
        assert "type WriterOutput = WriterOutputType" in lines
        assert "type WriterOutputType struct {" in lines

    def test_nested_struct_named_like_assistant_contract(self) -> None:
        text = "types:\n  Writer:\n    input:\n      text: string\nassistants:\n  writer: {output_type: Writer}\n"
        lines = _normalized(_text(generate_go(_ir(text)), "contracts.go"))
        assert 'Input WriterInput2 `json:"input"`' in lines
        assert "type WriterInput2 struct {" in lines
        assert "type WriterInput = map[string]any" in lines

    def test_imported_type_named_like_local_type(self, tmp_path: Path) -> None:
        (tmp_path / "blog.yaml").write_text("types:\n  Post:\n    title: string\n", encoding="utf-8")
        text = (
            "imports:\n  - {path: blog.yaml, as: blog}\n"
            "types:\n  BlogPost:\n    body: string\n"
            "assistants:\n  writer: {input_type: BlogPost, output_type: blog.Post}\n"
        )
        lines = _normalized(_text(generate_go(_ir(text, tmp_path)), "contracts.go"))
        assert "type WriterInput = BlogPost" in lines
        assert "type WriterOutput = BlogPostType" in lines
        assert "type BlogPostType struct {" in lines

    def test_assistant_and_workflow_identifiers_clash(self) -> None:
        text = (
            "assistants:\n  foo_workflow: {output_type: string}\n"
            "workflows:\n  foo:\n    dag:\n      - {step: run, assistant: foo_workflow}\n"
        )
        with pytest.raises(GenerationError, match="'FooWorkflowInput' of workflow 'foo'"):
            generate_go(_ir(text))


# ###############
# Agents
# ###############


class TestAgents:
    def test_agent_interface_and_run(self) -> None:
        text = _text(generate_go(_ir(_SPEC)), "agents.go")
        assert "\tWriter() WriterAgent\n" in text
        assert "type WriterAgent interface {\n" in text
        signature = "func (a *writerAgent) Run(ctx context.Context, input WriterInput) (WriterOutput, *Trace, error) {"
        assert signature in text
        assert 'Model:           "gpt-4o-mini",' in text
        assert 'SystemPrompt:    "You write.",' in text

    def test_output_schema_is_embedded(self) -> None:
        text = _text(generate_go(_ir(_SPEC)), "agents.go")
        assert "var writerOutputSchemaJSON = json.RawMessage(" in text
        assert "OutputSchema:    writerOutputSchemaJSON," in text
        assert '\\"$ref\\": \\"#/$defs/Draft\\"' in text

    def test_thread_binding(self) -> None:
        text = _text(generate_go(_ir(_SPEC)), "agents.go")
        assert (
            'return &ThreadBinding{Policy: "chat", Provider: "openai", Strategy: "reset_before_step"}' in text
        )
        assert "func (a *criticAgent) Thread() *ThreadBinding {\n\treturn nil\n}" in text

    def test_agents_sorted_by_name(self) -> None:
        text = _text(generate_go(_ir(_SPEC)), "agents.go")
        assert text.index("type CriticAgent interface") < text.index("type WriterAgent interface")

    def test_service_entry_point(self) -> None:
        text = _text(generate_go(_ir(_SPEC)), "service.go")
        assert "func NewService(client ModelClient) *Service {" in text
        assert "func (s *Service) Agents() Agents {" in text
        assert "Workflows()" not in text


# ###############
# Workflows
# ###############


class TestWorkflows:
    def test_workflow_aliases_follow_first_and_last_step(self) -> None:
        text = _text(generate_go(_ir(_SPEC + _WORKFLOWS)), "workflows.go")
        assert "type BlogWorkflowInput = WriterInput\n" in text
        assert "type BlogWorkflowOutput = CriticOutput\n" in text
        assert "// Draft then review.\n" in text

    def test_steps_pass_outputs_forward(self) -> None:
        text = _text(generate_go(_ir(_SPEC + _WORKFLOWS)), "workflows.go")
        assert "stepInput, err := rebind[WriterInput](input)" in text
        assert 'stepInput, err := rebind[CriticInput](results["draft"])' in text
        assert "output, trace, err := a.Critic().Run(ctx, stepInput)" in text
        assert 'fmt.Errorf("step review failed: %w", err)' in text
        assert text.index('results["draft"] = output') < text.index('results["review"] = output')

    def test_service_exposes_workflows(self) -> None:
        text = _text(generate_go(_ir(_SPEC + _WORKFLOWS)), "workflows.go")
        assert "func (s *Service) Workflows() Workflows {" in text

    def test_scatter_is_documented(self) -> None:
        workflows = _WORKFLOWS.replace(
            "needs: [draft]", "needs: [draft]\n        scatter: {from: draft.sections, as: section, concurrency: 2}"
        )
        text = _text(generate_go(_ir(_SPEC + workflows)), "workflows.go")
        assert "// scatter: from draft.sections as section (concurrency 2)" in text

    def test_empty_workflow(self) -> None:
        text = _text(generate_go(_ir(_SPEC + "workflows:\n  idle:\n    dag: []\n")), "workflows.go")
        assert "type IdleWorkflowInput = map[string]any\n" in text
        assert 'return result, mergeTraces("idle"), nil' in text
        assert '"fmt"' not in text


class TestStructuralChecks:
    def test_unknown_assistant(self) -> None:
        ir = IR(workflows={"w": IRWorkflow(name="w", steps=(IRStep(name="s", assistant="ghost"),))})
        with pytest.raises(StructuralError, match="unknown assistant 'ghost'"):
            generate_go(ir)

    def test_undeclared_source(self) -> None:
        ir = IR(
            assistants={"a": IRAssistant(name="a", output_type=StringType())},
            workflows={"w": IRWorkflow(name="w", steps=(IRStep(name="s", assistant="a", needs=("later",)),))},
        )
        with pytest.raises(StructuralError, match="undeclared step 'later'"):
            generate_go(ir)
