# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Tests for the shared template helpers and backend dispatch."""

import pytest
from jinja2 import UndefinedError

from aiwf.backends import BACKENDS, CLIENT_LANGUAGES, GoOptions, generate, generate_go
from aiwf.backends.templating import (
    create_environment,
    identifier,
    output_path,
    pretty_json,
    quote_string,
    registry_type_name,
    single_quote_string,
    unique_name,
)
from aiwf.errors import GenerationError
from aiwf.model.ir import IR, IRAssistant
from aiwf.model.types import StringType


class TestLiterals:
    def test_quote_string_escapes(self) -> None:
        assert quote_string('say "hi"\n') == '"say \\"hi\\"\\n"'

    def test_quote_string_keeps_unicode(self) -> None:
        assert quote_string("café") == '"café"'

    def test_single_quote_string(self) -> None:
        assert single_quote_string("it's a\\b") == "'it\\'s a\\\\b'"

    def test_pretty_json_is_sorted(self) -> None:
        assert pretty_json({"b": 1, "a": [True]}) == '{\n  "a": [\n    true\n  ],\n  "b": 1\n}'


class TestNames:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [("Draft", "Draft"), ("", "Type"), ("2fa", "Type2fa")],
    )
    def test_identifier(self, name: str, expected: str) -> None:
        assert identifier(name, "Type") == expected

    def test_registry_type_name(self) -> None:
        assert registry_type_name(None, "Draft") == "Draft"
        assert registry_type_name("blog_posts", "comment") == "BlogPostsComment"

    def test_output_path(self) -> None:
        assert output_path("", "service.go") == "service.go"
        assert output_path("sdk/go/", "service.go") == "sdk/go/service.go"

    def test_unique_name(self) -> None:
        used = {"Trace"}
        assert unique_name("Draft", used) == "Draft"
        assert unique_name("Trace", used) == "Trace2"
        assert unique_name("Trace", used) == "Trace3"
        assert unique_name("class_", used, "_") == "class_"
        assert unique_name("class_", used, "_") == "class__2"
        assert used == {"Draft", "Trace", "Trace2", "Trace3", "class_", "class__2"}


def test_environment_rejects_undefined_values() -> None:
    template = create_environment().from_string("{{ missing }}")
    with pytest.raises(UndefinedError):
        template.render()


class TestDispatch:
    def test_registered_backends(self) -> None:
        assert sorted(BACKENDS) == ["go", "php", "python", "typescript"]
        assert set(CLIENT_LANGUAGES) < set(BACKENDS)

    def test_generate_delegates(self) -> None:
        ir = IR(assistants={"echo": IRAssistant(name="echo", output_type=StringType())})
        assert generate("go", ir, GoOptions(package="x")) == generate_go(ir, GoOptions(package="x"))

    def test_default_options(self) -> None:
        ir = IR(assistants={"echo": IRAssistant(name="echo", output_type=StringType())})
        assert "aiwf_client.py" in generate("python", ir)

    def test_unknown_backend(self) -> None:
        with pytest.raises(GenerationError, match="unknown backend 'rust' \\(expected one of: go, php, python"):
            generate("rust", IR())
