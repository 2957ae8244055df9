# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Exception taxonomy and diagnostic containers shared by every AIWF stage."""

from __future__ import annotations

from dataclasses import dataclass

# ###############
# Public Interface
# ###############


class AiwfError(Exception):
    """Base class for all errors raised by the AIWF compiler."""


class SpecSyntaxError(AiwfError):
    """Raised when a spec document or one of its values cannot be parsed."""


class TypeSyntaxError(SpecSyntaxError):
    """Raised when a type expression is malformed.

    Attributes:
        expression: The expression text that failed to parse.
        column: 1-based column of the offending character.
    """

    def __init__(self, message: str, expression: str = "", column: int = 0) -> None:
        if expression and column:
            super().__init__(f"{message} (at column {column} of '{expression}')")
        else:
            super().__init__(message)
        self.expression = expression
        self.column = column


class UnresolvedReferenceError(AiwfError):
    """Raised when a type name, module alias or schema reference cannot be resolved.

    Attributes:
        name: The reference text as written in the source.
    """

    def __init__(self, message: str, name: str) -> None:
        super().__init__(message)
        self.name = name


class UnknownModuleError(UnresolvedReferenceError):
    """Raised when a qualified reference names a module alias that was never imported."""


class UnknownTypeError(UnresolvedReferenceError):
    """Raised when a type name is absent from the registry it was looked up in."""


class SchemaError(AiwfError):
    """Raised when a structured schema document fails to parse or compile."""


class StructuralError(AiwfError):
    """Raised for graph-level problems such as duplicate or forward-referenced steps."""


class GenerationError(AiwfError):
    """Raised when a backend is unknown or cannot render the given IR."""


@dataclass(frozen=True)
class ValidationError:
    """A fatal diagnostic that blocks code generation.

    Attributes:
        field: Dotted/bracketed path of the offending location.
        message: Human-readable description.
    """

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


@dataclass(frozen=True)
class ValidationWarning:
    """A non-fatal diagnostic; generation still proceeds."""

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class MultiError(AiwfError):
    """Aggregate of every diagnostic collected during a validation pass.

    A MultiError is only considered failed when it holds at least one error;
    warning-only instances accompany a usable result.

    Attributes:
        errors: Fatal diagnostics in discovery order.
        warnings: Non-fatal diagnostics in discovery order.
    """

    def __init__(
        self,
        errors: list[ValidationError] | None = None,
        warnings: list[ValidationWarning] | None = None,
    ) -> None:
        super().__init__()
        self.errors: list[ValidationError] = list(errors or [])
        self.warnings: list[ValidationWarning] = list(warnings or [])

    @property
    def has_errors(self) -> bool:
        """True when at least one fatal diagnostic was recorded."""
        return bool(self.errors)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def add_error(self, field_path: str, message: str) -> None:
        self.errors.append(ValidationError(field_path, message))

    def add_warning(self, field_path: str, message: str) -> None:
        self.warnings.append(ValidationWarning(field_path, message))

    def merge(self, other: MultiError) -> None:
        """Append every diagnostic of ``other`` to this instance, preserving order."""
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def __str__(self) -> str:
        lines = [f"error: {e}" for e in self.errors]
        lines.extend(f"warning: {w}" for w in self.warnings)
        if not lines:
            return "no diagnostics"
        return "\n".join(lines)
