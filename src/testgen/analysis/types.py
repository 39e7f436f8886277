"""Core data types for the analysis pipeline.

Defines the structured description of a Go source file (FileAnalysis) and
of each function in it (FunctionDescriptor) as produced by the syntax
analyzer and consumed by the reconciler.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class ParameterInfo:
    """A function parameter. Name is "" for unnamed parameters."""

    name: str
    type: str


@dataclass(frozen=True, slots=True)
class ReturnInfo:
    """A return value. Name is "" for unnamed results."""

    name: str
    type: str


@dataclass(frozen=True, slots=True)
class ReceiverInfo:
    """A method receiver. Type keeps a leading ``*`` for pointer receivers."""

    name: str
    type: str


@dataclass(frozen=True, slots=True)
class ComplexityProfile:
    """Complexity signals for one function.

    Attributes:
        has_errors: Uses or returns the built-in error type.
        has_pointers: Dereferences, takes addresses, or has pointer types.
        has_interfaces: Contains an inline interface type.
        has_channels: Contains a channel type.
        has_goroutines: Spawns goroutines.
        has_defers: Contains defer statements.
        has_panic: Calls panic.
        control_flow_count: Number of if/for/switch/type switch/select statements.

    """

    has_errors: bool = False
    has_pointers: bool = False
    has_interfaces: bool = False
    has_channels: bool = False
    has_goroutines: bool = False
    has_defers: bool = False
    has_panic: bool = False
    control_flow_count: int = 0

    @property
    def cyclomatic_complexity(self) -> int:
        """Coarse cyclomatic estimate: control flow count + 1, never below 1."""
        return max(self.control_flow_count, 0) + 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "has_errors": self.has_errors,
            "has_pointers": self.has_pointers,
            "has_interfaces": self.has_interfaces,
            "has_channels": self.has_channels,
            "has_goroutines": self.has_goroutines,
            "has_defers": self.has_defers,
            "has_panic": self.has_panic,
            "control_flow_count": self.control_flow_count,
            "cyclomatic_complexity": self.cyclomatic_complexity,
        }


@dataclass(frozen=True, slots=True)
class FunctionDescriptor:
    """Structural description of one Go function or method.

    Attributes:
        name: Function name (without receiver).
        package: Package name from the file's package clause.
        file: Source file path as given to the analyzer.
        start_line: 1-indexed line of the ``func`` keyword.
        end_line: 1-indexed last line of the declaration.
        signature: Rendered signature, e.g. ``func (u *User) GetName() string``.
        parameters: Parameters in declaration order, one per bound name.
        returns: Results in declaration order, one per bound name.
        receiver: Method receiver, None for plain functions.
        comments: Doc comment lines with the ``//`` prefix removed.
        complexity: Complexity profile from body walk and signature.

    """

    name: str
    package: str
    file: str
    start_line: int
    end_line: int
    signature: str
    parameters: tuple[ParameterInfo, ...] = ()
    returns: tuple[ReturnInfo, ...] = ()
    receiver: ReceiverInfo | None = None
    comments: tuple[str, ...] = ()
    complexity: ComplexityProfile = field(default_factory=ComplexityProfile)

    @property
    def is_method(self) -> bool:
        """True when the declaration has a receiver."""
        return self.receiver is not None

    @property
    def is_exported(self) -> bool:
        """True when the name starts with an uppercase ASCII letter."""
        return bool(self.name) and "A" <= self.name[0] <= "Z"

    @property
    def qualified_name(self) -> str:
        """``Receiver.Name`` for methods (pointer marker dropped), else ``Name``."""
        if self.receiver is None:
            return self.name
        base = self.receiver.type.lstrip("*").split("[", 1)[0]
        return f"{base}.{self.name}"

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output consumed by downstream collaborators."""
        data: dict[str, Any] = {
            "name": self.name,
            "package": self.package,
            "file": self.file,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "signature": self.signature,
            "parameters": [{"name": p.name, "type": p.type} for p in self.parameters],
            "returns": [{"name": r.name, "type": r.type} for r in self.returns],
            "is_method": self.is_method,
            "comments": list(self.comments),
            "complexity": self.complexity.to_dict(),
        }
        if self.receiver is not None:
            data["receiver"] = {"name": self.receiver.name, "type": self.receiver.type}
        return data


@dataclass(frozen=True, slots=True)
class ImportInfo:
    """An import spec. Alias is "" when the import is not renamed."""

    path: str
    alias: str = ""


@dataclass(frozen=True, slots=True)
class TypeInfo:
    """A top-level type declaration with a coarse kind (``struct{}``, ``interface{}``, ...)."""

    name: str
    kind: str


@dataclass(frozen=True)
class FileAnalysis:
    """Result of analyzing one Go source file.

    Attributes:
        file_path: Path of the analyzed file.
        package_name: Name from the package clause.
        imports: Imports in source order.
        constants: Top-level constant name → literal text.
        variables: Top-level variable name → literal text.
        types: Top-level type declarations in source order.
        functions: Function and method descriptors in declaration order.

    """

    file_path: str
    package_name: str
    imports: tuple[ImportInfo, ...] = ()
    constants: dict[str, str] = field(default_factory=dict)
    variables: dict[str, str] = field(default_factory=dict)
    types: tuple[TypeInfo, ...] = ()
    functions: tuple[FunctionDescriptor, ...] = ()

    def function_names(self) -> list[str]:
        return [fn.name for fn in self.functions]

    def filter_functions(self, names: Iterable[str]) -> list[FunctionDescriptor]:
        """Return descriptors whose name is in names, in declaration order."""
        wanted = set(names)
        return [fn for fn in self.functions if fn.name in wanted]
