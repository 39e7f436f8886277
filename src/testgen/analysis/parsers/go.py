"""Go source analysis using tree-sitter.

Extracts the package name, imports, top-level constants/variables/types and
a FunctionDescriptor for every top-level function and method declaration,
each annotated with a ComplexityProfile.

Complexity is computed in two separate passes:
1. walk_body() inspects the function body only
2. refine_from_signature() folds in signals from the declared signature
   (error results, pointer parameters/receiver), also for body-less
   declarations
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path

import tree_sitter_go as tsgo
from tree_sitter import Language, Node, Parser

from testgen.analysis.types import (
    ComplexityProfile,
    FileAnalysis,
    FunctionDescriptor,
    ImportInfo,
    ParameterInfo,
    ReceiverInfo,
    ReturnInfo,
    TypeInfo,
)
from testgen.core.exceptions import InputError, ParseError

logger = logging.getLogger(__name__)

GO_LANGUAGE = Language(tsgo.language())

# Maximum file size for parsing (1MB)
MAX_PARSE_SIZE = 1024 * 1024

ERROR_TYPE = "error"

_FUNCTION_NODES = frozenset({"function_declaration", "method_declaration"})

_CONTROL_FLOW_NODES = frozenset({
    "if_statement",
    "for_statement",  # also covers range loops
    "expression_switch_statement",
    "type_switch_statement",
    "select_statement",
})

_LITERAL_NODES = frozenset({
    "int_literal",
    "float_literal",
    "imaginary_literal",
    "rune_literal",
    "interpreted_string_literal",
    "raw_string_literal",
})

_IDENTIFIER_VALUE_NODES = frozenset({"identifier", "true", "false", "nil", "iota"})

_NAME_NODES = frozenset({
    "type_identifier",
    "identifier",
    "package_identifier",
    "field_identifier",
})


def _text(node: Node | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def _line(node: Node) -> int:
    """1-indexed start line of node."""
    return node.start_point[0] + 1


def render_type(node: Node | None) -> str:
    """Render a type expression as a compact string.

    Composite types are rendered structurally; anonymous interface,
    struct and function types collapse to placeholders.

    Examples (Go source → result):
        ``*User`` → ``*User``
        ``map[string][]int`` → ``map[string][]int``
        ``<-chan error`` → ``<-chan error``
        ``func(int) bool`` → ``func(...)``

    """
    if node is None:
        return "unknown"

    kind = node.type
    if kind in _NAME_NODES:
        return _text(node)
    if kind == "pointer_type":
        return "*" + render_type(_first_named(node))
    if kind == "slice_type":
        return "[]" + render_type(node.child_by_field_name("element"))
    if kind in ("array_type", "implicit_length_array_type"):
        return "[...]" + render_type(node.child_by_field_name("element"))
    if kind == "map_type":
        key = render_type(node.child_by_field_name("key"))
        value = render_type(node.child_by_field_name("value"))
        return f"map[{key}]{value}"
    if kind == "channel_type":
        return _render_channel(node)
    if kind == "qualified_type":
        package = _text(node.child_by_field_name("package"))
        name = _text(node.child_by_field_name("name"))
        return f"{package}.{name}"
    if kind == "generic_type":
        base = render_type(node.child_by_field_name("type"))
        arguments = node.child_by_field_name("type_arguments")
        if arguments is None:
            return base
        args = ", ".join(render_type(arg) for arg in arguments.named_children)
        return f"{base}[{args}]"
    if kind == "type_elem":
        return " | ".join(render_type(child) for child in node.named_children)
    if kind == "negated_type":
        return "~" + render_type(_first_named(node))
    if kind == "parenthesized_type":
        return render_type(_first_named(node))
    if kind == "interface_type":
        return "interface{}"
    if kind == "struct_type":
        return "struct{}"
    if kind == "function_type":
        return "func(...)"
    return "unknown"


def _first_named(node: Node) -> Node | None:
    for child in node.named_children:
        if child.type != "comment":
            return child
    return None


def _render_channel(node: Node) -> str:
    value = render_type(node.child_by_field_name("value"))
    tokens = [child.type for child in node.children]
    if tokens and tokens[0] == "<-":
        return f"<-chan {value}"
    if len(tokens) > 1 and tokens[1] == "<-":
        return f"chan<- {value}"
    return f"chan {value}"


def _parameter_fields(param_list: Node | None) -> list[tuple[str, str]]:
    """Flatten a parameter list into (name, type) pairs.

    A group binding several names to one type yields one pair per name;
    an unnamed group yields a single pair with an empty name.
    """
    fields: list[tuple[str, str]] = []
    if param_list is None:
        return fields

    for decl in param_list.named_children:
        if decl.type == "parameter_declaration":
            type_str = render_type(decl.child_by_field_name("type"))
        elif decl.type == "variadic_parameter_declaration":
            type_str = "..." + render_type(decl.child_by_field_name("type"))
        else:
            continue

        names = [n for n in decl.children_by_field_name("name") if n.is_named]
        if names:
            fields.extend((_text(name), type_str) for name in names)
        else:
            fields.append(("", type_str))
    return fields


def _result_fields(result: Node | None) -> list[tuple[str, str]]:
    if result is None:
        return []
    if result.type == "parameter_list":
        return _parameter_fields(result)
    return [("", render_type(result))]


def build_signature(
    name: str,
    parameters: tuple[ParameterInfo, ...],
    returns: tuple[ReturnInfo, ...],
    receiver: ReceiverInfo | None = None,
) -> str:
    """Render a human-readable Go signature.

    Example:
        >>> build_signature(
        ...     "GetName", (), (ReturnInfo("", "string"),), ReceiverInfo("u", "*User")
        ... )
        'func (u *User) GetName() string'

    """
    parts = ["func "]
    if receiver is not None:
        recv = f"{receiver.name} {receiver.type}" if receiver.name else receiver.type
        parts.append(f"({recv}) ")

    parts.append(name)
    params = ", ".join(f"{p.name} {p.type}" if p.name else p.type for p in parameters)
    parts.append(f"({params})")

    if returns:
        results = ", ".join(f"{r.name} {r.type}" if r.name else r.type for r in returns)
        if len(returns) > 1 or returns[0].name:
            results = f"({results})"
        parts.append(f" {results}")

    return "".join(parts)


_OPENERS = {"(": ")", "[": "]", "{": "}"}


def _closing_index(text: str, start: int) -> int:
    """Index of the bracket closing the one at text[start], -1 if unbalanced."""
    depth = 0
    for i in range(start, len(text)):
        ch = text[i]
        if ch in _OPENERS:
            depth += 1
        elif ch in _OPENERS.values():
            depth -= 1
            if depth == 0:
                return i
    return -1


def _split_top_level(text: str) -> list[str]:
    """Split on commas outside any brackets."""
    parts: list[str] = []
    depth = 0
    start = 0
    for i, ch in enumerate(text):
        if ch in _OPENERS:
            depth += 1
        elif ch in _OPENERS.values():
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append(text[start:i].strip())
            start = i + 1
    parts.append(text[start:].strip())
    return [part for part in parts if part]


def split_signature(signature: str) -> tuple[str, list[str], list[str]]:
    """Split a rendered signature into name, parameter and result entries.

    Works on build_signature() output, including the ``func(...)`` and
    ``[...]T`` placeholders that are not valid Go.

    Example:
        >>> split_signature("func Apply(cb func(...), xs [...]int) (n int, err error)")
        ('Apply', ['cb func(...)', 'xs [...]int'], ['n int', 'err error'])

    Raises:
        ValueError: If signature is not of the ``func [(recv)] Name(...) [results]`` form.

    """
    text = signature.strip()
    if not text.startswith("func "):
        raise ValueError(f"not a function signature: {signature!r}")
    rest = text[len("func "):].lstrip()

    if rest.startswith("("):
        receiver_end = _closing_index(rest, 0)
        if receiver_end == -1:
            raise ValueError(f"unbalanced receiver in signature: {signature!r}")
        rest = rest[receiver_end + 1:].lstrip()

    open_paren = rest.find("(")
    close_paren = _closing_index(rest, open_paren) if open_paren != -1 else -1
    if close_paren == -1:
        raise ValueError(f"missing parameter list in signature: {signature!r}")

    name = rest[:open_paren].split("[", 1)[0].strip()
    parameters = _split_top_level(rest[open_paren + 1:close_paren])

    tail = rest[close_paren + 1:].strip()
    if tail.startswith("("):
        results_end = _closing_index(tail, 0)
        if results_end == -1:
            raise ValueError(f"unbalanced results in signature: {signature!r}")
        results = _split_top_level(tail[1:results_end])
    else:
        results = [tail] if tail else []

    return name, parameters, results


def walk_body(body: Node | None) -> ComplexityProfile:
    """Collect complexity signals from a function body.

    Args:
        body: The ``block`` node of a function, or None for body-less declarations.

    Returns:
        ComplexityProfile derived from the body alone.

    """
    if body is None:
        return ComplexityProfile()

    control_flow = 0
    has_errors = has_pointers = has_interfaces = has_channels = False
    has_goroutines = has_defers = has_panic = False

    stack = [body]
    while stack:
        node = stack.pop()
        kind = node.type

        if kind in _CONTROL_FLOW_NODES:
            control_flow += 1
        elif kind == "go_statement":
            has_goroutines = True
        elif kind == "defer_statement":
            has_defers = True
        elif kind == "pointer_type":
            has_pointers = True
        elif kind == "unary_expression":
            operator = node.child_by_field_name("operator")
            if operator is not None and operator.type in ("*", "&"):
                has_pointers = True
        elif kind == "channel_type":
            has_channels = True
        elif kind == "interface_type":
            has_interfaces = True
        elif kind == "call_expression":
            function = node.child_by_field_name("function")
            if function is not None:
                if function.type == "identifier" and _text(function) == "panic":
                    has_panic = True
                elif function.type == "selector_expression":
                    if _text(function.child_by_field_name("field")) == "Error":
                        has_errors = True
        elif kind in ("identifier", "type_identifier") and _text(node) == ERROR_TYPE:
            has_errors = True

        stack.extend(node.children)

    return ComplexityProfile(
        has_errors=has_errors,
        has_pointers=has_pointers,
        has_interfaces=has_interfaces,
        has_channels=has_channels,
        has_goroutines=has_goroutines,
        has_defers=has_defers,
        has_panic=has_panic,
        control_flow_count=control_flow,
    )


def refine_from_signature(
    profile: ComplexityProfile,
    parameters: tuple[ParameterInfo, ...],
    returns: tuple[ReturnInfo, ...],
    receiver: ReceiverInfo | None = None,
) -> ComplexityProfile:
    """Fold signature-derived signals into a body profile.

    An ``error`` result forces has_errors; a pointer-typed parameter or
    receiver forces has_pointers. Flags already set are never cleared.
    """
    has_errors = profile.has_errors or any(r.type == ERROR_TYPE for r in returns)
    pointer_types = [p.type for p in parameters]
    if receiver is not None:
        pointer_types.append(receiver.type)
    has_pointers = profile.has_pointers or any(t.startswith("*") for t in pointer_types)
    return replace(profile, has_errors=has_errors, has_pointers=has_pointers)


def _doc_comments(decl: Node) -> tuple[str, ...]:
    """Comment lines directly above decl, with no blank line in between."""
    lines: list[str] = []
    expected_row = decl.start_point[0] - 1
    sibling = decl.prev_named_sibling
    while sibling is not None and sibling.type == "comment":
        if sibling.end_point[0] != expected_row:
            break
        previous = sibling.prev_named_sibling
        if previous is not None and previous.end_point[0] == sibling.start_point[0]:
            # trailing comment of the previous declaration
            break
        text = _text(sibling)
        lines.append(text.removeprefix("//"))
        expected_row = sibling.start_point[0] - 1
        sibling = previous
    lines.reverse()
    return tuple(lines)


def _analyze_function(decl: Node, package: str, file_path: str) -> FunctionDescriptor:
    name = _text(decl.child_by_field_name("name"))

    receiver: ReceiverInfo | None = None
    if decl.type == "method_declaration":
        receiver_fields = _parameter_fields(decl.child_by_field_name("receiver"))
        if receiver_fields:
            recv_name, recv_type = receiver_fields[0]
            receiver = ReceiverInfo(name=recv_name, type=recv_type)

    parameters = tuple(
        ParameterInfo(name=n, type=t)
        for n, t in _parameter_fields(decl.child_by_field_name("parameters"))
    )
    returns = tuple(
        ReturnInfo(name=n, type=t)
        for n, t in _result_fields(decl.child_by_field_name("result"))
    )

    profile = walk_body(decl.child_by_field_name("body"))
    profile = refine_from_signature(profile, parameters, returns, receiver)

    return FunctionDescriptor(
        name=name,
        package=package,
        file=file_path,
        start_line=_line(decl),
        end_line=decl.end_point[0] + 1,
        signature=build_signature(name, parameters, returns, receiver),
        parameters=parameters,
        returns=returns,
        receiver=receiver,
        comments=_doc_comments(decl),
        complexity=profile,
    )


def _value_text(node: Node) -> str:
    if node.type in _LITERAL_NODES or node.type in _IDENTIFIER_VALUE_NODES:
        return _text(node)
    return "unknown"


def _specs(decl: Node, spec_type: str) -> list[Node]:
    """Specs of a const/var/type declaration, with or without parentheses."""
    specs: list[Node] = []
    for child in decl.named_children:
        if child.type == spec_type:
            specs.append(child)
        elif child.type.endswith("_spec_list"):
            specs.extend(c for c in child.named_children if c.type == spec_type)
    return specs


def _collect_values(decl: Node, spec_type: str, target: dict[str, str]) -> None:
    for spec in _specs(decl, spec_type):
        value_list = spec.child_by_field_name("value")
        values = [v for v in value_list.named_children if v.type != "comment"] if value_list else []
        names = [n for n in spec.children_by_field_name("name") if n.is_named]
        for i, name in enumerate(names):
            if i < len(values):
                target[_text(name)] = _value_text(values[i])


def _collect_imports(decl: Node) -> list[ImportInfo]:
    imports: list[ImportInfo] = []
    for spec in _specs(decl, "import_spec"):
        path = _text(spec.child_by_field_name("path")).strip('"`')
        alias = _text(spec.child_by_field_name("name"))
        imports.append(ImportInfo(path=path, alias=alias))
    return imports


def _collect_types(decl: Node) -> list[TypeInfo]:
    types: list[TypeInfo] = []
    for child in decl.named_children:
        if child.type in ("type_spec", "type_alias"):
            types.append(
                TypeInfo(
                    name=_text(child.child_by_field_name("name")),
                    kind=render_type(child.child_by_field_name("type")),
                )
            )
    return types


def _first_error(node: Node) -> Node | None:
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == "ERROR" or current.is_missing:
            return current
        if current.has_error:
            stack.extend(reversed(current.children))
    return None


def parse_go_source(source: str | bytes, file_path: str | Path = "<source>") -> FileAnalysis:
    """Analyze Go source text.

    Args:
        source: Go source code.
        file_path: Path recorded in the result and in error messages.

    Returns:
        FileAnalysis for the source.

    Raises:
        InputError: If the source exceeds MAX_PARSE_SIZE.
        ParseError: If the source is not syntactically valid Go.

    """
    data = source.encode("utf-8") if isinstance(source, str) else source
    path = str(file_path)
    if len(data) > MAX_PARSE_SIZE:
        raise InputError(f"{path} exceeds {MAX_PARSE_SIZE} bytes, skipping parse")

    tree = Parser(GO_LANGUAGE).parse(data)
    root = tree.root_node
    if root.has_error:
        error = _first_error(root)
        where = f" at line {_line(error)}" if error is not None else ""
        raise ParseError(f"failed to parse file {path}: syntax error{where}", path)

    package_name = ""
    imports: list[ImportInfo] = []
    constants: dict[str, str] = {}
    variables: dict[str, str] = {}
    types: list[TypeInfo] = []
    functions: list[FunctionDescriptor] = []

    for node in root.named_children:
        kind = node.type
        if kind == "package_clause":
            identifier = _first_named(node)
            package_name = _text(identifier)
        elif kind == "import_declaration":
            imports.extend(_collect_imports(node))
        elif kind == "const_declaration":
            _collect_values(node, "const_spec", constants)
        elif kind == "var_declaration":
            _collect_values(node, "var_spec", variables)
        elif kind == "type_declaration":
            types.extend(_collect_types(node))
        elif kind in _FUNCTION_NODES:
            functions.append(_analyze_function(node, package_name, path))

    if not package_name:
        raise ParseError(f"failed to parse file {path}: missing package clause", path)

    logger.debug("Analyzed %s: %d functions", path, len(functions))
    return FileAnalysis(
        file_path=path,
        package_name=package_name,
        imports=tuple(imports),
        constants=constants,
        variables=variables,
        types=tuple(types),
        functions=tuple(functions),
    )


def parse_go_file(file_path: str | Path) -> FileAnalysis:
    """Read and analyze one Go source file.

    Args:
        file_path: Path to the ``.go`` file.

    Returns:
        FileAnalysis for the file.

    Raises:
        InputError: If the file cannot be read or is too large.
        ParseError: If the file is not syntactically valid Go.

    """
    path = Path(file_path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise InputError(f"Cannot read {path}: {e}") from e
    return parse_go_source(data, file_path)
