"""Load FunctionSpec values from textual function declarations.

A declaration is a block of ``//`` comments followed by a signature::

    // Derive the value of the arithmetic expression
    // expr: An arithmetic expression
    fn arithmetic(expr)

Comment lines shaped like ``name: text`` describe arguments and must follow
the signature's argument order; any other comment line is part of the
function description. Blocks are separated by the signature line itself, so
several declarations can live in one file. An argument written ``*name`` may
be omitted by the caller; such arguments must come last.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List, Tuple

from .exceptions import FunctionDeclarationError
from .types import FunctionSpec

_COMMENT = re.compile(r"^\s*/{2,3}\s?(?P<text>.*?)\s*$")
_ARG_COMMENT = re.compile(r"^(?P<name>\*?[A-Za-z0-9_]+)\s*:\s*(?P<desc>.*)$")
_SIGNATURE = re.compile(
    r"^\s*(?:fn\s+)?(?P<name>[A-Za-z0-9_]+)\s*\((?P<args>[^()]*)\)\s*;?\s*$"
)
_IDENT = re.compile(r"^\*?[A-Za-z0-9_]+$")


def _parse_signature_args(raw: str, declaration: str) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    """Argument names with any ``*`` stripped, plus the names marked optional."""
    if not raw.strip():
        return (), ()
    names = tuple(part.strip() for part in raw.split(","))
    for name in names:
        if not _IDENT.match(name):
            raise FunctionDeclarationError(declaration, f"Invalid argument name '{name}'")
    optional = tuple(name[1:] for name in names if name.startswith("*"))
    return tuple(name.lstrip("*") for name in names), optional


def _build_spec(
    name: str, args: Tuple[str, ...], optional: Tuple[str, ...], description: List[str],
    arg_comments: List[Tuple[str, str]], declaration: str,
) -> FunctionSpec:
    if not description:
        raise FunctionDeclarationError(declaration, f"Function '{name}' has no description")

    commented = [arg for arg, _ in arg_comments]
    if list(args) != commented:
        raise FunctionDeclarationError(
            declaration,
            f"Argument names do not match: signature has {list(args)}, comments have {commented}",
        )

    descriptions: Dict[str, str] = {arg: desc for arg, desc in arg_comments}
    try:
        return FunctionSpec(
            name=name,
            arguments=args,
            description=" ".join(description),
            argument_descriptions=descriptions,
            optional=optional,
        )
    except ValueError as exc:
        raise FunctionDeclarationError(declaration, str(exc)) from exc


def parse_declarations(text: str) -> List[FunctionSpec]:
    """
    Parse every declaration in ``text``.

    Args:
        text: One or more declaration blocks.

    Returns:
        FunctionSpec values in declaration order.

    Raises:
        FunctionDeclarationError: On a malformed block, a mismatch between
            argument comments and the signature, or trailing comments with no
            signature.
    """
    specs: List[FunctionSpec] = []
    description: List[str] = []
    arg_comments: List[Tuple[str, str]] = []
    block: List[str] = []

    for line in text.splitlines():
        if not line.strip():
            continue
        block.append(line)

        comment = _COMMENT.match(line)
        if comment:
            body = comment.group("text")
            arg = _ARG_COMMENT.match(body)
            if arg:
                arg_comments.append((arg.group("name").lstrip("*"), arg.group("desc").strip()))
            elif arg_comments:
                raise FunctionDeclarationError(
                    "\n".join(block), "Description lines must come before argument lines"
                )
            elif body:
                description.append(body)
            continue

        signature = _SIGNATURE.match(line)
        if not signature:
            raise FunctionDeclarationError("\n".join(block), f"Unrecognised line: {line.strip()}")

        declaration = "\n".join(block)
        args, optional = _parse_signature_args(signature.group("args"), declaration)
        specs.append(
            _build_spec(
                signature.group("name"), args, optional, description, arg_comments, declaration
            )
        )
        description, arg_comments, block = [], [], []

    if block:
        raise FunctionDeclarationError("\n".join(block), "Comments without a function signature")

    return specs


def load_declarations(path: str) -> List[FunctionSpec]:
    """Read and parse a declaration file."""
    file_path = Path(path).expanduser().resolve()
    if not file_path.exists():
        raise FileNotFoundError(f"Function declaration file not found: {file_path}")
    return parse_declarations(file_path.read_text())


__all__ = ["parse_declarations", "load_declarations"]
