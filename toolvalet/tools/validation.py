"""
Argument validation against a ToolDescriptor.

Pure and side-effect free: runs before any network call, so invalid
model output never reaches a provider.
"""

import re
from typing import Any, List, Mapping, Optional, Tuple

from dateutil import parser as date_parser

from .models import ParameterSpec, ToolDescriptor, ValidationError

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _type_matches(expected: str, value: Any) -> bool:
    # bool is a subclass of int; JSON keeps them apart
    if expected == "string":
        return isinstance(value, str)
    if expected == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "array":
        return isinstance(value, (list, tuple))
    if expected == "object":
        return isinstance(value, Mapping)
    return False


def _check_format(fmt: str, value: str) -> Optional[str]:
    if fmt == "date-time":
        try:
            date_parser.isoparse(value)
        except (ValueError, OverflowError):
            return "must be an ISO-8601 date-time"
    elif fmt == "email":
        if not _EMAIL_PATTERN.match(value):
            return "must be an email address"
    return None


def check_parameter(spec: ParameterSpec, value: Any) -> Optional[str]:
    """Problem with a single present value, or None."""
    if value is None:
        return "must not be null" if spec.required else None

    if not _type_matches(spec.type, value):
        return f"expected {spec.type}, got {type(value).__name__}"

    if spec.enum is not None and value not in spec.enum:
        allowed = ", ".join(str(v) for v in spec.enum)
        return f"must be one of: {allowed}"

    if spec.type in ("integer", "number"):
        if spec.minimum is not None and value < spec.minimum:
            return f"must be >= {spec.minimum:g}"
        if spec.maximum is not None and value > spec.maximum:
            return f"must be <= {spec.maximum:g}"

    if spec.type == "string":
        if spec.min_length is not None and len(value) < spec.min_length:
            return f"must be at least {spec.min_length} characters"
        if spec.max_length is not None and len(value) > spec.max_length:
            return f"must be at most {spec.max_length} characters"
        if spec.format:
            return _check_format(spec.format, value)

    if spec.type == "array" and spec.items:
        for index, item in enumerate(value):
            if not _type_matches(spec.items, item):
                return f"item {index} expected {spec.items}, got {type(item).__name__}"
            if spec.format and isinstance(item, str):
                problem = _check_format(spec.format, item)
                if problem:
                    return f"item {index} {problem}"

    return None


def validate_arguments(
    descriptor: ToolDescriptor,
    arguments: Any,
) -> Optional[ValidationError]:
    """
    Validate a raw arguments object.

    Checks, for every field: presence of required arguments, JSON type,
    enum membership, numeric bounds, string length and format, array
    element types. Arguments the tool does not declare are rejected.

    Returns:
        None when valid, otherwise a ValidationError listing every problem
    """
    if not isinstance(arguments, Mapping):
        return ValidationError.single("$", f"arguments must be an object, got {type(arguments).__name__}")

    problems: List[Tuple[str, str]] = []
    declared = {p.name for p in descriptor.parameters}

    for spec in descriptor.parameters:
        if spec.name not in arguments:
            if spec.required:
                problems.append((spec.name, "is required"))
            continue
        problem = check_parameter(spec, arguments[spec.name])
        if problem:
            problems.append((spec.name, problem))

    for name in sorted(set(arguments) - declared):
        problems.append((str(name), "is not a parameter of this tool"))

    return ValidationError.collect(problems)
