"""
toolvalet Argument Resolver - Fills step arguments from workflow state

Supports variable syntax:
- {{input.FIELD}} - From the workflow's initial arguments
- {{steps.STEP}} / {{steps.STEP.FIELD.SUB}} - From an earlier step's output
- {{steps.STEP.FIELD?}} - Optional: a missing value drops the argument
  instead of failing the step

A string that is exactly one reference keeps the referenced value's
type (dict, list, number). References embedded in longer text are
interpolated as strings.
"""

import re
from typing import Any, Dict, Mapping, Optional, Set


class ResolutionError(Exception):
    """Raised when a required reference cannot be resolved"""

    def __init__(self, reference: str, message: Optional[str] = None):
        super().__init__(message or f"Unresolved reference '{{{{{reference}}}}}'")
        self.reference = reference


class _Missing:
    def __repr__(self) -> str:
        return "<missing>"


MISSING = _Missing()


class ArgumentResolver:
    """
    Resolves ``{{...}}`` references against a workflow context.

    Example:
        resolver = ArgumentResolver()
        args = resolver.resolve(
            {"deal_id": "{{input.deal_id}}", "title": "Summary of {{steps.fetch-deal.name}}"},
            inputs={"deal_id": "d1"},
            steps={"fetch-deal": {"name": "Acme renewal"}},
        )
    """

    VARIABLE_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][\w-]*(?:\.[\w-]+)*)(\?)?\s*\}\}")
    ROOTS = ("input", "steps")

    def resolve(
        self,
        arguments: Mapping[str, Any],
        inputs: Optional[Mapping[str, Any]] = None,
        steps: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Resolve every reference in ``arguments``.

        Raises:
            ResolutionError: A required reference has no value
        """
        context = {"input": dict(inputs or {}), "steps": dict(steps or {})}
        return self._resolve_value(dict(arguments), context)

    def references(self, value: Any) -> Set[str]:
        """All reference paths used anywhere in ``value``."""
        found: Set[str] = set()
        if isinstance(value, str):
            found.update(m.group(1) for m in self.VARIABLE_PATTERN.finditer(value))
        elif isinstance(value, (list, tuple)):
            for item in value:
                found |= self.references(item)
        elif isinstance(value, Mapping):
            for item in value.values():
                found |= self.references(item)
        return found

    def _resolve_value(self, value: Any, context: Dict[str, Any]) -> Any:
        if isinstance(value, str):
            return self._resolve_string(value, context)
        if isinstance(value, (list, tuple)):
            items = (self._resolve_value(item, context) for item in value)
            return [item for item in items if item is not MISSING]
        if isinstance(value, Mapping):
            resolved = {}
            for key, item in value.items():
                item = self._resolve_value(item, context)
                if item is not MISSING:
                    resolved[key] = item
            return resolved
        return value

    def _resolve_string(self, value: str, context: Dict[str, Any]) -> Any:
        match = self.VARIABLE_PATTERN.fullmatch(value.strip())
        if match:
            path, optional = match.group(1), bool(match.group(2))
            found = self._lookup(path, context)
            if found is MISSING and not optional:
                raise ResolutionError(path)
            return found

        def replace_var(m):
            path, optional = m.group(1), bool(m.group(2))
            found = self._lookup(path, context)
            if found is MISSING:
                if optional:
                    return ""
                raise ResolutionError(path)
            return str(found)

        return self.VARIABLE_PATTERN.sub(replace_var, value)

    def _lookup(self, path: str, context: Dict[str, Any]) -> Any:
        parts = path.split(".")
        if parts[0] not in self.ROOTS:
            raise ResolutionError(path, f"Unknown reference root in '{{{{{path}}}}}'")

        current: Any = context
        for part in parts:
            if isinstance(current, Mapping):
                if part not in current:
                    return MISSING
                current = current[part]
            elif isinstance(current, list) and part.isdigit():
                index = int(part)
                if index >= len(current):
                    return MISSING
                current = current[index]
            else:
                return MISSING

            if current is None:
                return MISSING
        return current
