"""
Variable Resolver - Resolves {{nodeId.field}} references against the execution context

Supports:
- {{nodeId.field}} - Access a previous node's output
- {{request.body.amount}}, {{env.API_TOKEN}}, {{variables.name}} - Reserved entries
- Nested paths: {{webhook.body.customer.email}}
- Array access: {{webhook.body.items[0].name}}
- Case-insensitive fallback when the exact key is missing

Interpolation always produces text: objects and lists are JSON-encoded,
booleans become true/false and unresolvable paths become an empty string.
Use get_value() when the raw, shape-preserving value is needed.
"""

import re
from collections.abc import Mapping
from typing import Any, List, Optional, Tuple
import logging

from app.flow_engine.context import safe_stringify

logger = logging.getLogger(__name__)

_MISSING = object()


class VariableResolver:
    """
    Resolves variable references in node inputs.

    Examples:
        {{webhook.body.amount}} -> "150"
        {{httpNode.success}} -> "false"
        {{httpNode.data}} -> '{"id": 1}'
        {{webhook.body.items[0].name}} -> "Product A"
    """

    # Pattern to match {{variable.path}}
    VARIABLE_PATTERN = re.compile(r'\{\{([^{}]+)\}\}')

    # field[index]
    INDEXED_SEGMENT = re.compile(r'^([^\[\]]+)\[(\d+)\]$')

    def __init__(self, context: Optional[Mapping] = None):
        """
        Args:
            context: Execution context (or any mapping) used as the lookup root
        """
        self.context = context if context is not None else {}

    def resolve(self, value: Any) -> Any:
        """
        Resolve variables in value (recursively handles dicts, lists, strings).

        The input is never mutated; containers are rebuilt.
        """
        if isinstance(value, str):
            return self._resolve_string(value)
        elif isinstance(value, dict):
            return {
                (self._resolve_string(k) if isinstance(k, str) else k): self.resolve(v)
                for k, v in value.items()
            }
        elif isinstance(value, (list, tuple)):
            return [self.resolve(item) for item in value]
        else:
            # Primitive value (int, bool, None, etc)
            return value

    def _resolve_string(self, text: str) -> str:
        if '{{' not in text:
            return text

        def replace_var(match):
            var_path = match.group(1).strip()
            found, value = self._lookup_path(var_path)
            if not found:
                logger.debug(f"Unresolved variable: {var_path}")
                return ''
            return self.stringify(value)

        return self.VARIABLE_PATTERN.sub(replace_var, text)

    def get_value(self, path: str, default: Any = None) -> Any:
        """
        Return the raw value at path (with or without surrounding braces).

        Args:
            path: "nodeId.field" or "{{nodeId.field}}"
            default: Returned when the path cannot be resolved
        """
        path = path.strip()
        if path.startswith('{{') and path.endswith('}}'):
            path = path[2:-2].strip()
        found, value = self._lookup_path(path)
        return value if found else default

    def _lookup_path(self, path: str) -> Tuple[bool, Any]:
        """
        Walk a dotted path through the context.

        Returns:
            Tuple of (found, value)
        """
        if not path:
            return False, None

        current: Any = self.context
        for part in path.split('.'):
            part = part.strip()
            if not part:
                return False, None

            indexed = self.INDEXED_SEGMENT.match(part)
            if indexed:
                field_name, index_str = indexed.groups()
                current = self._get_key(current, field_name)
                if current is _MISSING:
                    return False, None
                index = int(index_str)
                if isinstance(current, (list, tuple)) and 0 <= index < len(current):
                    current = current[index]
                else:
                    logger.debug(f"Invalid array access: {part}")
                    return False, None
            else:
                current = self._get_key(current, part)
                if current is _MISSING:
                    return False, None

        return True, current

    @staticmethod
    def _get_key(container: Any, key: str) -> Any:
        if isinstance(container, Mapping):
            if key in container:
                return container[key]
            lowered = key.lower()
            for candidate in container:
                if isinstance(candidate, str) and candidate.lower() == lowered:
                    return container[candidate]
            return _MISSING
        if isinstance(container, (list, tuple)) and key.isdigit():
            index = int(key)
            if index < len(container):
                return container[index]
        return _MISSING

    @staticmethod
    def stringify(value: Any) -> str:
        """Text form of a resolved value, as it appears inside an interpolated string."""
        if value is None:
            return ''
        if isinstance(value, bool):
            return 'true' if value else 'false'
        if isinstance(value, str):
            return value
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        if isinstance(value, (int, float)):
            return str(value)
        return safe_stringify(value)

    def find_references(self, value: Any) -> List[str]:
        """List every variable path referenced in value."""
        references = []

        def collect(val):
            if isinstance(val, str):
                references.extend(m.group(1).strip() for m in self.VARIABLE_PATTERN.finditer(val))
            elif isinstance(val, dict):
                for k, v in val.items():
                    collect(k)
                    collect(v)
            elif isinstance(val, (list, tuple)):
                for item in val:
                    collect(item)

        collect(value)
        return references

    def validate(self, value: Any) -> List[str]:
        """
        Validate that all variables in value can be resolved.

        Returns:
            List of unresolved variable paths (empty if all valid)
        """
        return [path for path in self.find_references(value) if not self._lookup_path(path)[0]]


def resolve(value: Any, context: Mapping) -> Any:
    """Shortcut for VariableResolver(context).resolve(value)."""
    return VariableResolver(context).resolve(value)
