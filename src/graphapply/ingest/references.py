"""Scan and resolve ${kind.name.attr} reference tokens in attribute values."""

import re
from typing import Any, Callable, List, NamedTuple, Optional, Mapping
from ..utils.errors import GraphConstructionError, ReferenceResolutionError

REFERENCE_PATTERN = re.compile(r'\$\{([^}]+)\}')


class Reference(NamedTuple):
    """A parsed reference to another resource's output attribute."""
    kind: str
    name: str
    attribute: str

    @property
    def node_id(self) -> str:
        return f"{self.kind}.{self.name}"

    @property
    def token(self) -> str:
        return "${" + f"{self.node_id}.{self.attribute}" + "}"


class _Unknown:
    """Placeholder for a value that is only known after apply."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "(known after apply)"

    def __eq__(self, other: object) -> bool:
        # Never equal, itself included.
        return False

    def __hash__(self) -> int:
        return id(self)


UNKNOWN = _Unknown()


def parse_reference(expression: str) -> Reference:
    """
    Parse the inside of a ${...} token.

    Raises:
        GraphConstructionError: If the expression is not kind.name.attr
    """
    parts = [p.strip() for p in expression.strip().split('.')]
    if len(parts) < 3 or any(not p for p in parts):
        raise GraphConstructionError(
            f"Invalid reference '${{{expression}}}'. "
            "References must look like ${kind.name.attribute}"
        )
    return Reference(kind=parts[0], name=parts[1], attribute='.'.join(parts[2:]))


def find_references(value: Any) -> List[Reference]:
    """Recursively collect references from strings, dicts and lists."""
    refs = []
    if isinstance(value, str):
        for match in REFERENCE_PATTERN.findall(value):
            refs.append(parse_reference(match))
    elif isinstance(value, dict):
        for v in value.values():
            refs.extend(find_references(v))
    elif isinstance(value, (list, tuple)):
        for item in value:
            refs.extend(find_references(item))
    return refs


def contains_unknown(value: Any) -> bool:
    """True if value (or anything nested in it) is UNKNOWN."""
    if value is UNKNOWN:
        return True
    if isinstance(value, dict):
        return any(contains_unknown(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(contains_unknown(v) for v in value)
    return False


def resolve_references(value: Any, lookup: Callable[[Reference], Any]) -> Any:
    """
    Replace reference tokens in value using lookup.

    A string made of exactly one token becomes the referenced value with its
    type preserved. Tokens embedded in longer strings are interpolated; if any
    of them is UNKNOWN the whole string is UNKNOWN.
    """
    if isinstance(value, str):
        whole = REFERENCE_PATTERN.fullmatch(value.strip())
        if whole:
            return lookup(parse_reference(whole.group(1)))

        unknown = False

        def _substitute(match: "re.Match[str]") -> str:
            nonlocal unknown
            resolved = lookup(parse_reference(match.group(1)))
            if resolved is UNKNOWN:
                unknown = True
                return match.group(0)
            return str(resolved)

        interpolated = REFERENCE_PATTERN.sub(_substitute, value)
        return UNKNOWN if unknown else interpolated
    if isinstance(value, dict):
        return {k: resolve_references(v, lookup) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_references(v, lookup) for v in value]
    return value


def attribute_value(attributes: Mapping[str, Any], provider_id: Optional[str], ref: Reference) -> Any:
    """
    Read the attribute a reference points at.

    'id' falls back to the provider identifier when the attributes carry none.

    Raises:
        ReferenceResolutionError: If the attribute path does not exist
    """
    current: Any = attributes
    for part in ref.attribute.split('.'):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        elif current is attributes and part == "id" and provider_id is not None:
            current = provider_id
        else:
            raise ReferenceResolutionError(
                f"Cannot resolve {ref.token}: attribute '{ref.attribute}' not found on {ref.node_id}"
            )
    return current
