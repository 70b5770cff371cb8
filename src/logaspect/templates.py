"""
Message templates and placeholder ordering.

Templates carry up to three well-known placeholders. Structured loggers
substitute values positionally, in the order placeholders appear, so the
assembly/class/method names have to be handed over in template order. The
offsets of the three tokens are computed once per template and cached for the
life of the process.
"""

from __future__ import annotations

import itertools
import re
import sys
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Sequence, Tuple, Union

ASSEMBLY_NAME = "{AssemblyName}"
CLASS_NAME = "{ClassName}"
METHOD_NAME = "{MethodName}"

# Absent tokens compare as "not smaller than anything".
NOT_FOUND = sys.maxsize

_PLACEHOLDER = re.compile(r"\{([^{}]+)\}")

TemplateOffsets = Tuple[int, int, int]


@dataclass(frozen=True)
class Template:
    """An interned message template with a small, process-stable id."""

    id: int
    value: str

    _registry: ClassVar[Dict[str, "Template"]] = {}
    _ids: ClassVar["itertools.count[int]"] = itertools.count()

    @classmethod
    def of(cls, value: Union[str, "Template"]) -> "Template":
        """Return the interned template for ``value``."""
        if isinstance(value, Template):
            return value

        existing = cls._registry.get(value)
        if existing is not None:
            return existing

        return cls._registry.setdefault(value, cls(id=next(cls._ids), value=value))

    def __str__(self) -> str:
        return self.value


TemplateLike = Union[str, Template]


def _offset(haystack: str, token: str) -> int:
    index = haystack.find(token.lower())
    return NOT_FOUND if index < 0 else index


def compute_offsets(template: str) -> TemplateOffsets:
    """First-occurrence offsets of the assembly, class and method tokens."""
    lowered = template.lower()
    return (
        _offset(lowered, ASSEMBLY_NAME),
        _offset(lowered, CLASS_NAME),
        _offset(lowered, METHOD_NAME),
    )


class TemplateOrderResolver:
    """
    Orders assembly, class and method names by their position in a template.

    Offsets are cached by template id for :class:`Template` instances and by
    the raw string otherwise. The cache is a plain dict written with
    ``setdefault``; two threads racing on a new template both compute the
    same offsets and one of them wins.
    """

    def __init__(self) -> None:
        self._orders: Dict[Union[int, str], TemplateOffsets] = {}

    def offsets(self, template: TemplateLike) -> TemplateOffsets:
        """Cached token offsets for ``template``."""
        if isinstance(template, Template):
            key: Union[int, str] = template.id
            text = template.value
        else:
            key = text = template

        order = self._orders.get(key)
        if order is None:
            order = self._orders.setdefault(key, compute_offsets(text))
        return order

    def order_names(
        self,
        template: TemplateLike,
        assembly_name: str,
        class_name: str,
        method_name: str,
    ) -> Tuple[str, str, str]:
        """
        Return the three names in the order their tokens occur in ``template``.

        Ties and missing tokens fall through the cascade to the method-first
        branch.
        """
        a, c, m = self.offsets(template)

        if a < c and a < m:
            if c < m:
                return assembly_name, class_name, method_name
            return assembly_name, method_name, class_name

        if c < a and c < m:
            if a < m:
                return class_name, assembly_name, method_name
            return class_name, method_name, assembly_name

        if a < c:
            return method_name, assembly_name, class_name
        return method_name, class_name, assembly_name

    @property
    def cached_templates(self) -> int:
        return len(self._orders)

    def clear(self) -> None:
        self._orders.clear()


def placeholder_names(template: str) -> List[str]:
    """Distinct placeholder names in order of first appearance."""
    seen: Dict[str, str] = {}
    for match in _PLACEHOLDER.finditer(template):
        name = match.group(1)
        seen.setdefault(name.lower(), name)
    return list(seen.values())


def template_properties(template: str, values: Sequence[Any]) -> Dict[str, Any]:
    """Map each placeholder name to its positional value."""
    names = placeholder_names(template)
    return {name: value for name, value in zip(names, values)}


def render_template(template: str, values: Sequence[Any]) -> str:
    """
    Substitute ``values`` into ``template`` positionally.

    The n-th distinct placeholder (case-insensitive) receives the n-th value;
    repeated placeholders reuse it. Placeholders without a value are left as
    written.
    """
    lookup = {
        name.lower(): value
        for name, value in zip(placeholder_names(template), values)
    }

    def _substitute(match: "re.Match[str]") -> str:
        key = match.group(1).lower()
        if key in lookup:
            return str(lookup[key])
        return match.group(0)

    return _PLACEHOLDER.sub(_substitute, template)


_default_resolver = TemplateOrderResolver()


def order_names(
    template: TemplateLike,
    assembly_name: str,
    class_name: str,
    method_name: str,
) -> Tuple[str, str, str]:
    """Order names using the process-wide resolver."""
    return _default_resolver.order_names(template, assembly_name, class_name, method_name)


def default_resolver() -> TemplateOrderResolver:
    return _default_resolver


__all__ = [
    "ASSEMBLY_NAME",
    "CLASS_NAME",
    "METHOD_NAME",
    "NOT_FOUND",
    "Template",
    "TemplateLike",
    "TemplateOrderResolver",
    "compute_offsets",
    "default_resolver",
    "order_names",
    "placeholder_names",
    "render_template",
    "template_properties",
]
