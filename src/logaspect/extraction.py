"""
Loggable-state extraction.

The first time an object of a given type is seen, its public data members are
enumerated and turned into a :class:`TypeExtractionPlan`: one entry per
member with its output key, a precomputed accessor and the omit/replace
directive read from its markers. Every later extraction for that type only
walks the cached plan.
"""

from __future__ import annotations

import dataclasses
import inspect
import operator
import typing
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from logaspect.markers import MARKER_METADATA_KEY, LoggableSpec, Omit, Replace, loggable_spec
from logaspect.utils.errors import ExtractionPlanError
from logaspect.utils.logging import LoggerFactory

logger = LoggerFactory.get_logger("extraction")

LoggableItems = Sequence[Tuple[str, Any]]

EMPTY_ITEMS: LoggableItems = ()


class Directive(str, Enum):
    """How a member's value is treated during extraction."""

    NORMAL = "normal"
    OMIT = "omit"
    REPLACE = "replace"


@dataclass(frozen=True)
class FieldPlan:
    """One member of a loggable type."""

    output_key: str
    accessor: Callable[[Any], Any]
    directive: Directive = Directive.NORMAL
    replacement: Any = None


@dataclass(frozen=True)
class TypeExtractionPlan:
    """Ordered extraction entries for one type."""

    entries: Tuple[FieldPlan, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.entries)


EMPTY_PLAN = TypeExtractionPlan()


def _resolve_directive(markers: Iterable[Any]) -> Tuple[Directive, Any]:
    """Replace takes precedence over omit when a member carries both."""
    omit = False
    for marker in markers:
        if isinstance(marker, Replace):
            return Directive.REPLACE, marker.value
        if isinstance(marker, Omit) or marker is Omit:
            omit = True
    if omit:
        return Directive.OMIT, None
    return Directive.NORMAL, None


def _annotated_markers(hint: Any) -> Tuple[Any, ...]:
    if typing.get_origin(hint) is typing.Annotated:
        return tuple(hint.__metadata__)
    return ()


def _type_hints(cls: type) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(cls, include_extras=True)
    except Exception as exc:
        raise ExtractionPlanError(
            f"Cannot resolve annotations of {cls.__qualname__}: {exc}",
            type_name=cls.__name__,
            help_text="Loggable types need annotations that resolve at runtime",
        ) from exc


def _public_members(cls: type) -> List[Tuple[str, Tuple[Any, ...]]]:
    """
    Public data members of ``cls`` with the markers attached to each.

    Dataclass fields come first in field order; other classes contribute their
    annotated attributes base-first. Public properties follow in definition
    order.
    """
    hints = _type_hints(cls)
    members: Dict[str, Tuple[Any, ...]] = {}

    if dataclasses.is_dataclass(cls):
        for data_field in dataclasses.fields(cls):
            if data_field.name.startswith("_"):
                continue
            markers = tuple(data_field.metadata.get(MARKER_METADATA_KEY, ()))
            members[data_field.name] = _annotated_markers(hints.get(data_field.name)) + markers
    else:
        for klass in reversed(cls.__mro__):
            for name in inspect.get_annotations(klass):
                if name.startswith("_") or name in members:
                    continue
                hint = hints.get(name)
                if typing.get_origin(hint) is typing.ClassVar:
                    continue
                members[name] = _annotated_markers(hint)

    for klass in reversed(cls.__mro__):
        for name, value in vars(klass).items():
            if isinstance(value, property) and not name.startswith("_"):
                members.setdefault(name, ())

    return list(members.items())


def build_plan(cls: type) -> TypeExtractionPlan:
    """
    Build the extraction plan for ``cls``.

    Raises:
        ExtractionPlanError: If the type's members or markers cannot be read
    """
    spec: Optional[LoggableSpec] = loggable_spec(cls)
    if spec is None:
        return EMPTY_PLAN

    members = _public_members(cls)
    known = {name for name, _ in members}

    for name in (*spec.omit, *spec.replace):
        if name not in known:
            raise ExtractionPlanError(
                f"{cls.__qualname__} has no public member named {name!r}",
                type_name=cls.__name__,
                member=name,
            )

    entries: List[FieldPlan] = []
    for name, markers in members:
        if name in spec.omit:
            markers = markers + (Omit(),)
        if name in spec.replace:
            markers = markers + (Replace(spec.replace[name]),)

        directive, replacement = _resolve_directive(markers)
        entries.append(
            FieldPlan(
                output_key=f"{cls.__name__}_{name}",
                accessor=operator.attrgetter(name),
                directive=directive,
                replacement=replacement,
            )
        )

    logger.debug(
        "Built loggable extraction plan",
        extra_context={"type": cls.__qualname__, "entries": len(entries)},
    )
    return TypeExtractionPlan(entries=tuple(entries))


class LoggableStateExtractor:
    """
    Turns objects into ordered ``(key, value)`` items for logging scopes.

    Plans are cached per type in a plain dict; a race on a new type may build
    the plan twice, and ``setdefault`` keeps whichever landed first. A type
    whose plan cannot be built is remembered too, and every later extraction
    re-raises the same error without introspecting the type again.
    """

    def __init__(self) -> None:
        self._plans: Dict[type, TypeExtractionPlan] = {}
        self._failures: Dict[type, ExtractionPlanError] = {}

    def plan_for(self, cls: type) -> TypeExtractionPlan:
        """
        Cached plan for ``cls``, built on first use.

        Raises:
            ExtractionPlanError: If the type's plan cannot be built
        """
        plan = self._plans.get(cls)
        if plan is not None:
            return plan

        failure = self._failures.get(cls)
        if failure is not None:
            raise failure.with_traceback(None)

        try:
            return self._plans.setdefault(cls, build_plan(cls))
        except ExtractionPlanError as exc:
            logger.error(
                "Cannot build loggable extraction plan",
                extra_context=exc.get_context_for_logging(),
            )
            self._failures.setdefault(cls, exc)
            raise

    @property
    def cached_types(self) -> int:
        return len(self._plans)

    def parse_loggable(self, state: Any) -> LoggableItems:
        """
        Extract the loggable items of ``state``.

        Omitted members never have their accessor called. Replacement values
        are emitted as-is, even ``None``. Normal members are emitted only when
        their value is not ``None``.

        Args:
            state: Any object; ``None`` and unmarked types yield no items

        Returns:
            Items in member declaration order
        """
        if state is None:
            return EMPTY_ITEMS

        plan = self.plan_for(type(state))
        if not plan.entries:
            return EMPTY_ITEMS

        items: List[Tuple[str, Any]] = []
        for entry in plan.entries:
            if entry.directive is Directive.OMIT:
                continue
            if entry.directive is Directive.REPLACE:
                items.append((entry.output_key, entry.replacement))
                continue

            value = entry.accessor(state)
            if value is not None:
                items.append((entry.output_key, value))

        return items

    def clear(self) -> None:
        self._plans.clear()
        self._failures.clear()


_default_extractor = LoggableStateExtractor()


def parse_loggable(state: Any) -> LoggableItems:
    """Extract loggable items using the process-wide extractor."""
    return _default_extractor.parse_loggable(state)


def default_extractor() -> LoggableStateExtractor:
    return _default_extractor


__all__ = [
    "Directive",
    "EMPTY_ITEMS",
    "EMPTY_PLAN",
    "FieldPlan",
    "LoggableItems",
    "LoggableStateExtractor",
    "TypeExtractionPlan",
    "build_plan",
    "default_extractor",
    "parse_loggable",
]
