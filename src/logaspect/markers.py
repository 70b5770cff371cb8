"""
Markers that opt types and members into loggable-state extraction.

Usage:
    @loggable
    @dataclass
    class Customer:
        name: str
        password: Annotated[str, Omit()]
        ssn: str = replaced("***-**-****", default="")

    @loggable(omit=("token",), replace={"email": "<redacted>"})
    class Session:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, Mapping, Optional, TypeVar, overload

from logaspect.utils.errors import MarkerError

T = TypeVar("T", bound=type)

LOGGABLE_ATTR = "__loggable__"
MARKER_METADATA_KEY = "logaspect.marker"


@dataclass(frozen=True)
class Omit:
    """Member marker: never extract this member."""


@dataclass(frozen=True)
class Replace:
    """Member marker: extract ``value`` instead of the member's real value."""

    value: Any = None


@dataclass(frozen=True)
class LoggableSpec:
    """What ``@loggable`` records on a class."""

    omit: FrozenSet[str] = frozenset()
    replace: Mapping[str, Any] = field(default_factory=dict)


@overload
def loggable(cls: T) -> T: ...


@overload
def loggable(
    *,
    omit: Iterable[str] = (),
    replace: Optional[Mapping[str, Any]] = None,
) -> Callable[[T], T]: ...


def loggable(
    cls: Optional[T] = None,
    *,
    omit: Iterable[str] = (),
    replace: Optional[Mapping[str, Any]] = None,
) -> Any:
    """Mark a class as loggable.

    The marker applies to the decorated class only; subclasses must be
    decorated themselves.

    Args:
        cls: Class being decorated. When ``None`` the decorator is returned.
        omit: Member names to omit, for members that cannot carry a marker.
        replace: Member name to replacement value, likewise.
    """
    if isinstance(omit, str):
        raise MarkerError("omit expects a collection of member names", target=omit)

    spec = LoggableSpec(omit=frozenset(omit), replace=dict(replace or {}))

    def decorator(target: T) -> T:
        if not isinstance(target, type):
            raise MarkerError(
                "@loggable can only decorate classes",
                target=repr(target),
            )
        setattr(target, LOGGABLE_ATTR, spec)
        return target

    if cls is not None:
        return decorator(cls)

    return decorator


def loggable_spec(cls: type) -> Optional[LoggableSpec]:
    """The class's own marker, ignoring anything inherited."""
    spec = cls.__dict__.get(LOGGABLE_ATTR)
    return spec if isinstance(spec, LoggableSpec) else None


def is_loggable(cls: type) -> bool:
    return loggable_spec(cls) is not None


def omitted(**field_kwargs: Any) -> Any:
    """A ``dataclasses.field`` carrying the :class:`Omit` marker."""
    return _marked_field(Omit(), field_kwargs)


def replaced(value: Any, **field_kwargs: Any) -> Any:
    """A ``dataclasses.field`` carrying a :class:`Replace` marker."""
    return _marked_field(Replace(value), field_kwargs)


def _marked_field(marker: Any, field_kwargs: Dict[str, Any]) -> Any:
    metadata = dict(field_kwargs.pop("metadata", None) or {})
    metadata[MARKER_METADATA_KEY] = tuple(metadata.get(MARKER_METADATA_KEY, ())) + (marker,)
    return field(metadata=metadata, **field_kwargs)


__all__ = [
    "LOGGABLE_ATTR",
    "MARKER_METADATA_KEY",
    "LoggableSpec",
    "Omit",
    "Replace",
    "is_loggable",
    "loggable",
    "loggable_spec",
    "omitted",
    "replaced",
]
