"""
Invocation aspect: wraps a call with "executing"/"executed" records and scopes.

Usage:
    aspect = create_logging_aspect("orders")
    total = aspect.invoke(service.price, order, customer)
    receipt = await aspect.invoke_async(service.checkout, order)

    @logged(component="orders")
    async def ship(order: Order) -> Shipment:
        ...
"""

from __future__ import annotations

import functools
import inspect
from contextlib import ExitStack
from functools import wraps
from typing import Any, Awaitable, Callable, ContextManager, Dict, Optional, Tuple, TypeVar, cast, overload

from logaspect.extraction import LoggableStateExtractor, default_extractor
from logaspect.options import LoggingAspectOptions
from logaspect.templates import TemplateLike, TemplateOrderResolver, default_resolver
from logaspect.utils.logging import AspectLogger, LoggerFactory

F = TypeVar("F", bound=Callable[..., Any])
R = TypeVar("R")

MethodNames = Tuple[str, str, str]

_method_names: Dict[Any, MethodNames] = {}


def _identity_key(method: Any) -> Any:
    """The function whose names describe ``method``."""
    while isinstance(method, functools.partial):
        method = method.func
    method = getattr(method, "__func__", method)
    if not inspect.isroutine(method) and not isinstance(method, type):
        method = type(method).__call__
    return method


def _describe(target: Any) -> MethodNames:
    module = getattr(target, "__module__", None) or ""
    qualname: str = getattr(target, "__qualname__", None) or getattr(target, "__name__", "")
    name: str = getattr(target, "__name__", None) or qualname.rsplit(".", 1)[-1]

    owner = qualname.rsplit(".", 1)[0] if "." in qualname else ""
    class_name = owner.rsplit(".", 1)[-1]
    if class_name == "<locals>":
        class_name = ""

    return module.split(".", 1)[0], class_name, name


def _cache_key(target: Any) -> Any:
    """
    Cache key for a described target.

    Python functions are keyed by their code object plus the names read from
    them, so lambdas and nested functions recreated on every call share one
    entry and the cache never holds their closures alive.
    """
    code = getattr(target, "__code__", None)
    if code is None:
        return target
    return code, getattr(target, "__module__", None), target.__qualname__, target.__name__


def resolve_method_names(method: Callable[..., Any]) -> MethodNames:
    """
    ``(assembly, class, method)`` names for a callable.

    The assembly is the top-level package of the defining module and the class
    is the enclosing class (empty for plain functions). Bound methods and
    partials resolve to their underlying function, so the names are cached
    once per function rather than once per bound object.
    """
    target = _identity_key(method)
    key = _cache_key(target)
    names = _method_names.get(key)
    if names is None:
        names = _method_names.setdefault(key, _describe(target))
    return names


class LoggingAspect:
    """
    Surrounds calls with "executing"/"executed" records and logging scopes.

    ``options`` is read once at the start of every call, so assigning a new
    :class:`LoggingAspectOptions` takes effect on the next invocation.
    """

    def __init__(
        self,
        logger: AspectLogger,
        options: Optional[LoggingAspectOptions] = None,
        *,
        extractor: Optional[LoggableStateExtractor] = None,
        resolver: Optional[TemplateOrderResolver] = None,
    ):
        self.logger = logger
        self.options = options or LoggingAspectOptions()
        self.extractor = extractor or default_extractor()
        self.resolver = resolver or default_resolver()

    def invoke(self, method: Callable[..., R], *args: Any, **kwargs: Any) -> R:
        """
        Call ``method`` with logging.

        Exceptions raised by ``method`` propagate unchanged; the "executed"
        record is only written when the call returns.
        """
        options = self.options
        names = resolve_method_names(method)

        executing, state_items = self._log_executing(options, names, args, kwargs)

        with self._scope(options, names):
            result = method(*args, **kwargs)

        if executing:
            self._log_executed(options, names, result, state_items)

        return result

    async def invoke_async(
        self, method: Callable[..., Awaitable[R]], *args: Any, **kwargs: Any
    ) -> R:
        """Await ``method`` with logging; the call scope is held across the await."""
        options = self.options
        names = resolve_method_names(method)

        executing, state_items = self._log_executing(options, names, args, kwargs)

        with self._scope(options, names):
            result = await method(*args, **kwargs)

        if executing:
            self._log_executed(options, names, result, state_items)

        return result

    def decorate(self, func: F) -> F:
        """Wrap ``func`` so every call goes through :meth:`invoke` or :meth:`invoke_async`."""
        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                return await self.invoke_async(func, *args, **kwargs)

            return cast(F, async_wrapper)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return self.invoke(func, *args, **kwargs)

        return cast(F, wrapper)

    def _ordered(self, template: TemplateLike, names: MethodNames) -> Tuple[str, str, str]:
        return self.resolver.order_names(template, *names)

    def _scope(self, options: LoggingAspectOptions, names: MethodNames) -> ContextManager[None]:
        template = options.scope_template
        return self.logger.begin_scope(template, *self._ordered(template, names))

    def _log_executing(
        self,
        options: LoggingAspectOptions,
        names: MethodNames,
        args: Tuple[Any, ...],
        kwargs: Dict[str, Any],
    ) -> Tuple[bool, bool]:
        """
        Write the "executing" record under one scope per loggable parameter.

        Returns:
            Whether the execution level and the state-items level are enabled
        """
        if not self.logger.is_enabled(options.execution_log_level):
            return False, False

        state_items = self.logger.is_enabled(options.state_items_log_level)

        with ExitStack() as scopes:
            if state_items:
                for parameter in reversed((*args, *kwargs.values())):
                    if parameter is None:
                        continue
                    items = self.extractor.parse_loggable(parameter)
                    if items:
                        scopes.enter_context(self.logger.begin_scope(items))

            template = options.method_executing_template
            self.logger.log(options.execution_log_level, template, *self._ordered(template, names))

        return True, state_items

    def _log_executed(
        self,
        options: LoggingAspectOptions,
        names: MethodNames,
        result: Any,
        state_items: bool,
    ) -> None:
        with ExitStack() as scopes:
            if state_items and result is not None:
                items = self.extractor.parse_loggable(result)
                if items:
                    scopes.enter_context(self.logger.begin_scope(items))

            template = options.method_executed_template
            self.logger.log(options.execution_log_level, template, *self._ordered(template, names))


def create_logging_aspect(
    component: str,
    *,
    logger_name: Optional[str] = None,
    options: Optional[LoggingAspectOptions] = None,
) -> LoggingAspect:
    """
    Build a :class:`LoggingAspect` over the component's structured logger.

    Args:
        component: Component name used for the logger and its base context
        logger_name: Optional logger name (defaults to ``logaspect.<component>``)
        options: Aspect options; defaults apply when omitted
    """
    return LoggingAspect(
        LoggerFactory.get_logger(component, logger_name=logger_name),
        options,
    )


@overload
def logged(func: F) -> F: ...


@overload
def logged(
    *,
    component: Optional[str] = None,
    aspect: Optional[LoggingAspect] = None,
    options: Optional[LoggingAspectOptions] = None,
) -> Callable[[F], F]: ...


def logged(
    func: Optional[F] = None,
    *,
    component: Optional[str] = None,
    aspect: Optional[LoggingAspect] = None,
    options: Optional[LoggingAspectOptions] = None,
) -> Any:
    """Decorate a callable so each call is logged through a :class:`LoggingAspect`.

    Works for plain and ``async`` functions. Decorated methods receive the
    instance as their first parameter, so a ``@loggable`` instance
    contributes its own scope.

    Args:
        func: Callable being wrapped. When ``None`` the decorator is returned for later use.
        component: Logger component; defaults to the callable's module.
        aspect: Existing aspect to route calls through.
        options: Options for a newly created aspect.
    """

    def decorator(inner: F) -> F:
        call_aspect = aspect or create_logging_aspect(
            component or inner.__module__,
            logger_name=None if component else inner.__module__,
            options=options,
        )
        return call_aspect.decorate(inner)

    if func is not None:
        return decorator(func)

    return decorator


def method_names_cached() -> int:
    """Number of cached name triples."""
    return len(_method_names)


def clear_method_names() -> None:
    _method_names.clear()


__all__ = [
    "LoggingAspect",
    "MethodNames",
    "clear_method_names",
    "method_names_cached",
    "create_logging_aspect",
    "logged",
    "resolve_method_names",
]
