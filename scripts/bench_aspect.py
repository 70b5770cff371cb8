#!/usr/bin/env python3
"""
logaspect micro-benchmarks.

Times the hot paths of the invocation aspect:
 - loggable-state extraction for a marked type with omit/replace members
 - placeholder ordering for the three default templates
 - a full aspect invocation against a no-op logger

Usage examples:
  uv run scripts/bench_aspect.py --iterations 200000
  uv run scripts/bench_aspect.py --only parse_loggable --only order_names
"""

from __future__ import annotations

import math
import time
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Annotated, Any, Callable, ContextManager, Dict, List, Optional, Sequence

import typer
from rich.console import Console
from rich.table import Table

from logaspect import (
    LoggingAspect,
    LoggingAspectOptions,
    LogLevel,
    Omit,
    Template,
    loggable,
    order_names,
    parse_loggable,
    replaced,
)
from logaspect.utils.logging import LoggerFactory

app = typer.Typer(add_completion=False, help="logaspect micro-benchmarks.")
console = Console()

logger = LoggerFactory.get_logger("bench")


@loggable
@dataclass
class SensitivePayload:
    property1: str
    property2: Annotated[str, Omit()]
    property3: str = replaced("SENSITIVE", default="")


class NullLogger:
    """Accepts everything and writes nothing."""

    def is_enabled(self, level: Any) -> bool:
        return True

    def log(self, level: Any, template: Any, *values: Any) -> None:
        return None

    def begin_scope(self, state: Any, *values: Any) -> ContextManager[None]:
        return nullcontext()


@dataclass
class BenchResult:
    name: str
    iterations: int
    samples_ns: List[float]

    @property
    def mean_ns(self) -> float:
        return sum(self.samples_ns) / len(self.samples_ns)


def percentile(values: Sequence[float], pct: float) -> Optional[float]:
    if not values:
        return None
    if len(values) == 1:
        return values[0]
    sorted_vals = sorted(values)
    k = (len(sorted_vals) - 1) * (pct / 100.0)
    lower = math.floor(k)
    upper = math.ceil(k)
    if lower == upper:
        return sorted_vals[int(k)]
    lower_val = sorted_vals[lower]
    upper_val = sorted_vals[upper]
    return lower_val + (upper_val - lower_val) * (k - lower)


def run_case(name: str, func: Callable[[], Any], iterations: int, rounds: int) -> BenchResult:
    """Run ``func`` ``iterations`` times per round; record per-call nanoseconds."""
    func()  # warm caches

    samples: List[float] = []
    for _ in range(rounds):
        start = time.perf_counter_ns()
        for _ in range(iterations):
            func()
        samples.append((time.perf_counter_ns() - start) / iterations)

    return BenchResult(name=name, iterations=iterations, samples_ns=samples)


def build_cases() -> Dict[str, Callable[[], Any]]:
    payload = SensitivePayload("Hello", "World", "And more")
    options = LoggingAspectOptions(
        execution_log_level=LogLevel.DEBUG,
        state_items_log_level=LogLevel.TRACE,
    )
    aspect = LoggingAspect(NullLogger(), options)
    raw_template = Template.of("{MethodName} on {ClassName} in {AssemblyName}").value

    def _order_names() -> None:
        order_names(options.method_executing_template, "Hello", "World", "And more")
        order_names(options.scope_template, "Hello", "World", "And more")
        order_names(options.method_executed_template, "Hello", "World", "And more")

    def _target(first: SensitivePayload, second: SensitivePayload) -> SensitivePayload:
        return first

    return {
        "parse_loggable": lambda: parse_loggable(payload),
        "parse_loggable_none": lambda: parse_loggable(None),
        "order_names": _order_names,
        "order_names_raw_string": lambda: order_names(raw_template, "Hello", "World", "And more"),
        "invoke": lambda: aspect.invoke(_target, payload, payload),
    }


def render_results(results: Sequence[BenchResult]) -> None:
    table = Table(title="logaspect benchmarks")
    table.add_column("case")
    table.add_column("iterations", justify="right")
    table.add_column("mean ns/op", justify="right")
    table.add_column("p50 ns/op", justify="right")
    table.add_column("p95 ns/op", justify="right")

    for result in results:
        p50 = percentile(result.samples_ns, 50)
        p95 = percentile(result.samples_ns, 95)
        table.add_row(
            result.name,
            str(result.iterations),
            f"{result.mean_ns:.1f}",
            f"{p50:.1f}" if p50 is not None else "-",
            f"{p95:.1f}" if p95 is not None else "-",
        )

    console.print(table)


@app.command()
def main(
    iterations: int = typer.Option(100_000, "--iterations", help="Calls per round."),
    rounds: int = typer.Option(5, "--rounds", help="Number of timed rounds per case."),
    only: Optional[List[str]] = typer.Option(None, "--only", help="Run only the named case (repeatable)."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level for benchmark logger."),
) -> None:
    """Run the logaspect micro-benchmarks."""
    LoggerFactory.configure_logging(level=log_level.upper())

    cases = build_cases()
    selected = only or list(cases)
    unknown = [name for name in selected if name not in cases]
    if unknown:
        raise typer.BadParameter(f"Unknown case(s): {', '.join(unknown)}. Known: {', '.join(cases)}")

    results: List[BenchResult] = []
    with logger.performance_timer("benchmarks"):
        for name in selected:
            logger.info("Running benchmark case", extra_context={"case": name, "iterations": iterations})
            results.append(run_case(name, cases[name], iterations, rounds))

    render_results(results)


if __name__ == "__main__":
    app()
