"""Workflow Observability Metrics.

Counters are incremented in-process by the services; gauges are read from
the database on demand.

Counters:
- overtime_transitions_total{action}: committed overtime transitions
- leave_transitions_total{action}: committed leave transitions
- ledger_write_failures_total{action}: audit entries that failed to persist
- accrual_records_total{outcome}: yearly accrual outcomes (created/skipped/error)

Usage:
    registry.increment("ledger_write_failures_total", {"action": "APPROVED_SUPERVISOR"})

    # For Prometheus export
    print(registry.to_prometheus())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from overtime_workflow.models import OvertimeBalance, OvertimeRequest


@dataclass
class Counter:
    """A counter metric (monotonically increasing)."""

    name: str
    value: int
    labels: dict[str, str] = field(default_factory=dict)
    help_text: str = ""


@dataclass
class Gauge:
    """A gauge metric (can go up or down)."""

    name: str
    value: float | int | Decimal
    labels: dict[str, str] = field(default_factory=dict)
    help_text: str = ""


HELP_TEXT = {
    "overtime_transitions_total": "Committed overtime request transitions",
    "leave_transitions_total": "Committed leave request transitions",
    "ledger_write_failures_total": "Revision ledger writes that failed after commit",
    "accrual_records_total": "Yearly leave accrual outcomes per employee",
}


def _label_key(labels: dict[str, str] | None) -> tuple[tuple[str, str], ...]:
    return tuple(sorted((labels or {}).items()))


class MetricsRegistry:
    """In-process counter registry."""

    def __init__(self) -> None:
        self._counters: dict[tuple[str, tuple[tuple[str, str], ...]], Counter] = {}

    def increment(self, name: str, labels: dict[str, str] | None = None, amount: int = 1) -> None:
        key = (name, _label_key(labels))
        counter = self._counters.get(key)
        if counter is None:
            counter = Counter(
                name=name,
                value=0,
                labels=dict(labels or {}),
                help_text=HELP_TEXT.get(name, ""),
            )
            self._counters[key] = counter
        counter.value += amount

    def value(self, name: str, labels: dict[str, str] | None = None) -> int:
        counter = self._counters.get((name, _label_key(labels)))
        return counter.value if counter else 0

    def counters(self) -> list[Counter]:
        return sorted(self._counters.values(), key=lambda c: (c.name, _label_key(c.labels)))

    def reset(self) -> None:
        """Drop all counters (tests)."""
        self._counters.clear()

    def to_dict(self) -> dict[str, Any]:
        return {
            "counters": [_metric_to_dict(c) for c in self.counters()],
        }

    def to_prometheus(self, gauges: list[Gauge] | None = None) -> str:
        """Convert to Prometheus text format."""
        lines: list[str] = []
        described: set[str] = set()

        def emit(metric: Counter | Gauge) -> None:
            labels = ""
            if metric.labels:
                label_parts = [f'{k}="{v}"' for k, v in sorted(metric.labels.items())]
                labels = "{" + ",".join(label_parts) + "}"

            value = float(metric.value) if isinstance(metric.value, Decimal) else metric.value

            if metric.name not in described:
                if metric.help_text:
                    lines.append(f"# HELP {metric.name} {metric.help_text}")
                metric_type = "counter" if isinstance(metric, Counter) else "gauge"
                lines.append(f"# TYPE {metric.name} {metric_type}")
                described.add(metric.name)
            lines.append(f"{metric.name}{labels} {value}")

        for counter in self.counters():
            emit(counter)
        for gauge in gauges or []:
            emit(gauge)

        return "\n".join(lines) + "\n" if lines else ""


def _metric_to_dict(metric: Counter | Gauge) -> dict[str, Any]:
    return {
        "name": metric.name,
        "value": float(metric.value) if isinstance(metric.value, Decimal) else metric.value,
        "labels": metric.labels,
        "help": metric.help_text,
    }


registry = MetricsRegistry()


async def collect_gauges(session: AsyncSession) -> list[Gauge]:
    """Read point-in-time gauges from the database."""
    pending = await session.scalar(
        select(func.count()).select_from(OvertimeRequest).where(OvertimeRequest.status == "PENDING")
    )
    negative = await session.scalar(
        select(func.count())
        .select_from(OvertimeBalance)
        .where(OvertimeBalance.current_balance < 0)
    )
    outstanding = await session.scalar(
        select(func.coalesce(func.sum(OvertimeBalance.current_balance), 0))
    )

    return [
        Gauge(
            name="overtime_requests_pending",
            value=pending or 0,
            help_text="Overtime requests awaiting a decision",
        ),
        Gauge(
            name="overtime_negative_balances",
            value=negative or 0,
            help_text="Employees with a negative overtime balance (admin corrections)",
        ),
        Gauge(
            name="overtime_balance_hours_total",
            value=Decimal(str(outstanding or 0)),
            help_text="Unpaid overtime hours across all employees",
        ),
    ]
