"""Metrics facade.

Service code should ONLY call the semantic helpers here so the backend can
change freely.

Metrics:
- tax_projections_created_total{tax_type}   Projections written by a calculation
- tax_projections_confirmed_total           Projections booked in the ledger
- tax_recalculations_total                  Month recalculations
- composite_transactions_total{category}    Composite (distributed) transactions
- tax_calculation_seconds                   Time spent computing a month
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import Counter, Histogram

logger = logging.getLogger("metrics")

_PROJECTIONS_CREATED = Counter(
    "tax_projections_created_total", "Tax projections created", ["tax_type"]
)
_PROJECTIONS_CONFIRMED = Counter("tax_projections_confirmed_total", "Tax projections confirmed")
_RECALCULATIONS = Counter("tax_recalculations_total", "Projection recalculations for a month")
_COMPOSITES = Counter(
    "composite_transactions_total", "Composite parent/line transactions created", ["category"]
)
_CALCULATION_SECONDS = Histogram(
    "tax_calculation_seconds",
    "Time to compute the tax projections of one month",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5),
)


def tax_projection_created(tax_type: str) -> None:
    _PROJECTIONS_CREATED.labels(tax_type=tax_type).inc()


def tax_projection_confirmed() -> None:
    _PROJECTIONS_CONFIRMED.inc()


def tax_recalculation() -> None:
    _RECALCULATIONS.inc()


def composite_transaction_created(category: str) -> None:
    _COMPOSITES.labels(category=category).inc()


@contextmanager
def time_tax_calculation() -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        _CALCULATION_SECONDS.observe(elapsed)
        logger.debug("Tax calculation took %.4fs", elapsed)
