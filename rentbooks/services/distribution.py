"""Split one monetary total across weighted entities (properties).

Every function here guarantees ``sum(shares) == total`` exactly. Rounding
drift is assigned to the last entity in the order the caller passes in; the
engine never re-sorts. Callers that read entities from the database sort
them by property id, with company-level entries (``None``) last, so the
entity absorbing the remainder is stable across database engines.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Hashable, Iterable, Mapping, Sequence

from rentbooks.core.exceptions import (
    DivisionByZeroError,
    DuplicateSelectionError,
    EmptySelectionError,
    InvalidAmountError,
)
from rentbooks.utils.money import HUNDRED, Money, Scalar, money_sum, to_scalar

logger = logging.getLogger(__name__)

Distribution = dict[Hashable, Money]


@dataclass(frozen=True)
class WeightedEntity:
    id: Hashable
    weight: Decimal

    @classmethod
    def of(cls, entity_id: Hashable, weight: Scalar | Money) -> WeightedEntity:
        if isinstance(weight, Money):
            return cls(entity_id, weight.to_decimal())
        return cls(entity_id, to_scalar(weight))


def _check_unique(ids: Iterable[Hashable]) -> None:
    seen: set[Hashable] = set()
    for entity_id in ids:
        if entity_id in seen:
            raise DuplicateSelectionError(entity_id)
        seen.add(entity_id)


def distribute_proportionally(total: Money, weights: Sequence[WeightedEntity]) -> Distribution:
    """Split ``total`` in proportion to each entity's weight.

    Args:
        total: Amount to distribute
        weights: Entities in the order that decides who absorbs rounding

    Returns:
        Insertion-ordered mapping of entity id to share

    Raises:
        EmptySelectionError: no entities given
        DivisionByZeroError: weights sum to zero; use ``distribute_equally``
        InvalidAmountError: a weight is negative
    """
    if not weights:
        raise EmptySelectionError()
    _check_unique(w.id for w in weights)
    for entity in weights:
        if entity.weight < 0:
            raise InvalidAmountError(str(entity.weight), f"negative weight for {entity.id!r}")

    total_weight = sum((w.weight for w in weights), Decimal("0"))
    if total_weight == 0:
        raise DivisionByZeroError("distribute_proportionally")

    shares = total.allocate([w.weight for w in weights])
    distribution = {entity.id: share for entity, share in zip(weights, shares)}
    logger.debug("Distributed %s over %d entities by weight", total, len(distribution))
    return distribution


def distribute_equally(total: Money, ids: Sequence[Hashable]) -> Distribution:
    """Split ``total`` into equal shares; the last id absorbs the remainder."""
    if not ids:
        raise EmptySelectionError()
    _check_unique(ids)
    return dict(zip(ids, total.split(len(ids))))


def distribute(total: Money, ids: Sequence[Hashable], weights: Mapping[Hashable, Scalar | Money] | None = None) -> tuple[Distribution, str]:
    """Proportional split when usable weights exist for ``ids``, equal split otherwise.

    Returns the distribution and the method used (``"proportional"`` or ``"equal"``).
    """
    if not ids:
        raise EmptySelectionError()
    if weights:
        entities = [WeightedEntity.of(entity_id, weights.get(entity_id, 0)) for entity_id in ids]
        if sum((e.weight for e in entities), Decimal("0")) > 0:
            return distribute_proportionally(total, entities), "proportional"
    return distribute_equally(total, ids), "equal"


def shares_by_percentage(distribution: Mapping[Hashable, Money], total: Money | None = None) -> dict[Hashable, Decimal]:
    """Percentage of the total held by each share, rounded to two places."""
    reference = total if total is not None else money_sum(distribution.values())
    if reference.is_zero():
        return {entity_id: Decimal("0.00") for entity_id in distribution}
    return {
        entity_id: (share.to_decimal() * HUNDRED / reference.to_decimal()).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )
        for entity_id, share in distribution.items()
    }
