"""Central cache invalidation for record-store writes.

Repositories describe every confirmed write as one or more ``Change``
values. Services hand those to ``InvalidationDispatcher.dispatch`` before
building their response. The dispatcher looks each change kind up in
``INVALIDATION_TABLE`` and clears the matching cache entries.

Failure policy: invalidation never fails the request. A failed delete is
retried, then widened (a product or cart key falls back to clearing its
whole namespace). Whatever still fails is logged; the namespace TTL bounds
the resulting staleness.

Example:
    result = await products_repo.update(product_id, patch)
    await dispatcher.dispatch(*result.changes)
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from storefront.observability.metrics import record_invalidation

if TYPE_CHECKING:
    from storefront.cache.cart import CartCache
    from storefront.cache.product import ProductCache
    from storefront.cache.search import SearchCache

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    """Kind of record-store write."""

    PRODUCT_CREATED = "product_created"
    PRODUCT_UPDATED = "product_updated"
    PRODUCT_DELETED = "product_deleted"
    STOCK_CHANGED = "stock_changed"
    CART_MUTATED = "cart_mutated"
    CART_MUTATION_FAILED = "cart_mutation_failed"
    ORDER_PLACED = "order_placed"
    ORDER_FINALIZED = "order_finalized"


class InvalidationTarget(str, Enum):
    """Cache entries a change can reach."""

    PRODUCT = "product"  # product:{id} for each affected product
    CART = "cart"  # cart:{userId} of the acting user
    SEARCH = "search"  # whole search: and suggestions: namespaces


_P = InvalidationTarget.PRODUCT
_C = InvalidationTarget.CART
_S = InvalidationTarget.SEARCH

INVALIDATION_TABLE: Mapping[ChangeKind, frozenset[InvalidationTarget]] = MappingProxyType(
    {
        ChangeKind.PRODUCT_CREATED: frozenset({_S}),
        ChangeKind.PRODUCT_UPDATED: frozenset({_P, _S}),
        ChangeKind.PRODUCT_DELETED: frozenset({_P, _S}),
        ChangeKind.STOCK_CHANGED: frozenset({_P, _S}),
        # Cart lines show product price/stock, so touched products are re-read
        ChangeKind.CART_MUTATED: frozenset({_C, _P}),
        ChangeKind.CART_MUTATION_FAILED: frozenset({_C}),
        # Order creation empties the cart but does not touch stock
        ChangeKind.ORDER_PLACED: frozenset({_C}),
        # Payment confirmed: stock decremented, cart already emptied
        ChangeKind.ORDER_FINALIZED: frozenset({_C, _P, _S}),
    }
)


@dataclass(frozen=True)
class Change:
    """Description of one confirmed record-store write."""

    kind: ChangeKind
    product_ids: tuple[str, ...] = ()
    user_id: str | None = None

    @property
    def targets(self) -> frozenset[InvalidationTarget]:
        return INVALIDATION_TABLE[self.kind]

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "product_ids": list(self.product_ids),
            "user_id": self.user_id,
        }

    @classmethod
    def product_created(cls, product_id: str) -> Change:
        return cls(ChangeKind.PRODUCT_CREATED, (product_id,))

    @classmethod
    def product_updated(cls, product_id: str) -> Change:
        return cls(ChangeKind.PRODUCT_UPDATED, (product_id,))

    @classmethod
    def product_deleted(cls, product_id: str) -> Change:
        return cls(ChangeKind.PRODUCT_DELETED, (product_id,))

    @classmethod
    def stock_changed(cls, product_ids: Iterable[str]) -> Change:
        return cls(ChangeKind.STOCK_CHANGED, tuple(product_ids))

    @classmethod
    def cart_mutated(cls, user_id: str, product_ids: Iterable[str]) -> Change:
        return cls(ChangeKind.CART_MUTATED, tuple(product_ids), user_id)

    @classmethod
    def cart_mutation_failed(cls, user_id: str) -> Change:
        return cls(ChangeKind.CART_MUTATION_FAILED, (), user_id)

    @classmethod
    def order_placed(cls, user_id: str) -> Change:
        return cls(ChangeKind.ORDER_PLACED, (), user_id)

    @classmethod
    def order_finalized(cls, user_id: str, product_ids: Iterable[str]) -> Change:
        return cls(ChangeKind.ORDER_FINALIZED, tuple(product_ids), user_id)


@dataclass
class InvalidationPlan:
    """Cache entries to clear for a batch of changes."""

    product_ids: set[str] = field(default_factory=set)
    user_ids: set[str] = field(default_factory=set)
    clear_search: bool = False

    @classmethod
    def from_changes(cls, changes: Iterable[Change]) -> InvalidationPlan:
        plan = cls()
        for change in changes:
            targets = change.targets
            if _P in targets:
                plan.product_ids.update(change.product_ids)
            if _C in targets and change.user_id:
                plan.user_ids.add(change.user_id)
            if _S in targets:
                plan.clear_search = True
        return plan

    @property
    def empty(self) -> bool:
        return not (self.product_ids or self.user_ids or self.clear_search)


@dataclass
class InvalidationReport:
    """Outcome of a dispatch."""

    products: list[str] = field(default_factory=list)
    carts: list[str] = field(default_factory=list)
    search_cleared: bool = False
    widened: list[str] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class InvalidationDispatcher:
    """Applies the invalidation table to the namespace caches."""

    def __init__(
        self,
        products: ProductCache,
        carts: CartCache,
        search: SearchCache,
        retries: int = 1,
    ):
        self.products = products
        self.carts = carts
        self.search = search
        self.retries = retries

    async def dispatch(self, *changes: Change) -> InvalidationReport:
        """Invalidate everything the given changes reach."""
        plan = InvalidationPlan.from_changes(changes)
        report = InvalidationReport()
        if plan.empty:
            return report

        await self._invalidate_products(plan.product_ids, report)
        await self._invalidate_carts(plan.user_ids, report)
        if plan.clear_search:
            await self._invalidate_search(report)

        if not report.ok:
            logger.error(
                f"Cache invalidation incomplete for {[c.kind.value for c in changes]}: "
                f"{report.failures}; entries expire with their TTL"
            )
        elif report.widened:
            logger.warning(f"Cache invalidation widened to {report.widened}")
        return report

    async def _attempt(self, operation: Callable[[], Awaitable[Any]]) -> bool:
        """Run an invalidation, retrying on failure. None/False mean failure."""
        for _ in range(self.retries + 1):
            result = await operation()
            if result is not None and result is not False:
                return True
        return False

    async def _invalidate_products(self, product_ids: set[str], report: InvalidationReport) -> None:
        failed = False
        for product_id in sorted(product_ids):
            ok = await self._attempt(partial(self.products.invalidate, product_id))
            record_invalidation("product", ok)
            if ok:
                report.products.append(product_id)
            else:
                failed = True

        if failed:
            if await self._attempt(self.products.invalidate_all):
                report.widened.append("product")
            else:
                report.failures.extend(
                    f"product:{pid}" for pid in sorted(product_ids) if pid not in report.products
                )

    async def _invalidate_carts(self, user_ids: set[str], report: InvalidationReport) -> None:
        failed = False
        for user_id in sorted(user_ids):
            ok = await self._attempt(partial(self.carts.invalidate, user_id))
            record_invalidation("cart", ok)
            if ok:
                report.carts.append(user_id)
            else:
                failed = True

        if failed:
            if await self._attempt(self.carts.invalidate_all):
                report.widened.append("cart")
            else:
                report.failures.extend(
                    f"cart:{uid}" for uid in sorted(user_ids) if uid not in report.carts
                )

    async def _invalidate_search(self, report: InvalidationReport) -> None:
        ok = await self._attempt(self.search.invalidate_all)
        record_invalidation("search", ok)
        if ok:
            report.search_cleared = True
        else:
            report.failures.append("search:*")
