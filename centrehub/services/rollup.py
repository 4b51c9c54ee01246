"""
Analytics rollup over expense and inventory snapshots.

Everything here is a pure function of the records handed in and an explicit
reference instant: no database access, no clock reads. Records may be ORM
rows, response schemas or plain dicts; only attribute/key access is used.
Amounts are assumed to be numeric already (validated at the API boundary).
"""
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..schemas.analytics import (
    CategoryTotal,
    ItemCount,
    MonthOverMonth,
    Recommendation,
    Rollup,
    RollupFilters,
    SpenderTotal,
    StockThresholds,
)
from ..schemas.expenses import ExpenseResponse
from ..schemas.inventory import InventoryResponse


TOP_N = 5
ZERO = Decimal("0")


def _field(record: Any, name: str, default=None):
    if isinstance(record, dict):
        value = record.get(name, default)
    else:
        value = getattr(record, name, default)
    return default if value is None else value


def _amount(record: Any) -> Decimal:
    value = _field(record, "amount", ZERO)
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _localize(tzinfo, naive: datetime) -> datetime:
    if tzinfo is None:
        return naive
    localize = getattr(tzinfo, "localize", None)  # pytz zones
    if localize is not None:
        return localize(naive)
    return naive.replace(tzinfo=tzinfo)


def _align(ts: datetime, reference: datetime) -> datetime:
    """Make ts comparable with reference. Naive timestamps are read as UTC."""
    if reference.tzinfo is None:
        if ts.tzinfo is None:
            return ts
        return ts.astimezone(timezone.utc).replace(tzinfo=None)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def _timestamp(record: Any, reference: datetime) -> datetime:
    # Records without a timestamp count as "just now"
    ts = _field(record, "timestamp")
    if ts is None:
        return reference
    return _align(ts, reference)


def month_bounds(reference: datetime, offset: int = 0, month: Optional[int] = None) -> Tuple[datetime, datetime]:
    """
    Calendar month window in the reference's timezone.

    Args:
        reference: The instant treated as "now"
        offset: Months relative to the reference month (-1 = previous month)
        month: Explicit month (1-12) of the reference year; overrides offset

    Returns:
        (start inclusive, end exclusive)
    """
    year = reference.year
    index = (month - 1) if month is not None else (reference.month - 1 + offset)
    year += index // 12
    index %= 12
    next_year = year + (index + 1) // 12
    next_index = (index + 1) % 12
    start = _localize(reference.tzinfo, datetime(year, index + 1, 1))
    end = _localize(reference.tzinfo, datetime(next_year, next_index + 1, 1))
    return start, end


def _in_window(record: Any, window: Tuple[datetime, datetime], reference: datetime) -> bool:
    ts = _timestamp(record, reference)
    return window[0] <= ts < window[1]


def filter_expenses(expenses: Iterable[Any], filters: RollupFilters, reference: datetime) -> List[Any]:
    """Conjunction of exact-match filters; month is matched within the reference year."""
    window = month_bounds(reference, month=filters.month) if filters.month else None
    out = []
    for e in expenses:
        if filters.centre and _field(e, "centre") != filters.centre:
            continue
        if filters.category and _field(e, "category") != filters.category:
            continue
        if filters.user and _field(e, "created_by") != filters.user:
            continue
        if window and not _in_window(e, window, reference):
            continue
        out.append(e)
    return out


def _sum(expenses: Iterable[Any]) -> Decimal:
    return sum((_amount(e) for e in expenses), ZERO)


def percentage_change(current: Decimal, previous: Decimal) -> float:
    # No baseline means no meaningful rate; report 0 rather than infinity
    if previous <= 0:
        return 0.0
    return float((current - previous) / previous * 100)


def month_over_month(expenses: Sequence[Any], reference: datetime) -> MonthOverMonth:
    current_window = month_bounds(reference)
    previous_window = month_bounds(reference, offset=-1)
    current = [e for e in expenses if _in_window(e, current_window, reference)]
    previous = [e for e in expenses if _in_window(e, previous_window, reference)]
    current_total = _sum(current)
    previous_total = _sum(previous)
    return MonthOverMonth(
        current_month_total=current_total,
        previous_month_total=previous_total,
        current_month_count=len(current),
        previous_month_count=len(previous),
        percentage_change=percentage_change(current_total, previous_total),
    )


def _ranked(values: Dict[str, Any], limit: Optional[int] = None) -> List[Tuple[str, Any]]:
    # sorted() is stable, so ties keep first-seen order
    ranked = sorted(values.items(), key=lambda kv: kv[1], reverse=True)
    return ranked[:limit] if limit is not None else ranked


def _distinct(records: Iterable[Any], name: str) -> List[str]:
    seen: Dict[str, None] = {}
    for r in records:
        value = _field(r, name)
        if value is not None:
            seen.setdefault(value, None)
    return list(seen)


def partition_stock(inventory: Iterable[Any], thresholds: Optional[StockThresholds] = None) -> Dict[str, List[Any]]:
    """
    Split inventory into alert tiers. The tiers are independent predicates,
    so one record can sit in several of them.

    Returns:
        Dict with low_stock, critical, out_of_stock and relative_low_stock lists
    """
    thresholds = thresholds or StockThresholds()
    tiers: Dict[str, List[Any]] = {"low_stock": [], "critical": [], "out_of_stock": [], "relative_low_stock": []}
    for item in inventory:
        quantity = _field(item, "quantity", 0)
        if quantity < thresholds.low_stock_absolute:
            tiers["low_stock"].append(item)
        if quantity < thresholds.critical:
            tiers["critical"].append(item)
        if quantity == 0:
            tiers["out_of_stock"].append(item)
        original = _field(item, "original_quantity")
        if original is not None and quantity < thresholds.low_stock_relative * original:
            tiers["relative_low_stock"].append(item)
    return tiers


def performance_score(current: Decimal, previous: Decimal, low_stock_count: int, out_of_stock_count: int) -> int:
    """
    Heuristic 0-100 score. Spend terms are capped individually; the clamp is
    applied once, after every term has been added.
    """
    score = Decimal(100)
    if current > previous:
        score -= min(Decimal(20), (current - previous) / 1000 * 10)
    else:
        score += min(Decimal(15), (previous - current) / 1000 * 10)
    score -= 2 * low_stock_count + 5 * out_of_stock_count
    score = max(ZERO, min(Decimal(100), score))
    return int(score.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def recommendations(current: Decimal, previous: Decimal, low_stock_count: int, out_of_stock_count: int) -> List[Recommendation]:
    recs: List[Recommendation] = []
    if current > previous:
        recs.append(Recommendation(
            severity="warning",
            text=f"Your spending increased by ₹{current - previous:.0f} this month. Consider reviewing your expenses.",
        ))
    elif current < previous:
        recs.append(Recommendation(
            severity="success",
            text=f"Great job! You saved ₹{previous - current:.0f} compared to last month.",
        ))

    if current > previous:
        recs.append(Recommendation(
            severity="info",
            text="For next month: Focus on reducing expenses in your highest spending categories.",
        ))
    else:
        recs.append(Recommendation(
            severity="success",
            text="For next month: Continue your cost-saving practices and maintain this efficiency.",
        ))

    if low_stock_count > 0:
        recs.append(Recommendation(
            severity="warning",
            text=f"{low_stock_count} items are running low on stock. Plan your purchases wisely to avoid stockouts.",
        ))
    if out_of_stock_count > 0:
        recs.append(Recommendation(
            severity="error",
            text=f"{out_of_stock_count} items are out of stock. Restock these items soon to maintain operations.",
        ))

    if current > 0:
        recs.append(Recommendation(
            severity="info",
            text="Consider bulk purchasing for frequently used items to reduce costs.",
        ))
    return recs


def rollup(
    expenses: Sequence[Any],
    inventory: Sequence[Any],
    reference_time: datetime,
    filters: Optional[RollupFilters] = None,
    thresholds: Optional[StockThresholds] = None,
    recent_limit: int = 5,
    compare_all_centres: bool = False,
) -> Rollup:
    """
    Aggregate a snapshot of expenses and inventory.

    Args:
        expenses: Expense records, any order
        inventory: Inventory records, any order
        reference_time: Instant treated as "now" for month windows
        filters: centre/category/user/month restriction (AND); inventory is
            restricted by centre only
        thresholds: Stock alert thresholds
        recent_limit: How many of the newest expenses to return
        compare_all_centres: Build centre_comparison from every centre rather
            than only those passing the centre filter

    Returns:
        Rollup with totals, rankings, month-over-month, stock tiers, score
        and recommendations
    """
    filters = filters or RollupFilters()
    thresholds = thresholds or StockThresholds()

    # Month-over-month defines its own window, so it sees everything but the month filter
    scoped = filter_expenses(expenses, filters.model_copy(update={"month": None}), reference_time)
    working = filter_expenses(scoped, RollupFilters(month=filters.month), reference_time) if filters.month else scoped
    stock = [i for i in inventory if not filters.centre or _field(i, "centre") == filters.centre]

    counts_by_category: Dict[str, int] = {}
    counts_by_centre: Dict[str, int] = {}
    totals_by_category: Dict[str, Decimal] = {}
    totals_by_centre: Dict[str, Decimal] = {}
    item_frequency: Dict[str, int] = {}
    spender_totals: Dict[str, Decimal] = {}
    for e in working:
        amount = _amount(e)
        category = _field(e, "category", "")
        centre = _field(e, "centre", "")
        counts_by_category[category] = counts_by_category.get(category, 0) + 1
        counts_by_centre[centre] = counts_by_centre.get(centre, 0) + 1
        totals_by_category[category] = totals_by_category.get(category, ZERO) + amount
        totals_by_centre[centre] = totals_by_centre.get(centre, ZERO) + amount
        item = _field(e, "item", "")
        item_frequency[item] = item_frequency.get(item, 0) + 1
        spender = _field(e, "created_by", "")
        spender_totals[spender] = spender_totals.get(spender, ZERO) + amount

    recent = sorted(working, key=lambda e: _timestamp(e, reference_time), reverse=True)[:max(recent_limit, 0)]

    mom = month_over_month(scoped, reference_time)
    if compare_all_centres:
        pool = filter_expenses(expenses, filters.model_copy(update={"month": None, "centre": None}), reference_time)
    else:
        pool = scoped
    centre_comparison = {
        centre: month_over_month([e for e in pool if _field(e, "centre") == centre], reference_time)
        for centre in _distinct(pool, "centre")
    }

    tiers = partition_stock(stock, thresholds)
    low_count = len(tiers["low_stock"])
    out_count = len(tiers["out_of_stock"])
    current = mom.current_month_total
    previous = mom.previous_month_total

    return Rollup(
        total_amount=_sum(working),
        expense_count=len(working),
        counts_by_category=counts_by_category,
        counts_by_centre=counts_by_centre,
        totals_by_category=totals_by_category,
        totals_by_centre=totals_by_centre,
        category_breakdown=[CategoryTotal(category=c, total=t) for c, t in _ranked(totals_by_category)],
        top_items_by_frequency=[ItemCount(item=i, count=n) for i, n in _ranked(item_frequency, TOP_N)],
        top_spenders_by_amount=[SpenderTotal(user=u, amount=a) for u, a in _ranked(spender_totals, TOP_N)],
        recent_expenses=[ExpenseResponse.model_validate(e) for e in recent],
        month_over_month=mom,
        centre_comparison=centre_comparison,
        total_inventory=len(stock),
        low_stock_items=[InventoryResponse.model_validate(i) for i in tiers["low_stock"]],
        critical_items=[InventoryResponse.model_validate(i) for i in tiers["critical"]],
        out_of_stock_items=[InventoryResponse.model_validate(i) for i in tiers["out_of_stock"]],
        relative_low_stock_items=[InventoryResponse.model_validate(i) for i in tiers["relative_low_stock"]],
        performance_score=performance_score(current, previous, low_count, out_count),
        recommendations=recommendations(current, previous, low_count, out_count),
        centres=_distinct(working, "centre"),
        users=_distinct(working, "created_by"),
        categories=_distinct(working, "category"),
    )
