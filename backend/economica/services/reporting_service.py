# Overview: Sales summary reporting over completed orders.

from __future__ import annotations

from collections import defaultdict

from ..extensions import db
from ..models import Order
from economica.time_utils import parse_iso_datetime, period_key


RANGES = {"hourly", "daily"}


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


def _parse_range(from_date: str | None, to_date: str | None):
    try:
        return (
            parse_iso_datetime(from_date),
            parse_iso_datetime(to_date, end_of_day=True),
        )
    except ValueError:
        raise ReportError("Fecha inválida")


def fetch_completed_orders(
    *,
    from_date: str | None = None,
    to_date: str | None = None,
    cashier_id: int | None = None,
    store_id: int | None = None,
) -> list[Order]:
    start, end = _parse_range(from_date, to_date)

    query = db.session.query(Order).filter(Order.status == "completed")
    if store_id is not None:
        query = query.filter(Order.store_id == store_id)
    if cashier_id is not None:
        query = query.filter(Order.cashier_id == cashier_id)
    if start:
        query = query.filter(Order.created_at >= start)
    if end:
        query = query.filter(Order.created_at <= end)
    return query.order_by(Order.created_at.asc()).all()


def summarize_orders(orders: list[Order], range_name: str = "daily") -> dict:
    """
    Pure reduction: count, revenue, average ticket, per payment method and
    per time bucket. Amounts in cents.
    """
    if range_name not in RANGES:
        raise ReportError("range debe ser hourly o daily")

    total_sales = len(orders)
    total_revenue = sum(o.total_cents for o in orders)
    average_ticket = round(total_revenue / total_sales) if total_sales else 0

    payment_methods: dict[str, int] = defaultdict(int)
    by_period: dict[str, int] = defaultdict(int)
    hourly: dict[int, int] = defaultdict(int)

    for order in orders:
        payment_methods[order.payment_method] += 1
        by_period[period_key(order.created_at, range_name)] += order.total_cents
        hourly[order.created_at.hour] += order.total_cents

    return {
        "metrics": {
            "total_sales": total_sales,
            "total_revenue_cents": total_revenue,
            "average_ticket_cents": average_ticket,
        },
        "breakdown": {
            "payment_methods": dict(payment_methods),
            "by_period": dict(sorted(by_period.items())),
            "hourly": {str(h): v for h, v in sorted(hourly.items())},
        },
    }


def sales_summary(
    *,
    from_date: str | None = None,
    to_date: str | None = None,
    cashier_id: int | None = None,
    store_id: int | None = None,
    range_name: str = "daily",
) -> dict:
    if range_name not in RANGES:
        raise ReportError("range debe ser hourly o daily")

    orders = fetch_completed_orders(
        from_date=from_date,
        to_date=to_date,
        cashier_id=cashier_id,
        store_id=store_id,
    )
    report = summarize_orders(orders, range_name)
    report["period"] = {"from": from_date, "to": to_date, "range": range_name}
    return report
