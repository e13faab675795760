"""Admin dashboard statistics."""
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pymongo.database import Database

from database import ORDERS, PRODUCTS, USERS, object_id, utcnow

TOP_PRODUCTS = 5
RECENT_ORDERS = 5
MONTHS = 12


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _month_start(year: int, month: int) -> datetime:
    # month may fall outside 1..12 when stepping across a year boundary
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return datetime(year, month, 1, tzinfo=timezone.utc)


def order_revenue(order: dict) -> float:
    return sum(item["quantity"] * item["price"] for item in order.get("items", []))


def top_selling_products(orders: List[dict], limit: int = TOP_PRODUCTS) -> List[dict]:
    sales: Dict[str, dict] = {}
    for order in orders:
        for item in order.get("items", []):
            entry = sales.setdefault(
                item["product_id"],
                {"id": item["product_id"], "name": item.get("name"), "sales": 0, "revenue": 0.0},
            )
            entry["sales"] += item["quantity"]
            entry["revenue"] += item["quantity"] * item["price"]
    ranked = sorted(sales.values(), key=lambda e: e["sales"], reverse=True)
    return ranked[:limit]


def monthly_sales(orders: List[dict], now: datetime, months: int = MONTHS) -> List[dict]:
    """Revenue per calendar month for the last `months` months, oldest first."""
    now = _as_utc(now)
    buckets = []
    for back in range(months - 1, -1, -1):
        start = _month_start(now.year, now.month - back)
        end = _month_start(start.year, start.month + 1)
        buckets.append({"start": start, "end": end, "sales": 0.0})

    for order in orders:
        created = order.get("created_at")
        if not created:
            continue
        created = _as_utc(created)
        for bucket in buckets:
            if bucket["start"] <= created < bucket["end"]:
                bucket["sales"] += order_revenue(order)
                break

    return [
        {"month": b["start"].strftime("%b"), "year": b["start"].year, "sales": round(b["sales"], 2)}
        for b in buckets
    ]


def category_breakdown(category_counts: List[dict], total_products: int) -> List[dict]:
    return [
        {
            "name": c["_id"],
            "count": c["count"],
            "percentage": (c["count"] / total_products) * 100 if total_products else 0,
        }
        for c in category_counts
    ]


def compute_dashboard_stats(
    orders: List[dict],
    category_counts: List[dict],
    total_products: int,
    total_customers: int,
    customer_names: Dict[str, str],
    now: Optional[datetime] = None,
) -> dict:
    now = now or utcnow()
    total_orders = len(orders)
    total_revenue = round(sum(order_revenue(o) for o in orders), 2)

    recent = sorted(
        (o for o in orders if o.get("created_at")),
        key=lambda o: _as_utc(o["created_at"]),
        reverse=True,
    )[:RECENT_ORDERS]

    return {
        "total_revenue": total_revenue,
        "total_orders": total_orders,
        "total_products": total_products,
        "average_order_value": round(total_revenue / total_orders, 2) if total_orders else 0,
        "total_customers": total_customers,
        "top_selling_products": top_selling_products(orders),
        "recent_orders": [
            {
                "id": str(o["_id"]),
                "customer": customer_names.get(o["user_id"]),
                "date": o["created_at"],
                "amount": round(order_revenue(o), 2),
                "status": o.get("order_status"),
            }
            for o in recent
        ],
        "monthly_sales": monthly_sales(orders, now),
        "product_categories": category_breakdown(category_counts, total_products),
    }


def load_dashboard_stats(db: Database) -> dict:
    orders = list(db[ORDERS].find())
    category_counts = list(db[PRODUCTS].aggregate([
        {"$group": {"_id": "$category", "count": {"$sum": 1}}},
        {"$sort": {"count": -1}},
    ]))
    user_ids = {o["user_id"] for o in orders}
    customer_names = {
        str(u["_id"]): u.get("name")
        for u in db[USERS].find({"_id": {"$in": [object_id(i) for i in user_ids]}}, {"name": 1})
    }
    return compute_dashboard_stats(
        orders,
        category_counts,
        total_products=db[PRODUCTS].count_documents({}),
        total_customers=db[USERS].count_documents({"role": {"$ne": "admin"}}),
        customer_names=customer_names,
    )
