# analytics/dashboard.py
"""
Brand dashboard: sales and interest metrics over a rolling window, an order
status widget, top products and the conversion gap table.

Every function takes the window bounds and an optional brand id; `None`
means all brands (admins without a brand).
"""
import logging
import math
from datetime import timedelta
from decimal import Decimal

from dateutil.relativedelta import relativedelta
from dateutil.rrule import DAILY, rrule
from django.conf import settings
from django.core.cache import cache
from django.db.models import (
    Case, Count, DecimalField, ExpressionWrapper, F, FloatField, OuterRef, Q, Subquery, Sum, Value, When,
)
from django.db.models.functions import Cast, Coalesce
from django.utils import timezone

from catalog.models import Product, ProductImage, ProductStatistics, resolve_image_url
from orders.models import Order, OrderItem

logger = logging.getLogger(__name__)

RANGE_OPTIONS = (7, 30, 90)
DEFAULT_RANGE = 30
TABLE_MODES = ("top", "gap")
EXCLUDED_STATUSES = (Order.Status.CANCELLED, Order.Status.ARCHIVED)
CONVERSION_SORT_KEYS = ("view_to_cart", "view_to_order", "cart_to_order")
DEFAULT_CONVERSION_SORT = "view_to_order"
CONVERSION_PER_PAGE = 10
TOP_PRODUCTS_LIMIT = 50

PENDING_STALE_DAYS = 2
PROCESSING_STALE_DAYS = 5
UNPAID_STALE_DAYS = 3

NO_BRAND_ERROR = "No brand is linked to your account."

MONEY = DecimalField(max_digits=14, decimal_places=2)
LINE_REVENUE = ExpressionWrapper(F("final_price") * F("quantity"), output_field=MONEY)


def cache_ttl():
    return settings.BACKOFFICE.get("DASHBOARD_CACHE_SECONDS", 300)


def normalize_range(value):
    try:
        value = int(value)
    except (TypeError, ValueError):
        return DEFAULT_RANGE
    return value if value in RANGE_OPTIONS else DEFAULT_RANGE


def date_window(days, now=None):
    """From the start of (today - days + 1) to the end of today, local time."""
    now = timezone.localtime(now or timezone.now())
    start = (now - relativedelta(days=days - 1)).replace(hour=0, minute=0, second=0, microsecond=0)
    end = now.replace(hour=23, minute=59, second=59, microsecond=999999)
    return start, end


def window_dates(start, end):
    return [d.date() for d in rrule(DAILY, dtstart=start.date(), until=end.date())]


def _percent(part, whole):
    return (part / whole) * 100 if whole > 0 else 0


# ── Sales ────────────────────────────────────────────────────────

def sold_items(start, end, brand_id=None):
    """Order lines counted as sales: not cancelled/archived, not refunded."""
    qs = OrderItem.objects.filter(
        order__created_at__range=(start, end),
    ).exclude(
        order__status__in=EXCLUDED_STATUSES,
    ).exclude(
        order__financial_status=Order.FinancialStatus.REFUNDED,
    )
    if brand_id:
        qs = qs.filter(order__brand_id=brand_id)
    return qs


def sales_totals(start, end, brand_id=None):
    agg = sold_items(start, end, brand_id).aggregate(
        orders=Count("order", distinct=True),
        units=Sum("quantity"),
        revenue=Sum(LINE_REVENUE),
    )
    return {
        "orders": int(agg["orders"] or 0),
        "units": int(agg["units"] or 0),
        "revenue": float(agg["revenue"] or 0),
    }


def sales_series(start, end, dates, brand_id=None):
    qs = (
        sold_items(start, end, brand_id)
        .values("order__created_at__date")
        .annotate(orders=Count("order", distinct=True), units=Sum("quantity"), revenue=Sum(LINE_REVENUE))
        .order_by("order__created_at__date")
    )
    bucket = {row["order__created_at__date"]: row for row in qs}
    out = []
    for d in dates:
        row = bucket.get(d)
        out.append({
            "date": d.isoformat(),
            "revenue": float(row["revenue"] or 0) if row else 0.0,
            "orders": int(row["orders"]) if row else 0,
            "units": int(row["units"] or 0) if row else 0,
        })
    return out


# ── Interest ─────────────────────────────────────────────────────

def _interest_counts():
    return {
        "views": Count("id", filter=Q(type=ProductStatistics.Type.VIEW)),
        "clicks": Count("id", filter=Q(type=ProductStatistics.Type.CLICK)),
        "add_to_cart": Count("id", filter=Q(type=ProductStatistics.Type.ADD_TO_CART)),
    }


def interest_events(start, end, brand_id=None):
    qs = ProductStatistics.objects.filter(created_at__range=(start, end))
    if brand_id:
        qs = qs.filter(product__brand_id=brand_id)
    return qs


def interest_totals(start, end, brand_id=None):
    agg = interest_events(start, end, brand_id).aggregate(**_interest_counts())
    return {key: int(agg[key] or 0) for key in ("views", "clicks", "add_to_cart")}


def interest_series(start, end, dates, brand_id=None):
    qs = (
        interest_events(start, end, brand_id)
        .values("created_at__date")
        .annotate(**_interest_counts())
        .order_by("created_at__date")
    )
    bucket = {row["created_at__date"]: row for row in qs}
    out = []
    for d in dates:
        row = bucket.get(d) or {}
        out.append({
            "date": d.isoformat(),
            "views": int(row.get("views", 0)),
            "clicks": int(row.get("clicks", 0)),
            "add_to_cart": int(row.get("add_to_cart", 0)),
        })
    return out


# ── Order status widget ──────────────────────────────────────────

def _attention(pending=0, processing=0, unpaid=0):
    return [
        {"key": "pending", "count": pending, "days": PENDING_STALE_DAYS},
        {"key": "processing", "count": processing, "days": PROCESSING_STALE_DAYS},
        {"key": "unpaid", "count": unpaid, "days": UNPAID_STALE_DAYS},
    ]


def empty_order_status():
    return {
        "health": None,
        "active_total": 0,
        "needs_attention": 0,
        "status_total": 0,
        "status_counts": {status: 0 for status in Order.Status.values},
        "attention": _attention(),
    }


def compute_order_status(start, end, brand_id=None, now=None):
    now = now or timezone.now()
    orders = Order.objects.filter(created_at__range=(start, end))
    if brand_id:
        orders = orders.filter(brand_id=brand_id)

    status_counts = {status: 0 for status in Order.Status.values}
    for row in orders.values("status").annotate(total=Count("id")).order_by():
        if row["status"] in status_counts:
            status_counts[row["status"]] = row["total"]

    pending_overdue = Q(
        status__in=[Order.Status.PENDING, Order.Status.CONFIRMED],
        created_at__lte=now - timedelta(days=PENDING_STALE_DAYS),
    )
    processing_overdue = Q(
        status=Order.Status.PROCESSING,
        created_at__lte=now - timedelta(days=PROCESSING_STALE_DAYS),
    )
    unpaid_overdue = Q(
        financial_status=Order.FinancialStatus.UNPAID,
        created_at__lte=now - timedelta(days=UNPAID_STALE_DAYS),
    )
    summary = orders.exclude(status__in=EXCLUDED_STATUSES).aggregate(
        active_total=Count("id"),
        pending_overdue=Count("id", filter=pending_overdue),
        processing_overdue=Count("id", filter=processing_overdue),
        unpaid_overdue=Count("id", filter=unpaid_overdue),
        needs_attention=Count("id", filter=pending_overdue | processing_overdue | unpaid_overdue),
    )

    active_total = summary["active_total"] or 0
    needs_attention = summary["needs_attention"] or 0
    health = None
    if active_total > 0:
        health = max(0.0, min(100.0, (1 - needs_attention / active_total) * 100))

    return {
        "health": health,
        "active_total": active_total,
        "needs_attention": needs_attention,
        "status_total": sum(status_counts.values()),
        "status_counts": status_counts,
        "attention": _attention(
            summary["pending_overdue"] or 0,
            summary["processing_overdue"] or 0,
            summary["unpaid_overdue"] or 0,
        ),
    }


def order_status_widget(start, end, brand_id=None):
    key = f"dashboard:order_status:{brand_id or 'all'}:{start.date()}:{end.date()}"
    return cache.get_or_set(key, lambda: compute_order_status(start, end, brand_id), cache_ttl())


# ── Products ─────────────────────────────────────────────────────

def first_image_urls(product_ids):
    """product_id -> url of its first image by position"""
    urls = {}
    rows = (
        ProductImage.objects.filter(product_id__in=product_ids)
        .order_by("product_id", "position", "id")
        .values_list("product_id", "image__src")
    )
    for product_id, src in rows:
        if product_id not in urls:
            urls[product_id] = resolve_image_url(src)
    return urls


def product_interest(start, end, product_ids):
    if not product_ids:
        return {}
    qs = (
        ProductStatistics.objects.filter(created_at__range=(start, end), product_id__in=product_ids)
        .values("product_id")
        .annotate(
            views=Count("id", filter=Q(type=ProductStatistics.Type.VIEW)),
            add_to_cart=Count("id", filter=Q(type=ProductStatistics.Type.ADD_TO_CART)),
        )
        .order_by()
    )
    return {row["product_id"]: row for row in qs}


def top_products(start, end, brand_id=None, limit=TOP_PRODUCTS_LIMIT):
    sales = list(
        sold_items(start, end, brand_id)
        .filter(product__isnull=False)
        .values("product_id", "product__title", "product__category__name")
        .annotate(orders=Count("order", distinct=True), units=Sum("quantity"), revenue=Sum(LINE_REVENUE))
        .order_by("-revenue", "product_id")[:limit]
    )
    product_ids = [row["product_id"] for row in sales]
    stats = product_interest(start, end, product_ids)
    images = first_image_urls(product_ids)

    out = []
    for row in sales:
        stat = stats.get(row["product_id"], {})
        views = int(stat.get("views", 0))
        add_to_cart = int(stat.get("add_to_cart", 0))
        orders = int(row["orders"] or 0)
        revenue = float(row["revenue"] or 0)
        if not (views or add_to_cart or orders or revenue):
            continue
        out.append({
            "product_id": row["product_id"],
            "title": row["product__title"] or "—",
            "category": row["product__category__name"],
            "image_url": images.get(row["product_id"]),
            "revenue": revenue,
            "orders": orders,
            "units": int(row["units"] or 0),
            "views": views,
            "add_to_cart": add_to_cart,
            "conversion": _percent(orders, views),
        })
    return out


# ── Conversion gap table ─────────────────────────────────────────

def normalize_conversion_sort(sort, direction):
    sort = sort if sort in CONVERSION_SORT_KEYS else DEFAULT_CONVERSION_SORT
    direction = "asc" if direction == "asc" else "desc"
    return sort, direction


def empty_conversion_page(sort, direction, page, per_page=CONVERSION_PER_PAGE):
    sort, direction = normalize_conversion_sort(sort, direction)
    return {
        "data": [],
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": 0,
            "last_page": 1,
            "sort": sort,
            "direction": direction,
        },
    }


def _per_product(qs, aggregate, output_field=None):
    """Correlated per-product aggregate of qs, 0 when the product has no rows."""
    inner = qs.filter(product=OuterRef("pk")).order_by().values("product_id").annotate(n=aggregate).values("n")[:1]
    if output_field is None:
        return Coalesce(Subquery(inner), 0)
    return Coalesce(Subquery(inner, output_field=output_field), Value(Decimal("0")), output_field=output_field)


def _rate(part, whole):
    return Case(
        When(**{f"{whole}__gt": 0}, then=ExpressionWrapper(
            Cast(part, FloatField()) * Value(100.0) / Cast(whole, FloatField()),
            output_field=FloatField(),
        )),
        default=Value(0.0),
        output_field=FloatField(),
    )


def conversion_rows(start, end, brand_id=None):
    """Products with at least one non-zero conversion in the window, annotated in SQL."""
    events = interest_events(start, end)
    sales = sold_items(start, end)
    qs = Product.objects.all()
    if brand_id:
        qs = qs.filter(brand_id=brand_id)
    return qs.annotate(
        views=_per_product(events.filter(type=ProductStatistics.Type.VIEW), Count("id")),
        add_to_cart=_per_product(events.filter(type=ProductStatistics.Type.ADD_TO_CART), Count("id")),
        orders=_per_product(sales, Count("order", distinct=True)),
        revenue=_per_product(sales, Sum(LINE_REVENUE), output_field=MONEY),
    ).annotate(
        view_to_cart=_rate("add_to_cart", "views"),
        view_to_order=_rate("orders", "views"),
        cart_to_order=_rate("orders", "add_to_cart"),
    ).filter(
        Q(view_to_cart__gt=0) | Q(view_to_order__gt=0) | Q(cart_to_order__gt=0)
    )


def compute_conversion_page(start, end, brand_id, sort, direction, page, per_page=CONVERSION_PER_PAGE):
    rows = conversion_rows(start, end, brand_id)
    total = rows.count()
    last_page = max(1, math.ceil(total / per_page))
    page = min(max(1, page), last_page)

    prefix = "-" if direction == "desc" else ""
    offset = (page - 1) * per_page
    chunk = list(
        rows.order_by(f"{prefix}{sort}", "-views", "-id").values(
            "id", "title", "category__name", "views", "add_to_cart", "orders", "revenue",
            "view_to_cart", "view_to_order", "cart_to_order",
        )[offset:offset + per_page]
    )
    images = first_image_urls([row["id"] for row in chunk])

    data = [
        {
            "product_id": row["id"],
            "title": row["title"],
            "category": row["category__name"],
            "image_url": images.get(row["id"]),
            "views": int(row["views"]),
            "add_to_cart": int(row["add_to_cart"]),
            "orders": int(row["orders"]),
            "revenue": float(row["revenue"] or 0),
            "view_to_cart": float(row["view_to_cart"]),
            "view_to_order": float(row["view_to_order"]),
            "cart_to_order": float(row["cart_to_order"]),
        }
        for row in chunk
    ]
    return {
        "data": data,
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "last_page": last_page,
            "sort": sort,
            "direction": direction,
        },
    }


def conversion_page(start, end, brand_id, sort, direction, page, per_page=CONVERSION_PER_PAGE):
    sort, direction = normalize_conversion_sort(sort, direction)
    key = (
        f"dashboard:top_conversion:{brand_id or 'all'}:{start.date()}:{end.date()}"
        f":{sort}:{direction}:{page}:{per_page}"
    )
    return cache.get_or_set(
        key,
        lambda: compute_conversion_page(start, end, brand_id, sort, direction, page, per_page),
        cache_ttl(),
    )


# ── Assembly ─────────────────────────────────────────────────────

def empty_metrics():
    return {
        "revenue": 0,
        "orders": 0,
        "aov": 0,
        "units": 0,
        "views": 0,
        "add_to_cart": 0,
        "conversion_view_to_atc": 0,
        "conversion_view_to_order": 0,
    }


def build_metrics(sales, interest):
    orders = sales["orders"]
    views = interest["views"]
    return {
        "revenue": sales["revenue"],
        "orders": orders,
        "aov": sales["revenue"] / orders if orders else 0,
        "units": sales["units"],
        "views": views,
        "add_to_cart": interest["add_to_cart"],
        "conversion_view_to_atc": _percent(interest["add_to_cart"], views),
        "conversion_view_to_order": _percent(orders, views),
    }


def build_dashboard(*, days, table, brand_id=None, has_scope=True,
                    conv_sort=DEFAULT_CONVERSION_SORT, conv_dir="desc", conv_page=1, now=None):
    """
    The whole dashboard payload. `has_scope` is False for a non-admin
    without a brand: the structures stay empty and an error is attached.
    """
    start, end = date_window(days, now)
    dates = window_dates(start, end)
    meta = {
        "start_date": start.date().isoformat(),
        "end_date": end.date().isoformat(),
        "currency": settings.BACKOFFICE["CURRENCY"],
    }

    if not has_scope:
        return {
            "range": days,
            "table_mode": table,
            "metrics": empty_metrics(),
            "series": {
                "sales": [
                    {"date": d.isoformat(), "revenue": 0, "orders": 0, "units": 0} for d in dates
                ],
                "interest": [
                    {"date": d.isoformat(), "views": 0, "clicks": 0, "add_to_cart": 0} for d in dates
                ],
            },
            "order_status": empty_order_status(),
            "top_products": [],
            "top_conversion": empty_conversion_page(conv_sort, conv_dir, conv_page),
            "meta": meta,
            "error": NO_BRAND_ERROR,
        }

    sales = sales_totals(start, end, brand_id)
    interest = interest_totals(start, end, brand_id)
    if table == "gap":
        top_conversion = conversion_page(start, end, brand_id, conv_sort, conv_dir, conv_page)
    else:
        top_conversion = empty_conversion_page(conv_sort, conv_dir, conv_page)

    logger.debug("Dashboard built for brand=%s range=%s table=%s", brand_id or "all", days, table)
    return {
        "range": days,
        "table_mode": table,
        "metrics": build_metrics(sales, interest),
        "series": {
            "sales": sales_series(start, end, dates, brand_id),
            "interest": interest_series(start, end, dates, brand_id),
        },
        "order_status": order_status_widget(start, end, brand_id),
        "top_products": top_products(start, end, brand_id),
        "top_conversion": top_conversion,
        "meta": meta,
    }
