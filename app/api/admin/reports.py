# Sales summary and spreadsheet exports
from datetime import timedelta
from io import BytesIO

import pandas as pd
from flask import Blueprint, jsonify, request, send_file, current_app
from sqlalchemy import select, func
from app.extensions import db
from app.models import (
    ORDER_STATUSES,
    Affiliate,
    Category,
    Coupon,
    CouponUsage,
    Order,
    OrderItem,
    PointsTransaction,
    Product,
    User,
)
from app.services.admin_logger import log_current_admin
from app.utils.auth import admin_required
from app.utils.helpers import money, parse_datetime, utcnow

admin_reports_bp = Blueprint("admin_reports", __name__, url_prefix="/api/admin/reports")

EXPORT_SHEETS = ("orders", "products", "customers", "coupons", "affiliates")
# Cancelled orders never count toward revenue
REVENUE_EXCLUDED = ("CANCELLED",)
ANALYTICS_DEFAULT_DAYS = 30
ANALYTICS_MAX_DAYS = 366


def sales_summary():
    revenue_filter = Order.status.notin_(REVENUE_EXCLUDED)
    revenue = db.session.scalar(select(func.coalesce(func.sum(Order.total), 0)).where(revenue_filter)) or 0
    order_count = db.session.scalar(select(func.count(Order.id)).where(revenue_filter)) or 0

    by_status = dict(db.session.execute(
        select(Order.status, func.count(Order.id)).group_by(Order.status)
    ).all())

    quantity = func.sum(OrderItem.quantity)
    top_products = db.session.execute(
        select(
            OrderItem.product_id,
            OrderItem.product_name,
            quantity.label("quantity"),
            func.sum(OrderItem.price * OrderItem.quantity).label("revenue"),
        )
        .join(Order, Order.id == OrderItem.order_id)
        .where(revenue_filter)
        .group_by(OrderItem.product_id, OrderItem.product_name)
        .order_by(quantity.desc())
        .limit(5)
    ).all()

    coupon_uses = db.session.scalar(select(func.count(CouponUsage.id))) or 0
    discount_given = db.session.scalar(select(func.coalesce(func.sum(CouponUsage.discount_amount), 0))) or 0

    issued = db.session.scalar(
        select(func.coalesce(func.sum(PointsTransaction.amount), 0)).where(PointsTransaction.amount > 0)
    ) or 0
    redeemed = db.session.scalar(
        select(func.coalesce(func.sum(PointsTransaction.amount), 0)).where(PointsTransaction.type == "REDEMPTION")
    ) or 0

    return {
        "revenue": {
            "total": money(revenue),
            "order_count": order_count,
            "average_order_value": round(float(revenue) / order_count, 2) if order_count else 0,
        },
        "customers": db.session.scalar(select(func.count(User.id)).where(User.role == "USER")) or 0,
        "orders_by_status": {status: by_status.get(status, 0) for status in ORDER_STATUSES},
        "top_products": [
            {
                "product_id": row.product_id,
                "name": row.product_name,
                "quantity": int(row.quantity or 0),
                "revenue": money(row.revenue),
            }
            for row in top_products
        ],
        "coupons": {"total_uses": coupon_uses, "total_discount": money(discount_given)},
        "points": {"issued": int(issued), "redeemed": abs(int(redeemed))},
    }


@admin_reports_bp.route("/summary", methods=["GET"])
@admin_required
def get_summary():
    """
    GET /api/admin/reports/summary - Store-wide sales figures

    ---
    tags:
      - Admin
    security:
      - Bearer: []
    responses:
      200:
        description: Revenue, order counts, top products, coupon and points totals
    """
    try:
        return jsonify({"status": "success", "summary": sales_summary()}), 200
    except Exception as e:
        current_app.logger.error(f"Failed to build report summary: {e}")
        return jsonify({"status": "error", "message": "Failed to build summary", "details": str(e)}), 500


def analytics_window(args):
    """Return ``(start, end)`` with ``end`` exclusive.

    ``end_date`` covers that whole day. Without ``start_date`` the window
    reaches back ``period`` days from the end.
    """
    try:
        start = parse_datetime(args.get("start_date"))
        end = parse_datetime(args.get("end_date"))
    except ValueError:
        raise ValueError("start_date and end_date must be ISO dates")

    if end is None:
        end = utcnow()
    else:
        end = end.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)

    if start is None:
        try:
            days = int(args.get("period", ANALYTICS_DEFAULT_DAYS))
        except (TypeError, ValueError):
            raise ValueError("period must be a whole number of days")
        if not 1 <= days <= ANALYTICS_MAX_DAYS:
            raise ValueError(f"period must be between 1 and {ANALYTICS_MAX_DAYS} days")
        start = end - timedelta(days=days)

    if start >= end:
        raise ValueError("start_date must be before end_date")
    return start, end


def _trend(current, previous):
    """Percentage change against the previous period, 0 when it had nothing."""
    if not previous:
        return 0
    return round((float(current) - float(previous)) / float(previous) * 100, 2)


def _per_day(frame, column=None):
    if frame.empty:
        return {}
    day = pd.to_datetime(frame["created_at"]).dt.date
    grouped = frame.groupby(day)[column].sum() if column else frame.groupby(day).size()
    return grouped.to_dict()


def sales_analytics(start, end):
    in_window = (Order.created_at >= start) & (Order.created_at < end)
    revenue_filter = Order.status.notin_(REVENUE_EXCLUDED)

    orders = pd.DataFrame(
        [
            (r.user_id, r.status, float(r.total or 0), r.created_at)
            for r in db.session.execute(
                select(Order.user_id, Order.status, Order.total, Order.created_at).where(in_window)
            ).all()
        ],
        columns=["user_id", "status", "total", "created_at"],
    )
    counted = orders[~orders["status"].isin(REVENUE_EXCLUDED)]
    revenue = round(float(counted["total"].sum()), 2)
    order_count = len(counted)

    customers = pd.DataFrame(
        [
            tuple(r)
            for r in db.session.execute(
                select(User.id, User.created_at)
                .where(User.role == "USER", User.created_at >= start, User.created_at < end)
            ).all()
        ],
        columns=["id", "created_at"],
    )
    orders_per_user = orders["user_id"].value_counts()
    repeat_customers = int(sum(1 for user_id in customers["id"] if orders_per_user.get(user_id, 0) > 1))

    previous_start = start - (end - start)
    in_previous = (Order.created_at >= previous_start) & (Order.created_at < start)
    previous_revenue, previous_orders = db.session.execute(
        select(func.coalesce(func.sum(Order.total), 0), func.count(Order.id)).where(in_previous, revenue_filter)
    ).one()
    previous_customers = db.session.scalar(
        select(func.count(User.id))
        .where(User.role == "USER", User.created_at >= previous_start, User.created_at < start)
    ) or 0

    status_counts = dict.fromkeys(ORDER_STATUSES, 0)
    status_revenue = {}
    for status, group in orders.groupby("status"):
        status_counts[status] = len(group)
        status_revenue[status] = round(float(group["total"].sum()), 2)

    line_revenue = func.sum(OrderItem.price * OrderItem.quantity)
    category_totals = {}
    for name, amount in db.session.execute(
        select(Category.name, line_revenue)
        .select_from(OrderItem)
        .join(Order, Order.id == OrderItem.order_id)
        .outerjoin(Product, Product.id == OrderItem.product_id)
        .outerjoin(Category, Category.id == Product.category_id)
        .where(in_window, revenue_filter)
        .group_by(Category.name)
    ).all():
        key = name or "Uncategorized"
        category_totals[key] = category_totals.get(key, 0) + float(amount or 0)

    top_products = db.session.execute(
        select(
            OrderItem.product_id,
            OrderItem.product_name,
            Category.name.label("category"),
            func.sum(OrderItem.quantity).label("quantity"),
            line_revenue.label("revenue"),
        )
        .join(Order, Order.id == OrderItem.order_id)
        .outerjoin(Product, Product.id == OrderItem.product_id)
        .outerjoin(Category, Category.id == Product.category_id)
        .where(in_window, revenue_filter)
        .group_by(OrderItem.product_id, OrderItem.product_name, Category.name)
        .order_by(line_revenue.desc())
        .limit(10)
    ).all()

    revenue_by_day = _per_day(counted, "total")
    orders_by_day = _per_day(counted)
    customers_by_day = _per_day(customers)
    days = pd.date_range(start.date(), (end - timedelta(microseconds=1)).date(), freq="D").date

    discount_given = db.session.scalar(
        select(func.coalesce(func.sum(CouponUsage.discount_amount), 0))
        .where(CouponUsage.created_at >= start, CouponUsage.created_at < end)
    ) or 0
    new_customers = len(customers)

    return {
        "kpis": {
            "total_revenue": revenue,
            "total_orders": order_count,
            "total_customers": new_customers,
            "average_order_value": round(revenue / order_count, 2) if order_count else 0,
            "pending_orders": status_counts.get("PENDING", 0),
            "revenue_trend": _trend(revenue, previous_revenue),
            "orders_trend": _trend(order_count, previous_orders),
            "customers_trend": _trend(new_customers, previous_customers),
        },
        "revenue_time_series": [
            {"date": d.isoformat(), "revenue": round(float(revenue_by_day.get(d, 0)), 2)} for d in days
        ],
        "orders_time_series": [{"date": d.isoformat(), "orders": int(orders_by_day.get(d, 0))} for d in days],
        "customers_time_series": [
            {"date": d.isoformat(), "customers": int(customers_by_day.get(d, 0))} for d in days
        ],
        "orders_by_status": status_counts,
        "revenue_by_status": status_revenue,
        "revenue_by_category": [
            {"name": name, "revenue": round(amount, 2)}
            for name, amount in sorted(category_totals.items(), key=lambda item: item[1], reverse=True)
        ],
        "top_products": [
            {
                "product_id": row.product_id,
                "name": row.product_name,
                "category": row.category,
                "quantity": int(row.quantity or 0),
                "revenue": money(row.revenue),
            }
            for row in top_products
        ],
        "customer_metrics": {
            "new_customers": new_customers,
            "repeat_customers": repeat_customers,
            "repeat_customer_rate": round(repeat_customers / new_customers * 100, 2) if new_customers else 0,
        },
        "coupon_metrics": {
            "total_coupons": db.session.scalar(select(func.count(Coupon.id))) or 0,
            "active_coupons": db.session.scalar(select(func.count(Coupon.id)).where(Coupon.is_active.is_(True))) or 0,
            "total_coupon_usage": int(db.session.scalar(select(func.coalesce(func.sum(Coupon.used_count), 0))) or 0),
            "total_discount_given": money(discount_given),
        },
        "date_range": {"start": start.isoformat(), "end": end.isoformat()},
    }


@admin_reports_bp.route("/analytics", methods=["GET"])
@admin_required
def get_analytics():
    """
    GET /api/admin/reports/analytics - Sales analytics for a date window

    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - name: start_date
        in: query
        type: string
        description: ISO date; defaults to end_date minus period
      - name: end_date
        in: query
        type: string
        description: ISO date, inclusive; defaults to now
      - name: period
        in: query
        type: integer
        default: 30
        description: Window length in days when start_date is omitted
    responses:
      200:
        description: KPIs with trends, daily series and revenue breakdowns
      400:
        description: Invalid date window
    """
    try:
        start, end = analytics_window(request.args)
    except ValueError as e:
        return jsonify({"status": "error", "message": str(e)}), 400

    try:
        return jsonify({"status": "success", "analytics": sales_analytics(start, end)}), 200
    except Exception as e:
        current_app.logger.error(f"Failed to build analytics: {e}")
        return jsonify({"status": "error", "message": "Failed to build analytics", "details": str(e)}), 500


def _orders_frame():
    rows = db.session.execute(
        select(Order.id, User.email, Order.status, Order.subtotal, Order.discount_amount, Order.total,
               Order.coupon_code, Order.created_at)
        .outerjoin(User, User.id == Order.user_id)
        .order_by(Order.created_at.desc())
    ).all()
    return pd.DataFrame(
        [(r[0], r[1], r[2], money(r[3]), money(r[4]), money(r[5]), r[6], r[7]) for r in rows],
        columns=["Order ID", "Customer", "Status", "Subtotal", "Discount", "Total", "Coupon", "Created At"],
    )


def _products_frame():
    sold = (
        select(OrderItem.product_id, func.sum(OrderItem.quantity).label("sold"))
        .group_by(OrderItem.product_id)
        .subquery()
    )
    rows = db.session.execute(
        select(Product.id, Product.name, Product.price, Product.sale_price, Product.featured,
               func.coalesce(sold.c.sold, 0))
        .outerjoin(sold, sold.c.product_id == Product.id)
        .order_by(Product.name.asc())
    ).all()
    return pd.DataFrame(
        [(r[0], r[1], money(r[2]), money(r[3]), bool(r[4]), int(r[5])) for r in rows],
        columns=["Product ID", "Name", "Price", "Sale Price", "Featured", "Units Sold"],
    )


def _customers_frame():
    rows = db.session.execute(
        select(User.id, User.name, User.email, User.points_balance, func.count(Order.id),
               func.coalesce(func.sum(Order.total), 0), User.created_at)
        .outerjoin(Order, Order.user_id == User.id)
        .where(User.role == "USER")
        .group_by(User.id)
        .order_by(User.created_at.desc())
    ).all()
    return pd.DataFrame(
        [(r[0], r[1], r[2], r[3], r[4], money(r[5]), r[6]) for r in rows],
        columns=["User ID", "Name", "Email", "Points", "Orders", "Total Spent", "Joined"],
    )


def _coupons_frame():
    coupons = db.session.scalars(select(Coupon).order_by(Coupon.code.asc())).all()
    return pd.DataFrame(
        [
            (c.code, c.discount_type, money(c.discount_value), c.used_count, c.usage_limit,
             c.is_active, c.valid_from, c.valid_until, c.source)
            for c in coupons
        ],
        columns=["Code", "Type", "Value", "Used", "Limit", "Active", "Valid From", "Valid Until", "Source"],
    )


def _affiliates_frame():
    affiliates = db.session.scalars(select(Affiliate).order_by(Affiliate.total_points_earned.desc())).all()
    return pd.DataFrame(
        [
            (a.affiliate_code, a.user.email if a.user else None, a.tier, a.is_active,
             a.total_referrals, a.active_referrals, a.total_points_earned, a.current_points_balance)
            for a in affiliates
        ],
        columns=["Code", "Email", "Tier", "Active", "Referrals", "Active Referrals", "Points Earned", "Points Balance"],
    )


SHEET_BUILDERS = {
    "orders": ("Orders", _orders_frame),
    "products": ("Products", _products_frame),
    "customers": ("Customers", _customers_frame),
    "coupons": ("Coupons", _coupons_frame),
    "affiliates": ("Affiliates", _affiliates_frame),
}


@admin_reports_bp.route("/export", methods=["POST"])
@admin_required
def export_report():
    """Generates an Excel workbook with the selected sheets (all when none are given)."""
    selected = request.get_json(force=True, silent=True) or {}
    sheets = selected.get("sheets")
    if sheets is None:
        sheets = [name for name in EXPORT_SHEETS if selected.get(name)] or list(EXPORT_SHEETS)
    if not isinstance(sheets, list) or any(name not in EXPORT_SHEETS for name in sheets):
        return jsonify({
            "status": "error",
            "message": f"sheets must be a list drawn from: {', '.join(EXPORT_SHEETS)}"
        }), 400

    try:
        output = BytesIO()
        with pd.ExcelWriter(output, engine="xlsxwriter") as writer:
            summary = sales_summary()
            pd.DataFrame(
                [
                    ("Revenue", summary["revenue"]["total"]),
                    ("Orders", summary["revenue"]["order_count"]),
                    ("Average Order Value", summary["revenue"]["average_order_value"]),
                    ("Customers", summary["customers"]),
                    ("Coupon Uses", summary["coupons"]["total_uses"]),
                    ("Discount Given", summary["coupons"]["total_discount"]),
                    ("Points Issued", summary["points"]["issued"]),
                    ("Points Redeemed", summary["points"]["redeemed"]),
                ],
                columns=["Metric", "Value"],
            ).to_excel(writer, sheet_name="Summary", index=False)

            for name in sheets:
                sheet_name, build = SHEET_BUILDERS[name]
                build().to_excel(writer, sheet_name=sheet_name, index=False)
        output.seek(0)
    except Exception as e:
        current_app.logger.error(f"Report export failed: {e}")
        return jsonify({"status": "error", "message": "Failed to generate report", "details": str(e)}), 500

    log_current_admin(
        "EXPORT", "Report",
        description=f"Exported report ({', '.join(sheets)})",
        details={"sheets": sheets},
    )

    filename = f"BioSculpture_Report_{utcnow().strftime('%Y%m%d_%H%M%S')}.xlsx"
    return send_file(
        output,
        as_attachment=True,
        download_name=filename,
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
