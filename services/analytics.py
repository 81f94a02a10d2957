"""Read-only aggregations behind the admin dashboard and the customer dashboard.

Orders placed by admin accounts are left out of every store metric.
"""
from core.imports import func, case, datetime, timedelta, current_app
from core.extensions import db
from models.orderModels import Order, ORDER_STATUSES
from models.productModels import Product
from models.userModel import User


def period_starts(now=None):
    now = now or datetime.utcnow()
    start_of_day = datetime(now.year, now.month, now.day)
    return {
        "day": start_of_day,
        "week": start_of_day - timedelta(days=start_of_day.weekday()),
        "month": datetime(now.year, now.month, 1),
        "year": datetime(now.year, 1, 1),
    }


def customer_orders():
    admin_ids = db.select(User.id).where(User.role == "admin")
    return Order.query.filter(Order.user_id.not_in(admin_ids))


def _count_if(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


def _sum_if(condition, column):
    return func.coalesce(func.sum(case((condition, column), else_=0)), 0)


def order_status_counts(query=None):
    if query is None:
        query = customer_orders()
    rows = query.with_entities(Order.order_status, func.count(Order.id)).group_by(Order.order_status).all()
    counts = {status: 0 for status in ORDER_STATUSES}
    counts.update({status: count for status, count in rows})
    return counts


def revenue_summary(since=None):
    """Revenue over non-cancelled orders, plus the share actually collected."""
    query = customer_orders().filter(Order.order_status != "cancelled")
    if since is not None:
        query = query.filter(Order.created_at >= since)
    total, collected, average, count = query.with_entities(
        func.coalesce(func.sum(Order.final_amount), 0),
        _sum_if(Order.payment_status == "completed", Order.final_amount),
        func.coalesce(func.avg(Order.final_amount), 0),
        func.count(Order.id),
    ).one()
    return {
        "total_revenue": round(float(total), 2),
        "collected_revenue": round(float(collected), 2),
        "average_order_value": round(float(average), 2),
        "orders": count,
    }


def dashboard_overview(now=None):
    starts = period_starts(now)
    low_stock = current_app.config["LOW_STOCK_THRESHOLD"]

    order_row = customer_orders().with_entities(
        func.count(Order.id),
        _count_if(Order.created_at >= starts["day"]),
        _count_if(Order.created_at >= starts["week"]),
        _count_if(Order.created_at >= starts["month"]),
    ).one()

    customer_row = User.query.filter(User.role != "admin").with_entities(
        func.count(User.id),
        _count_if(User.is_active.is_(True)),
        _count_if(User.created_at >= starts["day"]),
        _count_if(User.created_at >= starts["month"]),
    ).one()

    product_row = Product.query.with_entities(
        func.count(Product.id),
        _count_if(Product.is_active.is_(True)),
        _count_if(Product.is_featured.is_(True)),
        _count_if(Product.stock == 0),
        _count_if((Product.stock > 0) & (Product.stock <= low_stock)),
        func.coalesce(func.sum(Product.views), 0),
        func.coalesce(func.sum(Product.sold_count), 0),
    ).one()

    recent_orders = customer_orders().order_by(Order.created_at.desc(), Order.id.desc()).limit(5).all()
    top_products = Product.query.order_by(Product.sold_count.desc(), Product.id).limit(5).all()

    return {
        "orders": {
            "total": order_row[0],
            "today": order_row[1],
            "this_week": order_row[2],
            "this_month": order_row[3],
            "by_status": order_status_counts(),
        },
        "customers": {
            "total": customer_row[0],
            "active": customer_row[1],
            "new_today": customer_row[2],
            "new_this_month": customer_row[3],
        },
        "products": {
            "total": product_row[0],
            "active": product_row[1],
            "featured": product_row[2],
            "out_of_stock": product_row[3],
            "low_stock": product_row[4],
            "total_views": int(product_row[5]),
            "total_sold": int(product_row[6]),
        },
        "revenue": {
            **revenue_summary(),
            "this_month": revenue_summary(starts["month"])["total_revenue"],
            "today": revenue_summary(starts["day"])["total_revenue"],
        },
        "recent_orders": [
            {
                "id": o.id,
                "order_number": o.order_number,
                "customer": o.user.full_name if o.user else None,
                "final_amount": o.final_amount,
                "order_status": o.order_status,
                "payment_status": o.payment_status,
                "created_at": o.created_at.isoformat(),
            }
            for o in recent_orders
        ],
        "top_products": [
            {"id": p.id, "name": p.name, "sold_count": p.sold_count, "stock": p.stock}
            for p in top_products
        ],
    }


def dashboard_stats(now=None):
    starts = period_starts(now)

    def collected(since=None):
        query = customer_orders().filter(Order.payment_status == "completed")
        if since is not None:
            query = query.filter(Order.created_at >= since)
        return round(float(query.with_entities(func.coalesce(func.sum(Order.final_amount), 0)).scalar()), 2)

    return {
        "overview": {
            "total_orders": customer_orders().count(),
            "total_customers": User.query.filter_by(role="user").count(),
            "total_products": Product.query.count(),
            "total_revenue": collected(),
        },
        "today": {
            "orders": customer_orders().filter(Order.created_at >= starts["day"]).count(),
            "revenue": collected(starts["day"]),
        },
        "this_month": {
            "orders": customer_orders().filter(Order.created_at >= starts["month"]).count(),
            "revenue": collected(starts["month"]),
        },
    }


def quick_actions(now=None):
    starts = period_starts(now)
    today = customer_orders().filter(Order.created_at >= starts["day"])
    return {
        "pending_orders": customer_orders().filter(Order.order_status == "pending").count(),
        "low_stock_products": Product.query.filter(
            Product.stock <= current_app.config["LOW_STOCK_THRESHOLD"], Product.is_active.is_(True)
        ).count(),
        "new_customers": User.query.filter(User.role == "user", User.created_at >= starts["day"]).count(),
        "orders_today": today.count(),
        "revenue_today": round(float(today.filter(Order.order_status != "cancelled").with_entities(
            func.coalesce(func.sum(Order.final_amount), 0)).scalar()), 2),
    }


def order_stats(now=None):
    starts = period_starts(now)
    today = revenue_summary(starts["day"])
    overall = revenue_summary()
    return {
        "total_orders": customer_orders().count(),
        "by_status": order_status_counts(),
        "total_revenue": overall["total_revenue"],
        "average_order_value": overall["average_order_value"],
        "todays_orders": today["orders"],
        "todays_revenue": today["total_revenue"],
    }


def trends(days, filter_type="revenue", now=None):
    """Daily buckets over the last ``days`` days.

    ``revenue`` counts only collected payments; ``orders`` counts every order.
    """
    now = now or datetime.utcnow()
    start = now - timedelta(days=days)
    day = func.date(Order.created_at)
    query = customer_orders().filter(Order.created_at >= start, Order.created_at <= now)
    if filter_type == "revenue":
        query = query.filter(Order.payment_status == "completed")
    rows = query.with_entities(
        day.label("day"), func.count(Order.id), func.coalesce(func.sum(Order.final_amount), 0),
    ).group_by(day).order_by(day).all()
    return [
        {"date": str(row[0]), "orders": row[1], "revenue": round(float(row[2]), 2)}
        for row in rows
    ]


def user_dashboard(user):
    orders = Order.query.filter_by(user_id=user.id)
    total_spent = orders.filter(Order.order_status != "cancelled").with_entities(
        func.coalesce(func.sum(Order.final_amount), 0)).scalar()
    recent = orders.order_by(Order.created_at.desc(), Order.id.desc()).limit(5).all()
    return {
        "stats": {
            "total_orders": orders.count(),
            "pending_orders": orders.filter(Order.order_status == "pending").count(),
            "completed_orders": orders.filter(Order.order_status == "delivered").count(),
            "total_spent": round(float(total_spent), 2),
        },
        "recent_orders": [order.to_dict() for order in recent],
    }


def _customer_totals():
    return db.session.query(
        Order.user_id.label("user_id"),
        func.count(Order.id).label("total_orders"),
        _count_if(Order.order_status != "cancelled").label("paid_orders"),
        _sum_if(Order.order_status != "cancelled", Order.final_amount).label("total_spent"),
        func.max(Order.created_at).label("last_order_date"),
    ).group_by(Order.user_id).subquery()


def customers_query():
    """Non-admin users joined with their order totals.

    Returns the query, whose rows are (user, orders, paid orders, spent, last
    order date), and the spend column for filtering or sorting.
    """
    totals = _customer_totals()
    spent = func.coalesce(totals.c.total_spent, 0)
    query = db.session.query(
        User,
        func.coalesce(totals.c.total_orders, 0),
        func.coalesce(totals.c.paid_orders, 0),
        spent,
        totals.c.last_order_date,
    ).outerjoin(totals, totals.c.user_id == User.id).filter(User.role != "admin")
    return query, spent


def customer_to_dict(row):
    user, total_orders, paid_orders, total_spent, last_order_date = row
    total_spent = round(float(total_spent), 2)
    return {
        **user.to_dict(),
        "total_orders": total_orders,
        "total_spent": total_spent,
        "average_order_value": round(total_spent / paid_orders, 2) if paid_orders else 0,
        "last_order_date": last_order_date.isoformat() if last_order_date else None,
    }


def customer_stats(now=None):
    now = now or datetime.utcnow()
    starts = period_starts(now)
    customers = User.query.filter(User.role != "admin")
    query, spent = customers_query()
    top_spenders = query.filter(spent > 0).order_by(spent.desc(), User.id).limit(5).all()
    return {
        "total_customers": customers.count(),
        "active_customers": customers.filter(User.is_active.is_(True)).count(),
        "new_customers_today": customers.filter(User.created_at >= starts["day"]).count(),
        "new_customers_this_week": customers.filter(User.created_at >= now - timedelta(days=7)).count(),
        "new_customers_this_month": customers.filter(User.created_at >= starts["month"]).count(),
        "top_spenders": [customer_to_dict(row) for row in top_spenders],
    }


def activity_query():
    return Order.query.order_by(Order.created_at.desc(), Order.id.desc())


def activity_to_dict(order):
    customer = order.user
    name = customer.full_name if customer else "Deleted user"
    return {
        "type": "order",
        "action": f"Order {order.order_number} - {order.order_status}",
        "description": f"{name} placed an order for ₹{order.final_amount:.2f}",
        "timestamp": order.created_at.isoformat(),
        "user": {"id": customer.id, "name": customer.full_name, "email": customer.email} if customer else None,
        "metadata": {
            "order_id": order.id,
            "order_number": order.order_number,
            "amount": order.final_amount,
            "status": order.order_status,
        },
    }
