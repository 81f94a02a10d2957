from core.imports import jsonify


def success(data=None, message=None, status_code=200):
    body = {"status": "success"}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return jsonify(body), status_code


def error(message, status_code=400, errors=None):
    body = {"status": "error", "message": message}
    if errors:
        body["errors"] = errors
    return jsonify(body), status_code


def paginate(query, page, limit):
    """Apply page/limit to a query and return (items, pagination dict)."""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    total_pages = (total + limit - 1) // limit if limit else 0
    return items, {
        "current_page": page,
        "total_pages": total_pages,
        "total": total,
        "has_next_page": page < total_pages,
        "has_prev_page": page > 1,
    }
