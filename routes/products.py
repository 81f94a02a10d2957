from core.imports import Blueprint, request, func, or_
from core.extensions import db
from core.errors import NotFoundError
from core.responses import success, paginate
from core.validators import parse_int, parse_bool
from models.productModels import Product

products_bp = Blueprint('products', __name__)

SORT_OPTIONS = {
    "newest": (Product.created_at.desc(), Product.id.desc()),
    "price_asc": (Product.price.asc(), Product.id),
    "price_desc": (Product.price.desc(), Product.id),
    "popular": (Product.sold_count.desc(), Product.id),
    "rating": (Product.rating_average.desc(), Product.rating_count.desc()),
}


@products_bp.route('/api/products', methods=['GET'])
def list_products():
    """
    List active products
    ---
    tags:
      - Products
    parameters:
      - name: category
        in: query
        type: string
        example: "Thekua"
      - name: search
        in: query
        type: string
      - name: featured
        in: query
        type: boolean
      - name: min_price
        in: query
        type: number
      - name: max_price
        in: query
        type: number
      - name: in_stock
        in: query
        type: boolean
      - name: sort
        in: query
        type: string
        enum: [newest, price_asc, price_desc, popular, rating]
      - name: page
        in: query
        type: integer
        example: 1
      - name: limit
        in: query
        type: integer
        example: 12
    responses:
      200:
        description: Paginated product list
    """
    args = request.args
    query = Product.query.filter(Product.is_active.is_(True))

    if args.get("category") and args["category"] != "all":
        query = query.filter(Product.category == args["category"])
    if args.get("search"):
        term = f"%{args['search'].strip()}%"
        query = query.filter(or_(Product.name.ilike(term), Product.description.ilike(term)))
    if parse_bool(args.get("featured")):
        query = query.filter(Product.is_featured.is_(True))
    if parse_bool(args.get("in_stock")):
        query = query.filter(Product.stock > 0)
    try:
        if args.get("min_price"):
            query = query.filter(Product.price >= float(args["min_price"]))
        if args.get("max_price"):
            query = query.filter(Product.price <= float(args["max_price"]))
    except ValueError:
        pass

    query = query.order_by(*SORT_OPTIONS.get(args.get("sort"), SORT_OPTIONS["newest"]))
    page = parse_int(args.get("page"), 1)
    limit = parse_int(args.get("limit"), 12, maximum=100)
    products, pagination = paginate(query, page, limit)

    return success({"products": [p.to_dict() for p in products], "pagination": pagination})


@products_bp.route('/api/products/featured', methods=['GET'])
def featured_products():
    limit = parse_int(request.args.get("limit"), 8, maximum=50)
    products = Product.query.filter(Product.is_active.is_(True), Product.is_featured.is_(True)) \
        .order_by(Product.created_at.desc(), Product.id.desc()).limit(limit).all()
    return success({"products": [p.to_dict() for p in products]})


@products_bp.route('/api/products/categories', methods=['GET'])
def product_categories():
    rows = db.session.query(Product.category, func.count(Product.id)) \
        .filter(Product.is_active.is_(True)) \
        .group_by(Product.category).order_by(Product.category).all()
    return success({"categories": [{"name": name, "count": count} for name, count in rows]})


@products_bp.route('/api/products/<int:product_id>', methods=['GET'])
def product_details(product_id):
    """
    Get details of a specific product by ID
    ---
    tags:
      - Products
    parameters:
      - name: product_id
        in: path
        type: integer
        required: true
        description: The ID of the product to fetch
    responses:
      200:
        description: Product details
      404:
        description: Product not found
    """
    product = db.session.get(Product, product_id)
    if not product or not product.is_active:
        raise NotFoundError("Product not found")

    product.views = (product.views or 0) + 1
    db.session.commit()

    return success({"product": product.to_dict()})
