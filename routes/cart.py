from core.imports import Blueprint, jwt_required, request
from core.responses import success
from core.security import get_current_user
from services.cart import set_item, remove_item, clear_cart as empty_cart, merge_cart, serialize_cart

cart_bp = Blueprint("cart", __name__)


@cart_bp.route('/api/cart', methods=['GET'])
@jwt_required()
def get_cart():
    """
    Get the current user's shopping cart
    ---
    tags:
      - Cart
    security:
      - Bearer: []
    parameters:
      - name: Authorization
        in: header
        description: "JWT token as: Bearer <your_token>"
        required: true
        type: string
    responses:
      200:
        description: Cart retrieved successfully
        schema:
          type: object
          properties:
            status:
              type: string
              example: "success"
            data:
              type: object
              properties:
                items:
                  type: array
                  items:
                    type: object
                    properties:
                      product_id:
                        type: integer
                        example: 1
                      name:
                        type: string
                        example: "Classic Gur Thekua (500g)"
                      price:
                        type: number
                        example: 249
                      quantity:
                        type: integer
                        example: 2
                      available_stock:
                        type: integer
                        example: 20
                      line_total:
                        type: number
                        example: 498
                subtotal:
                  type: number
                  example: 498
                shipping_charge:
                  type: number
                  example: 50
                total:
                  type: number
                  example: 548
      401:
        description: Missing or invalid token
    """
    return success({"cart": serialize_cart(get_current_user())})


@cart_bp.route('/api/cart/add', methods=['POST'])
@jwt_required()
def add_to_cart():
    """
    Add a product to the cart
    ---
    tags:
      - Cart
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          required:
            - product_id
          properties:
            product_id:
              type: integer
              example: 10
            quantity:
              type: integer
              example: 2
    responses:
      201:
        description: Product added to cart
      400:
        description: Invalid quantity or product out of stock
      404:
        description: Product not found
    """
    user = get_current_user()
    data = request.get_json(silent=True) or {}
    set_item(user, data.get("product_id"), data.get("quantity", 1), increment=True)
    return success({"cart": serialize_cart(user)}, "Product added to cart", 201)


@cart_bp.route('/api/cart/update/<int:product_id>', methods=['PUT'])
@jwt_required()
def update_cart_item(product_id):
    user = get_current_user()
    data = request.get_json(silent=True) or {}
    set_item(user, product_id, data.get("quantity"))
    return success({"cart": serialize_cart(user)}, "Cart item updated successfully")


@cart_bp.route('/api/cart/delete/<int:product_id>', methods=['DELETE'])
@jwt_required()
def delete_cart_item(product_id):
    user = get_current_user()
    remove_item(user, product_id)
    return success({"cart": serialize_cart(user)}, "Cart item deleted successfully")


@cart_bp.route('/api/cart/clear', methods=['DELETE'])
@jwt_required()
def clear_cart():
    user = get_current_user()
    empty_cart(user)
    return success({"cart": serialize_cart(user)}, "Cart cleared successfully")


@cart_bp.route('/api/cart/merge', methods=['POST'])
@jwt_required()
def merge_local_cart():
    user = get_current_user()
    data = request.get_json(silent=True) or {}
    skipped = merge_cart(user, data.get("items"))
    return success({"cart": serialize_cart(user), "skipped_items": skipped}, "Cart merged successfully")
