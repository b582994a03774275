from core.imports import Blueprint, jsonify, get_jwt_identity
from core.extensions import db
from core.errors import NotFoundError, ValidationError
from core.auth import role_required, get_json_body, require_fields, parse_positive_int
from models.productModels import Product
from models.cartModels import Cart, CartItem

cart_bp = Blueprint("cart", __name__)


def get_or_create_cart(user_id):
    cart = Cart.query.filter_by(user_id=user_id).first()
    if not cart:
        cart = Cart(user_id=user_id)
        db.session.add(cart)
        db.session.flush()
    return cart


def serialize_cart(cart):
    items = []
    total = 0
    for item in cart.cart_items if cart else []:
        product = item.product
        line_total = product.price * item.quantity
        total += line_total
        items.append({
            "id": item.id,
            "product_id": product.id,
            "title": product.title,
            "price": product.price,
            "quantity": item.quantity,
            "line_total": line_total,
            "available_stock": product.stock,
            "available": product.is_public and product.stock >= item.quantity,
        })
    return {"cart_items": items, "total": total}


@cart_bp.route('/api/cart', methods=['GET'])
@role_required("customer")
def get_cart():
    """
    Get the current customer's shopping cart
    ---
    tags:
      - Cart
    security:
      - Bearer: []
    responses:
      200:
        description: Cart with line totals, amounts in cents
      403:
        description: Only customers have carts
    """
    cart = Cart.query.filter_by(user_id=get_jwt_identity()).first()
    return jsonify(serialize_cart(cart)), 200


@cart_bp.route('/api/cart/add', methods=['POST'])
@role_required("customer")
def add_to_cart():
    data = get_json_body()
    require_fields(data, "product_id")
    quantity = parse_positive_int(data.get("quantity", 1), "quantity")

    product = db.session.get(Product, data["product_id"])
    if not product or not product.is_public:
        raise NotFoundError("Product not found")

    cart = get_or_create_cart(get_jwt_identity())
    cart_item = CartItem.query.filter_by(cart_id=cart.id, product_id=product.id).first()
    new_quantity = quantity + (cart_item.quantity if cart_item else 0)
    if new_quantity > product.stock:
        raise ValidationError(f"Only {product.stock} of '{product.title}' available")

    if cart_item:
        cart_item.quantity = new_quantity
    else:
        db.session.add(CartItem(cart_id=cart.id, product_id=product.id, quantity=quantity))

    db.session.commit()
    return jsonify({"message": "Product added to cart", **serialize_cart(cart)}), 201


def _own_item(item_id):
    cart_item = CartItem.query.join(Cart).filter(
        CartItem.id == item_id,
        Cart.user_id == get_jwt_identity()
    ).first()
    if not cart_item:
        raise NotFoundError("Cart item not found")
    return cart_item


@cart_bp.route('/api/cart/update/<item_id>', methods=['PUT'])
@role_required("customer")
def update_cart_item(item_id):
    cart_item = _own_item(item_id)
    quantity = parse_positive_int(get_json_body().get("quantity"), "quantity")
    if quantity > cart_item.product.stock:
        raise ValidationError(f"Only {cart_item.product.stock} of '{cart_item.product.title}' available")

    cart_item.quantity = quantity
    db.session.commit()
    return jsonify({"message": "Cart item updated successfully"}), 200


@cart_bp.route('/api/cart/delete/<item_id>', methods=['DELETE'])
@role_required("customer")
def delete_cart_item(item_id):
    db.session.delete(_own_item(item_id))
    db.session.commit()
    return jsonify({"message": "Cart item deleted successfully"}), 200


@cart_bp.route('/api/cart/clear', methods=['DELETE'])
@role_required("customer")
def clear_cart():
    cart = Cart.query.filter_by(user_id=get_jwt_identity()).first()
    if not cart:
        raise NotFoundError("Cart not found")

    CartItem.query.filter_by(cart_id=cart.id).delete()
    db.session.commit()
    return jsonify({"message": "Cart cleared successfully"}), 200
