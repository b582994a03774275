from core.imports import Blueprint, jsonify, request, get_jwt_identity, or_
from core.extensions import db
from core.errors import NotFoundError, ValidationError, ForbiddenError
from core.auth import role_required, current_user, get_json_body, require_fields, parse_positive_int, pagination_args
from models.productModels import Product, Category

product_bp = Blueprint('products', __name__)

# editing any of these sends the product back for approval
REVIEWED_FIELDS = ("title", "description", "price", "images", "category_id")


def _category_id(value):
    if not value:
        return None
    category = db.session.get(Category, value)
    if not category:
        raise ValidationError("Category not found")
    return category.id


@product_bp.route('/api/products', methods=['GET'])
def list_products():
    """
    List approved, active products
    ---
    tags:
      - Products
    parameters:
      - name: category
        in: query
        type: string
        description: Category id or slug
      - name: search
        in: query
        type: string
      - name: min_price
        in: query
        type: integer
      - name: max_price
        in: query
        type: integer
      - name: page
        in: query
        type: integer
      - name: limit
        in: query
        type: integer
    responses:
      200:
        description: A page of products
    """
    page, limit = pagination_args()
    query = Product.query.filter_by(approval_status="approved", status="active")

    category = request.args.get("category")
    if category:
        query = query.join(Category).filter(or_(Category.id == category, Category.slug == category))

    search = request.args.get("search")
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Product.title.ilike(pattern), Product.description.ilike(pattern)))

    try:
        if request.args.get("min_price"):
            query = query.filter(Product.price >= int(request.args["min_price"]))
        if request.args.get("max_price"):
            query = query.filter(Product.price <= int(request.args["max_price"]))
    except ValueError:
        raise ValidationError("Price filters must be integers")

    total = query.count()
    products = query.order_by(Product.created_at.desc()).offset((page - 1) * limit).limit(limit).all()

    return jsonify({
        "products": [p.to_dict() for p in products],
        "count": len(products),
        "total": total,
        "page": page,
        "limit": limit
    }), 200


@product_bp.route('/api/products/<product_id>', methods=['GET'])
def product_details(product_id):
    product = db.session.get(Product, product_id)
    if not product or not product.is_public:
        raise NotFoundError("Product not found")
    return jsonify(product.to_dict()), 200


@product_bp.route('/api/seller/products', methods=['GET'])
@role_required("seller")
def my_products():
    products = (
        Product.query
        .filter(Product.seller_id == get_jwt_identity(), Product.status != "deleted")
        .order_by(Product.created_at.desc())
        .all()
    )
    return jsonify({"products": [p.to_dict() for p in products], "count": len(products)}), 200


@product_bp.route('/api/products', methods=['POST'])
@role_required("seller")
def create_product():
    seller = current_user()
    if seller.seller_status != "approved":
        raise ForbiddenError("Seller account is not approved yet")

    data = get_json_body()
    require_fields(data, "title", "price")

    images = data.get("images") or []
    if not isinstance(images, list):
        raise ValidationError("images must be a list of URLs")

    product = Product(
        seller_id=seller.id,
        title=str(data["title"]).strip(),
        description=data.get("description", ""),
        price=parse_positive_int(data["price"], "price"),
        stock=parse_positive_int(data.get("stock", 0), "stock", allow_zero=True),
        images=images,
        category_id=_category_id(data.get("category_id")),
        approval_status="pending",
    )
    db.session.add(product)
    db.session.commit()

    return jsonify({"message": "Product submitted for approval", "product": product.to_dict()}), 201


def _own_product(product_id):
    product = db.session.get(Product, product_id)
    if not product or product.status == "deleted":
        raise NotFoundError("Product not found")
    if product.seller_id != get_jwt_identity():
        raise ForbiddenError("You do not own this product")
    return product


@product_bp.route('/api/products/<product_id>', methods=['PUT'])
@role_required("seller")
def edit_product(product_id):
    product = _own_product(product_id)
    data = get_json_body()

    if 'title' in data:
        product.title = str(data['title']).strip()
    if 'description' in data:
        product.description = str(data['description'] or "")
    if 'price' in data:
        product.price = parse_positive_int(data['price'], "price")
    if 'stock' in data:
        product.stock = parse_positive_int(data['stock'], "stock", allow_zero=True)
    if 'images' in data:
        if not isinstance(data['images'], list):
            raise ValidationError("images must be a list of URLs")
        product.images = data['images']
    if 'category_id' in data:
        product.category_id = _category_id(data['category_id'])
    if 'status' in data:
        if data['status'] not in ("active", "inactive"):
            raise ValidationError("status must be active or inactive")
        product.status = data['status']

    if any(field in data for field in REVIEWED_FIELDS):
        product.approval_status = "pending"
        product.rejection_reason = None

    db.session.commit()
    return jsonify({"message": "Product updated successfully", "product": product.to_dict()}), 200


@product_bp.route('/api/products/<product_id>', methods=['DELETE'])
@role_required("seller")
def delete_product(product_id):
    """Soft-delete one of the seller's products."""
    product = _own_product(product_id)
    product.status = "deleted"
    db.session.commit()
    return jsonify({"message": f"Product '{product.title}' has been deleted."}), 200
