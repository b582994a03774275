from core.imports import Blueprint, jsonify, re, func
from core.extensions import db
from core.errors import NotFoundError, ConflictError, ValidationError
from core.auth import role_required, get_json_body, require_fields
from models.productModels import Category, Product

category_bp = Blueprint('categories', __name__)


def slugify(name):
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")
    if not slug:
        raise ValidationError("Category name must contain letters or digits")
    return slug


def get_category_or_404(category_id):
    category = db.session.get(Category, category_id)
    if not category:
        category = Category.query.filter_by(slug=category_id).first()
    if not category:
        raise NotFoundError("Category not found")
    return category


@category_bp.route('/api/categories', methods=['GET'])
def list_categories():
    categories = Category.query.order_by(Category.name.asc()).all()
    return jsonify({"categories": [c.to_dict() for c in categories], "count": len(categories)}), 200


@category_bp.route('/api/categories/<category_id>', methods=['GET'])
def get_category(category_id):
    return jsonify(get_category_or_404(category_id).to_dict()), 200


@category_bp.route('/api/categories', methods=['POST'])
@role_required("admin")
def create_category():
    data = get_json_body()
    require_fields(data, "name")
    name = data["name"].strip()

    if Category.query.filter(func.lower(Category.name) == name.lower()).first():
        raise ConflictError("Category already exists")

    category = Category(name=name, slug=slugify(name), description=data.get("description", ""))
    db.session.add(category)
    db.session.commit()
    return jsonify({"message": "Category created", "category": category.to_dict()}), 201


@category_bp.route('/api/categories/<category_id>', methods=['PUT'])
@role_required("admin")
def update_category(category_id):
    category = get_category_or_404(category_id)
    data = get_json_body()

    if data.get("name"):
        category.name = data["name"].strip()
        category.slug = slugify(category.name)
    if "description" in data:
        category.description = data["description"] or ""

    db.session.commit()
    return jsonify({"message": "Category updated", "category": category.to_dict()}), 200


@category_bp.route('/api/categories/<category_id>', methods=['DELETE'])
@role_required("admin")
def delete_category(category_id):
    category = get_category_or_404(category_id)
    if Product.query.filter_by(category_id=category.id).first():
        raise ConflictError("Category still has products")

    db.session.delete(category)
    db.session.commit()
    return jsonify({"message": "Category deleted"}), 200
