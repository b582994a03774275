from functools import wraps

from core.imports import verify_jwt_in_request, get_jwt_identity, get_jwt, request, re
from core.extensions import db
from core.errors import AuthError, ForbiddenError, ValidationError
from models.userModel import User

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def role_required(*roles):
    """Require a valid bearer token whose ``role`` claim is one of ``roles``.

    With no roles given any authenticated user passes.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            role = get_jwt().get("role")
            if roles and role not in roles:
                raise ForbiddenError("You do not have permission to perform this action")
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def current_role():
    return get_jwt().get("role")


def current_user():
    user = db.session.get(User, get_jwt_identity())
    if not user:
        raise AuthError("User not found")
    if user.status != "active":
        raise ForbiddenError("Account is suspended")
    return user


def get_json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def require_fields(data, *fields):
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def validate_email(email):
    return bool(email) and bool(EMAIL_RE.match(email))


def check_password_strength(password):
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters")
    if not re.search(r"[A-Z]", password):
        raise ValidationError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        raise ValidationError("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", password):
        raise ValidationError("Password must contain at least one number")


def parse_positive_int(value, field, allow_zero=False):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, bool) or isinstance(value, float) and value != number:
        raise ValidationError(f"{field} must be an integer")
    if number < 0 or (number == 0 and not allow_zero):
        raise ValidationError(f"{field} must be positive")
    return number


def pagination_args(default_limit=20, max_limit=100):
    try:
        page = max(int(request.args.get("page", 1)), 1)
        limit = min(max(int(request.args.get("limit", default_limit)), 1), max_limit)
    except ValueError:
        raise ValidationError("page and limit must be integers")
    return page, limit
