import logging

from core.imports import Blueprint, jsonify, create_access_token, jwt_required, random, datetime, timedelta, func
from core.extensions import db, bcrypt
from core.errors import ValidationError, ConflictError, AuthError, ForbiddenError, NotFoundError
from core.auth import current_user, get_json_body, require_fields, validate_email, check_password_strength, role_required
from models.userModel import User, PasswordResetToken
from services.notifications import send_email

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)

OTP_TTL_MINUTES = 30


def issue_token(user):
    return create_access_token(identity=user.id, additional_claims={"role": user.role})


def send_otp_email(email, otp):
    body = (
        "<p>We received a request to reset your password. Use the code below to proceed:</p>"
        f"<h2>{otp}</h2>"
        f"<p>The code expires in {OTP_TTL_MINUTES} minutes.</p>"
    )
    send_email(email, "Your Password Reset Code", body)


def _create_user(data, role, **extra):
    require_fields(data, "email", "password", "display_name")
    email = data["email"].strip().lower()
    if not validate_email(email):
        raise ValidationError("Invalid email format")
    check_password_strength(data["password"])

    if User.query.filter(func.lower(User.email) == email).first():
        raise ConflictError("Account with this email already exists")

    user = User(
        email=email,
        password=bcrypt.generate_password_hash(data["password"]).decode('utf-8'),
        display_name=data["display_name"].strip(),
        phone=data.get("phone"),
        role=role,
        **extra
    )
    db.session.add(user)
    db.session.commit()
    logger.info("Registered %s %s", role, user.id)
    return user


@auth_bp.route('/api/auth/register', methods=['POST'])
def register():
    """
    Register a customer account
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [email, password, display_name]
          properties:
            email:
              type: string
              example: jane@example.com
            password:
              type: string
              example: Secret123
            display_name:
              type: string
              example: Jane Doe
            phone:
              type: string
    responses:
      201:
        description: Account created, returns an access token
      400:
        description: Validation error
      409:
        description: Email already registered
    """
    user = _create_user(get_json_body(), "customer")
    send_email(user.email, "Welcome to FastShop", f"<p>Hi {user.display_name}, your account is ready.</p>")
    return jsonify({"message": "Registration successful", "access_token": issue_token(user), "user": user.to_dict()}), 201


@auth_bp.route('/api/auth/register/seller', methods=['POST'])
def register_seller():
    data = get_json_body()
    require_fields(data, "business_name")
    user = _create_user(data, "seller", business_name=data["business_name"].strip(), seller_status="pending")
    return jsonify({
        "message": "Seller registration received and pending approval",
        "access_token": issue_token(user),
        "user": user.to_dict()
    }), 201


@auth_bp.route('/api/auth/login', methods=['POST'])
def login():
    data = get_json_body()
    email = (data.get('email') or "").strip().lower()
    password = data.get('password')

    if not email or not password:
        raise ValidationError("Email and password are required")

    user = User.query.filter(func.lower(User.email) == email).first()
    if not user or not bcrypt.check_password_hash(user.password, password):
        raise AuthError("Invalid credentials")
    if user.status != "active":
        raise ForbiddenError("Account is suspended")

    return jsonify({
        "message": "Login successful",
        "access_token": issue_token(user),
        "user": user.to_dict()
    }), 200


@auth_bp.route('/api/auth/me', methods=['GET'])
@jwt_required()
def profile():
    return jsonify(current_user().to_dict()), 200


@auth_bp.route('/api/auth/me', methods=['PATCH'])
@jwt_required()
def update_profile():
    """
    Partially update the authenticated user's profile
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            display_name:
              type: string
            email:
              type: string
            phone:
              type: string
            business_name:
              type: string
            password:
              type: string
    responses:
      200:
        description: Profile updated
      409:
        description: Email already in use
    """
    user = current_user()
    data = get_json_body()
    updated = False

    if data.get('display_name'):
        user.display_name = data['display_name'].strip()
        updated = True

    if data.get('phone'):
        user.phone = data['phone']
        updated = True

    if data.get('email'):
        email = data['email'].strip().lower()
        if not validate_email(email):
            raise ValidationError("Invalid email format")
        if User.query.filter(func.lower(User.email) == email, User.id != user.id).first():
            raise ConflictError("Email already in use")
        user.email = email
        updated = True

    if data.get('business_name') and user.role == "seller":
        user.business_name = data['business_name'].strip()
        updated = True

    if data.get('password'):
        check_password_strength(data['password'])
        user.password = bcrypt.generate_password_hash(data['password']).decode('utf-8')
        updated = True

    if not updated:
        return jsonify({"message": "No fields were updated"}), 200

    db.session.commit()
    return jsonify({"message": "Profile updated successfully", "user": user.to_dict()}), 200


@auth_bp.route('/api/auth/seller-status', methods=['GET'])
@role_required("seller")
def seller_status():
    user = current_user()
    return jsonify({"id": user.id, "seller_status": user.seller_status}), 200


@auth_bp.route('/api/auth/request-password-reset', methods=['POST'])
def request_password_reset():
    data = get_json_body()
    email = (data.get("email") or "").strip().lower()
    if not email:
        raise ValidationError("Email is required")

    generic = {"message": "If an account with this email exists, a reset code has been sent."}

    if not User.query.filter(func.lower(User.email) == email).first():
        return jsonify(generic), 200

    reset_token = PasswordResetToken.query.filter_by(email=email).first()
    if not reset_token:
        reset_token = PasswordResetToken(email=email)
        db.session.add(reset_token)

    reset_token.otp_code = str(random.randint(100000, 999999))
    reset_token.expires_at = datetime.utcnow() + timedelta(minutes=OTP_TTL_MINUTES)
    db.session.commit()

    send_otp_email(email, reset_token.otp_code)
    return jsonify(generic), 200


@auth_bp.route('/api/auth/reset-password', methods=['POST'])
def reset_password():
    data = get_json_body()
    require_fields(data, "email", "otp", "new_password")
    email = data["email"].strip().lower()

    reset_token = PasswordResetToken.query.filter_by(email=email).first()
    if not reset_token or reset_token.otp_code != str(data["otp"]):
        raise ValidationError("Invalid OTP")

    if datetime.utcnow() > reset_token.expires_at:
        db.session.delete(reset_token)
        db.session.commit()
        raise ValidationError("OTP expired")

    check_password_strength(data["new_password"])

    user = User.query.filter(func.lower(User.email) == email).first()
    if not user:
        raise NotFoundError("Account not found")

    user.password = bcrypt.generate_password_hash(data["new_password"]).decode('utf-8')
    db.session.delete(reset_token)
    db.session.commit()

    return jsonify({"message": "Password reset successful"}), 200
