from core.extensions import db
from core.imports import datetime, timedelta, create_access_token
from models.userModel import User, PasswordResetToken

PASSWORD = "Secret123"


def test_register_and_login(client):
    response = client.post("/api/auth/register", json={
        "email": "Jane@Example.com", "password": "Secret123", "display_name": "Jane"
    })
    assert response.status_code == 201
    body = response.get_json()
    assert body["user"]["email"] == "jane@example.com"
    assert body["user"]["role"] == "customer"
    assert body["access_token"]

    login = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "Secret123"})
    assert login.status_code == 200

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {login.get_json()['access_token']}"})
    assert me.get_json()["display_name"] == "Jane"


def test_register_duplicate_email_conflicts(client, customer):
    response = client.post("/api/auth/register", json={
        "email": customer.email, "password": "Secret123", "display_name": "Again"
    })
    assert response.status_code == 409


def test_register_validates_input(client):
    weak = client.post("/api/auth/register", json={
        "email": "a@example.com", "password": "password", "display_name": "A"
    })
    assert weak.status_code == 400

    bad_email = client.post("/api/auth/register", json={
        "email": "not-an-email", "password": "Secret123", "display_name": "A"
    })
    assert bad_email.status_code == 400

    missing = client.post("/api/auth/register", json={"email": "a@example.com"})
    assert missing.status_code == 400


def test_seller_registration_is_pending(client):
    response = client.post("/api/auth/register/seller", json={
        "email": "shop@example.com", "password": "Secret123", "display_name": "Shop", "business_name": "Shop Ltd"
    })
    assert response.status_code == 201
    token = response.get_json()["access_token"]

    status = client.get("/api/auth/seller-status", headers={"Authorization": f"Bearer {token}"})
    assert status.get_json()["seller_status"] == "pending"


def test_login_failures(client, make_user):
    user = make_user("customer")
    assert client.post("/api/auth/login", json={"email": user.email, "password": "Wrong123"}).status_code == 401

    suspended = make_user("customer", status="suspended")
    response = client.post("/api/auth/login", json={"email": suspended.email, "password": PASSWORD})
    assert response.status_code == 403


def test_update_profile(client, customer, auth_headers):
    response = client.patch("/api/auth/me", json={"display_name": "New Name"}, headers=auth_headers(customer))
    assert response.status_code == 200
    assert db.session.get(User, customer.id).display_name == "New Name"


def test_password_reset_flow(client, customer):
    response = client.post("/api/auth/request-password-reset", json={"email": customer.email})
    assert response.status_code == 200
    token = PasswordResetToken.query.filter_by(email=customer.email).one()

    wrong = client.post("/api/auth/reset-password", json={
        "email": customer.email, "otp": "000000" if token.otp_code != "000000" else "111111", "new_password": "Newpass123"
    })
    assert wrong.status_code == 400

    ok = client.post("/api/auth/reset-password", json={
        "email": customer.email, "otp": token.otp_code, "new_password": "Newpass123"
    })
    assert ok.status_code == 200
    assert client.post("/api/auth/login", json={"email": customer.email, "password": "Newpass123"}).status_code == 200


def test_expired_otp_is_rejected(client, customer):
    db.session.add(PasswordResetToken(
        email=customer.email, otp_code="123456", expires_at=datetime.utcnow() - timedelta(minutes=1)
    ))
    db.session.commit()

    response = client.post("/api/auth/reset-password", json={
        "email": customer.email, "otp": "123456", "new_password": "Newpass123"
    })
    assert response.status_code == 400
    assert response.get_json()["error"] == "OTP expired"


def test_unknown_email_reset_does_not_leak(client):
    response = client.post("/api/auth/request-password-reset", json={"email": "ghost@example.com"})
    assert response.status_code == 200
    assert PasswordResetToken.query.count() == 0


def test_expired_token_is_rejected(client, customer):
    token = create_access_token(identity=customer.id, additional_claims={"role": customer.role},
                                expires_delta=timedelta(seconds=-1))
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.get_json()["error"] == "Token expired"


def test_tampered_token_is_rejected(client, customer):
    token = create_access_token(identity=customer.id, additional_claims={"role": customer.role})
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token[:-2]}xx"})
    assert response.status_code == 401
    assert response.get_json()["error"] == "Invalid token"
