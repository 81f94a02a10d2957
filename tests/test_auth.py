from datetime import datetime, timedelta

from conftest import auth_headers
from core.extensions import db, mail
from models.userModel import User


def register(client, **overrides):
    payload = {
        "first_name": "Asha",
        "last_name": "Singh",
        "email": "Asha@Example.com",
        "password": "Secret123",
        "phone": "9876501234",
    }
    payload.update(overrides)
    return client.post("/api/auth/register", json=payload)


class TestRegisterAndLogin:

    def test_register_returns_token(self, client):
        response = register(client)

        data = response.get_json()["data"]
        assert response.status_code == 201
        assert data["token"]
        assert data["user"]["email"] == "asha@example.com"
        assert data["user"]["role"] == "user"
        assert "password" not in data["user"]

    def test_register_validates_fields(self, client):
        response = register(client, email="not-an-email", password="short", first_name="")

        fields = {e["field"] for e in response.get_json()["errors"]}
        assert response.status_code == 400
        assert fields == {"email", "password", "first_name"}

    def test_duplicate_email(self, client):
        register(client)

        assert register(client).status_code == 409

    def test_login(self, client, user):
        response = client.post("/api/auth/login", json={"email": "JANE@example.com", "password": "Password123"})

        assert response.status_code == 200
        assert response.get_json()["data"]["user"]["id"] == user.id
        assert db.session.get(User, user.id).last_login is not None

    def test_wrong_password(self, client, user):
        response = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "Nope1234"})

        assert response.status_code == 401
        assert response.get_json()["message"] == "Invalid email or password"

    def test_deactivated_account(self, client, user):
        user.is_active = False
        db.session.commit()

        response = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "Password123"})

        assert response.status_code == 403

    def test_token_of_deactivated_user_is_refused(self, client, user):
        headers = auth_headers(user)
        user.is_active = False
        db.session.commit()

        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_me(self, client, user, user_headers):
        response = client.get("/api/auth/me", headers=user_headers)

        assert response.get_json()["data"]["user"]["email"] == user.email


class TestPasswords:

    def test_change_password(self, client, user, user_headers):
        response = client.put("/api/auth/change-password", headers=user_headers,
                              json={"current_password": "Password123", "new_password": "Newpass123"})

        assert response.status_code == 200
        assert db.session.get(User, user.id).check_password("Newpass123")

    def test_change_password_needs_current(self, client, user_headers):
        response = client.put("/api/auth/change-password", headers=user_headers,
                              json={"current_password": "Wrong123", "new_password": "Newpass123"})

        assert response.status_code == 400

    def test_forgot_password_sends_mail(self, client, user):
        with mail.record_messages() as outbox:
            response = client.post("/api/auth/forgot-password", json={"email": "jane@example.com"})

        refreshed = db.session.get(User, user.id)
        assert response.status_code == 200
        assert refreshed.reset_password_token
        assert len(outbox) == 1
        assert refreshed.reset_password_token in outbox[0].html

    def test_forgot_password_does_not_reveal_accounts(self, client, user):
        known = client.post("/api/auth/forgot-password", json={"email": "jane@example.com"})
        unknown = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})

        assert known.get_json()["message"] == unknown.get_json()["message"]

    def test_reset_password(self, client, user):
        user.reset_password_token = "abc123"
        user.reset_password_expires = datetime.utcnow() + timedelta(minutes=10)
        db.session.commit()

        response = client.post("/api/auth/reset-password", json={"token": "abc123", "password": "Fresh1234"})

        refreshed = db.session.get(User, user.id)
        assert response.status_code == 200
        assert refreshed.check_password("Fresh1234")
        assert refreshed.reset_password_token is None

    def test_expired_reset_token(self, client, user):
        user.reset_password_token = "abc123"
        user.reset_password_expires = datetime.utcnow() - timedelta(minutes=1)
        db.session.commit()

        response = client.post("/api/auth/reset-password", json={"token": "abc123", "password": "Fresh1234"})

        assert response.status_code == 400
