"""认证与权限测试

- bcrypt 密码哈希与校验
- 令牌签发/解析、Authorization 头解析
- 管理员权限
- AuthService：注册、登录、个人信息、用户列表、重置密码
"""
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from business.auth import (
    ALGORITHM, AccessGate, AuthService, Identity, hash_password,
    verify_password,
)
from business.errors import (
    AuthenticationError, AuthorizationError, ConflictError, NotFoundError,
)
from business.schemas import LoginRequest, RegisterRequest
from database.models import User

SECRET = "test-secret"


@pytest.fixture
def gate():
    return AccessGate(secret_key=SECRET, expires_days=7)


@pytest.fixture
def auth(temp_db, gate):
    return AuthService(temp_db.users, gate, bcrypt_rounds=4)


class TestPasswordHashing:

    def test_hash_and_verify(self):
        password_hash, salt = hash_password("secret123", rounds=4)
        assert password_hash.startswith(salt[:29])
        assert verify_password("secret123", password_hash) is True
        assert verify_password("wrong", password_hash) is False

    def test_salts_differ(self):
        first, _ = hash_password("secret123", rounds=4)
        second, _ = hash_password("secret123", rounds=4)
        assert first != second

    def test_malformed_hash_rejected(self):
        assert verify_password("secret123", "not-a-bcrypt-hash") is False


class TestAccessGate:

    def test_issue_and_decode(self, gate):
        token = gate.issue_token(Identity(1, "13900000001", "admin", "管理员"))
        identity = gate.decode_token(token)
        assert identity == Identity(1, "13900000001", "admin", "管理员")
        assert identity.is_admin is True

    def test_authenticate_bearer_header(self, gate):
        token = gate.issue_token(Identity(2, "13900000002", "user"))
        identity = gate.authenticate(f"Bearer {token}")
        assert identity.id == 2
        assert identity.is_admin is False

    @pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer   ", "Token abc"])
    def test_missing_token(self, gate, header):
        with pytest.raises(AuthenticationError, match="缺失"):
            gate.authenticate(header)

    def test_invalid_token(self, gate):
        with pytest.raises(AuthenticationError, match="无效"):
            gate.authenticate("Bearer not.a.jwt")

    def test_token_signed_with_other_secret(self, gate):
        other = AccessGate(secret_key="other-secret")
        token = other.issue_token(Identity(1, "13900000001", "admin"))
        with pytest.raises(AuthenticationError):
            gate.decode_token(token)

    def test_expired_token(self, gate):
        token = jwt.encode({
            "id": 1, "phone": "13900000001", "role": "user",
            "exp": datetime.now(timezone.utc) - timedelta(minutes=1),
        }, SECRET, algorithm=ALGORITHM)
        with pytest.raises(AuthenticationError):
            gate.decode_token(token)

    def test_token_without_identity_claims(self, gate):
        token = jwt.encode({"sub": "x"}, SECRET, algorithm=ALGORITHM)
        with pytest.raises(AuthenticationError):
            gate.decode_token(token)

    def test_require_admin(self, gate):
        admin = Identity(1, "13900000001", "admin")
        assert gate.require_admin(admin) is admin
        with pytest.raises(AuthorizationError):
            gate.require_admin(Identity(2, "13900000002", "user"))


class TestAuthService:

    def test_register_and_login(self, temp_db, auth, gate):
        user_id = auth.register(RegisterRequest(
            phone="13800001111", password="secret123", realName="李四",
            email="lisi@example.com",
        ))

        result = auth.login(LoginRequest(phone="13800001111", password="secret123"))
        assert result["user"] == {
            "id": user_id, "phone": "13800001111", "role": "user",
            "realName": "李四",
        }
        assert gate.decode_token(result["token"]).id == user_id
        assert temp_db.users.get_active(user_id).last_login is not None

    def test_register_duplicate(self, auth):
        request = RegisterRequest(phone="13800001111", password="secret123")
        auth.register(request)
        with pytest.raises(ConflictError):
            auth.register(request)

    def test_login_wrong_password(self, auth):
        auth.register(RegisterRequest(phone="13800001111", password="secret123"))
        with pytest.raises(AuthenticationError):
            auth.login(LoginRequest(phone="13800001111", password="wrong-pass"))

    def test_login_unknown_phone(self, auth):
        with pytest.raises(AuthenticationError):
            auth.login(LoginRequest(phone="13800009999", password="secret123"))

    def test_login_deactivated_user(self, temp_db, auth):
        user_id = auth.register(
            RegisterRequest(phone="13800001111", password="secret123")
        )
        temp_db.users.soft_delete_by_id(User, user_id)
        with pytest.raises(AuthenticationError):
            auth.login(LoginRequest(phone="13800001111", password="secret123"))

    def test_me(self, auth):
        user_id = auth.register(RegisterRequest(
            phone="13800001111", password="secret123", realName="李四"
        ))
        profile = auth.me(Identity(user_id, "13800001111", "user"))
        assert profile["phone"] == "13800001111"
        assert profile["real_name"] == "李四"
        assert "password_hash" not in profile

    def test_me_unknown(self, auth):
        with pytest.raises(NotFoundError):
            auth.me(Identity(404, "13800001111", "user"))

    def test_list_users_hides_secrets(self, auth):
        auth.register(RegisterRequest(phone="13800001111", password="secret123"))
        auth.register(RegisterRequest(phone="13800002222", password="secret123"),
                      role="admin")
        users = auth.list_users()
        assert {u["phone"] for u in users} == {"13800001111", "13800002222"}
        for user in users:
            assert "password_hash" not in user
            assert "password_salt" not in user

    def test_reset_password(self, auth):
        user_id = auth.register(
            RegisterRequest(phone="13800001111", password="secret123")
        )
        assert auth.reset_password(user_id, "brand-new") == "13800001111"

        with pytest.raises(AuthenticationError):
            auth.login(LoginRequest(phone="13800001111", password="secret123"))
        assert auth.login(
            LoginRequest(phone="13800001111", password="brand-new")
        )["user"]["id"] == user_id

    def test_reset_password_unknown(self, auth):
        with pytest.raises(NotFoundError):
            auth.reset_password(404, "brand-new")
