"""认证与权限控制

- 密码使用 bcrypt 哈希，盐值与哈希一并存储
- 登录成功后签发 HS256 JWT，载荷包含 id / phone / role / realName
- AccessGate 负责从 Authorization 头解析身份并校验管理员权限
- AuthService 负责注册、登录、个人信息和管理员的用户管理
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import bcrypt
from jose import JWTError, jwt
from loguru import logger

from business.errors import (
    AuthenticationError, AuthorizationError, ConflictError, NotFoundError
)
from business.schemas import LoginRequest, RegisterRequest
from config.settings import settings

ALGORITHM = "HS256"


@dataclass
class Identity:
    """已认证的调用方身份"""
    id: int
    phone: str
    role: str
    real_name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def hash_password(password: str,
                  rounds: Optional[int] = None) -> Tuple[str, str]:
    """生成密码哈希

    Returns:
        (password_hash, password_salt)
    """
    salt = bcrypt.gensalt(rounds or settings.bcrypt_rounds)
    password_hash = bcrypt.hashpw(password.encode("utf-8"), salt)
    return password_hash.decode("utf-8"), salt.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(
            password.encode("utf-8"), password_hash.encode("utf-8")
        )
    except ValueError as e:
        logger.warning(f"Malformed password hash: {e}")
        return False


class AccessGate:
    """访问控制：签发/校验令牌，判断管理员权限"""

    def __init__(self, secret_key: Optional[str] = None,
                 expires_days: Optional[int] = None):
        self.secret_key = secret_key or settings.jwt_secret
        self.expires_days = expires_days or settings.jwt_expires_days

    def issue_token(self, identity: Identity) -> str:
        """签发访问令牌"""
        expire = datetime.now(timezone.utc) + timedelta(days=self.expires_days)
        claims = {
            "id": identity.id,
            "phone": identity.phone,
            "role": identity.role,
            "realName": identity.real_name,
            "exp": expire,
        }
        return jwt.encode(claims, self.secret_key, algorithm=ALGORITHM)

    def decode_token(self, token: str) -> Identity:
        """解析令牌

        Raises:
            AuthenticationError: 令牌无效或已过期
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[ALGORITHM])
            return Identity(
                id=int(payload["id"]),
                phone=payload["phone"],
                role=payload["role"],
                real_name=payload.get("realName"),
            )
        except (JWTError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Rejected access token: {e}")
            raise AuthenticationError("访问令牌无效")

    def authenticate(self, authorization: Optional[str]) -> Identity:
        """从 Authorization 头（Bearer TOKEN）解析调用方身份

        Raises:
            AuthenticationError: 令牌缺失或无效
        """
        token = None
        if authorization:
            scheme, _, credentials = authorization.partition(" ")
            if scheme.lower() == "bearer" and credentials.strip():
                token = credentials.strip()
        if not token:
            raise AuthenticationError("访问令牌缺失")
        return self.decode_token(token)

    @staticmethod
    def require_admin(identity: Identity) -> Identity:
        """校验管理员权限

        Raises:
            AuthorizationError: 非管理员
        """
        if not identity.is_admin:
            logger.warning(f"Non-admin user {identity.id} denied admin operation")
            raise AuthorizationError("需要管理员权限")
        return identity


class AuthService:
    """用户认证与管理

    Args:
        user_repo: 用户仓库
        gate: 访问控制（用于签发令牌）
        bcrypt_rounds: 密码哈希轮数，默认取自配置
    """

    def __init__(self, user_repo, gate: AccessGate,
                 bcrypt_rounds: Optional[int] = None):
        self.users = user_repo
        self.gate = gate
        self.bcrypt_rounds = bcrypt_rounds or settings.bcrypt_rounds

    def register(self, request: RegisterRequest, role: str = "user") -> int:
        """注册新用户

        Raises:
            ConflictError: 手机号已注册
        """
        if self.users.get_active_by_phone(request.phone):
            raise ConflictError("手机号已注册")

        password_hash, salt = hash_password(request.password, self.bcrypt_rounds)
        return self.users.create({
            "phone": request.phone,
            "password_hash": password_hash,
            "password_salt": salt,
            "real_name": request.realName,
            "email": request.email,
            "role": role,
        })

    def login(self, request: LoginRequest) -> Dict[str, Any]:
        """手机号 + 密码登录

        Returns:
            {"token": ..., "user": {...}}

        Raises:
            AuthenticationError: 手机号或密码错误
        """
        user = self.users.get_active_by_phone(request.phone)
        if user is None or not verify_password(request.password, user.password_hash):
            logger.warning(f"Failed login attempt for phone {request.phone}")
            raise AuthenticationError("手机号或密码错误")

        identity = Identity(
            id=user.id, phone=user.phone, role=user.role,
            real_name=user.real_name,
        )
        token = self.gate.issue_token(identity)
        self.users.touch_last_login(user.id)

        return {
            "token": token,
            "user": {
                "id": user.id,
                "phone": user.phone,
                "role": user.role,
                "realName": user.real_name,
            },
        }

    def me(self, identity: Identity) -> Dict[str, Any]:
        """当前用户信息

        Raises:
            NotFoundError: 用户不存在或已停用
        """
        user = self.users.get_active(identity.id)
        if user is None:
            raise NotFoundError("用户不存在")
        return {
            "id": user.id,
            "phone": user.phone,
            "role": user.role,
            "real_name": user.real_name,
            "email": user.email,
            "last_login": user.last_login,
            "created_at": user.created_at,
        }

    def list_users(self) -> List[Dict[str, Any]]:
        """所有用户（含已停用），不含密码信息"""
        return [
            {
                "id": u.id,
                "phone": u.phone,
                "role": u.role,
                "real_name": u.real_name,
                "email": u.email,
                "is_active": u.is_active,
                "last_login": u.last_login,
                "created_at": u.created_at,
            }
            for u in self.users.list_all()
        ]

    def reset_password(self, user_id: int, new_password: str) -> str:
        """重置用户密码

        Returns:
            被重置用户的手机号（用于审计日志）

        Raises:
            NotFoundError: 用户不存在
        """
        password_hash, salt = hash_password(new_password, self.bcrypt_rounds)
        user = self.users.update_password(user_id, password_hash, salt)
        return user.phone
