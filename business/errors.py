"""业务异常定义

所有可预期的失败都表示为 CalendarServiceError 的子类，
Web 层按 status_code 统一转换为 HTTP 响应：

- ValidationError      400 输入格式错误或超出范围
- AuthenticationError  401 令牌缺失/无效，或账号密码错误
- AuthorizationError   403 权限不足
- NotFoundError        404 引用的记录不存在
- ConflictError        409 唯一性冲突（手机号、休市日日期等）

未列出的异常一律视为 500，详细原因只记录在服务端日志中。
"""
from typing import Any, Dict, Optional


class CalendarServiceError(Exception):
    """业务异常基类。

    Attributes:
        message: 面向调用方的错误信息。
        status_code: 对应的 HTTP 状态码。
        details: 附加信息（仅用于日志）。
    """

    status_code: int = 500

    def __init__(self, message: str,
                 details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationError(CalendarServiceError):
    status_code = 400


class AuthenticationError(CalendarServiceError):
    status_code = 401


class AuthorizationError(CalendarServiceError):
    status_code = 403


class NotFoundError(CalendarServiceError):
    status_code = 404


class ConflictError(CalendarServiceError):
    status_code = 409
