"""系统数据仓库：操作日志的数据访问层。

记录用户的注册、登录、产品维护、休市日维护等操作，用于审计追溯。
"""
from typing import Any, Dict, List, Optional

from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .models import OperationLog


class OperationLogRepository(BaseCRUD):
    """操作日志仓库。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def save(self, log_data: Dict[str, Any]) -> int:
        """保存一条操作日志。

        Args:
            log_data: 日志数据字典，支持以下键：
                - user_id: 操作人ID（匿名操作为 None）
                - operation_type: 操作类型（必填）
                - operation_detail: 操作详情
                - ip_address: 来源地址
                - user_agent: 客户端标识

        Returns:
            日志记录ID。
        """
        with self.conn.transaction() as session:
            log = OperationLog(
                user_id=log_data.get("user_id"),
                operation_type=log_data["operation_type"],
                operation_detail=log_data.get("operation_detail", ""),
                ip_address=log_data.get("ip_address"),
                user_agent=log_data.get("user_agent"),
            )
            session.add(log)
            session.flush()
            return log.id

    def get_recent(self, user_id: Optional[int] = None,
                   limit: int = 50) -> List[OperationLog]:
        """获取最近的操作日志（可按用户过滤），按时间倒序。"""
        with self._get_session() as session:
            query = session.query(OperationLog)
            if user_id is not None:
                query = query.filter(OperationLog.user_id == user_id)
            return query.order_by(
                OperationLog.created_at.desc(), OperationLog.id.desc()
            ).limit(limit).all()
