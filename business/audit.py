"""操作审计日志

记录 (操作人, 操作类型, 操作详情, 来源地址, 客户端标识)。
写入失败只记录本地日志，不影响触发它的请求。
Web 层把 record() 作为后台任务在响应发出后执行。
"""
from typing import Optional

from loguru import logger


class AuditLogger:
    """尽力而为的操作日志记录器

    Args:
        log_repo: 操作日志仓库，需提供 save(log_data)
    """

    def __init__(self, log_repo):
        self.log_repo = log_repo

    def record(self, user_id: Optional[int], operation_type: str,
               detail: str = "", ip_address: Optional[str] = None,
               user_agent: Optional[str] = None) -> None:
        try:
            self.log_repo.save({
                "user_id": user_id,
                "operation_type": operation_type,
                "operation_detail": detail,
                "ip_address": ip_address,
                "user_agent": user_agent,
            })
        except Exception as e:
            logger.error(f"日志记录失败: {operation_type} ({detail}): {e}")
