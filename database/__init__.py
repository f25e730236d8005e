"""数据访问层

提供产品排期、休市日、用户与操作日志的仓库，以及统一门面 DatabaseManager。
"""
from database.manager import DatabaseManager

__all__ = ["DatabaseManager"]
