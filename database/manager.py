"""数据库管理器：统一门面（Facade）。

DatabaseManager 是 database 模块的统一入口，组合了所有子仓库：

- ``db.users``：用户
- ``db.holidays``：休市日
- ``db.products``：产品与开放日/预约期规则
- ``db.operation_logs``：操作日志

进程启动时构造一次，退出时调用 close() 释放连接池。
"""
from typing import Optional

from sqlalchemy.orm import Session

from .connection import DatabaseConnection
from .entity_repos import HolidayRepository, UserRepository
from .schedule_repos import ProductScheduleRepository
from .system_repos import OperationLogRepository


class DatabaseManager:
    """数据库管理器（统一门面）。

    Attributes:
        conn: 数据库连接管理器。
        users: 用户仓库。
        holidays: 休市日仓库。
        products: 产品排期仓库。
        operation_logs: 操作日志仓库。

    Example::

        db = DatabaseManager("sqlite:///data/fund_calendar.db")
        db.create_tables()
        holidays = db.holidays.list_by_year(2024)
    """

    def __init__(self, database_url: Optional[str] = None,
                 pool_size: Optional[int] = None,
                 pool_timeout: Optional[int] = None) -> None:
        """初始化数据库管理器。

        Args:
            database_url: 数据库连接URL。如果为None则使用settings配置。
            pool_size: 连接池大小（可选）。
            pool_timeout: 获取连接的超时秒数（可选）。
        """
        self.conn = DatabaseConnection(database_url, pool_size, pool_timeout)

        self.users = UserRepository(self.conn)
        self.holidays = HolidayRepository(self.conn)
        self.products = ProductScheduleRepository(self.conn)
        self.operation_logs = OperationLogRepository(self.conn)

    def create_tables(self) -> None:
        """创建所有数据库表（幂等操作）。"""
        self.conn.create_tables()

    def get_session(self) -> Session:
        """获取数据库会话。"""
        return self.conn.get_session()

    @property
    def database_url(self) -> str:
        """数据库连接URL。"""
        return self.conn.database_url

    @property
    def engine(self):
        """SQLAlchemy 引擎对象。"""
        return self.conn.engine

    def ping(self) -> bool:
        """数据库是否可连接。"""
        return self.conn.ping()

    def close(self) -> None:
        """关闭数据库连接，释放所有资源。"""
        self.conn.close()
