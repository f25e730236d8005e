"""数据库连接与基础设施管理。

本模块负责数据库的底层基础设施，包括：
- 数据库引擎创建（有界连接池 + 获取连接超时）
- 会话（Session）与事务管理
- 数据库表创建

连接对象在进程启动时构造、注入各仓库，在退出时释放；
不存在模块级的全局连接池。本模块不包含任何业务逻辑。
"""
import os
from contextlib import contextmanager
from typing import Iterator, Optional
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from loguru import logger

from .models import Base
from config.settings import settings


class DatabaseConnection:
    """数据库连接管理器。

    负责数据库引擎的创建和会话管理。连接池大小固定（不允许溢出），
    池满时最多阻塞等待 pool_timeout 秒，超时抛出 sqlalchemy.exc.TimeoutError。

    Attributes:
        database_url: 数据库连接URL。
        engine: SQLAlchemy引擎对象。
        SessionLocal: 会话工厂。

    Example:
        ```python
        conn = DatabaseConnection("sqlite:///data/fund_calendar.db")

        with conn.transaction() as session:
            session.add(obj)
        ```
    """

    def __init__(self, database_url: Optional[str] = None,
                 pool_size: Optional[int] = None,
                 pool_timeout: Optional[int] = None) -> None:
        """初始化数据库连接。

        Args:
            database_url: 数据库连接URL，如果为None则使用settings中的配置。
            pool_size: 连接池大小，默认 settings.db_pool_size。
            pool_timeout: 获取连接的超时秒数，默认 settings.db_pool_timeout。
        """
        self.database_url: str = database_url or settings.database_url
        self.pool_size: int = pool_size or settings.db_pool_size
        self.pool_timeout: int = pool_timeout or settings.db_pool_timeout

        if self.database_url in ("sqlite://", "sqlite:///:memory:"):
            # 内存库只能共享同一个连接
            self.engine = create_engine(
                self.database_url,
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            connect_args = {}
            if self.database_url.startswith("sqlite"):
                connect_args = {"check_same_thread": False}
                self._ensure_sqlite_dir()
            self.engine = create_engine(
                self.database_url,
                echo=False,
                connect_args=connect_args,
                pool_size=self.pool_size,
                max_overflow=0,
                pool_timeout=self.pool_timeout,
                pool_pre_ping=True,
            )
        self.SessionLocal = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False,
            expire_on_commit=False
        )

    def _ensure_sqlite_dir(self) -> None:
        """SQLite 文件所在目录不存在时自动创建。"""
        db_file = make_url(self.database_url).database
        if db_file:
            directory = os.path.dirname(os.path.abspath(db_file))
            os.makedirs(directory, exist_ok=True)

    def create_tables(self) -> None:
        """创建所有数据库表（幂等操作）。"""
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        """获取数据库会话。"""
        return self.SessionLocal()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """在单个事务中执行一组操作。

        正常退出时提交；发生任何异常时回滚并继续抛出。

        Yields:
            绑定到该事务的会话。
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ping(self) -> bool:
        """检查数据库是否可连接。"""
        try:
            with self.engine.connect():
                return True
        except Exception as e:
            logger.warning(f"数据库连接检查失败: {e}")
            return False

    def close(self) -> None:
        """关闭数据库连接，释放引擎资源。

        释放连接池中的所有连接。调用后不应再使用此连接实例。
        """
        if self.engine is not None:
            self.engine.dispose()
