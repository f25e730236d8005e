"""通用 CRUD 基类。

所有仓库继承 BaseCRUD 获得通用的会话管理与增删改查能力。
软删除过滤统一在 active_query() 中实现，新增查询时不应绕过它。
"""
from datetime import datetime
from typing import Any, Optional, Type

from sqlalchemy.orm import Query, Session

from .connection import DatabaseConnection


class BaseCRUD:
    """仓库基类。

    Attributes:
        conn: 数据库连接管理器。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        self.conn = conn

    def _get_session(self) -> Session:
        return self.conn.get_session()

    @staticmethod
    def active_query(session: Session, model: Type[Any]) -> Query:
        """返回只包含激活记录的查询。

        Args:
            session: 数据库会话。
            model: 带有 is_active 字段的模型类。
        """
        return session.query(model).filter(model.is_active.is_(True))

    def get_by_id(self, model: Type[Any], record_id: int,
                  active_only: bool = True,
                  session: Optional[Session] = None) -> Optional[Any]:
        """按主键获取记录。

        Args:
            model: 模型类。
            record_id: 主键。
            active_only: 是否只在激活记录中查找，默认 True。
            session: 外部会话（可选）。

        Returns:
            记录对象，不存在返回 None。
        """
        def _query(sess):
            query = (self.active_query(sess, model) if active_only
                     else sess.query(model))
            return query.filter(model.id == record_id).first()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def update_by_id(self, model: Type[Any], record_id: int,
                     session: Optional[Session] = None,
                     **fields: Any) -> Optional[Any]:
        """按主键更新字段。

        Returns:
            更新后的对象，不存在返回 None。
        """
        def _do(sess):
            record = sess.query(model).filter(model.id == record_id).first()
            if record is None:
                return None
            for key, value in fields.items():
                setattr(record, key, value)
            if hasattr(record, "updated_at"):
                record.updated_at = datetime.utcnow()
            sess.flush()
            return record

        if session:
            return _do(session)

        with self.conn.transaction() as sess:
            return _do(sess)

    def soft_delete_by_id(self, model: Type[Any], record_id: int,
                          session: Optional[Session] = None) -> Optional[Any]:
        """软删除记录（is_active 置为 False）。

        Returns:
            被停用的对象，不存在返回 None。
        """
        return self.update_by_id(
            model, record_id, session=session, is_active=False
        )
