"""实体仓库：用户与休市日的数据访问层。

每个仓库继承 BaseCRUD 获得通用能力，并添加领域特定的查询方法。
所有读取路径都经过 active_query()，只返回未被软删除的记录。
"""
from calendar import monthrange
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session
from loguru import logger

from business.errors import ConflictError, NotFoundError
from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .models import Holiday, User


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """返回指定年月的第一天和最后一天。"""
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


class UserRepository(BaseCRUD):
    """用户仓库。

    手机号在激活用户中唯一。密码哈希由调用方生成，本仓库只负责存取。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def get_active_by_phone(self, phone: str,
                            session: Optional[Session] = None
                            ) -> Optional[User]:
        """按手机号查找激活用户。"""
        def _query(sess):
            return self.active_query(sess, User).filter(
                User.phone == phone
            ).first()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def get_active(self, user_id: int) -> Optional[User]:
        """按 ID 查找激活用户。"""
        return self.get_by_id(User, user_id)

    def create(self, data: Dict[str, Any]) -> int:
        """创建用户。

        Args:
            data: 用户数据字典，支持以下键：
                - phone: 手机号（必填）
                - password_hash / password_salt: 密码哈希与盐值（必填）
                - role: 角色（可选，默认 user）
                - real_name / email: 可选

        Returns:
            新用户ID。

        Raises:
            ConflictError: 手机号已被激活用户占用。
        """
        with self.conn.transaction() as session:
            if self.get_active_by_phone(data["phone"], session=session):
                raise ConflictError("手机号已注册")

            user = User(
                phone=data["phone"],
                password_hash=data["password_hash"],
                password_salt=data["password_salt"],
                role=data.get("role", "user"),
                real_name=data.get("real_name"),
                email=data.get("email"),
            )
            session.add(user)
            session.flush()
            user_id = user.id

        logger.info(f"User created: id={user_id}, role={data.get('role', 'user')}")
        return user_id

    def touch_last_login(self, user_id: int) -> None:
        """刷新最后登录时间。"""
        with self.conn.transaction() as session:
            user = session.query(User).filter(User.id == user_id).first()
            if user:
                user.last_login = datetime.utcnow()

    def list_all(self) -> List[User]:
        """获取所有用户（含已停用），按创建时间倒序。"""
        with self._get_session() as session:
            return session.query(User).order_by(
                User.created_at.desc(), User.id.desc()
            ).all()

    def update_password(self, user_id: int, password_hash: str,
                        password_salt: str) -> User:
        """更新密码哈希。

        Raises:
            NotFoundError: 用户不存在。
        """
        user = self.update_by_id(
            User, user_id,
            password_hash=password_hash, password_salt=password_salt
        )
        if user is None:
            raise NotFoundError("用户不存在")
        logger.info(f"Password reset for user id={user_id}")
        return user


class HolidayRepository(BaseCRUD):
    """休市日仓库。

    同一日期最多只有一条激活的休市日记录。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def list_by_year(self, year: int) -> List[Holiday]:
        """获取指定年份的激活休市日，按日期排序。"""
        with self._get_session() as session:
            return self.active_query(session, Holiday).filter(
                Holiday.holiday_date >= date(year, 1, 1),
                Holiday.holiday_date <= date(year, 12, 31),
            ).order_by(Holiday.holiday_date, Holiday.id).all()

    def list_by_month(self, year: int, month: int) -> List[Holiday]:
        """获取指定年月的激活休市日，按读取顺序（日期、ID）返回。"""
        first_day, last_day = month_bounds(year, month)
        with self._get_session() as session:
            return self.active_query(session, Holiday).filter(
                Holiday.holiday_date >= first_day,
                Holiday.holiday_date <= last_day,
            ).order_by(Holiday.holiday_date, Holiday.id).all()

    def create(self, data: Dict[str, Any],
               created_by: Optional[int] = None) -> int:
        """添加休市日。

        Args:
            data: 休市日数据，包含 holiday_date / holiday_name / holiday_type。
            created_by: 创建人用户ID。

        Returns:
            新休市日ID。

        Raises:
            ConflictError: 该日期已有激活的休市日。
        """
        holiday_date = data["holiday_date"]
        with self.conn.transaction() as session:
            existing = self.active_query(session, Holiday).filter(
                Holiday.holiday_date == holiday_date
            ).first()
            if existing:
                raise ConflictError("该日期已有休市日记录")

            holiday = Holiday(
                holiday_date=holiday_date,
                holiday_name=data["holiday_name"],
                holiday_type=data["holiday_type"],
                created_by=created_by,
            )
            session.add(holiday)
            session.flush()
            holiday_id = holiday.id

        logger.info(f"Holiday created: {holiday_date} (id={holiday_id})")
        return holiday_id

    def soft_delete(self, holiday_id: int) -> Holiday:
        """软删除休市日。

        Returns:
            被停用的休市日对象（用于审计日志）。

        Raises:
            NotFoundError: 休市日不存在。
        """
        holiday = self.soft_delete_by_id(Holiday, holiday_id)
        if holiday is None:
            raise NotFoundError("休市日不存在")
        logger.info(f"Holiday deactivated: id={holiday_id}")
        return holiday
