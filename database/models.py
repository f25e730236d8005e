"""SQLAlchemy ORM 模型定义。

本模块定义了所有数据库表的ORM模型，包括：
- 用户（手机号登录，区分普通用户与管理员）
- 产品及其开放日规则、预约期规则
- 休市日
- 用户操作日志

所有业务记录都使用 is_active 做软删除，不做物理删除。
"""
from typing import List, Optional
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Date, DateTime, ForeignKey
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import relationship
from datetime import datetime, date

# SQLAlchemy declarative base，所有模型都继承自此类
Base = declarative_base()

# 允许使用旧式类型注解（兼容 SQLAlchemy 2.0）
Base.__allow_unmapped__ = True


class User(Base):
    """用户表模型。

    Attributes:
        id: 主键，自增整数。
        phone: 手机号，登录账号；在激活用户中唯一（由仓库层校验）。
        password_hash: bcrypt 密码哈希。
        password_salt: 生成哈希时使用的盐值。
        role: 角色，可选值：user / admin，默认 user。
        real_name: 真实姓名，可选。
        email: 邮箱，可选。
        is_active: 是否激活，软删除标记。
        last_login: 最后登录时间。
        created_at: 创建时间。
        updated_at: 更新时间。
    """
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    phone: str = Column(String(20), nullable=False, index=True)
    password_hash: str = Column(String(255), nullable=False)
    password_salt: str = Column(String(255), nullable=False)
    role: str = Column(String(20), default="user")  # user / admin
    real_name: Optional[str] = Column(String(50))
    email: Optional[str] = Column(String(100))
    is_active: bool = Column(Boolean, default=True)
    last_login: Optional[datetime] = Column(DateTime)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class Product(Base):
    """私募产品表模型。

    产品以 product_code 作为业务主键，拥有开放日规则和预约期规则。
    重新保存同一代码的产品时，旧规则整体被新规则替换。

    Relationships:
        open_dates: 开放日规则列表。
        reservation_periods: 预约期规则列表。
    """
    __tablename__ = "products"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    product_code: str = Column(String(50), nullable=False, index=True)
    product_name: str = Column(String(200), nullable=False)
    description: Optional[str] = Column(Text)
    is_active: bool = Column(Boolean, default=True)
    created_by: Optional[int] = Column(Integer, ForeignKey("users.id"))
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    open_dates: List["ProductOpenDate"] = relationship(
        "ProductOpenDate", back_populates="product",
        cascade="all, delete-orphan"
    )
    reservation_periods: List["ProductReservationPeriod"] = relationship(
        "ProductReservationPeriod", back_populates="product",
        cascade="all, delete-orphan"
    )


class ProductOpenDate(Base):
    """产品开放日规则。

    Attributes:
        open_type: 开放类型：both（申赎）/ subscribe（申购）/ redeem（赎回）。
        open_date: 开放日。
        period_start_days: 预约期开始偏移天数（非负）。
        period_end_days: 预约期结束偏移天数（非负）。
    """
    __tablename__ = "product_open_dates"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    product_id: int = Column(Integer, ForeignKey("products.id"), nullable=False)
    open_type: str = Column(String(20), nullable=False)
    open_date: date = Column(Date, nullable=False, index=True)
    period_start_days: int = Column(Integer, default=0)
    period_end_days: int = Column(Integer, default=0)
    is_active: bool = Column(Boolean, default=True)
    created_by: Optional[int] = Column(Integer, ForeignKey("users.id"))
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    product: "Product" = relationship("Product", back_populates="open_dates")


class ProductReservationPeriod(Base):
    """产品预约期规则。

    与开放日规则之间没有外键，按 (product_id, open_type) 在查询时松散关联。
    """
    __tablename__ = "product_reservation_periods"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    product_id: int = Column(Integer, ForeignKey("products.id"), nullable=False)
    open_type: str = Column(String(20), nullable=False)
    period_start_date: date = Column(Date, nullable=False, index=True)
    period_end_date: date = Column(Date, nullable=False)
    is_active: bool = Column(Boolean, default=True)
    created_by: Optional[int] = Column(Integer, ForeignKey("users.id"))
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    product: "Product" = relationship(
        "Product", back_populates="reservation_periods"
    )


class Holiday(Base):
    """休市日表模型。

    Attributes:
        holiday_date: 休市日期；在激活记录中唯一（由仓库层校验）。
        holiday_name: 名称（如：元旦、国庆节）。
        holiday_type: 类型：weekend / national / other。
    """
    __tablename__ = "holidays"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    holiday_date: date = Column(Date, nullable=False, index=True)
    holiday_name: str = Column(String(100), nullable=False)
    holiday_type: str = Column(String(20), nullable=False)
    is_active: bool = Column(Boolean, default=True)
    created_by: Optional[int] = Column(Integer, ForeignKey("users.id"))
    created_at: datetime = Column(DateTime, default=datetime.utcnow)


class OperationLog(Base):
    """用户操作日志表模型（审计用）。"""
    __tablename__ = "user_operation_logs"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    user_id: Optional[int] = Column(Integer, ForeignKey("users.id"))
    operation_type: str = Column(String(50), nullable=False)
    operation_detail: Optional[str] = Column(Text)
    ip_address: Optional[str] = Column(String(45))
    user_agent: Optional[str] = Column(String(500))
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
