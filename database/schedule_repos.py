"""产品排期仓库：产品、开放日规则、预约期规则的数据访问层。

产品按 product_code 做 upsert：已存在的激活产品原地更新，
并用新提交的规则整体替换旧规则（旧规则软删除，不做合并）。
替换过程在单个事务中完成，不会留下只删不插的半成品。
"""
import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from loguru import logger

from business.errors import NotFoundError
from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .entity_repos import month_bounds
from .models import (
    Product, ProductOpenDate, ProductReservationPeriod, User
)


class ProductScheduleRepository(BaseCRUD):
    """产品排期仓库。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    # ========== 查询 ==========

    def list_products(self, page: int = 1, limit: int = 20,
                      search: str = "") -> Dict[str, Any]:
        """分页获取激活产品列表。

        Args:
            page: 页码，从 1 开始。
            limit: 每页条数。
            search: 按产品代码或名称做子串匹配（可选）。

        Returns:
            ``{"products": [...], "pagination": {page, limit, total, pages}}``，
            每个产品附带 created_by_name 和 open_dates_count。
        """
        offset = (page - 1) * limit
        with self._get_session() as session:
            open_dates_count = (
                session.query(func.count(ProductOpenDate.id))
                .filter(
                    ProductOpenDate.product_id == Product.id,
                    ProductOpenDate.is_active.is_(True),
                )
                .correlate(Product)
                .scalar_subquery()
            )

            base = self.active_query(session, Product)
            if search:
                pattern = f"%{search}%"
                base = base.filter(or_(
                    Product.product_code.like(pattern),
                    Product.product_name.like(pattern),
                ))
            total = base.count()

            rows = (
                base.outerjoin(User, Product.created_by == User.id)
                .add_columns(
                    User.real_name.label("created_by_name"),
                    open_dates_count.label("open_dates_count"),
                )
                .order_by(Product.created_at.desc(), Product.id.desc())
                .limit(limit)
                .offset(offset)
                .all()
            )

            products = [
                {
                    **self._product_to_dict(product),
                    "created_by_name": created_by_name,
                    "open_dates_count": count or 0,
                }
                for product, created_by_name, count in rows
            ]

        return {
            "products": products,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit) if limit else 0,
            },
        }

    def get_detail(self, product_id: int) -> Dict[str, Any]:
        """获取产品详情（含激活的开放日与预约期规则）。

        Raises:
            NotFoundError: 产品不存在或已删除。
        """
        with self._get_session() as session:
            row = (
                self.active_query(session, Product)
                .outerjoin(User, Product.created_by == User.id)
                .add_columns(User.real_name.label("created_by_name"))
                .filter(Product.id == product_id)
                .first()
            )
            if row is None:
                raise NotFoundError("产品不存在")
            product, created_by_name = row

            open_dates = (
                self.active_query(session, ProductOpenDate)
                .filter(ProductOpenDate.product_id == product_id)
                .order_by(ProductOpenDate.open_date, ProductOpenDate.id)
                .all()
            )
            periods = (
                self.active_query(session, ProductReservationPeriod)
                .filter(ProductReservationPeriod.product_id == product_id)
                .order_by(ProductReservationPeriod.period_start_date,
                          ProductReservationPeriod.id)
                .all()
            )

            return {
                "product": {
                    **self._product_to_dict(product),
                    "created_by_name": created_by_name,
                },
                "openDates": [
                    {
                        "openType": r.open_type,
                        "openDate": r.open_date,
                        "periodStartDays": r.period_start_days,
                        "periodEndDays": r.period_end_days,
                    }
                    for r in open_dates
                ],
                "reservationPeriods": [
                    {
                        "openType": r.open_type,
                        "periodStartDate": r.period_start_date,
                        "periodEndDate": r.period_end_date,
                    }
                    for r in periods
                ],
            }

    def fetch_month_rules(self, year: int, month: int
                          ) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        """获取日历聚合所需的原始规则。

        返回两个列表，不做任何关联：

        - 开放日规则：开放日落在该月，或者所属产品在该月有预约期开始；
        - 预约期规则：上述开放日规则所属产品的全部激活预约期。

        关联条件 (product_id, open_type) 和最终的月份过滤由日历聚合器在内存中完成。

        Returns:
            (open_date_rows, reservation_rows)，均按日期、ID 升序。
        """
        first_day, last_day = month_bounds(year, month)

        with self._get_session() as session:
            starting_here = (
                self._active_periods(session)
                .filter(
                    ProductReservationPeriod.period_start_date >= first_day,
                    ProductReservationPeriod.period_start_date <= last_day,
                )
                .with_entities(ProductReservationPeriod.product_id)
                .distinct()
                .all()
            )
            product_ids = [pid for (pid,) in starting_here]

            in_month = ProductOpenDate.open_date.between(first_day, last_day)
            condition = (
                or_(in_month, ProductOpenDate.product_id.in_(product_ids))
                if product_ids else in_month
            )
            open_rows = (
                self.active_query(session, ProductOpenDate)
                .join(Product, Product.id == ProductOpenDate.product_id)
                .filter(Product.is_active.is_(True), condition)
                .add_columns(Product.product_code, Product.product_name)
                .order_by(ProductOpenDate.open_date, ProductOpenDate.id)
                .all()
            )

            open_date_rows = [
                {
                    "product_id": rule.product_id,
                    "product_code": code,
                    "product_name": name,
                    "open_type": rule.open_type,
                    "open_date": rule.open_date,
                    "period_start_days": rule.period_start_days,
                    "period_end_days": rule.period_end_days,
                }
                for rule, code, name in open_rows
            ]

            owners = {row["product_id"] for row in open_date_rows}
            reservation_rows = []
            if owners:
                periods = (
                    self._active_periods(session)
                    .filter(ProductReservationPeriod.product_id.in_(sorted(owners)))
                    .order_by(ProductReservationPeriod.period_start_date,
                              ProductReservationPeriod.id)
                    .all()
                )
                reservation_rows = [
                    {
                        "product_id": p.product_id,
                        "open_type": p.open_type,
                        "period_start_date": p.period_start_date,
                        "period_end_date": p.period_end_date,
                    }
                    for p in periods
                ]

        return open_date_rows, reservation_rows

    def _active_periods(self, session):
        return (
            self.active_query(session, ProductReservationPeriod)
            .join(Product, Product.id == ProductReservationPeriod.product_id)
            .filter(Product.is_active.is_(True))
        )

    # ========== 写入 ==========

    def upsert(self, data: Dict[str, Any],
               created_by: Optional[int] = None) -> Tuple[int, bool]:
        """按产品代码创建或更新产品。

        Args:
            data: 产品数据字典，支持以下键：
                - product_code: 产品代码（必填）
                - product_name: 产品名称（必填）
                - description: 描述（可选）
                - open_dates: 开放日规则列表，每项包含
                  open_type / open_date / period_start_days / period_end_days
                - reservation_periods: 预约期规则列表，每项包含
                  open_type / period_start_date / period_end_date
            created_by: 操作人用户ID。

        Returns:
            (product_id, created)。created 为 True 表示新建。
        """
        with self.conn.transaction() as session:
            product = self.active_query(session, Product).filter(
                Product.product_code == data["product_code"]
            ).first()
            created = product is None

            if created:
                product = Product(
                    product_code=data["product_code"],
                    product_name=data["product_name"],
                    description=data.get("description") or None,
                    created_by=created_by,
                )
                session.add(product)
                session.flush()
            else:
                product.product_name = data["product_name"]
                product.description = data.get("description") or None
                product.updated_at = datetime.utcnow()
                # 旧规则整体作废
                for model in (ProductOpenDate, ProductReservationPeriod):
                    self.active_query(session, model).filter(
                        model.product_id == product.id
                    ).update({model.is_active: False},
                             synchronize_session=False)

            for rule in data.get("open_dates") or []:
                session.add(ProductOpenDate(
                    product_id=product.id,
                    open_type=rule["open_type"],
                    open_date=rule["open_date"],
                    period_start_days=rule.get("period_start_days") or 0,
                    period_end_days=rule.get("period_end_days") or 0,
                    created_by=created_by,
                ))

            for period in data.get("reservation_periods") or []:
                session.add(ProductReservationPeriod(
                    product_id=product.id,
                    open_type=period["open_type"],
                    period_start_date=period["period_start_date"],
                    period_end_date=period["period_end_date"],
                    created_by=created_by,
                ))

            session.flush()
            product_id = product.id

        logger.info(
            f"Product {'created' if created else 'updated'}: "
            f"{data['product_code']} (id={product_id})"
        )
        return product_id, created

    def soft_delete(self, product_id: int) -> Product:
        """软删除产品。

        Returns:
            被停用的产品对象（用于审计日志）。

        Raises:
            NotFoundError: 产品不存在。
        """
        product = self.soft_delete_by_id(Product, product_id)
        if product is None:
            raise NotFoundError("产品不存在")
        logger.info(f"Product deactivated: id={product_id}")
        return product

    @staticmethod
    def _product_to_dict(product: Product) -> Dict[str, Any]:
        return {
            "id": product.id,
            "product_code": product.product_code,
            "product_name": product.product_name,
            "description": product.description,
            "is_active": product.is_active,
            "created_by": product.created_by,
            "created_at": product.created_at,
            "updated_at": product.updated_at,
        }
