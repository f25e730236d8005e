"""日历聚合 - 把休市日、开放日、预约期合并为按月视图

聚合结果结构：

    {
        "year": 2024,
        "month": 6,
        "holidays": {"2024-06-10": "端午节"},
        "products": {
            "<产品代码>": {
                "name": "<产品名称>",
                "openDates": {
                    "2024-06-15": {"openType": "both", "periodStartDays": 5, "periodEndDays": 1}
                },
                "reservationPeriods": {
                    "2024-06-01_2024-06-10": {
                        "startDate": "2024-06-01", "endDate": "2024-06-10", "openType": "both"
                    }
                }
            }
        }
    }

开放日规则与预约期规则之间没有外键，只按 (product_id, open_type) 在内存中做左连接：
没有匹配预约期的开放日仍然出现。一条连接结果满足以下任一条件即计入本月：

- 开放日落在本月；
- 匹配到的预约期开始日期落在本月。

因此跨月的预约期会和它关联的开放日一起出现在同一个产品下。
本月没有任何命中规则的产品不会出现在结果中。
"""
from collections import defaultdict
from datetime import date
from typing import Any, Dict, Iterator, List, Optional, Tuple

from loguru import logger

from business.errors import ValidationError
from config.settings import settings

Row = Dict[str, Any]


class CalendarAggregator:
    """按年月聚合日历数据

    Args:
        holiday_repo: 休市日仓库，需提供 list_by_month(year, month)
        schedule_repo: 产品排期仓库，需提供 fetch_month_rules(year, month)
        min_year / max_year: 支持的年份范围（含边界），默认取自配置
    """

    def __init__(self, holiday_repo, schedule_repo,
                 min_year: Optional[int] = None,
                 max_year: Optional[int] = None):
        self.holiday_repo = holiday_repo
        self.schedule_repo = schedule_repo
        self.min_year = min_year or settings.calendar_min_year
        self.max_year = max_year or settings.calendar_max_year

    def validate(self, year: int, month: int) -> None:
        """校验年月范围，不合法时抛出 ValidationError"""
        if not (self.min_year <= year <= self.max_year) or not (1 <= month <= 12):
            raise ValidationError(
                "年月参数无效",
                details={"year": year, "month": month},
            )

    def get_month(self, year: int, month: int) -> Dict[str, Any]:
        """获取指定年月的日历数据"""
        self.validate(year, month)

        holidays = self.holiday_repo.list_by_month(year, month)
        open_rows, reservation_rows = self.schedule_repo.fetch_month_rules(
            year, month
        )

        data = {
            "year": year,
            "month": month,
            "holidays": self.merge_holidays(holidays),
            "products": self.merge_products(
                join_rules(open_rows, reservation_rows, year, month)
            ),
        }
        logger.debug(
            f"Calendar {year}-{month:02d}: {len(data['holidays'])} holidays, "
            f"{len(data['products'])} products"
        )
        return data

    @staticmethod
    def merge_holidays(holidays) -> Dict[str, str]:
        """休市日合并为 日期 -> 名称；同一日期出现多次时以最后一条为准"""
        merged = {}
        for holiday in holidays:
            merged[holiday.holiday_date.isoformat()] = holiday.holiday_name
        return merged

    @staticmethod
    def merge_products(rows) -> Dict[str, Dict[str, Any]]:
        """按产品代码分组

        开放日按日期去重，预约期按 (开始, 结束) 去重，均保留第一次出现的记录。
        """
        products: Dict[str, Dict[str, Any]] = {}
        for open_row, period in rows:
            entry = products.setdefault(open_row["product_code"], {
                "name": open_row["product_name"],
                "openDates": {},
                "reservationPeriods": {},
            })

            date_key = open_row["open_date"].isoformat()
            if date_key not in entry["openDates"]:
                entry["openDates"][date_key] = {
                    "openType": open_row["open_type"],
                    "periodStartDays": open_row["period_start_days"],
                    "periodEndDays": open_row["period_end_days"],
                }

            if period is None:
                continue
            start = period["period_start_date"].isoformat()
            end = period["period_end_date"].isoformat()
            period_key = f"{start}_{end}"
            if period_key not in entry["reservationPeriods"]:
                entry["reservationPeriods"][period_key] = {
                    "startDate": start,
                    "endDate": end,
                    "openType": open_row["open_type"],
                }
        return products


def _in_month(value: date, year: int, month: int) -> bool:
    return value.year == year and value.month == month


def join_rules(open_rows: List[Row], reservation_rows: List[Row],
               year: int, month: int) -> Iterator[Tuple[Row, Optional[Row]]]:
    """开放日与预约期按 (product_id, open_type) 左连接，并过滤出本月命中的行

    输出顺序与开放日输入顺序一致；同一开放日的多条匹配按预约期输入顺序排列。
    """
    periods_by_key = defaultdict(list)
    for period in reservation_rows:
        periods_by_key[(period["product_id"], period["open_type"])].append(period)

    for open_row in open_rows:
        open_in_month = _in_month(open_row["open_date"], year, month)
        matches = periods_by_key.get(
            (open_row["product_id"], open_row["open_type"])
        )
        if not matches:
            if open_in_month:
                yield open_row, None
            continue
        for period in matches:
            if open_in_month or _in_month(period["period_start_date"], year, month):
                yield open_row, period
