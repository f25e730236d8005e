"""请求体校验模型

使用 pydantic 校验 HTTP 请求体，字段名与前端约定的 camelCase 保持一致。
to_record() 把请求体转换为仓库层使用的 snake_case 字典。
"""
from datetime import date
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

OpenType = Literal["both", "subscribe", "redeem"]
HolidayType = Literal["weekend", "national", "other"]

PHONE_PATTERN = r"^1[3-9]\d{9}$"


class RegisterRequest(BaseModel):
    phone: str = Field(pattern=PHONE_PATTERN)
    password: str = Field(min_length=6)
    realName: Optional[str] = Field(default=None, max_length=50)
    email: Optional[EmailStr] = None


class LoginRequest(BaseModel):
    phone: str = Field(pattern=PHONE_PATTERN)
    password: str = Field(min_length=1)


class ResetPasswordRequest(BaseModel):
    newPassword: str = Field(min_length=6)


class OpenDateRule(BaseModel):
    openType: OpenType
    openDate: date
    periodStartDays: int = Field(default=0, ge=0)
    periodEndDays: int = Field(default=0, ge=0)


class ReservationPeriodRule(BaseModel):
    openType: OpenType
    periodStartDate: date
    periodEndDate: date

    @model_validator(mode="after")
    def check_range(self) -> "ReservationPeriodRule":
        if self.periodStartDate > self.periodEndDate:
            raise ValueError("预约期开始日期不能晚于结束日期")
        return self


class ProductRequest(BaseModel):
    """产品创建/更新请求（按 productCode upsert）。"""

    productCode: str = Field(min_length=1)
    productName: str = Field(min_length=1)
    description: Optional[str] = ""
    openDates: List[OpenDateRule] = Field(default_factory=list)
    reservationPeriods: List[ReservationPeriodRule] = Field(
        default_factory=list
    )

    def to_record(self) -> Dict[str, Any]:
        return {
            "product_code": self.productCode,
            "product_name": self.productName,
            "description": self.description,
            "open_dates": [
                {
                    "open_type": r.openType,
                    "open_date": r.openDate,
                    "period_start_days": r.periodStartDays,
                    "period_end_days": r.periodEndDays,
                }
                for r in self.openDates
            ],
            "reservation_periods": [
                {
                    "open_type": p.openType,
                    "period_start_date": p.periodStartDate,
                    "period_end_date": p.periodEndDate,
                }
                for p in self.reservationPeriods
            ],
        }


class HolidayRequest(BaseModel):
    holidayDate: date
    holidayName: str = Field(min_length=1)
    holidayType: HolidayType

    def to_record(self) -> Dict[str, Any]:
        return {
            "holiday_date": self.holidayDate,
            "holiday_name": self.holidayName,
            "holiday_type": self.holidayType,
        }
