"""
优惠券相关数据模型
"""

from decimal import Decimal
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from enum import Enum


class CouponType(str, Enum):
    """优惠券类型枚举"""
    FIXED = "fixed"  # 固定金额折扣券
    PERCENTAGE = "percentage"  # 百分比折扣券


class CouponStatus(str, Enum):
    """优惠券状态枚举"""
    ENABLED = "enabled"  # 启用
    DISABLED = "disabled"  # 停用


def _coerce_identity(v):
    """用户ID/订单ID允许传入整数"""
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return v


def _coerce_status(v):
    """兼容 0/1 形式的状态值"""
    if isinstance(v, bool) or v in (0, 1):
        return CouponStatus.ENABLED if v else CouponStatus.DISABLED
    return v


class Coupon(BaseModel):
    """优惠券基础模型"""

    id: int = Field(..., description="优惠券ID")
    object_type: str = Field(default="product", description="适用对象类型")
    code: str = Field(..., min_length=1, max_length=50, description="优惠券代码")
    type: CouponType = Field(..., description="优惠券类型")
    amount: Decimal = Field(..., ge=0, description="折扣值")
    minimum_spend: Optional[Decimal] = Field(None, ge=0, description="最低消费金额")
    maximum_spend: Optional[Decimal] = Field(None, ge=0, description="最高消费金额")
    start_date: date = Field(..., description="有效开始日期")
    end_date: date = Field(..., description="有效结束日期")
    use_limit: Optional[int] = Field(None, ge=1, description="总使用次数限制")
    same_ip_limit: Optional[int] = Field(None, ge=1, description="同一IP使用次数限制")
    use_limit_per_user: Optional[int] = Field(None, ge=1, description="单用户使用次数限制")
    use_device: Optional[str] = Field(None, description="限制使用设备")
    status: CouponStatus = Field(default=CouponStatus.DISABLED, description="优惠券状态")
    total_use: int = Field(default=0, ge=0, description="已使用次数")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_enabled(self) -> bool:
        return self.status == CouponStatus.ENABLED

    def is_within_date_window(self, today: Optional[date] = None) -> bool:
        """检查日期是否在有效期内（包含首尾两天）"""
        today = today or date.today()
        return self.start_date <= today <= self.end_date

    def is_within_spend_bounds(self, order_amount: Decimal) -> bool:
        """检查订单金额是否满足最低/最高消费要求"""
        if self.minimum_spend is not None and order_amount < self.minimum_spend:
            return False
        if self.maximum_spend is not None and order_amount > self.maximum_spend:
            return False
        return True

    def has_remaining_uses(self) -> bool:
        return self.use_limit is None or self.total_use < self.use_limit

    def allows_device(self, device_name: Optional[str]) -> bool:
        """检查设备是否满足限制，use_device 支持逗号分隔的多个设备"""
        if not self.use_device:
            return True
        if not device_name:
            return False
        allowed = {d.strip().lower() for d in self.use_device.split(",") if d.strip()}
        return device_name.strip().lower() in allowed

    def calculate_discount(self, order_amount: Decimal) -> Decimal:
        """计算具体折扣金额，不做舍入"""
        if self.type == CouponType.FIXED:
            return self.amount
        return self.amount * order_amount / Decimal("100")


class CouponCreate(BaseModel):
    """创建优惠券模型"""

    object_type: Optional[str] = Field(None, max_length=50)
    coupon_code: str = Field(..., min_length=1, max_length=50)
    discount_type: CouponType = Field(...)
    discount_amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    minimum_spend: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    maximum_spend: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    start_date: date = Field(...)
    end_date: date = Field(...)
    use_limit: Optional[int] = Field(None, ge=1)
    use_same_ip_limit: Optional[int] = Field(None, ge=1)
    user_limit: Optional[int] = Field(None, ge=1)
    use_device: Optional[str] = Field(None, max_length=100)
    status: CouponStatus = Field(default=CouponStatus.DISABLED)

    @field_validator('coupon_code')
    @classmethod
    def validate_coupon_code(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('优惠券代码不能为空')
        return v

    @field_validator('status', mode='before')
    @classmethod
    def validate_status(cls, v):
        return _coerce_status(v)

    @model_validator(mode='after')
    def validate_ranges(self):
        """验证有效期、折扣值和消费区间"""
        if self.end_date < self.start_date:
            raise ValueError('结束日期不能早于开始日期')
        if self.discount_type == CouponType.PERCENTAGE and self.discount_amount > Decimal('100'):
            raise ValueError('百分比折扣值不能超过100')
        if (
            self.minimum_spend is not None
            and self.maximum_spend is not None
            and self.maximum_spend < self.minimum_spend
        ):
            raise ValueError('最高消费金额不能低于最低消费金额')
        return self


class CouponHistory(BaseModel):
    """优惠券使用记录"""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="使用记录ID")
    user_id: str = Field(..., description="使用用户ID")
    coupon_id: int = Field(..., description="优惠券ID")
    order_id: str = Field(..., description="关联订单ID")
    object_type: str = Field(..., description="适用对象类型")
    discount_amount: Decimal = Field(..., ge=0, description="折扣金额")
    user_ip: Optional[str] = Field(None, description="使用者IP")
    created_at: Optional[datetime] = Field(None, description="使用时间")


class CouponHistoryCreate(BaseModel):
    """创建使用记录模型"""

    user_id: str = Field(..., min_length=1)
    coupon_id: int = Field(..., ge=1)
    order_id: str = Field(..., min_length=1)
    object_type: Optional[str] = Field(None, max_length=50)
    discount_amount: Decimal = Field(..., ge=0, max_digits=18, decimal_places=6)
    user_ip: Optional[str] = Field(None, max_length=45)

    @field_validator('user_id', 'order_id', mode='before')
    @classmethod
    def validate_identity(cls, v):
        return _coerce_identity(v)


class CouponApplication(BaseModel):
    """优惠券应用请求"""

    code: str = Field(..., min_length=1, description="优惠券代码")
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2, description="订单金额")
    user_id: str = Field(..., min_length=1, description="用户ID")
    order_id: str = Field(..., min_length=1, description="订单ID")
    device_name: Optional[str] = Field(None, description="设备名称")
    ip_address: Optional[str] = Field(None, max_length=45, description="IP地址")

    @field_validator('code')
    @classmethod
    def validate_code(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('优惠券代码不能为空')
        return v

    @field_validator('user_id', 'order_id', mode='before')
    @classmethod
    def validate_identity(cls, v):
        return _coerce_identity(v)


class CouponValidity(BaseModel):
    """优惠券验证通过结果"""

    coupon_id: int
    code: str
    coupon_type: CouponType
    coupon_amount: Decimal
    object_type: str
    order_amount: Decimal
    discount_amount: Decimal


class AppliedCoupon(BaseModel):
    """优惠券使用结果"""

    discount_amount: Decimal
    history: CouponHistory
    validity: CouponValidity


class CouponStats(BaseModel):
    """优惠券使用统计"""

    coupon_id: int
    code: str
    status: CouponStatus
    use_limit: Optional[int]
    total_use: int
    remaining_count: Optional[int]
    history_count: int
    total_discount: Decimal
    unique_users: int


