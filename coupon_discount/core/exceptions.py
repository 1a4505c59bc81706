"""
优惠券业务异常定义
"""

from enum import Enum
from typing import Optional


class RejectionReason(str, Enum):
    """优惠券拒绝原因（每条业务规则对应一个）"""
    COUPON_DISABLED = "coupon_disabled"  # 优惠券未启用
    OUTSIDE_DATE_WINDOW = "outside_date_window"  # 不在有效期内
    SPEND_OUT_OF_BOUNDS = "spend_out_of_bounds"  # 订单金额不满足要求
    USE_LIMIT_REACHED = "use_limit_reached"  # 总使用次数已达上限
    USER_LIMIT_REACHED = "user_limit_reached"  # 单用户使用次数已达上限
    IP_LIMIT_REACHED = "ip_limit_reached"  # 同一IP使用次数已达上限
    DEVICE_MISMATCH = "device_mismatch"  # 设备不符合要求


class CouponException(Exception):
    """优惠券业务异常基类"""

    default_code = 500

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = self.default_code if code is None else code

    def to_dict(self) -> dict:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
        }


class CouponValidationError(CouponException):
    """输入数据缺失或格式错误"""

    default_code = 400

    def __init__(self, message: str, field: Optional[str] = None, code: Optional[int] = None):
        super().__init__(message, code)
        self.field = field

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["field"] = self.field
        return data


class CouponNotFoundError(CouponException):
    """优惠券不存在"""

    default_code = 404


class CouponRejectedError(CouponException):
    """业务规则拒绝使用优惠券"""

    default_code = 422

    def __init__(self, reason: RejectionReason, message: str, code: Optional[int] = None):
        super().__init__(message, code)
        self.reason = reason

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["reason"] = self.reason.value
        return data


class CouponPersistenceError(CouponException):
    """数据库写入失败，原始异常保存在 __cause__ 中"""

    default_code = 500

    def __init__(self, message: str, code: Optional[int] = None, original_code: Optional[str] = None):
        super().__init__(message, code)
        self.original_code = original_code

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["original_code"] = self.original_code
        return data
