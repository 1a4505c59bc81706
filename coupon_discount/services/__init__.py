"""
服务包初始化文件
"""

from .coupon_validity_service import CouponValidityService
from .coupon_service import CouponService

__all__ = [
    "CouponValidityService",
    "CouponService"
]
