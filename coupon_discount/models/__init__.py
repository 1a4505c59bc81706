"""
数据模型包初始化文件
"""

from .coupon import (
    Coupon,
    CouponType,
    CouponStatus,
    CouponCreate,
    CouponHistory,
    CouponHistoryCreate,
    CouponApplication,
    CouponValidity,
    AppliedCoupon,
    CouponStats
)

__all__ = [
    "Coupon",
    "CouponType",
    "CouponStatus",
    "CouponCreate",
    "CouponHistory",
    "CouponHistoryCreate",
    "CouponApplication",
    "CouponValidity",
    "AppliedCoupon",
    "CouponStats"
]
