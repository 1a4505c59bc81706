"""
数据库模型包初始化文件
"""

from .coupon_db import CouponDB, CouponHistoryDB

__all__ = [
    "CouponDB",
    "CouponHistoryDB"
]
