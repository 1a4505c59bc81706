"""
优惠券管理模块
"""

__version__ = "1.0.0"
