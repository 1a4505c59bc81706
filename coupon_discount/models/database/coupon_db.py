"""
优惠券数据库模型
"""

from sqlalchemy import Column, String, Integer, Numeric, Date, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.sql import func
from coupon_discount.core.database import Base


class CouponDB(Base):
    """优惠券数据库表"""

    __tablename__ = "coupons"

    # 主键和基本信息
    id = Column(Integer, primary_key=True, autoincrement=True, comment="优惠券ID")
    object_type = Column(String(50), nullable=False, default="product", comment="适用对象类型")
    code = Column(String(50), nullable=False, unique=True, index=True, comment="优惠券代码")
    type = Column(String(20), nullable=False, comment="优惠券类型")

    # 折扣信息
    amount = Column(Numeric(12, 2), nullable=False, comment="折扣值")
    minimum_spend = Column(Numeric(12, 2), comment="最低消费金额")
    maximum_spend = Column(Numeric(12, 2), comment="最高消费金额")

    # 有效期
    start_date = Column(Date, nullable=False, comment="有效开始日期")
    end_date = Column(Date, nullable=False, comment="有效结束日期")

    # 使用限制
    use_limit = Column(Integer, comment="总使用次数限制")
    same_ip_limit = Column(Integer, comment="同一IP使用次数限制")
    use_limit_per_user = Column(Integer, comment="单用户使用次数限制")
    use_device = Column(String(100), comment="限制使用设备")

    # 状态和统计
    status = Column(String(20), nullable=False, default="disabled", index=True, comment="优惠券状态")
    total_use = Column(Integer, nullable=False, default=0, comment="已使用次数")

    # 时间戳
    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), comment="更新时间")

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        CheckConstraint("total_use >= 0", name="ck_coupons_total_use_non_negative"),
        CheckConstraint("use_limit IS NULL OR total_use <= use_limit", name="ck_coupons_total_use_within_limit"),
        CheckConstraint("start_date <= end_date", name="ck_coupons_date_window"),
        {'comment': '优惠券信息表'}
    )


class CouponHistoryDB(Base):
    """优惠券使用记录表"""

    __tablename__ = "coupon_history"

    # 主键和关联信息
    id = Column(Integer, primary_key=True, autoincrement=True, comment="使用记录ID")
    user_id = Column(String(50), nullable=False, index=True, comment="使用用户ID")
    coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=False, index=True, comment="优惠券ID")
    order_id = Column(String(50), nullable=False, comment="关联订单ID")

    # 使用详情
    object_type = Column(String(50), nullable=False, comment="适用对象类型")
    # 两位小数的折扣值乘两位小数的订单金额再除以100，最多六位小数
    discount_amount = Column(Numeric(18, 6), nullable=False, comment="折扣金额")
    user_ip = Column(String(45), comment="使用者IP")

    # 使用时间
    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="使用时间")

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        Index("idx_coupon_history_coupon_user", "coupon_id", "user_id"),
        Index("idx_coupon_history_coupon_ip", "coupon_id", "user_ip"),
        {'comment': '优惠券使用记录表'}
    )
