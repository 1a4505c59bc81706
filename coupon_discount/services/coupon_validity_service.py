"""
优惠券有效性校验服务
按固定顺序执行业务规则，第一条不满足的规则决定拒绝原因
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from coupon_discount.core.exceptions import (
    CouponNotFoundError,
    CouponRejectedError,
    CouponValidationError,
    RejectionReason,
)
from coupon_discount.models.coupon import Coupon, CouponValidity
from coupon_discount.repositories.coupon_repository import CouponRepository

logger = logging.getLogger(__name__)


class CouponValidityService:
    """优惠券有效性校验（只读，不开启事务）"""

    def __init__(self, coupon_repo: CouponRepository):
        self.coupon_repo = coupon_repo

    async def evaluate(
        self,
        coupon_id: int,
        amount: Decimal,
        user_id: str,
        device_name: Optional[str] = None,
        ip_address: Optional[str] = None,
        today: Optional[date] = None
    ) -> CouponValidity:
        """校验优惠券能否用于本次订单，通过时返回折扣信息"""
        amount = self._check_input(coupon_id, amount, user_id)
        user_id = str(user_id)

        db_coupon = await self.coupon_repo.get_by_id(coupon_id)
        if not db_coupon:
            raise CouponNotFoundError("优惠券不存在")
        coupon = self.coupon_repo.to_model(db_coupon)

        # 1. 状态
        if not coupon.is_enabled():
            self._reject(coupon, RejectionReason.COUPON_DISABLED, "优惠券已停用")

        # 2. 有效期
        today = today or date.today()
        if not coupon.is_within_date_window(today):
            if today < coupon.start_date:
                self._reject(coupon, RejectionReason.OUTSIDE_DATE_WINDOW, "优惠券尚未开始使用")
            self._reject(coupon, RejectionReason.OUTSIDE_DATE_WINDOW, "优惠券已过期")

        # 3. 消费金额区间
        if not coupon.is_within_spend_bounds(amount):
            if coupon.minimum_spend is not None and amount < coupon.minimum_spend:
                message = f"订单金额不满足最低要求 {coupon.minimum_spend} 元"
            else:
                message = f"订单金额超过最高限制 {coupon.maximum_spend} 元"
            self._reject(coupon, RejectionReason.SPEND_OUT_OF_BOUNDS, message)

        # 4. 总使用次数
        if not coupon.has_remaining_uses():
            self._reject(coupon, RejectionReason.USE_LIMIT_REACHED, "优惠券使用次数已达上限")

        # 5. 单用户使用次数
        if coupon.use_limit_per_user is not None:
            user_used_count = await self.coupon_repo.get_user_usage_count(coupon.id, user_id)
            if user_used_count >= coupon.use_limit_per_user:
                self._reject(coupon, RejectionReason.USER_LIMIT_REACHED, "您已达到该优惠券的使用上限")

        # 6. 同一IP使用次数
        if coupon.same_ip_limit is not None and ip_address:
            ip_used_count = await self.coupon_repo.get_ip_usage_count(coupon.id, ip_address)
            if ip_used_count >= coupon.same_ip_limit:
                self._reject(coupon, RejectionReason.IP_LIMIT_REACHED, "该IP使用优惠券次数已达上限")

        # 7. 设备限制
        if not coupon.allows_device(device_name):
            self._reject(coupon, RejectionReason.DEVICE_MISMATCH, f"优惠券仅限 {coupon.use_device} 设备使用")

        return CouponValidity(
            coupon_id=coupon.id,
            code=coupon.code,
            coupon_type=coupon.type,
            coupon_amount=coupon.amount,
            object_type=coupon.object_type,
            order_amount=amount,
            discount_amount=coupon.calculate_discount(amount)
        )

    @staticmethod
    def _check_input(coupon_id, amount, user_id) -> Decimal:
        """规则校验前的输入检查"""
        if not isinstance(coupon_id, int) or isinstance(coupon_id, bool):
            raise CouponValidationError("优惠券ID必须是整数", field="coupon_id")
        if user_id is None or str(user_id).strip() == "":
            raise CouponValidationError("用户ID不能为空", field="user_id")
        if amount is None or isinstance(amount, bool):
            raise CouponValidationError("订单金额不能为空", field="amount")
        try:
            amount = Decimal(str(amount))
        except ArithmeticError:
            raise CouponValidationError("订单金额格式错误", field="amount")
        if not amount.is_finite() or amount < 0:
            raise CouponValidationError("订单金额必须是非负数", field="amount")
        try:
            if amount != amount.quantize(Decimal("0.01")):
                raise CouponValidationError("订单金额最多保留两位小数", field="amount")
        except ArithmeticError:
            raise CouponValidationError("订单金额超出范围", field="amount")
        return amount

    @staticmethod
    def _reject(coupon: Coupon, reason: RejectionReason, message: str) -> None:
        logger.warning(f"优惠券校验未通过: code={coupon.code}, reason={reason.value}")
        raise CouponRejectedError(reason, message)
