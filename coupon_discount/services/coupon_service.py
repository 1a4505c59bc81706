"""
优惠券业务服务层
提供优惠券创建、删除、使用及使用记录相关的业务逻辑处理
"""

import logging
from typing import List, Optional, Dict, Any, Type, TypeVar, Union
from datetime import date

from pydantic import BaseModel, ValidationError
from sqlalchemy import Select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from coupon_discount.core.config import settings
from coupon_discount.core.exceptions import (
    CouponNotFoundError,
    CouponPersistenceError,
    CouponRejectedError,
    CouponValidationError,
    RejectionReason,
)
from coupon_discount.models.coupon import (
    AppliedCoupon,
    Coupon,
    CouponApplication,
    CouponCreate,
    CouponHistory,
    CouponHistoryCreate,
    CouponStats,
    CouponStatus,
)
from coupon_discount.repositories.coupon_repository import CouponRepository
from coupon_discount.services.coupon_validity_service import CouponValidityService

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class CouponService:
    """优惠券业务服务

    session_maker 由调用方注入（通常来自 DatabaseService.session_maker），
    每个操作使用独立的会话，写操作各自在一个事务内完成。
    """

    def __init__(self, session_maker: async_sessionmaker, default_object_type: Optional[str] = None):
        self.session_maker = session_maker
        self.default_object_type = default_object_type or settings.default_object_type

    def list_coupons(self) -> Select:
        """返回全部优惠券的查询语句，可继续追加 where/order_by"""
        return CouponRepository.list_query()

    async def get_coupons(
        self,
        query: Optional[Select] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Coupon]:
        """执行优惠券查询，默认查询全部"""
        async with self.session_maker() as session:
            repo = CouponRepository(session)
            db_coupons = await repo.fetch(query if query is not None else self.list_coupons(), limit, offset)
            return [repo.to_model(db_coupon) for db_coupon in db_coupons]

    async def get_coupon(self, coupon_id: int) -> Coupon:
        """根据ID获取优惠券"""
        async with self.session_maker() as session:
            repo = CouponRepository(session)
            db_coupon = await repo.get_by_id(coupon_id)
            if not db_coupon:
                raise CouponNotFoundError("优惠券不存在")
            return repo.to_model(db_coupon)

    async def get_coupon_by_code(self, code: str) -> Coupon:
        """根据优惠券代码获取优惠券"""
        async with self.session_maker() as session:
            repo = CouponRepository(session)
            db_coupon = await repo.get_by_code(code)
            if not db_coupon:
                raise CouponNotFoundError("无效的优惠券代码")
            return repo.to_model(db_coupon)

    async def add_coupon(self, fields: Union[Dict[str, Any], CouponCreate]) -> Coupon:
        """创建优惠券"""
        coupon_data = self._parse(CouponCreate, fields)

        async with self.session_maker() as session:
            repo = CouponRepository(session)
            try:
                async with session.begin():
                    if await repo.get_by_code(coupon_data.coupon_code):
                        raise CouponValidationError("优惠券代码已存在", field="coupon_code")
                    db_coupon = await repo.create(coupon_data, self.default_object_type)
                    coupon = repo.to_model(db_coupon)
            except IntegrityError as e:
                logger.warning(f"创建优惠券失败，代码冲突: {coupon_data.coupon_code}")
                raise CouponValidationError("优惠券代码已存在", field="coupon_code") from e
            except SQLAlchemyError as e:
                raise self._persistence_error("创建优惠券失败", e) from e

        logger.info(f"优惠券创建成功: id={coupon.id}, code={coupon.code}")
        return coupon

    async def enable_coupon(self, coupon_id: int) -> Coupon:
        """启用优惠券"""
        return await self._set_status(coupon_id, CouponStatus.ENABLED)

    async def disable_coupon(self, coupon_id: int) -> Coupon:
        """停用优惠券"""
        return await self._set_status(coupon_id, CouponStatus.DISABLED)

    async def remove_coupon(self, coupon_id: int) -> bool:
        """删除优惠券及其全部使用记录"""
        self._check_coupon_id(coupon_id)

        async with self.session_maker() as session:
            repo = CouponRepository(session)
            try:
                async with session.begin():
                    db_coupon = await repo.get_by_id(coupon_id, for_update=True)
                    if not db_coupon:
                        raise CouponNotFoundError("无效的优惠券ID")
                    deleted_history = await repo.delete_with_history(coupon_id)
            except SQLAlchemyError as e:
                raise self._persistence_error("删除优惠券失败", e) from e

        logger.info(f"优惠券已删除: id={coupon_id}, 删除使用记录 {deleted_history} 条")
        return True

    async def apply_coupon(
        self,
        fields: Union[Dict[str, Any], CouponApplication],
        today: Optional[date] = None
    ) -> AppliedCoupon:
        """使用优惠券：校验有效性后记录使用并返回折扣金额"""
        application = self._parse(CouponApplication, fields)

        async with self.session_maker() as session:
            repo = CouponRepository(session)
            db_coupon = await repo.get_by_code(application.code)
            if not db_coupon:
                raise CouponNotFoundError("无效的优惠券代码")

            validity = await CouponValidityService(repo).evaluate(
                coupon_id=db_coupon.id,
                amount=application.amount,
                user_id=application.user_id,
                device_name=application.device_name,
                ip_address=application.ip_address,
                today=today
            )

        history = await self.add_history(
            CouponHistoryCreate(
                user_id=application.user_id,
                coupon_id=validity.coupon_id,
                order_id=application.order_id,
                object_type=validity.object_type,
                discount_amount=validity.discount_amount,
                user_ip=application.ip_address
            )
        )

        return AppliedCoupon(
            discount_amount=validity.discount_amount,
            history=history,
            validity=validity
        )

    async def add_history(self, fields: Union[Dict[str, Any], CouponHistoryCreate]) -> CouponHistory:
        """记录一次优惠券使用并将使用次数加一

        两次写入在同一事务内完成。事务内会锁定优惠券行并重新检查总使用次数，
        任一步失败整体回滚。
        """
        history_data = self._parse(CouponHistoryCreate, fields)

        async with self.session_maker() as session:
            repo = CouponRepository(session)
            try:
                async with session.begin():
                    db_coupon = await repo.get_by_id(history_data.coupon_id, for_update=True)
                    if not db_coupon:
                        raise CouponNotFoundError("无效的优惠券ID")

                    if not await repo.increment_total_use(db_coupon.id):
                        logger.warning(f"优惠券使用次数已达上限: code={db_coupon.code}")
                        raise CouponRejectedError(RejectionReason.USE_LIMIT_REACHED, "优惠券使用次数已达上限")

                    object_type = history_data.object_type or db_coupon.object_type
                    db_history = await repo.add_history(history_data, object_type)
                    history = repo.history_to_model(db_history)
            except SQLAlchemyError as e:
                raise self._persistence_error("记录优惠券使用失败", e) from e

        logger.info(
            f"优惠券使用记录成功: coupon_id={history.coupon_id}, user_id={history.user_id}, "
            f"order_id={history.order_id}, discount={history.discount_amount}"
        )
        return history

    async def get_coupon_history(self, coupon_id: int) -> List[CouponHistory]:
        """获取优惠券的全部使用记录"""
        async with self.session_maker() as session:
            repo = CouponRepository(session)
            db_history = await repo.get_history_by_coupon(coupon_id)
            return [repo.history_to_model(item) for item in db_history]

    async def get_user_coupon_history(
        self,
        user_id: str,
        limit: int = 20,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        """获取用户优惠券使用历史"""
        async with self.session_maker() as session:
            return await CouponRepository(session).get_user_history(str(user_id), limit=limit, offset=offset)

    async def get_coupon_stats(self, coupon_id: int) -> CouponStats:
        """获取优惠券统计信息"""
        async with self.session_maker() as session:
            repo = CouponRepository(session)
            db_coupon = await repo.get_by_id(coupon_id)
            if not db_coupon:
                raise CouponNotFoundError("优惠券不存在")
            coupon = repo.to_model(db_coupon)
            usage = await repo.get_usage_stats(coupon_id)

        return CouponStats(
            coupon_id=coupon.id,
            code=coupon.code,
            status=coupon.status,
            use_limit=coupon.use_limit,
            total_use=coupon.total_use,
            remaining_count=(coupon.use_limit - coupon.total_use) if coupon.use_limit is not None else None,
            history_count=usage["history_count"],
            total_discount=usage["total_discount"],
            unique_users=usage["unique_users"]
        )

    async def _set_status(self, coupon_id: int, status: CouponStatus) -> Coupon:
        self._check_coupon_id(coupon_id)

        async with self.session_maker() as session:
            repo = CouponRepository(session)
            try:
                async with session.begin():
                    if not await repo.update_status(coupon_id, status.value):
                        raise CouponNotFoundError("无效的优惠券ID")
                    coupon = repo.to_model(await repo.get_by_id(coupon_id))
            except SQLAlchemyError as e:
                raise self._persistence_error("更新优惠券状态失败", e) from e

        logger.info(f"优惠券状态已更新: id={coupon_id}, status={status.value}")
        return coupon

    @staticmethod
    def _check_coupon_id(coupon_id) -> None:
        if not isinstance(coupon_id, int) or isinstance(coupon_id, bool):
            raise CouponValidationError("优惠券ID必须是整数", field="coupon_id")

    @staticmethod
    def _parse(model_cls: Type[ModelT], fields: Union[Dict[str, Any], BaseModel]) -> ModelT:
        """将输入转换为Pydantic模型，校验失败时抛出 CouponValidationError"""
        if isinstance(fields, model_cls):
            return fields
        if isinstance(fields, BaseModel):
            fields = fields.model_dump()
        if not isinstance(fields, dict):
            raise CouponValidationError("输入数据格式错误")

        try:
            return model_cls.model_validate(fields)
        except ValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error["loc"]) or None
            message = f"{field}: {error['msg']}" if field else error["msg"]
            raise CouponValidationError(message, field=field) from e

    @staticmethod
    def _persistence_error(message: str, error: SQLAlchemyError) -> CouponPersistenceError:
        original = getattr(error, "orig", None) or error
        logger.error(f"{message}: {original}")
        return CouponPersistenceError(
            f"{message}: {original}",
            original_code=getattr(error, "code", None)
        )
