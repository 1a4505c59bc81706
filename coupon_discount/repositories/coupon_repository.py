"""
优惠券数据库操作层
"""

from typing import List, Optional, Dict, Any
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update, delete, and_, desc, func, Select
from sqlalchemy.ext.asyncio import AsyncSession

from coupon_discount.models.coupon import Coupon, CouponCreate, CouponHistory, CouponHistoryCreate
from coupon_discount.models.database.coupon_db import CouponDB, CouponHistoryDB


class CouponRepository:
    """优惠券数据库操作类

    只负责数据访问，事务边界由业务服务层控制。
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def list_query() -> Select:
        """全部优惠券的查询语句，过滤条件由调用方追加"""
        return select(CouponDB).order_by(CouponDB.id)

    async def fetch(self, query: Select, limit: Optional[int] = None, offset: int = 0) -> List[CouponDB]:
        """执行优惠券查询"""
        if limit is not None:
            query = query.limit(limit)
        if offset:
            query = query.offset(offset)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_by_id(self, coupon_id: int, for_update: bool = False) -> Optional[CouponDB]:
        """根据优惠券ID获取优惠券，for_update 时对该行加锁"""
        query = select(CouponDB).where(CouponDB.id == coupon_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_code(self, code: str) -> Optional[CouponDB]:
        """根据优惠券代码获取优惠券"""
        result = await self.db.execute(
            select(CouponDB).where(CouponDB.code == code)
        )
        return result.scalar_one_or_none()

    async def create(self, coupon_data: CouponCreate, default_object_type: str = "product") -> CouponDB:
        """创建优惠券"""
        db_coupon = CouponDB(
            object_type=coupon_data.object_type or default_object_type,
            code=coupon_data.coupon_code,
            type=coupon_data.discount_type.value,
            amount=coupon_data.discount_amount,
            minimum_spend=coupon_data.minimum_spend,
            maximum_spend=coupon_data.maximum_spend,
            start_date=coupon_data.start_date,
            end_date=coupon_data.end_date,
            use_limit=coupon_data.use_limit,
            same_ip_limit=coupon_data.use_same_ip_limit,
            use_limit_per_user=coupon_data.user_limit,
            use_device=coupon_data.use_device,
            status=coupon_data.status.value,
            total_use=0
        )
        self.db.add(db_coupon)
        await self.db.flush()  # 获取生成的ID
        return db_coupon

    async def update_status(self, coupon_id: int, status: str) -> bool:
        """更新优惠券状态"""
        result = await self.db.execute(
            update(CouponDB)
            .where(CouponDB.id == coupon_id)
            .values(status=status, updated_at=datetime.now())
        )
        return result.rowcount > 0

    async def increment_total_use(self, coupon_id: int) -> bool:
        """使用次数加一

        带条件更新，已达到 use_limit 时不更新任何行并返回 False。
        """
        result = await self.db.execute(
            update(CouponDB)
            .where(
                and_(
                    CouponDB.id == coupon_id,
                    (CouponDB.use_limit.is_(None)) | (CouponDB.total_use < CouponDB.use_limit)
                )
            )
            .values(
                total_use=CouponDB.total_use + 1,
                updated_at=datetime.now()
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def add_history(self, history_data: CouponHistoryCreate, object_type: str) -> CouponHistoryDB:
        """写入使用记录"""
        db_history = CouponHistoryDB(
            user_id=history_data.user_id,
            coupon_id=history_data.coupon_id,
            order_id=history_data.order_id,
            object_type=object_type,
            discount_amount=history_data.discount_amount,
            user_ip=history_data.user_ip
        )
        self.db.add(db_history)
        await self.db.flush()
        # 返回数据库中实际保存的值
        await self.db.refresh(db_history)
        return db_history

    async def delete_with_history(self, coupon_id: int) -> int:
        """先删除使用记录再删除优惠券，返回删除的记录数"""
        history_result = await self.db.execute(
            delete(CouponHistoryDB).where(CouponHistoryDB.coupon_id == coupon_id)
        )
        await self.db.execute(
            delete(CouponDB).where(CouponDB.id == coupon_id)
        )
        return history_result.rowcount or 0

    async def get_user_usage_count(self, coupon_id: int, user_id: str) -> int:
        """获取用户对特定优惠券的使用次数"""
        result = await self.db.execute(
            select(func.count(CouponHistoryDB.id)).where(
                and_(
                    CouponHistoryDB.coupon_id == coupon_id,
                    CouponHistoryDB.user_id == user_id
                )
            )
        )
        return result.scalar() or 0

    async def get_ip_usage_count(self, coupon_id: int, user_ip: str) -> int:
        """获取同一IP对特定优惠券的使用次数"""
        result = await self.db.execute(
            select(func.count(CouponHistoryDB.id)).where(
                and_(
                    CouponHistoryDB.coupon_id == coupon_id,
                    CouponHistoryDB.user_ip == user_ip
                )
            )
        )
        return result.scalar() or 0

    async def get_history_by_coupon(self, coupon_id: int) -> List[CouponHistoryDB]:
        """获取优惠券的全部使用记录"""
        result = await self.db.execute(
            select(CouponHistoryDB)
            .where(CouponHistoryDB.coupon_id == coupon_id)
            .order_by(CouponHistoryDB.id)
        )
        return list(result.scalars().all())

    async def get_user_history(
        self,
        user_id: str,
        limit: int = 20,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        """获取用户优惠券使用历史"""
        query = select(
            CouponHistoryDB,
            CouponDB.code,
            CouponDB.type
        ).join(
            CouponDB, CouponHistoryDB.coupon_id == CouponDB.id
        ).where(
            CouponHistoryDB.user_id == user_id
        ).order_by(desc(CouponHistoryDB.id)).limit(limit).offset(offset)

        result = await self.db.execute(query)
        return [
            {
                "history_id": row.CouponHistoryDB.id,
                "coupon_id": row.CouponHistoryDB.coupon_id,
                "code": row.code,
                "type": row.type,
                "order_id": row.CouponHistoryDB.order_id,
                "object_type": row.CouponHistoryDB.object_type,
                "discount_amount": row.CouponHistoryDB.discount_amount,
                "created_at": row.CouponHistoryDB.created_at
            }
            for row in result.all()
        ]

    async def get_usage_stats(self, coupon_id: int) -> Dict[str, Any]:
        """获取优惠券使用记录的汇总数据"""
        result = await self.db.execute(
            select(
                func.count(CouponHistoryDB.id).label("history_count"),
                func.sum(CouponHistoryDB.discount_amount).label("total_discount"),
                func.count(func.distinct(CouponHistoryDB.user_id)).label("unique_users")
            ).where(CouponHistoryDB.coupon_id == coupon_id)
        )
        row = result.one()
        return {
            "history_count": row.history_count or 0,
            "total_discount": Decimal(str(row.total_discount or 0)),
            "unique_users": row.unique_users or 0
        }

    def to_model(self, db_coupon: CouponDB) -> Coupon:
        """转换为Pydantic模型"""
        return Coupon(
            id=db_coupon.id,
            object_type=db_coupon.object_type,
            code=db_coupon.code,
            type=db_coupon.type,
            amount=db_coupon.amount,
            minimum_spend=db_coupon.minimum_spend,
            maximum_spend=db_coupon.maximum_spend,
            start_date=db_coupon.start_date,
            end_date=db_coupon.end_date,
            use_limit=db_coupon.use_limit,
            same_ip_limit=db_coupon.same_ip_limit,
            use_limit_per_user=db_coupon.use_limit_per_user,
            use_device=db_coupon.use_device,
            status=db_coupon.status,
            total_use=db_coupon.total_use or 0,
            created_at=db_coupon.created_at,
            updated_at=db_coupon.updated_at
        )

    def history_to_model(self, db_history: CouponHistoryDB) -> CouponHistory:
        """使用记录转换为Pydantic模型"""
        return CouponHistory(
            id=db_history.id,
            user_id=db_history.user_id,
            coupon_id=db_history.coupon_id,
            order_id=db_history.order_id,
            object_type=db_history.object_type,
            discount_amount=db_history.discount_amount,
            user_ip=db_history.user_ip,
            created_at=db_history.created_at
        )
