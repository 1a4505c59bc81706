"""
优惠券数据库表创建脚本
"""

import argparse
import asyncio
import logging
import sys
from datetime import date, timedelta
from pathlib import Path

# 添加项目根目录到Python路径
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import text
from coupon_discount.core.database import DatabaseService
from coupon_discount.core.exceptions import CouponValidationError
from coupon_discount.core.log_config import setup_logging
from coupon_discount.services.coupon_service import CouponService

logger = logging.getLogger(__name__)


INDEXES = [
    # 优惠券表索引
    "CREATE INDEX IF NOT EXISTS idx_coupons_status_window ON coupons(status, start_date, end_date);",

    # 使用记录索引
    "CREATE INDEX IF NOT EXISTS idx_coupon_history_user_time ON coupon_history(user_id, created_at);",
]


async def create_indexes(database: DatabaseService) -> None:
    """创建额外的索引"""
    async with database.engine.begin() as conn:
        for index_sql in INDEXES:
            await conn.execute(text(index_sql))
    logger.info("所有索引创建成功")


async def insert_sample_coupons(database: DatabaseService) -> None:
    """插入示例优惠券数据"""
    service = CouponService(database.session_maker)
    today = date.today()

    sample_coupons = [
        {
            "coupon_code": "WELCOME100",
            "discount_type": "fixed",
            "discount_amount": 100,
            "minimum_spend": 500,
            "start_date": today,
            "end_date": today + timedelta(days=30),
            "use_limit": 1000,
            "user_limit": 1,
            "status": 1
        },
        {
            "coupon_code": "SPRING20",
            "discount_type": "percentage",
            "discount_amount": 20,
            "minimum_spend": 800,
            "maximum_spend": 5000,
            "start_date": today,
            "end_date": today + timedelta(days=60),
            "use_limit": 500,
            "user_limit": 2,
            "use_same_ip_limit": 5,
            "status": 1
        }
    ]

    for fields in sample_coupons:
        try:
            coupon = await service.add_coupon(fields)
            logger.info(f"插入优惠券: {coupon.code}")
        except CouponValidationError as e:
            logger.info(f"优惠券未插入: {fields['coupon_code']} ({e.message})")


async def main(drop: bool = False, with_samples: bool = False) -> None:
    """主函数"""
    setup_logging()
    database = DatabaseService()
    logger.info("开始创建优惠券数据库表...")

    try:
        if drop:
            await database.drop_tables()

        await database.create_tables()
        await create_indexes(database)

        if with_samples:
            await insert_sample_coupons(database)

        logger.info("优惠券数据库初始化完成")
    finally:
        await database.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="创建优惠券数据表")
    parser.add_argument("--drop", action="store_true", help="创建前先删除已有数据表")
    parser.add_argument("--sample", action="store_true", help="插入示例优惠券")
    args = parser.parse_args()

    asyncio.run(main(drop=args.drop, with_samples=args.sample))
