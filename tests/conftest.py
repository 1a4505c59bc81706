"""
测试配置文件 - pytest fixtures和共用配置
"""

import pytest
import pytest_asyncio
from datetime import date, timedelta
from decimal import Decimal

from coupon_discount.core.database import DatabaseService
from coupon_discount.models.coupon import Coupon, CouponStatus, CouponType
from coupon_discount.services.coupon_service import CouponService


@pytest_asyncio.fixture
async def database(tmp_path):
    """测试数据库 - 每个测试使用独立的SQLite文件"""
    db = DatabaseService(f"sqlite+aiosqlite:///{tmp_path / 'coupons.db'}", echo=False)
    await db.create_tables()

    yield db

    await db.close()


@pytest_asyncio.fixture
async def db_session(database):
    """测试数据库会话"""
    async with database.session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest.fixture
def coupon_service(database):
    """测试优惠券服务"""
    return CouponService(database.session_maker)


@pytest.fixture
def coupon_fields():
    """创建优惠券的输入数据 - 已启用、有效期覆盖今天"""
    today = date.today()

    def _make(**overrides):
        fields = {
            "coupon_code": "SAVE10",
            "discount_type": "percentage",
            "discount_amount": 10,
            "start_date": today - timedelta(days=1),
            "end_date": today + timedelta(days=30),
            "status": 1,
        }
        fields.update(overrides)
        return fields

    return _make


@pytest.fixture
def sample_coupon():
    """示例Coupon对象"""
    today = date.today()
    return Coupon(
        id=1,
        code="PYTHON50",
        type=CouponType.FIXED,
        amount=Decimal("50.00"),
        minimum_spend=Decimal("200.00"),
        maximum_spend=Decimal("1000.00"),
        start_date=today - timedelta(days=1),
        end_date=today + timedelta(days=30),
        use_limit=100,
        total_use=10,
        status=CouponStatus.ENABLED
    )
