from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from sqlalchemy import text
from typing import Optional
import logging

from coupon_discount.core.config import settings

logger = logging.getLogger(__name__)

# 创建基础模型类
Base = declarative_base()


class DatabaseService:
    """数据库服务类

    持有引擎和session工厂，由调用方创建并注入到业务服务中，
    不使用模块级全局连接。
    """

    def __init__(self, database_url: Optional[str] = None, echo: Optional[bool] = None):
        self.database_url = database_url or settings.database_url_computed
        self.echo = settings.db_echo if echo is None else echo
        self._engine: Optional[AsyncEngine] = None
        self._session_maker: Optional[async_sessionmaker] = None

    def init_database(self) -> None:
        """初始化数据库连接"""
        if self._engine is not None:
            return

        try:
            engine_kwargs = {
                "echo": self.echo,
                "pool_pre_ping": True,  # 连接前ping检查
            }
            if settings.is_testing and not self.database_url.startswith("sqlite"):
                engine_kwargs["poolclass"] = NullPool
            else:
                engine_kwargs["pool_recycle"] = settings.db_pool_recycle

            self._engine = create_async_engine(self.database_url, **engine_kwargs)

            # 创建异步session工厂
            self._session_maker = async_sessionmaker(
                self._engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            logger.info("数据库连接初始化成功")

        except Exception as e:
            logger.error(f"数据库连接初始化失败: {e}")
            raise

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self.init_database()
        return self._engine

    @property
    def session_maker(self) -> async_sessionmaker:
        if self._session_maker is None:
            self.init_database()
        return self._session_maker

    async def create_tables(self) -> None:
        """创建所有数据表"""
        # 导入数据库模型，确保表被注册到Base.metadata
        from coupon_discount.models.database import coupon_db  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("优惠券数据表创建成功")

    async def drop_tables(self) -> None:
        """删除所有数据表"""
        from coupon_discount.models.database import coupon_db  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("优惠券数据表已删除")

    async def close(self) -> None:
        """关闭数据库连接"""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_maker = None
            logger.info("数据库连接已关闭")

    async def health_check(self) -> dict:
        """数据库健康检查"""
        try:
            # 执行简单查询测试连接
            async with self.engine.begin() as conn:
                result = await conn.execute(text("SELECT 1"))
                row = result.fetchone()

            return {
                "status": "healthy",
                "message": "数据库连接正常",
                "test_query_result": row[0] if row else None
            }

        except Exception as e:
            logger.error(f"数据库健康检查失败: {e}")
            return {
                "status": "error",
                "message": f"数据库连接失败: {str(e)}"
            }

    def get_connection_info(self) -> dict:
        """获取数据库连接信息"""
        if self._engine is None:
            return {"status": "not_initialized"}

        url = self._engine.url
        return {
            "url": url.render_as_string(hide_password=True),
            "driver": url.drivername,
            "database": url.database,
            "host": url.host,
            "port": url.port,
            "pool_size": self._engine.pool.size() if hasattr(self._engine.pool, 'size') else None,
            "checked_out_connections": self._engine.pool.checkedout() if hasattr(self._engine.pool, 'checkedout') else None,
        }
