"""
日志配置
"""

import logging
from typing import Optional

from coupon_discount.core.config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: Optional[str] = None) -> None:
    """初始化根日志配置，未指定级别时使用配置中的log_level"""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format=LOG_FORMAT
    )
