"""
模型混入类 (Mixins)

提供可复用的模型字段，通过多重继承添加到具体模型中。
"""

from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.orm import Mapped, mapped_column


class TimestampMixin:
    """
    时间戳混入类

    - created_at: 记录创建时间，由数据库自动设置
    - updated_at: 记录最后更新时间，每次 UPDATE 时自动刷新

    两个字段均由服务端维护，客户端传入的值会被忽略。
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
