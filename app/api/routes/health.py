"""
健康检查接口

用于容器编排系统的存活探测，不访问数据库和模型服务。
"""

from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
async def healthcheck() -> dict:
    """返回 {"status": "ok"} 表示进程存活"""
    return {"status": "ok"}
