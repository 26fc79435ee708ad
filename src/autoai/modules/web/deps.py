"""
路由依赖
"""
from fastapi import HTTPException, Request


def get_container(request: Request):
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(status_code=503, detail="服务尚未初始化")
    return container
