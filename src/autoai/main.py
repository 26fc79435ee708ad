"""
主程序入口
"""
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .container import AppContainer, build_container
from .core.config import settings
from .core.logger import logger
from .modules.web import register_routers


def create_app(container: Optional[AppContainer] = None) -> FastAPI:
    app = FastAPI(
        title="AutoAI 设备自动化代理",
        description="自然语言任务驱动的设备自动化服务",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:9000",
            "http://127.0.0.1:9000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.container = container
    register_routers(app)

    @app.on_event("startup")
    async def startup():
        """应用启动事件"""
        logger.info("应用启动中...")
        if app.state.container is None:
            app.state.container = build_container(settings)
        await app.state.container.startup()
        logger.info(f"应用启动完成，监听 {settings.api_host}:{settings.api_port}")

    @app.on_event("shutdown")
    async def shutdown():
        """应用关闭事件"""
        logger.info("应用关闭中...")
        if app.state.container is not None:
            await app.state.container.shutdown()
        logger.info("应用关闭完成")

    @app.get("/health")
    async def health():
        """健康检查"""
        current = app.state.container
        return {
            "status": "healthy",
            "busy": bool(current and current.manager.is_busy()),
        }

    return app


def run() -> None:
    import uvicorn

    uvicorn.run(create_app(), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
