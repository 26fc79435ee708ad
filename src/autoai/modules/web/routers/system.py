"""
系统 API：控制方式、决策服务连通性、性能统计
"""
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ....core.constants import ControlMode
from ....core.logger import logger
from ...decision.service import DecisionServiceError
from ..deps import get_container


router = APIRouter(prefix="/api/system", tags=["system"])


class ControlModeUpdate(BaseModel):
    control_mode: Literal["gesture", "shell"]


def _control_payload(container) -> dict:
    bundle = container.router.resolve()
    return {
        "control_mode": bundle.mode.value,
        "label": bundle.mode.label,
        "ready": bundle.ready,
        "backends": container.router.statuses(),
        "connections": {
            "shell": container.shell.status.current.to_dict(),
            "gesture": container.bridge.status.current.to_dict(),
        },
    }


@router.get("/control")
async def get_control(container=Depends(get_container)):
    return _control_payload(container)


@router.put("/control")
async def update_control(body: ControlModeUpdate, container=Depends(get_container)):
    if container.manager.is_busy():
        raise HTTPException(status_code=409, detail="任务执行中，无法切换控制方式")
    mode = container.preferences.set_mode(ControlMode(body.control_mode))
    logger.info(f"[API] 控制方式已更新: {mode.value}")
    return _control_payload(container)


@router.post("/decision/test")
async def test_decision_service(container=Depends(get_container)):
    try:
        diagnostics = await container.decision_service.test_connection()
    except DecisionServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return diagnostics.to_dict()


@router.get("/perf")
async def get_perf_stats(container=Depends(get_container)):
    monitor = container.monitor
    return {
        "stats": {tag: item.to_dict() for tag, item in monitor.all_stats().items()},
        "report": monitor.report(),
    }


@router.delete("/perf")
async def clear_perf_stats(container=Depends(get_container)):
    container.monitor.clear()
    return {"ok": True}
