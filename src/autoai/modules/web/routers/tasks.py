"""
任务 API
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ....core.logger import logger
from ...execution.errors import TaskBusyError
from ..deps import get_container


router = APIRouter(prefix="/api/tasks", tags=["tasks"])


class TaskSubmit(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    plan: Optional[List[str]] = None
    single_step: bool = False


@router.post("")
async def submit_task(body: TaskSubmit, container=Depends(get_container)):
    """提交任务；已有任务执行时返回 409"""
    manager = container.manager
    try:
        if body.single_step:
            task = await manager.execute_single_step(body.description)
        else:
            task = manager.submit(body.description, body.plan)
    except TaskBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info(f"[API] 提交任务: {task.id}")
    return {
        "task": task.to_dict(),
        "is_complex": manager.is_complex_task(body.description),
    }


@router.get("/current")
async def get_current_task(container=Depends(get_container)):
    task = container.manager.current_task
    return {"task": task.to_dict() if task else None}


@router.post("/current/pause")
async def pause_task(container=Depends(get_container)):
    task = container.manager.pause()
    if task is None:
        raise HTTPException(status_code=409, detail="没有正在执行的任务")
    return {"task": task.to_dict()}


@router.post("/current/cancel")
async def cancel_task(container=Depends(get_container)):
    task = container.manager.cancel()
    if task is None:
        raise HTTPException(status_code=409, detail="没有可取消的任务")
    return {"task": task.to_dict()}


@router.post("/current/resume")
async def resume_task(container=Depends(get_container)):
    try:
        task = await container.manager.resume()
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"task": task.to_dict()}


@router.get("/history")
async def get_task_history(container=Depends(get_container)):
    tasks = container.manager.task_history()
    return {
        "total": len(tasks),
        "tasks": [t.to_dict(include_history=False) for t in reversed(tasks)],
    }


@router.delete("/history")
async def clear_task_history(container=Depends(get_container)):
    container.manager.clear_history()
    return {"ok": True}
