"""
Scheduler routes: inspect and reconfigure the periodic jobs, or push a job
to the Celery maintenance queue right away.
"""
from typing import Dict, Optional

from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel, Field

from auditdesk.api.deps import get_job_coordinator
from auditdesk.services.scheduler import JobCoordinator
from auditdesk.workers.tasks import JOB_TASKS

router = APIRouter()


class SchedulerRestartRequest(BaseModel):
    # job name -> cron expression; omitted jobs keep their schedule, "" disables
    config: Dict[str, Optional[str]] = Field(default_factory=dict)


@router.get("/status")
async def get_status(coordinator: JobCoordinator = Depends(get_job_coordinator)):
    return coordinator.get_status()


@router.post("/restart")
async def restart(
    data: Optional[SchedulerRestartRequest] = None,
    coordinator: JobCoordinator = Depends(get_job_coordinator),
):
    coordinator.restart_jobs(data.config if data else None)
    return coordinator.get_status()


@router.post("/start")
async def start(coordinator: JobCoordinator = Depends(get_job_coordinator)):
    coordinator.initialize_jobs()
    return coordinator.get_status()


@router.post("/stop")
async def stop(coordinator: JobCoordinator = Depends(get_job_coordinator)):
    coordinator.stop()
    return coordinator.get_status()


@router.post("/jobs/{job_name}/run")
async def run_job_now(job_name: str):
    task = JOB_TASKS.get(job_name)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Unknown job: {job_name}")
    result = task.delay()
    return {"job": job_name, "task_id": result.id, "status": "queued"}
