"""Run API endpoints - trigger a run and read the latest report."""
from fastapi import APIRouter, Depends, HTTPException, Request

from ..schemas.run import RunReport
from ..services.scheduler import SchedulerService

router = APIRouter(prefix="/api/runs", tags=["runs"])


def get_scheduler(request: Request) -> SchedulerService:
    return request.app.state.scheduler


@router.post("", response_model=RunReport)
async def run_now(scheduler: SchedulerService = Depends(get_scheduler)):
    """Check every monitor now and return the report."""
    return await scheduler.run_now()


@router.get("/latest", response_model=RunReport)
async def latest_run(scheduler: SchedulerService = Depends(get_scheduler)):
    """Report of the most recent run."""
    if scheduler.last_report is None:
        raise HTTPException(status_code=404, detail="No run has completed yet")
    return scheduler.last_report
