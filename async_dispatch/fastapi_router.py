"""FastAPI router exposing scheduler introspection and job control."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel, Field

from async_dispatch.errors import JobNotFoundError, UnknownJobTypeError
from async_dispatch.models import JobStatus
from async_dispatch.scheduler import Scheduler


logger = logging.getLogger(__name__)


class CreateJobRequest(BaseModel):
    """Request model for creating a job."""

    name: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    priority: Optional[int] = None
    max_attempts: Optional[int] = Field(default=None, ge=1)
    run_at: Optional[datetime] = None


class CreateJobResponse(BaseModel):
    """Response model for creating a job."""

    job_id: str


class JobResponse(BaseModel):
    """Response model for job details."""

    id: str
    name: str
    payload: Dict[str, Any]
    status: str
    priority: int
    attempts: int
    max_attempts: int
    due_at: Optional[str] = None
    created_at: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    failure_reason: Optional[str] = None
    result: Any = None


def create_scheduler_router(
    scheduler: Scheduler,
    auth_token: Optional[str] = None,
) -> APIRouter:
    """
    Create FastAPI router for the scheduler.

    Args:
        scheduler: Scheduler instance to expose
        auth_token: Optional token required in the X-Async-Dispatch-Token header.
            Defaults to the scheduler config's admin_auth_token.

    Returns:
        APIRouter instance
    """
    router = APIRouter()
    if auth_token is None:
        auth_token = scheduler.config.admin_auth_token

    async def verify_auth_token(
        x_async_dispatch_token: Optional[str] = Header(None, alias="X-Async-Dispatch-Token")
    ) -> None:
        """Verify auth token if configured."""
        if auth_token:
            if not x_async_dispatch_token or x_async_dispatch_token != auth_token:
                raise HTTPException(
                    status_code=401, detail="Invalid or missing auth token"
                )

    @router.post("/jobs", response_model=CreateJobResponse)
    async def create_job(
        request: CreateJobRequest,
        _: None = Depends(verify_auth_token),
    ):
        """Create a new job."""
        try:
            job_id = scheduler.create_job(
                request.name,
                request.payload,
                priority=request.priority,
                max_attempts=request.max_attempts,
                due_at=request.run_at,
            )
        except UnknownJobTypeError as e:
            logger.warning(f"Rejected job creation: {e}")
            raise HTTPException(status_code=400, detail=str(e)) from e
        return CreateJobResponse(job_id=job_id)

    @router.get("/jobs/stats", response_model=Dict[str, int])
    async def get_queue_stats(_: None = Depends(verify_auth_token)):
        """Count of queued jobs per status."""
        return scheduler.get_queue_stats()

    @router.get("/jobs/{job_id}", response_model=JobResponse)
    async def get_job(job_id: str, _: None = Depends(verify_auth_token)):
        """Get job details by ID."""
        try:
            job = scheduler.get_job(job_id)
        except JobNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        return JobResponse(**job.to_dict())

    @router.get("/jobs", response_model=List[JobResponse])
    async def list_jobs(
        status: JobStatus = Query(JobStatus.PENDING),
        _: None = Depends(verify_auth_token),
    ):
        """List jobs with the given status."""
        return [JobResponse(**job.to_dict()) for job in scheduler.get_jobs_by_status(status)]

    @router.post("/jobs/{job_id}/cancel")
    async def cancel_job(job_id: str, _: None = Depends(verify_auth_token)):
        """Cancel a job that has not started yet."""
        try:
            scheduler.get_job(job_id)
        except JobNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        if not scheduler.cancel_job(job_id):
            raise HTTPException(status_code=409, detail=f"Job {job_id} is no longer pending")
        return {"cancelled": True, "job_id": job_id}

    return router
