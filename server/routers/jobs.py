"""Job posting routes.

The listing endpoint is cached by EnvelopeCacheMiddleware (keyed on the
full URL). Single-job and posted-by-user lookups use the cache service
directly. Every write awaits invalidation of the keys it affects before
responding.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from constants import JOB_LISTING_PATTERN, JOBS_PATH
from core.cache import CacheService, CacheStatus
from core.container import container
from core.database import Database
from core.logging import get_logger
from models.database import Job, JobCreate, JobUpdate

logger = get_logger(__name__)
router = APIRouter(prefix=JOBS_PATH, tags=["jobs"])


def job_key(job_id: int) -> str:
    return f"{JOBS_PATH}/{job_id}"


def posted_jobs_key(user_id: str) -> str:
    return f"{JOBS_PATH}/posted/{user_id}"


def _serialize(jobs: List[Job]) -> List[Dict[str, Any]]:
    return [job.model_dump(mode="json") for job in jobs]


def _not_found(msg: str) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"success": False, "dataLength": 0, "msg": msg, "data": []}
    )


def _server_error(msg: str) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"success": False, "msg": msg}
    )


async def _invalidate_job(cache: CacheService, job: Job) -> None:
    """Drop every cached view a change to this job can affect."""
    await cache.invalidate_pattern(JOB_LISTING_PATTERN)
    await cache.invalidate(job_key(job.id))
    await cache.invalidate(posted_jobs_key(job.posted_by))


@router.get("")
async def fetch_jobs(
    location: Optional[str] = None,
    industry: Optional[str] = None,
    job_type: Optional[str] = None,
    experience_level: Optional[str] = None,
    salary_min: Optional[float] = None,
    salary_max: Optional[float] = None,
    keyword: Optional[str] = None,
    database: Database = Depends(lambda: container.database())
):
    """List jobs matching the query filters."""
    try:
        jobs = await database.find_jobs(
            location=location,
            industry=industry,
            job_type=job_type,
            experience_level=experience_level,
            salary_min=salary_min,
            salary_max=salary_max,
            keyword=keyword,
        )
    except Exception as e:
        logger.error("Failed to fetch jobs", error=str(e))
        return _server_error("Some error occurred while fetching jobs")

    if not jobs:
        return _not_found("No jobs found.")

    data = _serialize(jobs)
    return {
        "success": True,
        "dataLength": len(data),
        "msg": "Jobs are fetched successfully",
        "data": data,
    }


@router.get("/posted/{user_id}")
async def fetch_posted_jobs(
    user_id: str,
    database: Database = Depends(lambda: container.database()),
    cache: CacheService = Depends(lambda: container.cache())
):
    """List jobs posted by a user. Empty results are never cached."""
    async def load_posted_jobs():
        jobs = await database.find_jobs_posted_by(user_id)
        if not jobs:
            raise LookupError(f"No jobs posted by {user_id}")
        return _serialize(jobs)

    result = await cache.lookup(
        posted_jobs_key(user_id),
        load_posted_jobs,
        cache.settings.ttl_for("dynamic"),
    )

    if result.status is CacheStatus.FAILED:
        if isinstance(result.error, LookupError):
            return _not_found("No jobs found for this user")
        # Cache layer broke; answer straight from the database
        try:
            data = await load_posted_jobs()
        except LookupError:
            return _not_found("No jobs found for this user")
        except Exception as e:
            logger.error("Failed to fetch posted jobs", user_id=user_id, error=str(e))
            return _server_error("Some error occurred while fetching posted jobs")
    else:
        data = result.value

    return {
        "success": True,
        "length": len(data),
        "msg": "Posted jobs fetched successfully",
        "data": data,
    }


@router.get("/{job_id}")
async def fetch_job(
    job_id: int,
    database: Database = Depends(lambda: container.database()),
    cache: CacheService = Depends(lambda: container.cache())
):
    """Get one job by id."""
    async def load_job():
        job = await database.get_job(job_id)
        if job is None:
            raise LookupError(f"Job {job_id} not found")
        return job.model_dump(mode="json")

    result = await cache.lookup(job_key(job_id), load_job)

    if result.status is CacheStatus.FAILED:
        if isinstance(result.error, LookupError):
            return _not_found("Job not found")
        try:
            data = await load_job()
        except LookupError:
            return _not_found("Job not found")
        except Exception as e:
            logger.error("Failed to fetch job", job_id=job_id, error=str(e))
            return _server_error("Some error occurred while fetching the job")
    else:
        data = result.value

    return {"success": True, "msg": "Job fetched successfully", "data": data}


@router.post("", status_code=201)
async def create_job(
    request: JobCreate,
    database: Database = Depends(lambda: container.database()),
    cache: CacheService = Depends(lambda: container.cache())
):
    """Post a new job."""
    try:
        job = await database.create_job(request.model_dump())
    except Exception as e:
        logger.error("Failed to create job", error=str(e))
        return _server_error("Some error occurred while creating the job")

    await _invalidate_job(cache, job)
    return {"success": True, "msg": "Job created successfully", "data": job.model_dump(mode="json")}


@router.put("/{job_id}")
async def update_job(
    job_id: int,
    request: JobUpdate,
    database: Database = Depends(lambda: container.database()),
    cache: CacheService = Depends(lambda: container.cache())
):
    """Update fields of an existing job."""
    try:
        job = await database.update_job(job_id, request.model_dump(exclude_unset=True))
    except Exception as e:
        logger.error("Failed to update job", job_id=job_id, error=str(e))
        return _server_error("Some error occurred while updating the job")

    if job is None:
        return _not_found("Job not found")

    await _invalidate_job(cache, job)
    return {"success": True, "msg": "Job updated successfully", "data": job.model_dump(mode="json")}


@router.delete("/{job_id}")
async def delete_job(
    job_id: int,
    database: Database = Depends(lambda: container.database()),
    cache: CacheService = Depends(lambda: container.cache())
):
    """Delete a job."""
    try:
        job = await database.delete_job(job_id)
    except Exception as e:
        logger.error("Failed to delete job", job_id=job_id, error=str(e))
        return _server_error("Some error occurred while deleting the job")

    if job is None:
        return _not_found("Job not found")

    await _invalidate_job(cache, job)
    return {"success": True, "msg": "Job deleted successfully"}
