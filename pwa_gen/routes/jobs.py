from __future__ import annotations

from fastapi import APIRouter, Body

from pwa_gen.application import get_pipeline_controller
from pwa_gen.core.schema import ExportRequest, GenerateOptions

router = APIRouter(prefix="/job", tags=["job"])


@router.get("/{job_id}")
def get_job(job_id: str) -> dict:
    job = get_pipeline_controller().get_job(job_id)
    return job.model_dump(mode="json")


@router.get("/{job_id}/diagnostics")
def get_job_diagnostics(job_id: str) -> dict:
    return get_pipeline_controller().diagnose(job_id)


@router.post("/{job_id}/generate")
def generate(job_id: str, options: GenerateOptions | None = Body(default=None)) -> dict:
    job = get_pipeline_controller().start_generate(job_id, options)
    return {
        "job_id": job.id,
        "status": job.status,
        "generated": [item.model_dump(mode="json") for item in job.generated or []],
    }


@router.post("/{job_id}/validate")
def validate(job_id: str) -> dict:
    job = get_pipeline_controller().start_validate(job_id)
    return {"job_id": job.id, "status": job.status}


@router.post("/{job_id}/export")
def export(job_id: str, export_request: ExportRequest | None = Body(default=None)) -> dict:
    result = get_pipeline_controller().start_export(job_id, export_request)
    return result.model_dump(mode="json")


@router.post("/{job_id}/rerun")
def rerun(job_id: str) -> dict:
    new_job_id = get_pipeline_controller().rerun(job_id)
    return {"job_id": job_id, "new_job_id": new_job_id}
