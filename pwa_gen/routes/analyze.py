from __future__ import annotations

import asyncio
from pathlib import Path

from fastapi import APIRouter, HTTPException, Request
from starlette.datastructures import UploadFile

from pwa_gen.application import get_pipeline_controller
from pwa_gen.core.schema import FileInput

router = APIRouter(tags=["analyze"])


@router.post("/analyze")
async def analyze(request: Request) -> dict:
    """Start analysis of an uploaded ZIP archive or a GitHub repository URL."""
    content_type = request.headers.get("content-type", "")
    controller = get_pipeline_controller()

    if "multipart/form-data" in content_type:
        form = await request.form()
        upload = form.get("file")
        if not isinstance(upload, UploadFile) or not upload.filename:
            raise HTTPException(status_code=400, detail="File not provided")
        try:
            archive = await upload.read()
        finally:
            await upload.close()
        job_id = await asyncio.to_thread(
            controller.start_analyze, FileInput(name=Path(upload.filename).name), "zip", archive
        )
    elif "application/json" in content_type:
        payload = await request.json()
        github_url = payload.get("github_url") if isinstance(payload, dict) else None
        if not github_url or not isinstance(github_url, str):
            raise HTTPException(status_code=400, detail="GitHub URL not provided")
        job_id = await asyncio.to_thread(controller.start_analyze, github_url.strip(), "github")
    else:
        raise HTTPException(status_code=400, detail="Unsupported content type")

    return {"job_id": job_id}
