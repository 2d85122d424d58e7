from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

InputType = Literal["zip", "github"]
JobStatus = Literal[
    "pending",
    "analyzing",
    "complete",
    "generated",
    "validating",
    "validated",
    "exported",
    "error",
]
ChangeType = Literal["new", "modified", "deleted"]
ExportType = Literal["zip", "github", "cf"]

PERFECT_SCORE = "100/100"


class FileInput(BaseModel):
    name: str


class AnalysisResult(BaseModel):
    platform: str = "PWA_Gen"
    detected_stack: str
    entry_file: str
    manifest_path: str
    sw_reg_location: str
    total_files: int
    pre_pwa_lighthouse_estimate: str
    cloudflare_optimized: bool = True
    job_id: str | None = None


class GeneratedFile(BaseModel):
    path: str
    content: str
    change_type: ChangeType


class ValidationCheck(BaseModel):
    id: str
    passed: bool
    message: str


class ValidationResult(BaseModel):
    score: str
    checklist: list[ValidationCheck] = Field(default_factory=list)
    remediation: list[str] = Field(default_factory=list)


class ExportResult(BaseModel):
    type: ExportType
    filename: str | None = None
    size_bytes: int | None = None
    content_base64: str | None = None
    repo_url: str | None = None
    branch: str | None = None
    pull_request_url: str | None = None
    project_name: str | None = None
    deploy_url: str | None = None
    exported_at: int


class JobState(BaseModel):
    id: str
    input: str | FileInput
    input_type: InputType
    status: JobStatus = "pending"
    analysis: AnalysisResult | None = None
    generated: list[GeneratedFile] | None = None
    validation: ValidationResult | None = None
    export: ExportResult | None = None
    created_at: int
    updated_at: int
    error: str | None = None
    archive_id: str | None = None


class ArchiveBlob(BaseModel):
    id: str
    name: str
    content: bytes


class GenerateOptions(BaseModel):
    name: str = "PWA_Gen - Ultimate PWA Builder"
    short_name: str = "PWA_Gen"
    theme_color: str = "#0066FF"
    background_color: str = "#FFFFFF"


class ExportRequest(BaseModel):
    type: ExportType = "zip"
    repo_url: str | None = None
    branch: str = "pwa-gen/upgrade"
    project_name: str | None = None


class User(BaseModel):
    id: str
    name: str


class ChatMessage(BaseModel):
    id: str
    chat_id: str
    user_id: str
    text: str
    ts: int


class ChatBoardState(BaseModel):
    id: str
    title: str
    messages: list[ChatMessage] = Field(default_factory=list)
