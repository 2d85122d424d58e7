"""Stage handlers invoked by the pipeline controller.

The controller treats every handler as opaque work: it hands over a copy of
the job record and records whatever comes back.  The defaults below keep the
demo behaviour of the service:

* ZIP uploads are inspected for ``package.json`` to guess the stack;
* GitHub URLs are accepted after a simulated API round trip;
* generation renders a manifest, a service worker, an offline page and a
  patched entry file;
* validation runs a fixed checklist instead of a Lighthouse audit;
* export packages the generated files or returns mocked deployment targets.
"""

from __future__ import annotations

import base64
import io
import json
import logging
import re
import time
import zipfile
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Protocol

from pwa_gen.core import templates
from pwa_gen.core.errors import ValidationFailure
from pwa_gen.core.schema import (
    PERFECT_SCORE,
    AnalysisResult,
    ExportRequest,
    ExportResult,
    GenerateOptions,
    GeneratedFile,
    JobState,
    ValidationCheck,
    ValidationResult,
)

logger = logging.getLogger(__name__)

GITHUB_URL_PATTERN = re.compile(
    r"^https?://github\.com/(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?(?:(?:/tree/|@)(?P<branch>[^/]+))?(?:/(?P<path>.*))?$"
)

DEFAULT_ENTRY_FILE = "src/main.tsx"


class StageHandlers(Protocol):
    def analyze(self, job: JobState, archive: bytes | None) -> AnalysisResult: ...

    def generate(self, job: JobState, options: GenerateOptions) -> list[GeneratedFile]: ...

    def validate(self, job: JobState) -> ValidationResult: ...

    def export(self, job: JobState, request: ExportRequest) -> ExportResult: ...


def parse_repo_url(url: str) -> dict[str, str | None] | None:
    match = GITHUB_URL_PATTERN.match(url.strip())
    if not match:
        return None
    return match.groupdict()


def detect_stack(package: dict[str, Any]) -> str:
    deps: dict[str, Any] = {}
    for section in ("dependencies", "devDependencies"):
        value = package.get(section)
        if isinstance(value, dict):
            deps.update(value)

    if "next" in deps:
        return "Next.js"
    if "@angular/core" in deps:
        return "Angular"
    if "svelte" in deps:
        return "SvelteKit"
    if "vue" in deps:
        return "Vue/Nuxt"
    if "vite" in deps and "react" in deps:
        return "Vite+React"
    if "react" in deps:
        return "React (CRA)"
    return "Vanilla JS"


def compute_score(checklist: list[ValidationCheck]) -> str:
    total = len(checklist)
    passed = sum(1 for item in checklist if item.passed)
    if total and passed == total:
        return PERFECT_SCORE
    if not total:
        return "0/100"
    score = (Decimal(passed) * 100 / Decimal(total)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return f"{score}/100"


def _find_file(files: list[GeneratedFile], path: str) -> GeneratedFile | None:
    for item in files:
        if item.path == path and item.change_type != "deleted":
            return item
    return None


def _read_package_json(archive: zipfile.ZipFile) -> dict[str, Any]:
    try:
        raw = archive.read("package.json")
    except KeyError:
        return {}
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValidationFailure(f"package.json is not valid JSON: {exc}") from exc
    return data if isinstance(data, dict) else {}


class DefaultStageHandlers:
    def __init__(self, *, github_delay_seconds: float = 2.0, validate_delay_seconds: float = 1.0) -> None:
        self.github_delay_seconds = github_delay_seconds
        self.validate_delay_seconds = validate_delay_seconds

    # ------------------------------------------------------------------
    # analyze
    # ------------------------------------------------------------------
    def analyze(self, job: JobState, archive: bytes | None) -> AnalysisResult:
        if job.input_type == "zip":
            return self._analyze_archive(job, archive)
        return self._analyze_github(job)

    def _analyze_archive(self, job: JobState, archive: bytes | None) -> AnalysisResult:
        if archive is None:
            raise ValidationFailure("Uploaded archive is no longer available")
        try:
            with zipfile.ZipFile(io.BytesIO(archive)) as bundle:
                total_files = len(bundle.namelist())
                package = _read_package_json(bundle)
        except zipfile.BadZipFile as exc:
            raise ValidationFailure("Uploaded file is not a valid ZIP archive") from exc

        stack = detect_stack(package)
        logger.info(f"Job {job.id}: detected {stack} across {total_files} archive entries")
        return AnalysisResult(
            detected_stack=stack,
            entry_file=DEFAULT_ENTRY_FILE,
            manifest_path=templates.MANIFEST_PATH,
            sw_reg_location=DEFAULT_ENTRY_FILE,
            total_files=total_files,
            pre_pwa_lighthouse_estimate="65/100",
            job_id=job.id,
        )

    def _analyze_github(self, job: JobState) -> AnalysisResult:
        url = job.input if isinstance(job.input, str) else job.input.name
        if parse_repo_url(url) is None:
            raise ValidationFailure(f"Not a GitHub repository URL: {url}")
        if self.github_delay_seconds > 0:
            time.sleep(self.github_delay_seconds)
        return AnalysisResult(
            detected_stack="Vite+React",
            entry_file=DEFAULT_ENTRY_FILE,
            manifest_path=templates.MANIFEST_PATH,
            sw_reg_location=DEFAULT_ENTRY_FILE,
            total_files=123,
            pre_pwa_lighthouse_estimate="70/100",
            job_id=job.id,
        )

    # ------------------------------------------------------------------
    # generate
    # ------------------------------------------------------------------
    def generate(self, job: JobState, options: GenerateOptions) -> list[GeneratedFile]:
        entry_file = job.analysis.entry_file if job.analysis else DEFAULT_ENTRY_FILE
        return [
            GeneratedFile(
                path=templates.MANIFEST_PATH,
                content=templates.render_manifest(options),
                change_type="new",
            ),
            GeneratedFile(
                path=templates.SERVICE_WORKER_PATH,
                content=templates.render_service_worker(),
                change_type="new",
            ),
            GeneratedFile(
                path=templates.OFFLINE_PAGE_PATH,
                content=templates.render_offline_page(options),
                change_type="new",
            ),
            GeneratedFile(
                path=entry_file,
                content=templates.render_entry_file(entry_file),
                change_type="modified",
            ),
        ]

    # ------------------------------------------------------------------
    # validate
    # ------------------------------------------------------------------
    def validate(self, job: JobState) -> ValidationResult:
        if self.validate_delay_seconds > 0:
            time.sleep(self.validate_delay_seconds)

        files = list(job.generated or [])
        manifest_file = _find_file(files, templates.MANIFEST_PATH)
        manifest: dict[str, Any] = {}
        if manifest_file is not None:
            try:
                loaded = json.loads(manifest_file.content)
            except json.JSONDecodeError:
                loaded = {}
            manifest = loaded if isinstance(loaded, dict) else {}

        icon_sizes = {
            str(icon.get("sizes"))
            for icon in manifest.get("icons") or []
            if isinstance(icon, dict)
        }
        entry_file = job.analysis.sw_reg_location if job.analysis else DEFAULT_ENTRY_FILE
        entry = _find_file(files, entry_file)

        results = [
            (
                "manifest",
                manifest_file is not None,
                "Web app manifest present",
                f"Add a web app manifest at {templates.MANIFEST_PATH} and link it from index.html",
            ),
            (
                "manifest-theme-color",
                bool(manifest.get("theme_color")),
                "Manifest declares a theme color",
                "Set theme_color in the web app manifest",
            ),
            (
                "manifest-icons",
                {"192x192", "512x512"} <= icon_sizes,
                "Manifest provides 192px and 512px icons",
                "Add 192x192 and 512x512 icons to the web app manifest",
            ),
            (
                "service-worker",
                _find_file(files, templates.SERVICE_WORKER_PATH) is not None,
                "Service worker present",
                f"Add a service worker at {templates.SERVICE_WORKER_PATH}",
            ),
            (
                "offline-page",
                _find_file(files, templates.OFFLINE_PAGE_PATH) is not None,
                "Offline fallback page present",
                f"Add an offline fallback page at {templates.OFFLINE_PAGE_PATH}",
            ),
            (
                "sw-registration",
                entry is not None and templates.SW_REGISTRATION_MARKER in entry.content,
                "Service worker registered from the entry file",
                f"Register the service worker from {entry_file}",
            ),
        ]

        checklist: list[ValidationCheck] = []
        remediation: list[str] = []
        for check_id, passed, message, fix in results:
            checklist.append(ValidationCheck(id=check_id, passed=passed, message=message))
            if not passed:
                remediation.append(fix)

        return ValidationResult(score=compute_score(checklist), checklist=checklist, remediation=remediation)

    # ------------------------------------------------------------------
    # export
    # ------------------------------------------------------------------
    def export(self, job: JobState, request: ExportRequest) -> ExportResult:
        exported_at = int(time.time() * 1000)
        if request.type == "zip":
            buffer = io.BytesIO()
            with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as bundle:
                for item in job.generated or []:
                    if item.change_type != "deleted":
                        bundle.writestr(item.path, item.content)
            payload = buffer.getvalue()
            return ExportResult(
                type="zip",
                filename=f"pwa-{job.id}.zip",
                size_bytes=len(payload),
                content_base64=base64.b64encode(payload).decode("ascii"),
                exported_at=exported_at,
            )

        if request.type == "github":
            repo_url = request.repo_url or (job.input if isinstance(job.input, str) else None)
            if not repo_url or parse_repo_url(repo_url) is None:
                raise ValidationFailure("GitHub export requires a repository URL")
            return ExportResult(
                type="github",
                repo_url=repo_url,
                branch=request.branch,
                pull_request_url=f"{repo_url.rstrip('/')}/pull/new/{request.branch}",
                exported_at=exported_at,
            )

        project_name = request.project_name or f"pwa-{job.id[:8]}"
        return ExportResult(
            type="cf",
            project_name=project_name,
            deploy_url=f"https://{project_name}.pages.dev",
            exported_at=exported_at,
        )
