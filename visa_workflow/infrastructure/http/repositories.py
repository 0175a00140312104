from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote, urlparse

import httpx
import structlog
from pydantic import ValidationError

from visa_workflow.domain.exceptions import VisaServiceError
from visa_workflow.domain.ports import IUniversityDirectory, IVisaProcessRepository
from visa_workflow.domain.types import DocumentAttachment, University, VisaSubmission
from visa_workflow.infrastructure.http.visa_api_client import AsyncVisaApiClient, VisaApiError

logger = structlog.get_logger(__name__)

NOT_FOUND = 404


def attachment_path(attachment: DocumentAttachment) -> Path:
    parsed = urlparse(attachment.uri)
    if parsed.scheme in ("", "file"):
        return Path(unquote(parsed.path) if parsed.scheme else attachment.uri)
    raise VisaServiceError(f"Unsupported attachment location: {attachment.uri}")


async def to_file_parts(files: Dict[str, DocumentAttachment]) -> Dict[str, Tuple[str, bytes, str]]:
    parts: Dict[str, Tuple[str, bytes, str]] = {}
    for field_name, attachment in files.items():
        path = attachment_path(attachment)
        try:
            content = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise VisaServiceError(f"Could not read attachment {attachment.name}: {exc}") from exc
        parts[field_name] = (attachment.name, content, attachment.mime_type)
    return parts


def _service_error(exc: Exception) -> VisaServiceError:
    if isinstance(exc, VisaApiError):
        return VisaServiceError(exc.message, status=exc.status)
    if isinstance(exc, httpx.TimeoutException):
        return VisaServiceError("Request to the visa service timed out")
    return VisaServiceError(str(exc) or exc.__class__.__name__)


@dataclass
class HttpVisaProcessRepository(IVisaProcessRepository):
    client: AsyncVisaApiClient
    auth_token: Optional[str] = None

    async def get_visa_process(self, university_id: str, student_id: str) -> Optional[Any]:
        try:
            return await self.client.get_visa_process(university_id, student_id, api_key=self.auth_token)
        except VisaApiError as exc:
            if exc.status == NOT_FOUND:
                return None
            raise _service_error(exc) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise _service_error(exc) from exc

    async def create_visa_process(self, submission: VisaSubmission) -> Dict[str, Any]:
        files = await to_file_parts(submission.files)
        try:
            return await self.client.create_visa_process(submission.fields, files, api_key=self.auth_token)
        except (VisaApiError, httpx.HTTPError, ValueError) as exc:
            raise _service_error(exc) from exc

    async def update_visa_process(self, record_id: str, submission: VisaSubmission) -> Dict[str, Any]:
        files = await to_file_parts(submission.files)
        try:
            return await self.client.update_visa_process(record_id, submission.fields, files, api_key=self.auth_token)
        except (VisaApiError, httpx.HTTPError, ValueError) as exc:
            raise _service_error(exc) from exc


@dataclass
class HttpUniversityDirectory(IUniversityDirectory):
    client: AsyncVisaApiClient
    auth_token: Optional[str] = None

    async def list_universities(self) -> List[University]:
        try:
            items = await self.client.list_universities(api_key=self.auth_token)
        except (VisaApiError, httpx.HTTPError, ValueError) as exc:
            raise _service_error(exc) from exc

        if not isinstance(items, list):
            return []
        universities: List[University] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                universities.append(University.model_validate(item))
            except ValidationError:
                logger.warning("university_payload_skipped", keys=sorted(item))
        return universities
