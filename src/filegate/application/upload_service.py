"""Upload service - orchestrates the presigned-URL upload protocol.

An upload runs in three strictly ordered phases:

1. init: the backend issues an upload id and a presigned storage address
2. transfer: the raw bytes go straight to storage, bypassing the backend
3. complete: the backend finalizes and returns the file record

Validation failures come back as an ``UploadResult``; every other failure
is raised as a ``FileGateError``.
"""

from __future__ import annotations

import logging
from decimal import ROUND_DOWN, Decimal
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote, urlencode

import httpx

from filegate.application.progress import UploadProgress
from filegate.domain.config.upload import UploadConfig
from filegate.domain.errors import HttpError, MissingCredentialsError
from filegate.domain.models.session import Session
from filegate.domain.models.upload import UploadFile, UploadResult, UploadSession
from filegate.infrastructure.http_client import RequestDispatcher
from filegate.infrastructure.notifier import LoggingNotifier, Notifier

logger = logging.getLogger(__name__)

SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")

NO_FILE_MESSAGE = "No file selected."
SIZE_EXCEEDED_MESSAGE = "File size limit exceeded."


def format_file_size(num_bytes: Optional[int]) -> str:
    """Format a byte count with base-1024 units, truncated to two decimals

    Args:
        num_bytes: Byte count

    Returns:
        Human-readable size, e.g. ``"1.50 KB"``
    """
    if not num_bytes:
        return "0 B"

    index = 0
    while index < len(SIZE_UNITS) - 1 and num_bytes >= 1024 ** (index + 1):
        index += 1

    value = (Decimal(num_bytes) / Decimal(1024**index)).quantize(Decimal("0.01"), rounding=ROUND_DOWN)
    return f"{value} {SIZE_UNITS[index]}"


class UploadService:
    """Uploads files and builds file access addresses"""

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        notifier: Optional[Notifier] = None,
        *,
        upload_config: Optional[UploadConfig] = None,
        storage_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize upload service

        Args:
            dispatcher: Dispatcher used for backend requests
            notifier: Receives user-facing validation messages
            upload_config: Upload limits (defaults if None)
            storage_client: HTTP client for storage transfers (one per transfer if None)
        """
        self.dispatcher = dispatcher
        self.notifier = notifier or LoggingNotifier()
        self.upload_config = upload_config or UploadConfig()
        self._storage_client = storage_client

    @property
    def base_url(self) -> str:
        return self.dispatcher.backends.api_gateway_url.rstrip("/")

    @property
    def upload_limit(self) -> int:
        return self.upload_config.upload_limit

    def _require_session(self) -> Session:
        session = self.dispatcher.current_session()
        if session is None or not session.is_usable:
            raise MissingCredentialsError()
        return session

    def validate_file(self, file: Optional[UploadFile]) -> UploadResult:
        """Check a file before any network call; never raises"""
        if file is None:
            self.notifier.error(NO_FILE_MESSAGE)
            return UploadResult(success=False, message=NO_FILE_MESSAGE)

        if file.size > self.upload_limit:
            self.notifier.error(f"File size cannot exceed {format_file_size(self.upload_limit)}.")
            return UploadResult(success=False, message=SIZE_EXCEEDED_MESSAGE)

        return UploadResult(success=True)

    async def initialize_upload(self, file: UploadFile) -> UploadSession:
        """Phase 1: ask the backend for an upload slot

        Raises:
            MissingCredentialsError: If no session is available
            HttpError: If the response carries no upload slot
        """
        self._require_session()
        response = await self.dispatcher.post("/upload/init", json=file.metadata())

        try:
            data = response.json()["data"]
            upload_session = UploadSession(
                upload_id=str(data["uploadId"]),
                upload_url=data["uploadUrl"],
                file=file,
            )
        except (ValueError, KeyError, TypeError) as e:
            raise self._malformed(response, "upload init response") from e

        logger.info(f"Upload {upload_session.upload_id} initialized for {file.name}")
        return upload_session

    async def transfer(
        self,
        upload_session: UploadSession,
        progress: Optional[UploadProgress] = None,
    ) -> httpx.Response:
        """Phase 2: stream the file bytes to the presigned storage address

        Storage is not a logical backend: no session headers, no retries.

        Raises:
            NetworkUnreachableError: If storage did not answer
            HttpError: If storage rejected the transfer
        """
        file = upload_session.file
        chunk_size = self.upload_config.chunk_size

        async def _body():
            loaded = 0
            async for chunk in file.iter_chunks(chunk_size):
                yield chunk
                loaded += len(chunk)
                if progress is not None:
                    progress.report(loaded, file.size)

        headers = {"Content-Type": file.mime_type, "Content-Length": str(file.size)}
        logger.debug(f"Transferring {file.name} ({format_file_size(file.size)}) to storage")

        succeeded = False
        try:
            if self._storage_client is not None:
                response = await self._storage_client.put(
                    upload_session.upload_url,
                    content=_body(),
                    headers=headers,
                    follow_redirects=True,
                )
            else:
                async with httpx.AsyncClient(
                    timeout=self.dispatcher.backends.timeout,
                    follow_redirects=True,
                ) as client:
                    response = await client.put(upload_session.upload_url, content=_body(), headers=headers)
            response.raise_for_status()
            succeeded = True
        except httpx.HTTPError as exc:
            raise self.dispatcher.classifier.classify(
                exc,
                replay=lambda: self.transfer(upload_session),
            ) from exc
        finally:
            if progress is not None:
                if succeeded:
                    progress.finish()
                else:
                    progress.close()

        return response

    async def complete_upload(self, upload_id: str) -> Dict[str, Any]:
        """Phase 3: finalize the upload

        Returns:
            The finalized file record

        Raises:
            MissingCredentialsError: If no session is available
            HttpError: If the response carries no file record
        """
        self._require_session()
        response = await self.dispatcher.post(f"/upload/complete/{quote(upload_id)}")
        return self._file_record(response)

    async def upload_file(
        self,
        file: Optional[UploadFile],
        progress: Optional[UploadProgress] = None,
    ) -> UploadResult:
        """Validate, initialize, transfer and complete one upload

        Args:
            file: File to upload
            progress: Optional stream receiving transfer progress

        Returns:
            ``UploadResult(success=True, data=<file record>)`` or the failed validation
        """
        try:
            validation = self.validate_file(file)
            if not validation.success:
                return validation

            upload_session = await self.initialize_upload(file)
            await self.transfer(upload_session, progress)
            record = await self.complete_upload(upload_session.upload_id)
        finally:
            if progress is not None:
                progress.close()

        logger.info(f"Uploaded {file.name}")
        return UploadResult(success=True, data=record)

    async def get_file_info(self, file_id: str) -> Dict[str, Any]:
        """Fetch the file record of an uploaded file"""
        self._require_session()
        response = await self.dispatcher.get(f"/files/{quote(str(file_id))}")
        return self._file_record(response)

    async def delete_file(self, file_id: str) -> Any:
        """Delete an uploaded file

        Returns:
            The backend's acknowledgment payload
        """
        self._require_session()
        response = await self.dispatcher.delete(f"/files/{quote(str(file_id))}")
        try:
            return response.json()
        except ValueError:
            return None

    def get_file_url(self, filename: str, for_preview: bool = False, with_auth: bool = False) -> str:
        """Build the view or download address of a file

        Credentials are appended when requested and a session exists.
        """
        if not filename:
            raise ValueError("No file name provided.")

        endpoint = "view" if for_preview else "download"
        url = f"{self.base_url}/api/files/{endpoint}/{quote(filename)}"

        if with_auth:
            session = self.dispatcher.current_session()
            if session is not None and session.is_usable:
                params = {"token": session.token}
                if session.session_id:
                    params["sessionId"] = session.session_id
                url = f"{url}?{urlencode(params)}"

        return url

    def get_preview_url(self, file: Optional[Mapping[str, Any]], with_auth: bool = True) -> str:
        """Build the preview address of a file record

        Raises:
            ValueError: If the record has no file name
            MissingCredentialsError: If auth is requested without token and session id
        """
        if not file or not file.get("filename"):
            raise ValueError("No file information provided.")

        url = f"{self.base_url}/api/files/view/{quote(file['filename'])}"
        if not with_auth:
            return url

        session = self.dispatcher.current_session()
        if session is None or not session.token or not session.session_id:
            raise MissingCredentialsError()
        return f"{url}?{urlencode({'token': session.token, 'sessionId': session.session_id})}"

    @staticmethod
    def _file_record(response: httpx.Response) -> Dict[str, Any]:
        try:
            return response.json()["data"]["file"]
        except (ValueError, KeyError, TypeError) as e:
            raise UploadService._malformed(response, "file record") from e

    @staticmethod
    def _malformed(response: httpx.Response, what: str) -> HttpError:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        return HttpError(
            f"Unexpected {what} from the server.",
            status=response.status_code,
            data=payload,
        )
