"""
Base Video Backend
==================

Abstract base class for all video generation backends.

Every backend follows the same asynchronous job model: submit a request,
poll the resulting operation until it is terminal, then download the
artifact into the output directory before handing back a Clip.
"""

import os
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Dict, Any, Union

import httpx

from ..core.config import PollingConfig
from ..core.exceptions import BackendError, OperationTimeout
from ..core.models import Operation
from ..core.security import PathValidator, redact_api_key
from ..utils.storage import ensure_dir, generate_filename, save_video

logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT = 120


class BaseVideoBackend(ABC):
    """
    Abstract base class for video generation backends.

    Handles:
    - HTTP client lifecycle (an injected ``httpx.AsyncClient`` is used as-is)
    - Error translation: non-2xx responses and transport failures become
      ``BackendError`` carrying the backend's payload verbatim
    - The shared submit/poll loop with a per-call ``PollingConfig``
    - Durable download into the output directory
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT,
        output_path: Union[str, Path] = "./output/videos",
        client: Optional[httpx.AsyncClient] = None,
        filename_prefix: str = "video",
    ):
        """
        Initialize the backend.

        Args:
            api_key: API key (or read from environment)
            base_url: Base URL for the API
            timeout: Per-request HTTP timeout in seconds
            output_path: Directory downloaded videos are written to
            client: Pre-built HTTP client (tests pass one with a mock transport)
            filename_prefix: Leading part of every file this backend writes
        """
        self.api_key = api_key or self._get_api_key_from_env()
        self.base_url = (base_url or self._get_default_base_url()).rstrip("/")
        self.timeout = timeout
        self.output_path = Path(output_path)
        self.filename_prefix = filename_prefix

        self._client: Optional[httpx.AsyncClient] = client
        self._owns_client = client is None
        self._client_lock = asyncio.Lock()

        self._path_validator = PathValidator(self.output_path)

        self._validate_config()

    # -------------------------------------------------------------------------
    # Abstract Methods
    # -------------------------------------------------------------------------

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the registry name of this backend."""
        pass

    @property
    @abstractmethod
    def env_key_name(self) -> str:
        """Return the environment variable name for the API key."""
        pass

    @abstractmethod
    def _get_default_base_url(self) -> str:
        """Return the default base URL for this backend."""
        pass

    @abstractmethod
    async def _fetch_operation(self, operation: Operation) -> Dict[str, Any]:
        """Re-fetch the raw status payload of an operation."""
        pass

    @abstractmethod
    def _is_done(self, payload: Dict[str, Any]) -> bool:
        """Whether a status payload is terminal."""
        pass

    @abstractmethod
    def _operation_error(self, payload: Dict[str, Any]) -> Optional[str]:
        """Backend error message carried by a terminal payload, if any."""
        pass

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    def _get_api_key_from_env(self) -> Optional[str]:
        """Get API key from environment variable."""
        return os.getenv(self.env_key_name)

    def _validate_config(self) -> None:
        """Validate the backend configuration."""
        if not self.api_key:
            logger.warning(
                f"No API key found for {self.backend_name}. "
                f"Set {self.env_key_name} environment variable or pass api_key parameter."
            )

    def _get_headers(self) -> Dict[str, str]:
        """Get default headers for requests."""
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
                self._owns_client = True
            return self._client

    async def close(self) -> None:
        """Close the HTTP client if this backend created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _request(
        self,
        method: str,
        url: str,
        operation: Optional[str] = None,
        **kwargs,
    ) -> Dict[str, Any]:
        """
        Send an authenticated JSON request and return the decoded body.

        Raises:
            BackendError: transport failure, non-2xx status or non-JSON body
        """
        client = await self._get_client()
        headers = {**self._get_headers(), **kwargs.pop("headers", {})}

        try:
            response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            message = redact_api_key(f"{type(e).__name__}: {e}")
            logger.error(f"{self.backend_name} request failed: {message}")
            raise BackendError(self.backend_name, message, operation=operation) from e

        if not response.is_success:
            logger.error(
                f"{self.backend_name} returned {response.status_code}: "
                f"{redact_api_key(response.text[:500])}"
            )
            raise BackendError(
                self.backend_name,
                response.text,
                status_code=response.status_code,
                operation=operation,
            )

        try:
            return response.json()
        except ValueError as e:
            raise BackendError(
                self.backend_name,
                f"Invalid JSON response: {response.text[:500]}",
                status_code=response.status_code,
                operation=operation,
            ) from e

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def _poll_operation(
        self,
        operation: Operation,
        polling: PollingConfig,
    ) -> Dict[str, Any]:
        """
        Wait for an operation to reach a terminal state.

        Sleeps ``polling.interval_seconds`` between status fetches and gives
        up after ``polling.max_attempts`` fetches.

        Returns:
            The terminal payload of a successful operation

        Raises:
            BackendError: the operation finished with an error
            OperationTimeout: the operation never finished within budget
        """
        operation.mark_polling()
        payload = operation.payload

        while not self._is_done(payload):
            if operation.attempts >= polling.max_attempts:
                operation.mark_timed_out()
                logger.error(
                    f"{self.backend_name} operation {operation.name} still running "
                    f"after {operation.attempts} polls"
                )
                raise OperationTimeout(
                    f"Operation {operation.name} timed out after "
                    f"{polling.timeout_seconds:.0f}s",
                    backend_name=self.backend_name,
                    operation=operation.name,
                    timeout_seconds=polling.timeout_seconds,
                )

            await asyncio.sleep(polling.interval_seconds)
            payload = await self._fetch_operation(operation)
            operation.attempts += 1
            logger.debug(
                f"[{operation.attempts}/{polling.max_attempts}] "
                f"Polled {self.backend_name} operation {operation.name}"
            )

        error = self._operation_error(payload)
        if error:
            operation.mark_failed(error)
            logger.error(f"{self.backend_name} operation {operation.name} failed: {error}")
            raise BackendError(self.backend_name, error, operation=operation.name)

        operation.mark_done(payload)
        return payload

    @staticmethod
    def _format_error(error: Any) -> str:
        """Render a backend error object without losing any of it."""
        if isinstance(error, str):
            return error
        return json.dumps(error, sort_keys=True, default=str)

    # -------------------------------------------------------------------------
    # Downloads
    # -------------------------------------------------------------------------

    def _new_output_path(self, prefix: str) -> Path:
        ensure_dir(self.output_path)
        return self._path_validator.validate_video(
            generate_filename(f"{self.filename_prefix}_{prefix}")
        )

    async def download_video(
        self,
        url: str,
        prefix: str,
        authenticated: bool = False,
    ) -> str:
        """
        Download a generated video into the output directory.

        Args:
            url: Location of the finished video
            prefix: Filename prefix
            authenticated: Whether the URL needs the backend credentials

        Returns:
            Path to the downloaded video
        """
        output_path = self._new_output_path(prefix)
        client = await self._get_client()
        headers = self._get_headers() if authenticated else {}

        logger.info(f"Downloading {self.backend_name} video to {output_path}")

        try:
            response = await client.get(url, headers=headers, follow_redirects=True)
        except httpx.HTTPError as e:
            raise BackendError(
                self.backend_name,
                redact_api_key(f"Download failed: {type(e).__name__}: {e}"),
            ) from e

        if not response.is_success:
            raise BackendError(
                self.backend_name,
                f"Download failed: {response.text}",
                status_code=response.status_code,
            )

        return await save_video(response.content, output_path)

    async def save_inline_video(self, video_data: bytes, prefix: str) -> str:
        """Persist video bytes returned inline by the backend."""
        return await save_video(video_data, self._new_output_path(prefix))
