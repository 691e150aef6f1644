"""Book backend REST client implementation."""
import asyncio
import json
import time
from typing import List, Dict, Any, Optional

import aiohttp
from pydantic import ValidationError

from ..config import get_settings
from ..config.constants import INSUFFICIENT_CREDITS_STATUS
from ..utils.logging import get_logger
from ..utils.session_logger import get_session_logger
from .auth import resolve_api_token, auth_headers
from .errors import (
    BackendError,
    BackendHTTPError,
    BackendTimeoutError,
    BackendConnectionError,
    InsufficientCreditsError,
    InvalidResponseError
)
from .models import (
    Project,
    ProjectForm,
    UserStats,
    BookCostEstimate,
    ChapterGeneration,
    HtmlExport
)


class BackendClient:
    """Handles all book backend API interactions. Requests are never retried."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        """
        Initialize backend client.

        Args:
            base_url: API base URL (uses settings if not provided)
            api_token: Optional bearer token (uses settings/environment if not provided)
            timeout: Total seconds allowed per request (uses settings if not provided)
        """
        self.settings = get_settings()
        self.base_url = (base_url or self.settings.api_base_url).rstrip('/')
        self.api_token = resolve_api_token(api_token or self.settings.api_token)
        self.timeout = timeout or self.settings.request_timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self.ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    @property
    def session(self) -> Optional[aiohttp.ClientSession]:
        return self._session

    async def ensure_session(self):
        """Ensure aiohttp session is created with the fixed per-request timeout."""
        if not self._session:
            self._session = aiohttp.ClientSession(
                headers=self._get_headers(),
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )

    async def close(self):
        """Close the client session."""
        if self._session:
            await self._session.close()
            self._session = None

    def _get_headers(self) -> Dict[str, str]:
        """Get request headers."""
        return {
            "Accept": "application/json",
            **auth_headers(self.api_token)
        }

    async def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        raw: bool = False
    ) -> Any:
        """
        Issue one request and return the decoded body.

        Args:
            method: HTTP method
            path: Path relative to the API base URL
            payload: Optional JSON body
            raw: Return the body as bytes instead of decoded JSON

        Returns:
            Decoded JSON, or bytes when raw is set

        Raises:
            InsufficientCreditsError: Backend answered 402
            BackendHTTPError: Backend answered any other error status
            BackendTimeoutError: Request exceeded the timeout
            BackendConnectionError: Transport failure
        """
        await self.ensure_session()
        url = f"{self.base_url}{path}"
        session_logger = get_session_logger()
        logger = get_logger("api")
        started = time.monotonic()

        logger.debug(f"API Request: {method} {path} payload={payload}")

        try:
            async with self._session.request(method, url, json=payload) as response:
                if response.status == INSUFFICIENT_CREDITS_STATUS:
                    raise InsufficientCreditsError(await self._error_detail(response))
                if response.status >= 400:
                    raise BackendHTTPError(response.status, await self._error_detail(response))

                if raw:
                    body = await response.read()
                else:
                    body = await response.json(content_type=None)

                elapsed = time.monotonic() - started
                logger.debug(f"API Response: {method} {path} status={response.status} elapsed={elapsed:.2f}s")
                if session_logger:
                    session_logger.log_request(method, path, response.status, elapsed, payload)
                return body

        except asyncio.TimeoutError as e:
            error = BackendTimeoutError(
                f"{method} {path} timed out after {self.timeout:g}s"
            )
            self._log_failure(method, path, error, payload)
            raise error from e

        except aiohttp.ClientError as e:
            error = BackendConnectionError(f"{method} {path} failed: {e}")
            self._log_failure(method, path, error, payload)
            raise error from e

        except ValueError as e:
            # Body was not valid JSON
            error = InvalidResponseError(f"{method} {path} returned malformed JSON: {e}")
            self._log_failure(method, path, error, payload)
            raise error from e

        except BackendError as e:
            self._log_failure(method, path, e, payload)
            raise

    @staticmethod
    async def _error_detail(response: aiohttp.ClientResponse) -> str:
        """
        Extract the human-readable detail message from an error response.

        Never raises on a malformed body: the status alone decides the
        exception class.
        """
        try:
            body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError):
            body = b""
        text = body.decode('utf-8', errors='replace').strip()
        fallback = text or response.reason or "Unknown error"
        try:
            data = json.loads(text)
        except ValueError:
            return fallback
        if isinstance(data, dict) and data.get('detail'):
            return str(data['detail'])
        return fallback

    def _log_failure(self, method: str, path: str, error: Exception, payload: Optional[Dict[str, Any]]):
        logger = get_logger("api")
        logger.error(f"API Error: {method} {path}: {error}")
        session_logger = get_session_logger()
        if session_logger:
            session_logger.log_request_error(method, path, error, payload)

    @staticmethod
    def _parse(model, data: Any, path: str):
        """Validate a response body into a payload model."""
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise InvalidResponseError(f"Unexpected response from {path}: {e}") from e

    # Projects

    async def list_projects(self) -> List[Project]:
        """Fetch all projects of the current user."""
        data = await self._request("GET", "/projects")
        if not isinstance(data, list):
            raise InvalidResponseError("Unexpected response from /projects: expected a list")
        return [self._parse(Project, item, "/projects") for item in data]

    async def get_project(self, project_id: str) -> Project:
        """Fetch one project including outline and chapter text."""
        path = f"/projects/{project_id}"
        return self._parse(Project, await self._request("GET", path), path)

    async def create_project(self, form: ProjectForm) -> Project:
        """Create a project from setup form values."""
        data = await self._request("POST", "/projects", form.model_dump())
        return self._parse(Project, data, "/projects")

    # Account and credits

    async def get_user_stats(self) -> UserStats:
        return self._parse(UserStats, await self._request("GET", "/user/stats"), "/user/stats")

    async def get_credit_balance(self) -> int:
        """Fetch the authoritative credit balance."""
        data = await self._request("GET", "/credits/balance")
        try:
            return int(data['credit_balance'])
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResponseError(f"Unexpected response from /credits/balance: {data!r}") from e

    async def calculate_book_cost(self, pages: int, chapters: int) -> BookCostEstimate:
        path = "/credits/calculate-book-cost"
        data = await self._request("POST", path, {"pages": pages, "chapters": chapters})
        return self._parse(BookCostEstimate, data, path)

    # Generation

    async def generate_outline(self, project_id: str) -> str:
        """Ask the backend to (re)generate the outline. Returns outline markup."""
        data = await self._request("POST", "/generate-outline", {"project_id": project_id})
        if not isinstance(data, dict) or not isinstance(data.get('outline'), str):
            raise InvalidResponseError("Unexpected response from /generate-outline: missing outline")
        return data['outline']

    async def update_outline(self, project_id: str, outline: str) -> None:
        await self._request("PUT", "/update-outline", {"project_id": project_id, "outline": outline})

    async def generate_chapter(self, project_id: str, chapter_number: int) -> ChapterGeneration:
        """Generate one chapter. Consumes credits on the backend."""
        data = await self._request(
            "POST",
            "/generate-chapter",
            {"project_id": project_id, "chapter_number": chapter_number}
        )
        return self._parse(ChapterGeneration, data, "/generate-chapter")

    async def update_chapter(self, project_id: str, chapter_number: int, content: str) -> None:
        await self._request(
            "PUT",
            "/update-chapter",
            {"project_id": project_id, "chapter_number": chapter_number, "content": content}
        )

    # Export

    async def export_html(self, project_id: str) -> HtmlExport:
        path = f"/export-book/{project_id}"
        return self._parse(HtmlExport, await self._request("GET", path), path)

    async def get_raw(self, path: str) -> bytes:
        """Fetch a binary payload (rendered PDF/DOCX)."""
        return await self._request("GET", path, raw=True)
