"""Etherpad HTTP API service for collaborative documents."""

import logging
from typing import Any

import httpx

from paperhub.core.config import settings
from paperhub.core.errors import NotFoundError, RemoteAPIError

logger = logging.getLogger(__name__)

# Etherpad API response codes
CODE_OK = 0
CODE_WRONG_PARAMETERS = 1
CODE_INTERNAL_ERROR = 2
CODE_NO_SUCH_FUNCTION = 3
CODE_NO_OR_WRONG_API_KEY = 4


class EtherpadAPIError(RemoteAPIError):
    """Base exception for Etherpad API errors."""

    def __init__(self, message: str, code: int | None = None, status_code: int = 502):
        self.code = code
        super().__init__(message, status_code=status_code)


class EtherpadNotFoundError(EtherpadAPIError, NotFoundError):
    """Exception raised when a pad does not exist."""

    def __init__(self, pad_id: str, message: str = "padID does not exist"):
        self.pad_id = pad_id
        super().__init__(f"Pad {pad_id}: {message}", code=CODE_WRONG_PARAMETERS, status_code=404)


class EtherpadService:
    """Service for interacting with the Etherpad HTTP API."""

    DEFAULT_TIMEOUT = httpx.Timeout(connect=10.0, read=30.0, write=30.0, pool=10.0)

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        api_version: str | None = None,
    ):
        """Initialize Etherpad service.

        Args:
            base_url: Etherpad server root (default from settings).
            api_key: Etherpad API key (default from settings).
            api_version: HTTP API version (default from settings).
        """
        self.base_url = (base_url or settings.etherpad_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.etherpad_api_key
        self.api_version = api_version or settings.etherpad_api_version

    def _method_url(self, method: str) -> str:
        return f"{self.base_url}/api/{self.api_version}/{method}"

    def _handle_envelope(self, method: str, pad_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Unwrap the {code, message, data} envelope of an API response.

        Raises:
            EtherpadNotFoundError: When the pad does not exist.
            EtherpadAPIError: For any other nonzero code.
        """
        code = payload.get("code")
        message = payload.get("message", "")

        if code == CODE_OK:
            return payload.get("data") or {}

        if code == CODE_WRONG_PARAMETERS and "does not exist" in message.lower():
            raise EtherpadNotFoundError(pad_id, message)

        if code == CODE_NO_OR_WRONG_API_KEY:
            logger.error("Etherpad rejected the API key")
            raise EtherpadAPIError("Etherpad rejected the API key", code=code, status_code=401)

        logger.error(f"Etherpad {method} failed for {pad_id}: [{code}] {message}")
        raise EtherpadAPIError(f"Etherpad {method} failed: {message}", code=code)

    async def _call(self, method: str, pad_id: str, **params: Any) -> dict[str, Any]:
        """Call an API method with the pad id and API key."""
        data = {"apikey": self.api_key, "padID": pad_id, **params}
        try:
            async with httpx.AsyncClient(timeout=self.DEFAULT_TIMEOUT) as client:
                response = await client.post(self._method_url(method), data=data)
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as e:
            logger.warning(f"Etherpad {method} timed out for {pad_id}")
            raise EtherpadAPIError(f"Etherpad {method} timed out", status_code=504) from e
        except httpx.HTTPError as e:
            logger.error(f"Etherpad {method} request failed for {pad_id}: {e}")
            raise EtherpadAPIError(f"Etherpad {method} request failed: {e}") from e
        except ValueError as e:
            raise EtherpadAPIError(f"Etherpad {method} returned invalid JSON: {e}") from e

        return self._handle_envelope(method, pad_id, payload)

    async def get_last_edited(self, pad_id: str) -> int:
        """Get the last edit timestamp of a pad (milliseconds since epoch).

        Raises:
            EtherpadNotFoundError: If the pad does not exist.
        """
        data = await self._call("getLastEdited", pad_id)
        return int(data.get("lastEdited") or 0)

    async def create_pad(self, pad_id: str) -> None:
        """Create an empty pad."""
        await self._call("createPad", pad_id)
        logger.info(f"Created pad {pad_id}")

    async def set_text(self, pad_id: str, text: str) -> None:
        """Replace the text of a pad."""
        await self._call("setText", pad_id, text=text)

    async def get_text(self, pad_id: str) -> str:
        """Get the current text of a pad."""
        data = await self._call("getText", pad_id)
        return data.get("text", "")
