"""Client for the notes backend (auth, note records and image storage).

Uses the backend's REST API directly via the requests library.
"""

import logging
from pathlib import Path
from typing import Any, Optional, Union

import requests
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)


class BackendAPIError(Exception):
    """Exception raised for backend API errors.

    Args:
        message (str): Error message
        status_code (int): HTTP status code, 0 if no response was received
        code (str): Backend error code

    Attributes:
        message (str): Error message
        status_code (int): HTTP status code, 0 if no response was received
        code (str): Backend error code
    """

    def __init__(self, message: str, status_code: int = 0, code: str = ""):
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(self.message)

    @property
    def is_transient(self) -> bool:
        """Whether retrying the same request may succeed."""
        return self.status_code == 0 or self.status_code == 429 or self.status_code >= 500


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, BackendAPIError) and error.is_transient


_retry_transient = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    retry=retry_if_exception(_is_transient),
    reraise=True,
)


class BackendService:
    """Service for interacting with the notes backend API.

    Args:
        base_url (str): Backend API base URL
        token (str): Session token, empty when signed out
        timeout (float): Timeout in seconds for a single request

    Attributes:
        base_url (str): Backend API base URL
        token (str): Session token, empty when signed out
        timeout (float): Timeout in seconds for a single request
        username (str): User of the current session, if known
    """

    def __init__(self, base_url: str, token: str = "", timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.username: Optional[str] = None

    def _get_headers(self) -> dict[str, str]:
        """Get standard headers for backend requests.

        Returns:
            dict[str, str]: Accept header plus Authorization when signed in
        """
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _send(self, method: str, endpoint: str, **kwargs: Any) -> requests.Response:
        """Send a request and raise BackendAPIError on failure.

        Args:
            method (str): HTTP method
            endpoint (str): API endpoint path (e.g., "/notes")
            **kwargs: Extra arguments for requests.request

        Returns:
            requests.Response: The successful response

        Raises:
            BackendAPIError: On network failure or an error status
        """
        headers = self._get_headers()
        headers.update(kwargs.pop("headers", {}))
        logger.debug("%s %s", method, endpoint)

        try:
            response = requests.request(
                method,
                f"{self.base_url}{endpoint}",
                headers=headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.exceptions.RequestException as e:
            raise BackendAPIError(f"{method} {endpoint} failed: {e}") from e

        if response.status_code >= 400:
            try:
                error_data = response.json()
                message = error_data.get("message", "Unknown error")
                code = error_data.get("code", "")
            except (ValueError, AttributeError):
                message = response.text or "Unknown error"
                code = ""
            raise BackendAPIError(message=message, status_code=response.status_code, code=code)

        return response

    def _json(self, method: str, endpoint: str, **kwargs: Any) -> dict[str, Any]:
        """Send a request and parse its JSON object body (empty dict for no content).

        Raises:
            BackendAPIError: On request failure, or with code "bad_response" if
                the body is not a JSON object
        """
        response = self._send(method, endpoint, **kwargs)
        if response.status_code == 204 or not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise BackendAPIError(
                f"{method} {endpoint} returned malformed JSON",
                status_code=response.status_code,
                code="bad_response",
            ) from e
        if not isinstance(data, dict):
            raise BackendAPIError(
                f"{method} {endpoint} returned {type(data).__name__}, expected an object",
                status_code=response.status_code,
                code="bad_response",
            )
        return data

    @staticmethod
    def _list_field(data: dict[str, Any], key: str, endpoint: str) -> list[Any]:
        value = data.get(key) or []
        if not isinstance(value, list):
            raise BackendAPIError(
                f"{endpoint} returned a non-list '{key}'", status_code=200, code="bad_response"
            )
        return value

    # ==================== Auth ====================

    def sign_in(self, username: str, password: str) -> str:
        """Start a session and keep its token for later requests.

        Returns:
            str: Session token
        """
        data = self._json(
            "POST", "/auth/sign-in", json={"username": username, "password": password}
        )
        token = data.get("token")
        if not token:
            raise BackendAPIError("Sign-in response did not contain a token", code="no_token")

        self.token = token
        self.username = data.get("username", username)
        logger.info("Signed in as %s", self.username)
        return token

    def sign_out(self) -> None:
        """End the current session."""
        if self.token:
            self._send("POST", "/auth/sign-out")
        self.token = ""
        self.username = None
        logger.info("Signed out")

    @_retry_transient
    def fetch_auth_session(self) -> bool:
        """Ask the backend whether the current token is a live session.

        Returns:
            bool: True if signed in
        """
        if not self.token:
            return False
        try:
            data = self._json("GET", "/auth/session")
        except BackendAPIError as e:
            if e.status_code == 401:
                return False
            raise
        self.username = data.get("username", self.username)
        return bool(data.get("signed_in", False))

    def check_connection(self) -> bool:
        """Check if the backend is reachable.

        Returns:
            True if reachable, False otherwise
        """
        try:
            self._send("GET", "/health")
            return True
        except BackendAPIError:
            return False

    # ==================== Notes ====================

    @_retry_transient
    def list_notes(self) -> list[dict[str, Any]]:
        """Fetch every note record of the signed-in user, following pagination.

        Returns:
            list[dict[str, Any]]: Note records in backend order
        """
        records: list[dict[str, Any]] = []
        cursor: Optional[str] = None

        while True:
            params = {"cursor": cursor} if cursor else None
            data = self._json("GET", "/notes", params=params)
            records.extend(self._list_field(data, "items", "/notes"))
            cursor = data.get("next_cursor")
            if not cursor:
                break

        logger.debug("Listed %d note records", len(records))
        return records

    @_retry_transient
    def create_note(self, record: dict[str, Any]) -> dict[str, Any]:
        """Create a note record.

        Args:
            record (dict[str, Any]): Record with id, name, description and image

        Returns:
            dict[str, Any]: The stored record (the sent record if the id
            already exists, which happens when a retried request had succeeded)
        """
        try:
            return self._json("POST", "/notes", json=record) or record
        except BackendAPIError as e:
            # Ids are assigned locally, so a conflict means an earlier attempt
            # already stored this note
            if e.status_code != 409:
                raise
            logger.debug("Note %s already stored by backend", record.get("id"))
            return record

    @_retry_transient
    def delete_note(self, note_id: str) -> None:
        """Delete a note record. Deleting an unknown note is not an error."""
        try:
            self._send("DELETE", f"/notes/{note_id}")
        except BackendAPIError as e:
            if e.status_code != 404:
                raise
            logger.debug("Note %s already gone from backend", note_id)

    @_retry_transient
    def fetch_changes(self, cursor: Optional[str] = None) -> tuple[list[dict[str, Any]], Optional[str]]:
        """Fetch note change events after a cursor.

        Args:
            cursor (str, optional): Cursor returned by the previous call

        Returns:
            Tuple of (events, next_cursor); each event has "type" and "note"
        """
        params = {"cursor": cursor} if cursor else None
        data = self._json("GET", "/notes/changes", params=params)
        return self._list_field(data, "events", "/notes/changes"), data.get("next_cursor", cursor)

    # ==================== Storage ====================

    @_retry_transient
    def upload_image(self, path: Union[str, Path], key: str) -> None:
        """Upload a local image file under a storage key."""
        data = Path(path).read_bytes()
        self._send(
            "PUT",
            f"/storage/{key}",
            data=data,
            headers={"Content-Type": "application/octet-stream"},
        )
        logger.debug("Uploaded %d bytes as %s", len(data), key)

    @_retry_transient
    def download_image(self, key: str) -> bytes:
        """Download the raw bytes stored under a storage key."""
        response = self._send("GET", f"/storage/{key}")
        return response.content
