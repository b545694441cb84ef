import os
import logging
from typing import Any, Dict, Optional

import requests
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Set up logging
logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "http://localhost:4000/api"
DEFAULT_TIMEOUT = 30


class ApiError(Exception):
    """Raised for any failed call to the inventory REST API."""

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    @property
    def server_message(self) -> Optional[str]:
        """The `message` field of the server's error body, if it sent one."""
        if isinstance(self.payload, dict):
            msg = self.payload.get('message')
            if msg:
                return str(msg)
        return None


def get_api_base():
    """Base URL of the inventory API, without a trailing slash"""
    base = os.getenv('INVENTORY_API_BASE') or DEFAULT_API_BASE
    return base.rstrip('/')


def get_api_timeout():
    try:
        return float(os.getenv('INVENTORY_API_TIMEOUT', DEFAULT_TIMEOUT))
    except ValueError:
        return float(DEFAULT_TIMEOUT)


def get_api_headers(token=None):
    """Get standard headers for inventory API requests"""
    headers = {"Accept": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def error_message(exc, fallback):
    """Text to show the user for a failed call: the server's message, else the fallback."""
    if isinstance(exc, ApiError) and exc.server_message:
        return exc.server_message
    return fallback


def _clean_params(params):
    # Empty filters are omitted from the query string
    if not params:
        return None
    return {k: v for k, v in params.items() if v is not None and v != ''}


class InventoryApiClient:
    """
    Thin wrapper around requests.Session for the inventory backend.

    Every request carries the bearer token when one is set. Non-2xx responses
    and network failures are raised as ApiError.
    """

    def __init__(self, token: Optional[str] = None, base_url: Optional[str] = None,
                 timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        self.token = token
        self.base_url = (base_url or get_api_base()).rstrip('/')
        self.timeout = timeout if timeout is not None else get_api_timeout()
        self.session = session or requests.Session()
        self.session.headers.update(get_api_headers(token))

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None,
                json: Any = None, files: Any = None, raw: bool = False):
        url = self._url(path)
        try:
            response = self.session.request(
                method,
                url,
                params=_clean_params(params),
                json=json,
                files=files,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"❌ {method} {path} failed: {str(e)}")
            raise ApiError(f"Failed to reach inventory API: {str(e)}") from e

        if not response.ok:
            payload = None
            try:
                payload = response.json()
            except ValueError:
                payload = None
            server_message = payload.get('message') if isinstance(payload, dict) else None
            api_error = ApiError(
                str(server_message) if server_message else f"{response.status_code} {response.reason or ''}".strip(),
                status_code=response.status_code,
                payload=payload,
            )
            logger.warning(f"{method} {path} returned {response.status_code}: {api_error.message}")
            raise api_error

        if raw:
            return response.content
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def get(self, path, params=None):
        return self.request('GET', path, params=params)

    def post(self, path, json=None, params=None):
        return self.request('POST', path, params=params, json=json)

    def put(self, path, json=None, params=None):
        return self.request('PUT', path, params=params, json=json)

    def patch(self, path, json=None, params=None):
        return self.request('PATCH', path, params=params, json=json)

    def delete(self, path, params=None):
        return self.request('DELETE', path, params=params)

    def upload(self, path, file_name, content, params=None):
        """POST a file as multipart/form-data under the `file` field."""
        files = {'file': (file_name, content)}
        logger.info(f"Uploading {file_name} to {path}")
        return self.request('POST', path, params=params, files=files)

    def download(self, path, params=None) -> bytes:
        return self.request('GET', path, params=params, raw=True)
