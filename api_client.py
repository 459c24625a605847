import json
import logging

import requests

import config
from auth import AuthError


logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status, status_text, data=None):
        super().__init__(f"API Error: {status} {status_text}")
        self.status = status
        self.status_text = status_text
        self.data = data


class ApiClient:
    """JSON HTTP client that attaches the session's bearer token.

    A 401 from an authenticated session triggers one token refresh and one
    retry of the original request. If the refresh fails the session is
    cleared and the 401 surfaces as an ``ApiError``.
    """

    def __init__(self, base_url=None, auth=None, session=None, timeout=10):
        self.base_url = base_url or config.API_BASE_URL
        self.auth = auth
        self.session = session or requests.Session()
        self.timeout = timeout
        self.default_headers = {"Content-Type": "application/json"}
        self.request_hooks = []
        self.response_hooks = []

    def add_request_hook(self, hook):
        self.request_hooks.append(hook)

    def add_response_hook(self, hook):
        self.response_hooks.append(hook)

    def set_base_url(self, base_url):
        self.base_url = base_url

    def set_default_headers(self, headers):
        self.default_headers.update(headers)

    def remove_default_header(self, key):
        self.default_headers.pop(key, None)

    def build_url(self, endpoint):
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    def get(self, endpoint, **options):
        return self.request("GET", endpoint, **options)

    def post(self, endpoint, data=None, **options):
        return self.request("POST", endpoint, data=data, **options)

    def put(self, endpoint, data=None, **options):
        return self.request("PUT", endpoint, data=data, **options)

    def patch(self, endpoint, data=None, **options):
        return self.request("PATCH", endpoint, data=data, **options)

    def delete(self, endpoint, **options):
        return self.request("DELETE", endpoint, **options)

    def upload(self, endpoint, files, headers=None, **options):
        # requests sets the multipart boundary itself
        headers = {k: v for k, v in (headers or {}).items() if k.lower() != "content-type"}
        return self.request("POST", endpoint, files=files, headers=headers, json_body=False, **options)

    def request(
        self,
        method,
        endpoint,
        data=None,
        files=None,
        headers=None,
        params=None,
        skip_auth=False,
        retry_on_auth_failure=True,
        json_body=True,
    ):
        request_kwargs = {
            "method": method,
            "url": self.build_url(endpoint),
            "headers": self._build_headers(headers, skip_auth, json_body),
            "params": params,
            "timeout": self.timeout,
        }
        if files is not None:
            request_kwargs["files"] = files
            request_kwargs["data"] = data
        elif data is not None:
            request_kwargs["data"] = json.dumps(data)
        for hook in self.request_hooks:
            request_kwargs = hook(request_kwargs)

        response = self._send(request_kwargs)
        if response.status_code == 401 and not skip_auth and retry_on_auth_failure:
            response = self._retry_after_refresh(request_kwargs, response)
        for hook in self.response_hooks:
            response = hook(response)

        if not response.ok:
            raise ApiError(response.status_code, response.reason, self._error_data(response))
        return {
            "data": self._parse_body(response),
            "status": response.status_code,
            "status_text": response.reason,
            "headers": dict(response.headers),
        }

    def _build_headers(self, headers, skip_auth, json_body):
        merged = dict(self.default_headers)
        if not json_body:
            merged.pop("Content-Type", None)
        merged.update(headers or {})
        if not skip_auth and self.auth is not None:
            merged.update(self.auth.get_auth_header())
        return merged

    def _send(self, request_kwargs):
        try:
            return self.session.request(**request_kwargs)
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", request_kwargs["method"], request_kwargs["url"], exc)
            raise ApiError(0, "Network Error", {"message": str(exc)}) from exc

    def _retry_after_refresh(self, request_kwargs, response):
        if self.auth is None or not self.auth.get_access_token():
            return response
        try:
            self.auth.refresh_token()
        except AuthError as exc:
            logger.warning("Token refresh failed, clearing session: %s", exc)
            self.auth.remove_tokens()
            return response
        retry_kwargs = dict(request_kwargs)
        retry_kwargs["headers"] = dict(request_kwargs["headers"], **self.auth.get_auth_header())
        return self._send(retry_kwargs)

    @staticmethod
    def _parse_body(response):
        if "application/json" in response.headers.get("Content-Type", ""):
            try:
                return response.json()
            except ValueError as exc:
                raise ApiError(
                    response.status_code, response.reason, {"message": "Invalid JSON response"}
                ) from exc
        return response.text

    @staticmethod
    def _error_data(response):
        if "application/json" in response.headers.get("Content-Type", ""):
            try:
                return response.json()
            except ValueError:
                pass
        return {"message": response.reason}


def handle_api_error(error):
    if isinstance(error, ApiError):
        if isinstance(error.data, dict) and error.data.get("message"):
            return error.data["message"]
        return f"{error.status}: {error.status_text}"
    if isinstance(error, Exception) and str(error):
        return str(error)
    return "An unexpected error occurred"
