"""Generic JSON-over-HTTP provider adapter."""

import os
from typing import Any, Dict, Iterable, Optional, Tuple
import requests
from ..utils.errors import NotFoundError, ProviderError, UnsupportedUpdateError
from ..utils.logging import get_logger
from .base import ProviderAdapter

logger = get_logger("providers.rest")

TRANSIENT_STATUS = frozenset({408, 429, 500, 502, 503, 504})
REPLACE_STATUS = frozenset({409, 422})


class RestProvider(ProviderAdapter):
    """
    Adapter for a REST resource collection.

    POST {base_url}/{collection} creates, GET/PATCH/DELETE
    {base_url}/{collection}/{id} read, update and delete.
    """

    def __init__(
        self,
        kind: str,
        base_url: str,
        collection: Optional[str] = None,
        force_new: Iterable[str] = (),
        create_before_destroy: bool = True,
        timeout: float = 30.0,
        token_env: Optional[str] = None,
        id_field: str = "id"
    ):
        """
        Args:
            kind: Resource kind served
            base_url: API root, e.g. https://infra.example.internal/api
            collection: Collection path segment (defaults to kind)
            force_new: Attributes that can only change through replacement
            create_before_destroy: Replace ordering capability flag
            timeout: Per-request timeout in seconds
            token_env: Name of an environment variable holding a bearer token
            id_field: Response field carrying the provider identifier
        """
        self.kind = kind
        self.base_url = base_url.rstrip("/")
        self.collection = (collection or kind).strip("/")
        self.force_new_attributes = frozenset(force_new)
        self.create_before_destroy = create_before_destroy
        self.timeout = timeout
        self.token_env = token_env
        self.id_field = id_field

    def _url(self, provider_id: Optional[str] = None) -> str:
        url = f"{self.base_url}/{self.collection}"
        if provider_id is not None:
            url = f"{url}/{provider_id}"
        return url

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json"
        }
        if self.token_env:
            token = os.getenv(self.token_env)
            if token:
                headers["Authorization"] = f"Bearer {token}"
        return headers

    def _request(self, method: str, url: str, payload: Optional[Dict[str, Any]] = None) -> requests.Response:
        try:
            return requests.request(
                method,
                url,
                headers=self._headers(),
                json=payload,
                timeout=self.timeout
            )
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            raise ProviderError(f"{method} {url} failed: {e}", transient=True)
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"{method} {url} failed: {e}")

    def _raise_for_status(self, response: requests.Response, action: str) -> None:
        status = response.status_code
        if status < 400:
            return
        detail = response.text[:200] if response.text else response.reason
        raise ProviderError(
            f"{self.kind} {action} failed with HTTP {status}: {detail}",
            transient=status in TRANSIENT_STATUS
        )

    def _json_body(self, response: requests.Response, action: str) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            raise ProviderError(f"{self.kind} {action} returned a non-JSON body")
        if not isinstance(body, dict):
            raise ProviderError(f"{self.kind} {action} returned {type(body).__name__}, expected an object")
        return body

    def create(self, desired: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        response = self._request("POST", self._url(), desired)
        self._raise_for_status(response, "create")
        body = self._json_body(response, "create")
        if self.id_field not in body:
            raise ProviderError(f"{self.kind} create response missing '{self.id_field}'")
        provider_id = str(body[self.id_field])
        logger.debug(f"Created {self.kind} {provider_id}")
        return provider_id, body

    def read(self, provider_id: str) -> Dict[str, Any]:
        response = self._request("GET", self._url(provider_id))
        if response.status_code in (404, 410):
            raise NotFoundError(f"{self.kind} {provider_id} not found")
        self._raise_for_status(response, "read")
        return self._json_body(response, "read")

    def update(self, provider_id: str, diff: Dict[str, Any]) -> Dict[str, Any]:
        response = self._request("PATCH", self._url(provider_id), diff)
        if response.status_code in REPLACE_STATUS:
            attributes = list(diff)
            try:
                body = response.json()
                if isinstance(body, dict) and isinstance(body.get("attributes"), list):
                    attributes = body["attributes"]
            except ValueError:
                # No JSON body; report the submitted keys.
                pass
            raise UnsupportedUpdateError(attributes)
        if response.status_code in (404, 410):
            raise NotFoundError(f"{self.kind} {provider_id} not found")
        self._raise_for_status(response, "update")
        return self._json_body(response, "update")

    def delete(self, provider_id: str) -> None:
        response = self._request("DELETE", self._url(provider_id))
        if response.status_code in (404, 410):
            logger.debug(f"{self.kind} {provider_id} already absent")
            return
        self._raise_for_status(response, "delete")
