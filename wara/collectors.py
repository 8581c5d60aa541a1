from __future__ import annotations

import logging
import os
from typing import Any, Callable, Dict, List, Optional

import requests

from .base import BaseCollector
from .errors import AuthError, FatalCallError, NetworkError, TransientCallError
from .models import Unit

logger = logging.getLogger(__name__)

ARM_ENDPOINT = "https://management.azure.com"
SUBSCRIPTIONS_API_VERSION = "2022-12-01"
RESOURCE_GRAPH_API_VERSION = "2021-03-01"

RESOURCES_QUERY = (
    "resources "
    "| project id, name, type, kind, location, resourceGroup, subscriptionId, sku, zones, tags, properties "
    "| order by id asc"
)


def env_token_provider() -> str:
    """Read a bearer token for Azure Resource Manager from AZURE_ACCESS_TOKEN."""
    token = os.environ.get("AZURE_ACCESS_TOKEN", "").strip()
    if not token:
        raise AuthError("AZURE_ACCESS_TOKEN is not set; sign in and export an ARM access token")
    return token


class ArmCollector(BaseCollector):
    """Collects subscriptions and their resources from Azure Resource Manager."""

    def __init__(
        self,
        token_provider: Callable[[], str] = env_token_provider,
        timeout: int = 60,
        page_size: int = 1000,
        endpoint: str = ARM_ENDPOINT,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self._token_provider = token_provider
        self._timeout = timeout
        self._page_size = page_size
        self._endpoint = endpoint.rstrip("/")
        self._session_factory = session_factory

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token_provider()}",
            "Content-Type": "application/json",
        }

    def list_units(self, tenant_id: str) -> List[Unit]:
        url: Optional[str] = f"{self._endpoint}/subscriptions?api-version={SUBSCRIPTIONS_API_VERSION}"
        units: List[Unit] = []
        headers = self._headers()
        with self._session_factory() as session:
            while url:
                try:
                    resp = session.get(url, headers=headers, timeout=self._timeout)
                except requests.RequestException as exc:
                    raise NetworkError(f"cannot list subscriptions: {type(exc).__name__}: {exc}") from exc
                if resp.status_code in (401, 403):
                    raise AuthError(f"listing subscriptions was rejected with HTTP {resp.status_code}: {_error_message(resp)}")
                if not 200 <= resp.status_code < 300:
                    raise NetworkError(f"listing subscriptions failed with HTTP {resp.status_code}: {_error_message(resp)}")
                try:
                    payload = resp.json()
                except ValueError as exc:
                    raise NetworkError("subscription list response is not JSON") from exc

                for sub in payload.get("value") or []:
                    if (sub.get("tenantId") or "").lower() != tenant_id.lower():
                        continue
                    if sub.get("state") not in (None, "Enabled"):
                        logger.debug("skipping subscription %s in state %s", sub.get("subscriptionId"), sub.get("state"))
                        continue
                    units.append(
                        Unit(
                            unit_id=sub["subscriptionId"],
                            name=sub.get("displayName") or sub["subscriptionId"],
                            tags=dict(sub.get("tags") or {}),
                        )
                    )
                url = payload.get("nextLink")
        logger.info("tenant %s has %d enabled subscriptions", tenant_id, len(units))
        return units

    def fetch(self, unit: Unit, config: Dict[str, Any]) -> Any:
        url = (
            f"{self._endpoint}/providers/Microsoft.ResourceGraph/resources"
            f"?api-version={RESOURCE_GRAPH_API_VERSION}"
        )
        resources: List[Any] = []
        skip_token: Optional[str] = None
        headers = self._headers()
        with self._session_factory() as session:
            while True:
                options: Dict[str, Any] = {"$top": self._page_size, "resultFormat": "objectArray"}
                if skip_token:
                    options["$skipToken"] = skip_token
                body = {"subscriptions": [unit.unit_id], "query": RESOURCES_QUERY, "options": options}
                try:
                    resp = session.post(url, json=body, headers=headers, timeout=self._timeout)
                except requests.Timeout as exc:
                    raise TransientCallError(f"resource query timed out: {exc}") from exc
                except requests.RequestException as exc:
                    raise FatalCallError(f"resource query failed: {type(exc).__name__}: {exc}") from exc
                _raise_for_call_status(resp)
                try:
                    payload = resp.json()
                except ValueError as exc:
                    raise FatalCallError("resource query response is not JSON") from exc

                resources.extend(payload.get("data") or [])
                skip_token = payload.get("$skipToken")
                if not skip_token:
                    break
        logger.debug("unit %s: collected %d resources", unit.unit_id, len(resources))
        return resources


def _raise_for_call_status(resp: Any) -> None:
    status = resp.status_code
    if 200 <= status < 300:
        return
    message = f"HTTP {status}: {_error_message(resp)}"
    if status == 429 or 500 <= status < 600:
        raise TransientCallError(message, status_code=status, retry_after=_retry_after(resp))
    raise FatalCallError(message, status_code=status)


def _retry_after(resp: Any) -> Optional[float]:
    value = (getattr(resp, "headers", None) or {}).get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _error_message(resp: Any) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return (getattr(resp, "text", "") or "")[:500]
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            return f"{error.get('code')}: {error.get('message')}"
        if error:
            return str(error)
        return str(payload.get("message") or "")[:500]
    return str(payload)[:500]
