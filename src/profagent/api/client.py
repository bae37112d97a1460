"""Cloud Profiler v2 REST client."""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Optional

import httpx

from profagent.core.config import ApiConfig
from profagent.core.errors import RemoteError, RetryableError

from .models import PROFILE_TYPES, Deployment, ProfileAssignment

logger = logging.getLogger(__name__)

_RETRY_INFO_TYPE = "type.googleapis.com/google.rpc.RetryInfo"
_SECONDS_RE = re.compile(r"(\d+(?:\.\d+)?)s")


def _retry_delay(payload: Any) -> Optional[float]:
    """Extract ``RetryInfo.retryDelay`` in seconds from a google.rpc error body."""
    if not isinstance(payload, dict):
        return None
    details = (payload.get("error") or {}).get("details") or []
    for detail in details:
        if not isinstance(detail, dict) or detail.get("@type") != _RETRY_INFO_TYPE:
            continue
        delay = detail.get("retryDelay")
        if isinstance(delay, str):
            m = _SECONDS_RE.fullmatch(delay)
            if m:
                return float(m.group(1))
    return None


class ProfilerClient:
    """Thin wrapper over ``projects.profiles.create`` and ``profiles.patch``."""

    def __init__(self, config: Optional[ApiConfig] = None, http_client: Optional[httpx.Client] = None):
        self.config = config or ApiConfig()
        headers = {"User-Agent": "profagent"}
        if self.config.access_token:
            headers["Authorization"] = f"Bearer {self.config.access_token}"
        self._http = http_client or httpx.Client(base_url=self.config.api_base, headers=headers)

    @property
    def closed(self) -> bool:
        return self._http.is_closed

    def close(self) -> None:
        self._http.close()

    def _check(self, resp: httpx.Response, action: str) -> dict:
        if resp.is_success:
            return resp.json()
        try:
            payload = resp.json()
        except ValueError:
            payload = None
        message = f"{action} failed: HTTP {resp.status_code}"
        delay = _retry_delay(payload) if resp.status_code == 409 else None
        if delay is not None:
            raise RetryableError(message, retry_delay=delay, status_code=resp.status_code)
        raise RemoteError(message, status_code=resp.status_code)

    def create_profile(
        self, deployment: Deployment, profile_types: Iterable[str] = PROFILE_TYPES
    ) -> ProfileAssignment:
        body = {"deployment": deployment.to_api(), "profileType": list(profile_types)}
        resp = self._http.post(
            f"projects/{deployment.project_id}/profiles",
            json=body,
            timeout=self.config.create_timeout,
        )
        data = self._check(resp, "CreateProfile")
        logger.debug("CreateProfile returned name=%s type=%s", data.get("name"), data.get("profileType"))
        return ProfileAssignment.model_validate(data)

    def update_profile(self, assignment: ProfileAssignment) -> ProfileAssignment:
        resp = self._http.patch(
            assignment.name,
            json=assignment.to_api(),
            timeout=self.config.update_timeout,
        )
        return ProfileAssignment.model_validate(self._check(resp, "UpdateProfile"))
