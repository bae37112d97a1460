"""Profiler API resources."""

from __future__ import annotations

import base64
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Profile types the agent can collect, keyed by the API's enum names
PROFILE_TYPES = ("CPU", "WALL", "HEAP_ALLOC")


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_api(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Deployment(_ApiModel):
    project_id: str
    target: str
    labels: Dict[str, str] = Field(default_factory=dict)


class ProfileAssignment(_ApiModel):
    """A server-issued profile request, echoed back with ``profile_bytes`` filled in."""

    name: str
    profile_type: str
    duration: Optional[str] = None
    deployment: Optional[Deployment] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    profile_bytes: Optional[str] = None

    def attach_bytes(self, data: bytes) -> None:
        self.profile_bytes = base64.b64encode(data).decode("ascii")

    def decoded_bytes(self) -> bytes:
        return base64.b64decode(self.profile_bytes or "")
