from __future__ import annotations

from urllib.parse import urlsplit

from pydantic import BaseModel, Field, field_validator

from ..models import NotificationConfig, ServiceSpec


class ServiceRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    url: str = Field(..., min_length=1, max_length=2048)
    interval: int = Field(..., ge=30, le=3600)

    @field_validator("url")
    @classmethod
    def _require_http_url(cls, value: str) -> str:
        s = value.strip()
        parts = urlsplit(s)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ValueError("url must be an absolute http(s) URL")
        return s

    def to_spec(self) -> ServiceSpec:
        return ServiceSpec(name=self.name, url=self.url, interval=self.interval)


class CreateServiceRequest(ServiceRequest):
    pass


class UpdateServiceRequest(ServiceRequest):
    pass


class BulkUpdateServiceItem(ServiceRequest):
    id: str = Field(..., min_length=1, max_length=80)


class BulkCreateServiceRequest(BaseModel):
    services: list[CreateServiceRequest] = Field(..., min_length=1, max_length=100)


class BulkUpdateServiceRequest(BaseModel):
    services: list[BulkUpdateServiceItem] = Field(..., min_length=1, max_length=100)


class BulkDeleteServiceRequest(BaseModel):
    ids: list[str] = Field(..., min_length=1, max_length=100)


class NotificationConfigRequest(BaseModel):
    userKey: str = Field("", max_length=200)
    appToken: str = Field("", max_length=200)
    enabled: bool = False

    def to_config(self) -> NotificationConfig:
        return NotificationConfig(user_key=self.userKey, app_token=self.appToken, enabled=self.enabled)
