"""
Pydantic schemas for push notification registration.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pingy.utils.helpers import is_valid_push_endpoint


def _validate_endpoint(v: str) -> str:
    v = v.strip()
    if not is_valid_push_endpoint(v):
        raise ValueError("Push endpoint must be a valid http(s) URL or apns://<device-token>")
    return v


class PushKeys(BaseModel):
    """Client encryption keys (placeholders for APNs devices)."""

    p256dh: str = Field(..., min_length=1, max_length=300)
    auth: str = Field(..., min_length=1, max_length=300)


class PushSubscriptionPayload(BaseModel):
    """A browser PushSubscription or an APNs device registration."""

    endpoint: str = Field(..., max_length=2000)
    keys: PushKeys
    expiration_time: Optional[float] = Field(None, alias="expirationTime")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        return _validate_endpoint(v)


class PushSubscriptionSave(BaseModel):
    """Schema for registering a device."""

    subscription: PushSubscriptionPayload

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "subscription": {
                    "endpoint": "apns://" + "ab" * 32,
                    "keys": {"p256dh": "apns", "auth": "ios"}
                }
            }
        }
    )


class PushSubscriptionDelete(BaseModel):
    """Schema for unregistering a device."""

    endpoint: str = Field(default="", max_length=2000)


class PushPublicKeyResponse(BaseModel):
    """What a client needs to decide whether and how to subscribe."""

    enabled: bool
    web_push_enabled: bool = Field(serialization_alias="webPushEnabled")
    public_key: Optional[str] = Field(None, serialization_alias="publicKey")


class OkResponse(BaseModel):
    """Generic acknowledgement."""

    ok: bool = True
