from functools import lru_cache

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

from tap_webhooks.services.webhook_verify import (
    DEFAULT_ALGORITHM,
    DEFAULT_HASH_FIELDS,
    DEFAULT_TOLERANCE,
    EXPIRED,
)

SIGNATURE_HEADER = "x-tap-signature"
HASHSTRING_HEADER = "hashstring"


class WebhookMessages(BaseModel):
    """Plaintext replies sent to webhook senders, one per failure category."""

    invalid_signature: str = "Invalid signature"
    invalid_payload: str = "Invalid JSON payload"
    expired: str = "Webhook expired"
    success: str = "Webhook received"

    def for_error(self, error: str | None) -> str:
        if error == EXPIRED:
            return self.expired
        return self.invalid_signature


class Settings(BaseSettings):
    secret: str | None = None
    webhook_secret: str | None = None
    webhook_tolerance: int = DEFAULT_TOLERANCE
    webhook_hash_fields: tuple[str, ...] = DEFAULT_HASH_FIELDS
    webhook_algorithm: str = DEFAULT_ALGORITHM
    webhook_signature_header: str = SIGNATURE_HEADER
    webhook_max_body_size: int | None = 1_048_576  # 1 MiB
    webhook_messages: WebhookMessages = WebhookMessages()

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Use TAP_SECRET if TAP_WEBHOOK_SECRET is not set
        if not self.webhook_secret and self.secret:
            self.webhook_secret = self.secret

    model_config = SettingsConfigDict(
        env_prefix="TAP_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
