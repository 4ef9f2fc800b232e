import os
import time

import pytest

# Set test environment variables
os.environ.update(
    {
        "TAP_SECRET": "sk_test_XKokBfNWv6FIYuTMg5sLPjhJ",
        "TAP_WEBHOOK_TOLERANCE": "300",
    }
)
os.environ.pop("TAP_WEBHOOK_SECRET", None)

from tap_webhooks.core.config import Settings, get_settings
from tap_webhooks.services.webhook_verify import WebhookVerifier

SECRET = "sk_test_XKokBfNWv6FIYuTMg5sLPjhJ"


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def verifier() -> WebhookVerifier:
    return WebhookVerifier(SECRET)


@pytest.fixture
def charge_payload() -> dict:
    return {
        "id": "chg_123",
        "amount": 10.5,
        "currency": "USD",
        "status": "CAPTURED",
        "created": int(time.time()),
    }


@pytest.fixture
def secret() -> str:
    return SECRET
