import logging
import threading
from typing import Mapping, Protocol

from pydantic import JsonValue

from tap_webhooks.core.config import Settings, get_settings
from tap_webhooks.services.webhook_verify import WebhookVerifier

logger = logging.getLogger(__name__)


class WebhookSecretResolver(Protocol):
    def resolve(self, payload: Mapping[str, JsonValue]) -> str | None:
        """Return the secret for this payload, or None for the default."""
        ...


class ConfigWebhookSecretResolver:
    """Always defers to the configured secret."""

    def resolve(self, payload: Mapping[str, JsonValue]) -> str | None:
        return None


class PayloadWebhookSecretResolver:
    """
    Picks a per-tenant secret from an identifier inside the payload.

    `key_path` is a dotted path, e.g. "merchant.id" reads
    payload["merchant"]["id"]. The identifier is looked up in `secrets`;
    anything missing or non-scalar falls back to the default secret.
    """

    def __init__(self, secrets: Mapping[str, str], key_path: str = "merchant.id"):
        self.secrets = dict(secrets)
        self.key_path = tuple(key_path.split("."))

    def _identifier(self, payload: Mapping[str, JsonValue]) -> str | None:
        node: JsonValue = dict(payload)
        for key in self.key_path:
            if not isinstance(node, dict) or key not in node:
                return None
            node = node[key]
        if isinstance(node, bool) or not isinstance(node, (str, int)):
            return None
        return str(node)

    def resolve(self, payload: Mapping[str, JsonValue]) -> str | None:
        identifier = self._identifier(payload)
        if identifier is None:
            return None
        return self.secrets.get(identifier) or None


class WebhookVerifierFactory:
    """Hands out the verifier to use for a given payload."""

    def __init__(
        self,
        settings: Settings | None = None,
        resolver: WebhookSecretResolver | None = None,
    ):
        self.settings = settings or get_settings()
        self.resolver = resolver or ConfigWebhookSecretResolver()
        self._default: WebhookVerifier | None = None
        self._tenants: dict[str, WebhookVerifier] = {}
        self._lock = threading.Lock()

    def default(self) -> WebhookVerifier:
        with self._lock:
            if self._default is None:
                self._default = WebhookVerifier.from_settings(self.settings)
            return self._default

    def for_payload(self, payload: Mapping[str, JsonValue]) -> WebhookVerifier:
        custom_secret = self.resolver.resolve(payload)
        if not custom_secret:
            logger.debug("Using configured webhook secret")
            return self.default()

        logger.debug(
            f"Using resolved webhook secret from {type(self.resolver).__name__}"
        )
        with self._lock:
            verifier = self._tenants.get(custom_secret)
            if verifier is None:
                verifier = WebhookVerifier.from_settings(
                    self.settings, secret=custom_secret
                )
                self._tenants[custom_secret] = verifier
            return verifier
