import hashlib
import hmac
import math
import re
import time
from typing import Any, Mapping, Sequence

from pydantic import JsonValue

from tap_webhooks.schemas.validation import ValidationResult

# Field order is part of the provider's signing contract
DEFAULT_HASH_FIELDS = ("id", "amount", "currency", "status", "created")
DEFAULT_TOLERANCE = 300
DEFAULT_ALGORITHM = "sha256"

INVALID_SIGNATURE_LENGTH = "missing or invalid signature length"
EMPTY_PAYLOAD = "empty payload"
SIGNATURE_MISMATCH = "signature mismatch"
EXPIRED = "webhook expired or timestamp invalid"

_INTEGER_RE = re.compile(r"-?[0-9]+")


class TapWebhookError(Exception):
    pass


class ConfigurationError(TapWebhookError):
    """Raised when a verifier is wired with unusable settings."""


def _stringify(value: JsonValue) -> str | None:
    """
    Render a payload value the way the provider does when signing.

    Returns None for values that count as absent.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "1" if value else ""
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, str):
        return value
    # arrays and objects are signed as empty strings
    return ""


def build_hash_string(
    payload: Mapping[str, JsonValue], hash_fields: Sequence[str] = DEFAULT_HASH_FIELDS
) -> str:
    """
    Concatenate the signed payload fields in order, without a delimiter.

    Fields missing from the payload contribute nothing.
    """
    parts = []
    for field in hash_fields:
        if field not in payload:
            continue
        rendered = _stringify(payload[field])
        if rendered is not None:
            parts.append(rendered)
    return "".join(parts)


def _parse_timestamp(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if _INTEGER_RE.fullmatch(text):
            return int(text)
    return None


class WebhookVerifier:
    """
    Verifies Tap webhook signatures and replay tolerance.

    Instances are immutable after construction and may be shared between
    threads; every check is a pure function of the payload, the signature
    and the current time.
    """

    __slots__ = ("_secret", "_hash_fields", "_tolerance", "_algorithm", "_digest_size")

    def __init__(
        self,
        secret: str | None,
        hash_fields: Sequence[str] = DEFAULT_HASH_FIELDS,
        tolerance_seconds: int = DEFAULT_TOLERANCE,
        algorithm: str = DEFAULT_ALGORITHM,
    ) -> None:
        if not secret:
            raise ConfigurationError(
                "Webhook secret key is not configured. "
                "Set TAP_WEBHOOK_SECRET or TAP_SECRET."
            )
        if tolerance_seconds < 0:
            raise ConfigurationError(
                f"Webhook tolerance must not be negative, got {tolerance_seconds}"
            )
        try:
            digest_size = hashlib.new(algorithm).digest_size
        except (ValueError, TypeError) as exc:
            raise ConfigurationError(
                f"Unsupported webhook hash algorithm: {algorithm!r}"
            ) from exc
        if not digest_size:
            raise ConfigurationError(
                f"Hash algorithm {algorithm!r} has no fixed digest size"
            )

        self._secret = secret.encode("utf-8", "surrogatepass")
        self._hash_fields = tuple(hash_fields)
        self._tolerance = int(tolerance_seconds)
        self._algorithm = algorithm
        self._digest_size = digest_size

    @classmethod
    def from_settings(cls, settings, secret: str | None = None) -> "WebhookVerifier":
        """Build a verifier from Settings, optionally overriding the secret."""
        return cls(
            secret or settings.webhook_secret,
            hash_fields=settings.webhook_hash_fields,
            tolerance_seconds=settings.webhook_tolerance,
            algorithm=settings.webhook_algorithm,
        )

    @property
    def hash_fields(self) -> tuple[str, ...]:
        return self._hash_fields

    @property
    def tolerance_seconds(self) -> int:
        return self._tolerance

    @property
    def algorithm(self) -> str:
        return self._algorithm

    @property
    def signature_length(self) -> int:
        """Expected length of a hex encoded signature."""
        return self._digest_size * 2

    def __setattr__(self, name: str, value: Any) -> None:
        if hasattr(self, name):
            raise AttributeError(f"{type(self).__name__} is immutable")
        super().__setattr__(name, value)

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(hash_fields={self._hash_fields!r}, "
            f"tolerance_seconds={self._tolerance}, algorithm={self._algorithm!r})"
        )

    def compute_signature(self, payload: Mapping[str, JsonValue]) -> str:
        message = build_hash_string(payload, self._hash_fields).encode(
            "utf-8", "surrogatepass"
        )
        return hmac.new(self._secret, message, self._algorithm).hexdigest()

    def validate_signature(
        self, payload: Mapping[str, JsonValue], signature: str
    ) -> ValidationResult:
        signature = signature or ""
        if len(signature) != self.signature_length:
            return ValidationResult.failure(
                INVALID_SIGNATURE_LENGTH,
                {
                    "has_signature": bool(signature),
                    "signature_length": len(signature),
                    "expected_length": self.signature_length,
                },
            )

        if not payload:
            return ValidationResult.failure(EMPTY_PAYLOAD)

        computed = self.compute_signature(payload)
        # bytes keep compare_digest from raising on non-ASCII header values,
        # surrogatepass does the same for lone surrogates
        received = signature.encode("utf-8", "surrogatepass")
        if not hmac.compare_digest(computed.encode("ascii"), received):
            return ValidationResult.failure(
                SIGNATURE_MISMATCH,
                {
                    "expected_length": len(computed),
                    "received_length": len(signature),
                },
            )

        return ValidationResult.success()

    def check_tolerance(self, payload: Mapping[str, JsonValue]) -> ValidationResult:
        """
        Reject payloads whose `created` timestamp is too far from now.

        A payload without `created` passes; an unparseable one fails.
        """
        raw = payload.get("created")
        if raw is None:
            return ValidationResult.success()

        created = _parse_timestamp(raw)
        if created is None:
            return ValidationResult.failure(
                EXPIRED, {"created": raw, "reason": "unparseable"}
            )

        now = int(time.time())
        diff = abs(now - created)
        if diff > self._tolerance:
            return ValidationResult.failure(
                EXPIRED,
                {
                    "created": created,
                    "now": now,
                    "tolerance": self._tolerance,
                    "diff": diff,
                },
            )

        return ValidationResult.success()

    def validate(
        self, payload: Mapping[str, JsonValue], signature: str
    ) -> ValidationResult:
        result = self.validate_signature(payload, signature)
        if not result.valid:
            return result
        return self.check_tolerance(payload)
