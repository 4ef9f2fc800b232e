import logging
from typing import Any, NoReturn

from fastapi import HTTPException, Request, status
from pydantic import BaseModel, ValidationError

from tap_webhooks.core.config import Settings, get_settings
from tap_webhooks.schemas.ingest import WebhookPayload
from tap_webhooks.services.secrets import WebhookSecretResolver, WebhookVerifierFactory

logger = logging.getLogger(__name__)


class TapWebhook:
    """
    FastAPI dependency that admits only verified Tap webhooks.

    Mount it on your own endpoint:

        tap_webhook = TapWebhook(schema=TapChargePayload)

        @app.post("/tap/webhook")
        def receive(payload: dict = Depends(tap_webhook)):
            ...
            return tap_webhook.acknowledge()

    Pass header=HASHSTRING_HEADER for integrations that send the signature
    in the `hashstring` header instead of `x-tap-signature`. When `schema`
    is given, verified payloads must also validate against it.

    Rejections are returned as FastAPI error bodies, {"detail": <message>},
    with the message taken from settings.webhook_messages.
    """

    def __init__(
        self,
        header: str | None = None,
        settings: Settings | None = None,
        resolver: WebhookSecretResolver | None = None,
        schema: type[BaseModel] | None = None,
    ):
        self.settings = settings or get_settings()
        self.header = header or self.settings.webhook_signature_header
        self.schema = schema
        self.factory = WebhookVerifierFactory(self.settings, resolver)
        # payloads without a tenant override fall back to the default secret
        self.factory.default()

    def _reject(
        self, message: str, reason: str, context: dict[str, Any], ip: str
    ) -> NoReturn:
        logger.warning(
            f"Rejected Tap webhook from {ip}: {reason}",
            extra={"webhook_context": context},
        )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)

    def _check_size(self, size: int) -> None:
        limit = self.settings.webhook_max_body_size
        if limit is not None and size > limit:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail="Payload too large",
            )

    def acknowledge(self) -> dict[str, str]:
        return {"detail": self.settings.webhook_messages.success}

    async def __call__(self, request: Request) -> dict[str, Any]:
        messages = self.settings.webhook_messages
        ip = request.client.host if request.client else "unknown"

        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit():
            self._check_size(int(content_length))

        raw = await request.body()
        self._check_size(len(raw))
        if not raw:
            self._reject(messages.invalid_payload, "Empty payload", {}, ip)

        try:
            payload = WebhookPayload.model_validate_json(raw)
        except ValidationError as ve:
            self._reject(
                messages.invalid_payload,
                "Invalid JSON payload",
                {"errors": ve.error_count()},
                ip,
            )

        signature = request.headers.get(self.header, "")
        verifier = self.factory.for_payload(payload.root)
        result = verifier.validate(payload.root, signature)
        if not result:
            context = result.get_context()
            context["header"] = self.header
            self._reject(messages.for_error(result.error), result.error, context, ip)

        if self.schema is not None:
            try:
                self.schema.model_validate(payload.root)
            except ValidationError as ve:
                fields = sorted({".".join(map(str, e["loc"])) for e in ve.errors()})
                self._reject(
                    messages.invalid_payload,
                    "Invalid payload structure",
                    {"fields": fields},
                    ip,
                )

        logger.info(
            f"Accepted Tap webhook {payload.event_id} for resource {payload.resource}"
        )
        return payload.root
