from pydantic import BaseModel, Field, JsonValue, RootModel


class WebhookPayload(RootModel[dict[str, JsonValue]]):
    """Decoded webhook body; the top level must be a JSON object."""

    @property
    def resource(self) -> str:
        value = self.root.get("object")
        return value if isinstance(value, str) else "unknown"

    @property
    def event_id(self) -> str | None:
        value = self.root.get("id")
        return value if isinstance(value, str) else None


class TapChargePayload(BaseModel, extra="allow"):
    """Required structure of a Tap charge/refund/authorize notification."""

    id: str = Field(..., description="Provider object ID")
    amount: float = Field(..., description="Amount in the charge currency")
    currency: str = Field(..., description="ISO 4217 currency code")
    status: str = Field(..., description="Provider status, e.g. CAPTURED")
    created: float = Field(..., description="Unix timestamp")
    gateway: dict[str, JsonValue] | list[JsonValue] | None = None
    reference: dict[str, JsonValue] | list[JsonValue] | None = None
