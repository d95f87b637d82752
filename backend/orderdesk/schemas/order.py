"""Order payloads exchanged with the order server, and submission results."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from orderdesk.models.enums import SubmissionState


class CamelModel(BaseModel):
    """Wire models: camelCase on the server side, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderPayload(CamelModel):
    """A finalized order as produced by the form.

    Opaque to the sync layer beyond its code and notification e-mail; unknown
    fields are kept and sent back to the server untouched.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    order_code: str | None = None
    order_date: str | None = None
    sales_rep_name: str | None = None
    client_name: str | None = None
    client_email: str | None = None
    responsable_name: str | None = None
    responsable_email: str | None = None
    supplier: str | None = None
    theme_selections: str | None = None
    remarks: str | None = None
    signature: str | None = None
    signature_location: str | None = None
    signature_date: str | None = None
    client_signed_name: str | None = None
    created_at: str | None = None

    @property
    def notification_email(self) -> str | None:
        return self.responsable_email or self.client_email

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class GenerateOrderResponse(CamelModel):
    order_code: str
    pdf_url: str | None = None
    excel_url: str | None = None
    emails_sent: bool = False
    email_error: str | None = None


class SyncOfflineResponse(CamelModel):
    success: bool = True
    emails_sent: bool = False
    email_error: str | None = None


class SubmissionResult(BaseModel):
    """Same shape whether the order went online or was staged offline."""

    order_code: str
    is_offline: bool
    emails_sent: bool = False
    email_error: str | None = None
    state: SubmissionState
    pdf_url: str | None = None
    excel_url: str | None = None
    storage_warning: str | None = Field(
        default=None,
        description="Set when the order could not be written to the local store",
    )
