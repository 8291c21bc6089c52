from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _ProviderModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class WhatsAppText(_ProviderModel):
    body: str = ""


class WhatsAppReply(_ProviderModel):
    id: Optional[str] = None
    title: Optional[str] = None


class WhatsAppInteractive(_ProviderModel):
    type: Optional[str] = None
    button_reply: Optional[WhatsAppReply] = None
    list_reply: Optional[WhatsAppReply] = None


class WhatsAppTemplateButton(_ProviderModel):
    payload: Optional[str] = None
    text: Optional[str] = None


class WhatsAppMessage(_ProviderModel):
    id: Optional[str] = None
    from_: Optional[str] = Field(default=None, alias="from")
    timestamp: Optional[str] = None
    type: Optional[str] = None
    text: Optional[WhatsAppText] = None
    button: Optional[WhatsAppTemplateButton] = None
    interactive: Optional[WhatsAppInteractive] = None

    @property
    def button_id(self) -> Optional[str]:
        if self.interactive:
            for reply in (self.interactive.button_reply, self.interactive.list_reply):
                if reply and reply.id:
                    return reply.id
        if self.button and self.button.payload:
            return self.button.payload
        return None


class WhatsAppStatus(_ProviderModel):
    id: Optional[str] = None
    status: Optional[str] = None
    timestamp: Optional[str] = None
    recipient_id: Optional[str] = None


class WhatsAppMetadata(_ProviderModel):
    display_phone_number: Optional[str] = None
    phone_number_id: Optional[str] = None


class WhatsAppValue(_ProviderModel):
    messaging_product: Optional[str] = None
    metadata: Optional[WhatsAppMetadata] = None
    messages: list[WhatsAppMessage] = Field(default_factory=list)
    statuses: list[WhatsAppStatus] = Field(default_factory=list)


class WhatsAppChange(_ProviderModel):
    field: Optional[str] = None
    value: Optional[WhatsAppValue] = None


class WhatsAppEntry(_ProviderModel):
    id: Optional[str] = None
    changes: list[WhatsAppChange] = Field(default_factory=list)


class WhatsAppWebhookPayload(_ProviderModel):
    object: Optional[str] = None
    entry: list[WhatsAppEntry] = Field(default_factory=list)

    def first_value(self) -> Optional[WhatsAppValue]:
        for entry in self.entry:
            for change in entry.changes:
                if change.value is not None:
                    return change.value
        return None


class WebhookResponse(BaseModel):
    status: str
    detail: Optional[str] = None
