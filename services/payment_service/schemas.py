from pydantic import BaseModel


class CreateIntentRequest(BaseModel):
    session_id: str


class CreateIntentResponse(BaseModel):
    order_id: int
    client_secret: str


class WebhookAck(BaseModel):
    received: bool = True
