from pydantic import BaseModel


class WebhookResponse(BaseModel):
    status: str
    accepted: int
