from pydantic import BaseModel


class MailMessage(BaseModel):
    to: str
    subject: str
    body: str
