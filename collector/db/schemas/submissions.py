from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SubmissionCreate(BaseModel):
    # Presence and format checks happen in the submission service so each
    # failure maps to its own reason code.
    name: Optional[str] = None
    telephone: Optional[str] = None
    gender: Optional[str] = None
    email: Optional[str] = None
    more: Optional[str] = None
    captcha_token: Optional[str] = Field(default=None, alias="captchaToken")

    model_config = ConfigDict(populate_by_name=True)

    def payload(self) -> dict:
        """Columns to persist; empty optional strings are stored as NULL."""
        return {
            "name": self.name,
            "telephone": self.telephone or None,
            "gender": self.gender or None,
            "email": self.email or None,
            "more": self.more or None,
        }


class SubmissionAck(BaseModel):
    ok: bool = True
