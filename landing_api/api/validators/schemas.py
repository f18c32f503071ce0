"""Pydantic request schemas.

Bodies arrive camelCase from the landing page. Only types are checked here;
presence and format of the phone number are judged by the call pipeline so
that the honeypot and bot checks run first.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Call schemas
# ---------------------------------------------------------------------------

class InitiateCallRequest(CamelModel):
    phone_number: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    message: Optional[str] = None
    honeypot: Optional[str] = None
    recaptcha_token: Optional[str] = None
    # Epoch milliseconds when the form was rendered
    form_start_time: Optional[float] = None
    user_interacted: Optional[bool] = None


# ---------------------------------------------------------------------------
# Payment schemas
# ---------------------------------------------------------------------------

class VerifyPaymentRequest(CamelModel):
    reference: Optional[str] = None
