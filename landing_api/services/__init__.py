"""Landing API services: abuse screening and provider integrations.

Routes import these modules by name (``from services import vapi``) so tests
can patch a single attribute.
"""

__all__ = [
    "call_guard",
    "paystack",
    "recaptcha",
    "vapi",
]
