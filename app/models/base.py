"""
Pydantic base models shared by request/response validation.

DESIGN PRINCIPLE:
- Firestore documents and API JSON use the camelCase vocabulary of the web client
  (pinCode, placeId, lastLoginAt, ...)
- Python code uses snake_case attributes; aliases bridge the two
"""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base model for AlertShip payloads.
    Accepts either snake_case or camelCase on input and dumps camelCase by alias.
    """

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def to_document(self) -> dict:
        """Dump for Firestore / JSON using camelCase keys."""
        return self.model_dump(by_alias=True)
