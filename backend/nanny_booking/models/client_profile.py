from sqlalchemy import Column, String, JSON

from .base import BaseModel


class ClientProfile(BaseModel):
    """Remote profile record backing the booking wizard.

    The whole preference document lives in ``data`` as a flat camelCase
    mapping. Writes merge key by key so fields missing from a payload keep
    their stored values.
    """

    __tablename__ = "client_profiles"

    client_id = Column(String, primary_key=True, index=True)
    data = Column(JSON, nullable=False, default=dict)
