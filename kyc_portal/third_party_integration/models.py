# Database models for the identity-data provider integration
from sqlalchemy import Column, Integer, String, Boolean, Text
from datetime import datetime, timezone

from kyc_portal.database import Base, UTCDateTime # Use the shared Base

def _utcnow():
    return datetime.now(timezone.utc)

class ExternalServiceLog(Base):
    __tablename__ = "external_service_logs" # For outgoing calls
    id = Column(Integer, primary_key=True, index=True)
    service_name_called = Column(String(100), nullable=False, index=True)

    request_timestamp = Column(UTCDateTime, default=_utcnow, index=True)
    response_timestamp = Column(UTCDateTime, nullable=True)

    http_method = Column(String(10), nullable=False)
    endpoint_url_called = Column(Text, nullable=False) # BVN masked before storing

    status_code_received = Column(Integer, nullable=True, index=True)
    is_success = Column(Boolean, nullable=True, index=True)
    error_message = Column(Text, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    attempts = Column(Integer, default=1, nullable=False)

    correlation_id = Column(String(100), index=True, nullable=True)
