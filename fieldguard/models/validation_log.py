from sqlalchemy import Column, Integer, String, DateTime
from datetime import datetime
from fieldguard.database import Base


class ValidationLog(Base):
    __tablename__ = "validation_logs"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(String, nullable=False, index=True)

    row_index = Column(Integer, nullable=True)       # which record in the batch
    field_name = Column(String, nullable=False)

    # Action types: set_value | add_error | add_info
    action = Column(String, nullable=False)

    original_value = Column(String, nullable=True)
    new_value = Column(String, nullable=True)
    message = Column(String, nullable=True)

    # DateValidator | StringValidator | NumberValidator
    validator = Column(String, nullable=True)

    timestamp = Column(DateTime, default=datetime.utcnow)
