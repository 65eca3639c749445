from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from dropbatch.core.database import Base


class Batch(Base):
    """A set of files sharing one share token.

    ``file_count`` is bumped by a conditional update on every insert, which is
    what keeps a finalized batch closed against in-flight uploads.
    """

    __tablename__ = "batches"

    id = Column(String(36), primary_key=True)
    share_token = Column(String(32), unique=True, index=True, nullable=False)
    owner_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    is_finalized = Column(Boolean, default=False, nullable=False)
    file_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    files = relationship("FileRecord", back_populates="batch")
