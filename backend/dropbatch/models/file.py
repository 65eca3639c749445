import uuid
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from dropbatch.core.database import Base


class FileRecord(Base):
    __tablename__ = "files"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    filename = Column(String, nullable=False)
    file_size = Column(BigInteger, nullable=False)
    file_type = Column(String, default="", nullable=False)
    storage_path = Column(String, unique=True, nullable=False)
    batch_id = Column(String(36), ForeignKey("batches.id"), index=True, nullable=False)
    share_token = Column(String(32), index=True, nullable=False)
    owner_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    position = Column(Integer, nullable=False, default=0)
    download_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=True)
    is_finalized = Column(Boolean, default=False, nullable=False)

    batch = relationship("Batch", back_populates="files")
