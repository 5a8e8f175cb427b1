from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from db.database import Base


class OnlineClass(Base):
    __tablename__ = "online_classes"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String(20), default="scheduled", nullable=False)
    meeting_link = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class MeetLink(Base):
    __tablename__ = "meet_links"

    id = Column(Integer, primary_key=True, index=True)
    link = Column(String(500), nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
