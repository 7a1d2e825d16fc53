from sqlalchemy import Column, DateTime, Integer, Text, func
from .base import Base


class Submission(Base):
    __tablename__ = 'submissions'
    # Keys are chosen by the gap-filling allocator, never by the database.
    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(Text, nullable=False)
    telephone = Column(Text, nullable=True)
    gender = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    more = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
