#backend/nocmon/models/access.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from nocmon.database import BaseAccess

# Written by the RFID access-control subsystem; read only here.

class AccessUser(BaseAccess):
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True)
    username = Column(String(100), nullable=False)

class Door(BaseAccess):
    __tablename__ = "doors"

    door_id = Column(Integer, primary_key=True)
    door_name = Column(String(100), nullable=False)

class AccessLog(BaseAccess):
    __tablename__ = "access_logs"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=True)
    door_id = Column(Integer, ForeignKey("doors.door_id"), nullable=True)
    access_time = Column(DateTime, index=True, nullable=False)
    access_granted = Column(Boolean, nullable=False, default=False)
