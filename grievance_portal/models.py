# grievance_portal/models.py
from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, Index
import datetime

from grievance_portal.db import Base


class OtpRecord(Base):
    __tablename__ = "otps"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    code = Column(String(6), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)
    verified = Column(Boolean, nullable=False, default=False)


class Grievance(Base):
    __tablename__ = "grievances"
    __table_args__ = (
        Index("idx_grievances_status", "status"),
        Index("idx_grievances_created_at", "created_at"),
        # tracking ids are never reused
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False)
    external_id = Column(String(50), nullable=False)
    department = Column(String(255), nullable=False)
    year = Column(String(10), nullable=True)
    email = Column(String(255), nullable=False, index=True)
    mobile = Column(String(20), nullable=False)
    # ciphertext only; see SecretStore
    grievance_type_ciphertext = Column(Text, nullable=False)
    grievance_body_ciphertext = Column(Text, nullable=False)
    status = Column(String(32), nullable=False, default="pending")
    email_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.datetime.utcnow)


class AdminUser(Base):
    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(64), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    full_name = Column(String(255), nullable=True)
    role = Column(String(32), nullable=False, default="admin")
    is_first_login = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.datetime.utcnow)
