"""
Account tables: self-registered users, organizations and their special users.

Users and special users share the SAP ID namespace without a common parent table.
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String

from .base import Base, utcnow


class UserModel(Base):
    __tablename__ = "users"

    sap_id = Column(String(50), primary_key=True, comment="SAP ID")
    username = Column(String(100), nullable=False, comment="Display name")
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(20), nullable=True)
    otp_code = Column(String(10), nullable=True)
    otp_expires_at = Column(DateTime(timezone=True), nullable=True)
    is_otp_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class OrganizationModel(Base):
    __tablename__ = "organizations"

    sap_id = Column(String(50), primary_key=True, comment="SAP ID")
    name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(20), nullable=True)
    otp_code = Column(String(10), nullable=True)
    otp_expires_at = Column(DateTime(timezone=True), nullable=True)
    is_otp_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class SpecialUserModel(Base):
    __tablename__ = "special_users"

    sap_id = Column(String(50), primary_key=True, comment="SAP ID, same namespace as users")
    organization_sap_id = Column(
        String(50), ForeignKey("organizations.sap_id"), nullable=False, index=True
    )
    username = Column(String(100), nullable=False)
    email = Column(String(255), index=True, nullable=False)
    phone = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
