"""Modelos SQLAlchemy compatibles con Supabase"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint, Uuid, false
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from shared.database.connection import Base


class Registration(Base):
    __tablename__ = "registrations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nombre = Column(String, nullable=False)
    telefono = Column(String, nullable=False, unique=True, index=True)  # Único: un registro por teléfono
    direccion = Column(String, nullable=False)
    iglesia = Column(String, nullable=True)
    pastor = Column(String, nullable=True)
    confirmado = Column(Boolean, nullable=False, server_default=false())
    checked_in = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class EventSetting(Base):
    __tablename__ = "event_settings"

    key = Column(String, primary_key=True)
    value = Column(String, nullable=False)  # 'true' / 'false' para registration_enabled
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Uuid, primary_key=True)  # Mismo id que auth.users (Supabase Auth)
    email = Column(String, nullable=False, index=True)
    display_name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relaciones
    roles = relationship("UserRole", back_populates="profile", cascade="all, delete-orphan")


class UserRole(Base):
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String, nullable=False)  # super_admin, admin, registrations_manager, checkin_operator
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relaciones
    profile = relationship("Profile", back_populates="roles")
