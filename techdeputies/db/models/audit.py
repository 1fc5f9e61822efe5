from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index, JSON

from .base import Base, now_utc


class AdminActionAudit(Base):
    __tablename__ = 'admin_action_audits'
    id = Column(Integer, primary_key=True, autoincrement=True)
    admin_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    action = Column(String(50), nullable=False)
    target_user_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    # Use a non-reserved Python attribute name while keeping DB column name 'details'
    details_json = Column('details', JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        Index('ix_admin_action_audits_admin_created', 'admin_id', 'created_at'),
        Index('ix_admin_action_audits_action', 'action'),
    )


class PasswordChangeAudit(Base):
    __tablename__ = 'password_change_audits'
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    changed_by_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    # user_change|user_reset|admin_reset|admin_force_change
    change_type = Column(String(30), nullable=False)
    reason = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        Index('ix_password_change_audits_user_created', 'user_id', 'created_at'),
    )
