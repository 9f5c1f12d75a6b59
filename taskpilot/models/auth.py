"""
Auth Models — platform users and their global role.

The global role is platform-wide and independent of any scope membership.
Only SUPER_ADMIN carries meaning for access control: it bypasses every
organization / workspace / project check.
"""

from datetime import datetime, timezone

from taskpilot.models import db, new_uuid


# ═══════════════════════════════════════════════════════════════
# USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    email = db.Column(db.String(200), unique=True, nullable=False)
    full_name = db.Column(db.String(200))
    role = db.Column(db.String(20), nullable=False, default="USER")  # USER, SUPER_ADMIN
    status = db.Column(db.String(20), default="active")  # active, invited, inactive
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    organization_memberships = db.relationship(
        "OrganizationMember", back_populates="user", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    workspace_memberships = db.relationship(
        "WorkspaceMember", back_populates="user", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    project_memberships = db.relationship(
        "ProjectMember", back_populates="user", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email}>"
