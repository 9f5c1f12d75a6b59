"""Project domain models: Project, its membership table and Tasks."""

from datetime import datetime, timezone

from taskpilot.models import db, new_uuid


class Project(db.Model):
    """Lowest scope level; belongs to exactly one Workspace."""

    __tablename__ = "projects"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    workspace_id = db.Column(
        db.String(36),
        db.ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    # Slug lookups are global, so the slug is unique platform-wide.
    slug = db.Column(db.String(120), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=True)
    visibility = db.Column(
        db.String(20), nullable=False, default="PRIVATE",
        comment="PRIVATE | INTERNAL | PUBLIC",
    )
    status = db.Column(
        db.String(20), nullable=False, default="PLANNING",
        comment="PLANNING | ACTIVE | ON_HOLD | COMPLETED",
    )
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    workspace = db.relationship("Workspace", back_populates="projects")
    members = db.relationship(
        "ProjectMember", back_populates="project", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    tasks = db.relationship(
        "Task", back_populates="project", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def to_dict(self) -> dict:
        """Serialize core project fields for API responses."""
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "visibility": self.visibility,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Project {self.id}: {self.slug}>"


class ProjectMember(db.Model):
    __tablename__ = "project_members"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role = db.Column(db.String(20), nullable=False, default="MEMBER")
    joined_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("user_id", "project_id", name="uq_project_member"),
        db.Index("ix_project_members_project", "project_id"),
        db.Index("ix_project_members_user", "user_id"),
    )

    project = db.relationship("Project", back_populates="members")
    user = db.relationship("User", back_populates="project_memberships")

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "user_id": self.user_id,
            "role": self.role,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
            "user": self.user.to_dict() if self.user else None,
        }


class Task(db.Model):
    """Work item inside a project. Read by the analytics collaborator."""

    __tablename__ = "tasks"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="TODO")  # TODO, IN_PROGRESS, DONE
    assignee_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    reporter_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    due_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    project = db.relationship("Project", back_populates="tasks")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "status": self.status,
            "assignee_id": self.assignee_id,
            "reporter_id": self.reporter_id,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Task {self.id}: {self.title[:30]}>"
