# portable_app/models/portal.py

from .base import BaseModel, db


class Portal(BaseModel):
    """A site installation scope that owns workflows, roles and users"""

    __tablename__ = "portals"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False, index=True)
    # Tab workflow applied to new pages; one per portal
    default_workflow_id = db.Column(db.Integer, nullable=True)

    workflows = db.relationship("Workflow", back_populates="portal", cascade="all, delete-orphan")
    roles = db.relationship("Role", back_populates="portal", cascade="all, delete-orphan")
    users = db.relationship("User", back_populates="portal", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Portal {self.slug}>"
