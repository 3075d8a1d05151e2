# portable_app/models/role.py

from .base import BaseModel, db

# Built-in pseudo roles. They have no row in ``roles`` and mean the same thing
# on every installation, so they travel between portals unchanged.
ALL_USERS_ROLE_ID = -1
UNAUTHENTICATED_ROLE_ID = -3
NO_ROLE_ID = -4

PSEUDO_ROLE_NAMES = {
    ALL_USERS_ROLE_ID: "All Users",
    UNAUTHENTICATED_ROLE_ID: "Unauthenticated Users",
}


class Role(BaseModel):
    """Model for portal security roles"""

    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    portal_id = db.Column(db.Integer, db.ForeignKey("portals.id"), nullable=False, index=True)
    name = db.Column(db.String(50), nullable=False, index=True)
    display_name = db.Column(db.String(100), nullable=True)
    is_system_role = db.Column(
        db.Boolean, default=False, nullable=False
    )  # System roles cannot be deleted

    portal = db.relationship("Portal", back_populates="roles")

    __table_args__ = (db.UniqueConstraint("portal_id", "name", name="_portal_role_name_uc"),)

    def __repr__(self):
        return f"<Role {self.name}>"


class Permission(BaseModel):
    """Catalog entry identified by (code, key), e.g. ('SYSTEM_CONTENTWORKFLOWSTATE', 'REVIEW')"""

    __tablename__ = "permissions"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(100), nullable=False, index=True)
    key = db.Column(db.String(100), nullable=False)
    name = db.Column(db.String(200), nullable=False)

    __table_args__ = (db.UniqueConstraint("code", "key", name="_permission_code_key_uc"),)

    def __repr__(self):
        return f"<Permission {self.code}/{self.key}>"


class User(BaseModel):
    """Portal member that can be granted workflow state permissions directly"""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    portal_id = db.Column(db.Integer, db.ForeignKey("portals.id"), nullable=False, index=True)
    username = db.Column(db.String(100), nullable=False, index=True)
    display_name = db.Column(db.String(200), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    portal = db.relationship("Portal", back_populates="users")

    __table_args__ = (db.UniqueConstraint("portal_id", "username", name="_portal_username_uc"),)

    def __repr__(self):
        return f"<User {self.username}>"
