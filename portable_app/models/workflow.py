# portable_app/models/workflow.py

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .base import BaseModel, db


class Workflow(BaseModel):
    """Content approval workflow owned by a portal"""

    __tablename__ = "workflows"

    id = db.Column(db.Integer, primary_key=True)
    portal_id = db.Column(db.Integer, db.ForeignKey("portals.id"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    workflow_key = db.Column(db.String(100), nullable=True)
    is_system = db.Column(db.Boolean, default=False, nullable=False)
    is_deleted = db.Column(db.Boolean, default=False, nullable=False, index=True)

    portal = db.relationship("Portal", back_populates="workflows")
    states = db.relationship(
        "WorkflowState",
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="WorkflowState.order",
    )

    __table_args__ = (db.UniqueConstraint("portal_id", "name", name="_portal_workflow_name_uc"),)

    def __repr__(self):
        return f"<Workflow {self.name}>"

    @staticmethod
    def find_by_name(portal_id, name):
        """Find a live workflow by name with error handling"""
        try:
            return Workflow.query.filter_by(portal_id=portal_id, name=name).first()
        except SQLAlchemyError as e:
            current_app.logger.error(f"Database error finding workflow by name {name}: {str(e)}")
            return None


class WorkflowState(BaseModel):
    """Ordered step of a workflow"""

    __tablename__ = "workflow_states"

    id = db.Column(db.Integer, primary_key=True)
    workflow_id = db.Column(db.Integer, db.ForeignKey("workflows.id"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    order = db.Column("state_order", db.Integer, nullable=False, default=0)
    is_system = db.Column(db.Boolean, default=False, nullable=False)
    send_notification = db.Column(db.Boolean, default=True, nullable=False)
    send_notification_to_administrators = db.Column(db.Boolean, default=True, nullable=False)

    workflow = db.relationship("Workflow", back_populates="states")
    permissions = db.relationship(
        "WorkflowStatePermission", back_populates="state", cascade="all, delete-orphan"
    )

    __table_args__ = (db.UniqueConstraint("workflow_id", "name", name="_workflow_state_name_uc"),)

    def __repr__(self):
        return f"<WorkflowState {self.name} order={self.order}>"


class WorkflowStatePermission(BaseModel):
    """
    Access grant on a workflow state.

    The principal is a role (possibly a negative pseudo role id), a user, or
    neither, which means everyone. ``updated_at`` is the as-of timestamp used
    by date-windowed exports.
    """

    __tablename__ = "workflow_state_permissions"

    id = db.Column(db.Integer, primary_key=True)
    state_id = db.Column(db.Integer, db.ForeignKey("workflow_states.id"), nullable=False, index=True)
    permission_id = db.Column(db.Integer, db.ForeignKey("permissions.id"), nullable=False)
    role_id = db.Column(db.Integer, nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    allow_access = db.Column(db.Boolean, default=True, nullable=False)

    state = db.relationship("WorkflowState", back_populates="permissions")
    permission = db.relationship("Permission")
    user = db.relationship("User")

    def __repr__(self):
        return (
            f"<WorkflowStatePermission state={self.state_id} permission={self.permission_id} "
            f"role={self.role_id} user={self.user_id}>"
        )
