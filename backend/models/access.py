"""Grant edge: group -> target with a permission."""

from sqlalchemy import Column, Enum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base
from schemas import Permission

from .auth_element import AuthElementMixin


class Access(AuthElementMixin, Base):
    """
    Grants ``permission`` on a target's resources to every member of a group.

    One row per (group, target, permission); a group holding READ and WRITE
    on the same target has two Access records.
    """

    __tablename__ = "accesses"

    group_id = Column(
        String(36), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    target_id = Column(
        String(36), ForeignKey("targets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    permission = Column(
        Enum(Permission, native_enum=False, length=20), nullable=False, index=True
    )
    description = Column(Text, nullable=True)

    group = relationship("Group", back_populates="accesses")
    target = relationship("Target", back_populates="accesses")

    __table_args__ = (
        UniqueConstraint(
            "group_id", "target_id", "permission",
            name="uq_access_group_target_permission",
        ),
    )

    @property
    def source(self) -> str:
        return self.group_id

    def __repr__(self):
        return f"<Access {self.group_id} -{self.permission.value}-> {self.target_id}>"
