"""Membership edge: user -> group."""

from sqlalchemy import Column, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base

from .auth_element import AuthElementMixin


class Belong(AuthElementMixin, Base):
    __tablename__ = "belongs"

    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    group_id = Column(
        String(36), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    description = Column(Text, nullable=True)

    user = relationship("User", back_populates="belongs")
    group = relationship("Group", back_populates="belongs")

    __table_args__ = (
        UniqueConstraint("user_id", "group_id", name="uq_belong_user_group"),
    )

    # Edge endpoints, in graph terms
    @property
    def source(self) -> str:
        return self.user_id

    @property
    def target(self) -> str:
        return self.group_id

    def __repr__(self):
        return f"<Belong {self.user_id} -> {self.group_id}>"
