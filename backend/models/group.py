"""Group model: a container for membership and the holder of grants."""

from sqlalchemy import Column, String, Text
from sqlalchemy.orm import relationship

from database import Base

from .auth_element import AuthElementMixin


class Group(AuthElementMixin, Base):
    __tablename__ = "groups"

    name = Column(String(255), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)

    belongs = relationship(
        "Belong", back_populates="group", cascade="save-update, merge, delete"
    )
    accesses = relationship(
        "Access", back_populates="group", cascade="save-update, merge, delete"
    )

    def __repr__(self):
        return f"<Group {self.name} id={self.id}>"
