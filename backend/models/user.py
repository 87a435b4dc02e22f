"""User model for authentication and authorization."""

from sqlalchemy import Column, String, Text
from sqlalchemy.orm import relationship

from database import Base

from .auth_element import AuthElementMixin


class User(AuthElementMixin, Base):
    """
    An identity that can log in and belong to groups.

    ``password`` holds the hash only; hashing happens before the user reaches
    the store. The resolved role is never stored here: it lives in the
    manager's resolved-role cache, keyed by user id.
    """

    __tablename__ = "users"

    name = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False)

    email = Column(String(255), nullable=True)
    phone = Column(String(64), nullable=True)
    avatar = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)

    # Removing a user removes its membership edges
    belongs = relationship(
        "Belong", back_populates="user", cascade="save-update, merge, delete"
    )

    def __repr__(self):
        return f"<User {self.name} id={self.id}>"
