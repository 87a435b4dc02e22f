"""Project model: a tenancy unit owning two groups and one target."""

from typing import Set

from sqlalchemy import Column, JSON, String, Text

from database import Base

from .auth_element import AuthElementMixin


class Project(AuthElementMixin, Base):
    """
    A project owns an admin group, an op group and a target describing the
    project itself; all three are created with the project and removed with
    it. ``graphs`` lists the graph names currently bound to the project, and
    a project with bound graphs cannot be deleted.

    The ids are plain strings rather than foreign keys: the project refers to
    records it manages, it does not hang off them.
    """

    __tablename__ = "projects"

    name = Column(String(255), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)

    admin_group_id = Column(String(36), nullable=True)
    op_group_id = Column(String(36), nullable=True)
    target_id = Column(String(36), nullable=True)

    graphs = Column(JSON, nullable=True)

    # Names of the records created alongside the project
    @property
    def admin_group_name(self) -> str:
        return f"{self.name}_admin_group"

    @property
    def op_group_name(self) -> str:
        return f"{self.name}_op_group"

    @property
    def target_name(self) -> str:
        return f"{self.name}_target"

    def graph_set(self) -> Set[str]:
        return set(self.graphs or [])

    def __repr__(self):
        return f"<Project {self.name} id={self.id} graphs={self.graphs or []}>"
