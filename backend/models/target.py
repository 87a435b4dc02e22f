"""Target model: a protected endpoint of one graph and its resource list."""

from typing import Iterable, List

from sqlalchemy import Column, JSON, String
from sqlalchemy.orm import relationship

from database import Base
from schemas import Resource

from .auth_element import AuthElementMixin


class Target(AuthElementMixin, Base):
    """
    Targets name a graph, the address serving it and an ordered list of
    :class:`schemas.Resource` descriptors. Resources are persisted as a JSON
    list and exposed as pydantic models through :attr:`resources`.
    """

    __tablename__ = "targets"

    name = Column(String(255), unique=True, nullable=False, index=True)
    graph = Column(String(255), nullable=False, index=True)
    url = Column(String(500), nullable=False)
    resources_json = Column("resources", JSON, nullable=True)

    accesses = relationship(
        "Access", back_populates="target", cascade="save-update, merge, delete"
    )

    @property
    def resources(self) -> List[Resource]:
        return [Resource.model_validate(r) for r in (self.resources_json or [])]

    @resources.setter
    def resources(self, value: Iterable[Resource]) -> None:
        self.resources_json = [
            Resource.model_validate(r).model_dump(mode="json") for r in value
        ]

    def __repr__(self):
        return f"<Target {self.name} graph={self.graph} id={self.id}>"
