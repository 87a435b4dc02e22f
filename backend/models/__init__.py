from .user import User
from .group import Group
from .target import Target
from .belong import Belong
from .access import Access
from .project import Project

__all__ = [
    "User",
    "Group",
    "Target",
    "Belong",
    "Access",
    "Project",
]
