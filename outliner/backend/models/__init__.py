# SQLAlchemy models package
from outliner.backend.models.base import Base
from outliner.backend.models.node import Node

__all__ = ["Base", "Node"]
