"""
Node Model.

Database model for outline nodes. Nodes form a forest: a null parent_id
marks a root, and position orders a node among the siblings that share
its parent_id.
"""

from sqlalchemy import JSON, Index, String, Text
from sqlalchemy.ext.mutable import MutableList
from sqlalchemy.orm import Mapped, mapped_column

from outliner.backend.models.base import Base, TimestampMixin, UUIDMixin


class Node(UUIDMixin, TimestampMixin, Base):
    """
    Node database model.

    Positions are zero-based and contiguous within a sibling group; the
    tree engine is the only writer that maintains that ordering.
    parent_id carries no foreign key: cascading deletes are performed by
    the engine so that its sibling renumbering happens in the same
    transaction.
    """

    __tablename__ = "nodes"
    __table_args__ = (
        Index("ix_nodes_parent_position", "parent_id", "position"),
    )

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    parent_id: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
        index=True,
    )
    position: Mapped[int] = mapped_column(
        default=0,
        nullable=False,
    )
    is_completed: Mapped[bool] = mapped_column(
        default=False,
        nullable=False,
    )
    is_expanded: Mapped[bool] = mapped_column(
        default=True,
        nullable=False,
    )
    is_starred: Mapped[bool] = mapped_column(
        default=False,
        nullable=False,
    )
    tags: Mapped[list[str]] = mapped_column(
        MutableList.as_mutable(JSON),
        default=list,
        nullable=False,
    )
    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    mirror_id: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Node(id={self.id}, parent_id={self.parent_id}, position={self.position})>"
