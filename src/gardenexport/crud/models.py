"""Database table definitions for content nodes, note payloads, and tags"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from uuid import uuid4

from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, DateTime, JSON, Text, String
from sqlalchemy.orm import Mapped


def _new_id() -> str:
    return uuid4().hex


class ContentTag(SQLModel, table=True):
    """Many-to-many relationship between content nodes and tags"""
    __tablename__ = "content_tags"
    content_id: str = Field(foreign_key="content_nodes.id", primary_key=True)
    tag_id: str = Field(foreign_key="tags.id", primary_key=True)


class ContentNode(SQLModel, table=True):
    """A node in a user's content tree: a note when it has a NotePayload, otherwise a folder or file"""
    __tablename__ = "content_nodes"
    id: str = Field(default_factory=_new_id, primary_key=True)
    owner_id: str = Field(..., index=True, nullable=False)
    title: str = Field(..., sa_column=Column(Text, nullable=False))
    slug: str = Field(..., index=True, nullable=False)
    parent_id: Optional[str] = Field(default=None, foreign_key="content_nodes.id", index=True)
    custom: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime(timezone=False), nullable=False))
    updated_at: datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime(timezone=False), nullable=False))
    deleted_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=False), nullable=True))
    tags: Mapped[List["Tag"]] = Relationship(back_populates="contents", link_model=ContentTag)


class NotePayload(SQLModel, table=True):
    """The document tree of a note, stored as JSON exactly as the editor produced it"""
    __tablename__ = "note_payloads"
    content_id: str = Field(foreign_key="content_nodes.id", primary_key=True)
    tree: Dict[str, Any] = Field(..., sa_column=Column(JSON, nullable=False))


class Tag(SQLModel, table=True):
    """A user-defined label that can be associated with content nodes"""
    __tablename__ = "tags"
    id: str = Field(default_factory=_new_id, primary_key=True)
    name: str = Field(..., nullable=False)
    slug: str = Field(..., sa_column=Column(String(128), nullable=False, index=True))
    color: Optional[str] = Field(default=None, sa_column=Column(String(32), nullable=True))
    contents: Mapped[List[ContentNode]] = Relationship(back_populates="tags", link_model=ContentTag)
