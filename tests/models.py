# (c) Copyright Datacraft, 2026
"""Mapped models used as subjects and resources in tests."""
from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from authz_engine.db.base import Base


class User(Base):
	__tablename__ = "test_users"

	id: Mapped[int] = mapped_column(primary_key=True)
	name: Mapped[str] = mapped_column(String(50))

	def __repr__(self):
		return f"User({self.id}, {self.name})"


class Team(Base):
	__tablename__ = "test_teams"

	id: Mapped[int] = mapped_column(primary_key=True)
	name: Mapped[str] = mapped_column(String(50))


class Document(Base):
	__tablename__ = "test_documents"

	id: Mapped[int] = mapped_column(primary_key=True)
	title: Mapped[str] = mapped_column(String(100))
	public: Mapped[bool] = mapped_column(Boolean, default=False)
	archived: Mapped[bool] = mapped_column(Boolean, default=False)
	owner_id: Mapped[int | None] = mapped_column(
		ForeignKey("test_users.id"), nullable=True
	)

	owner: Mapped["User"] = relationship()

	def __repr__(self):
		return f"Document({self.id}, {self.title})"



class Folder(Base):
	"""Resource with a free-form text key."""

	__tablename__ = "test_folders"

	id: Mapped[str] = mapped_column(String(100), primary_key=True)
	name: Mapped[str] = mapped_column(String(50))


class Collaboration(Base):
	__tablename__ = "test_collaborations"

	id: Mapped[int] = mapped_column(primary_key=True)
	document_id: Mapped[int] = mapped_column(ForeignKey("test_documents.id"))
	user_id: Mapped[int] = mapped_column(ForeignKey("test_users.id"))
	permissions: Mapped[str] = mapped_column(String(100), default="view")

	document: Mapped["Document"] = relationship()
	user: Mapped["User"] = relationship()
