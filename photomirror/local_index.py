from pathlib import Path
from typing import List, Optional

from loguru import logger
from sqlalchemy import Column, String, create_engine, delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from photomirror.exceptions import DuplicateKeyError, IndexStoreError

Base = declarative_base()


class LocalRecord(Base):
    """One successfully mirrored media item."""

    __tablename__ = "items"

    id = Column(String, primary_key=True)
    relative_filename = Column("filename", String, nullable=False)
    content_hash = Column("hash", String, nullable=True)

    def __repr__(self):
        return f"LocalRecord(id={self.id!r}, filename={self.relative_filename!r})"


class LocalIndex:
    """
    Durable mapping of item ID -> LocalRecord, kept in a SQLite file.
    Single writer; no locking beyond what SQLite does.
    """

    def __init__(self, location: Path):
        location = Path(location)
        location.parent.mkdir(parents=True, exist_ok=True)
        self.location = location
        try:
            self.engine = create_engine(f"sqlite:///{location}")
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise IndexStoreError(f"Cannot open index at {location}: {e}") from e
        self.Session = sessionmaker(self.engine, expire_on_commit=False)

    def lookup(self, item_id: str) -> Optional[LocalRecord]:
        try:
            with self.Session() as session:
                return session.get(LocalRecord, item_id)
        except SQLAlchemyError as e:
            raise IndexStoreError(f"Lookup of {item_id} failed: {e}") from e

    def insert(self, record: LocalRecord):
        """
        Add a record. Raises DuplicateKeyError if the ID is already indexed.
        """
        logger.debug(f"Putting {record.relative_filename} in the DB...")
        try:
            with self.Session.begin() as session:
                session.add(record)
        except IntegrityError as e:
            raise DuplicateKeyError(record.id) from e
        except SQLAlchemyError as e:
            raise IndexStoreError(f"Insert of {record.id} failed: {e}") from e

    def delete(self, item_id: str):
        try:
            with self.Session.begin() as session:
                session.execute(delete(LocalRecord).where(LocalRecord.id == item_id))
        except SQLAlchemyError as e:
            raise IndexStoreError(f"Delete of {item_id} failed: {e}") from e

    def enumerate_all(self) -> List[LocalRecord]:
        """
        Snapshot of every record at call time. Call again for a fresh one.
        """
        try:
            with self.Session() as session:
                return list(session.scalars(select(LocalRecord)))
        except SQLAlchemyError as e:
            raise IndexStoreError(f"Listing the index failed: {e}") from e

    def close(self):
        self.engine.dispose()
