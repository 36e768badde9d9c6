"""
SQLAlchemy Models for the write store.

Only the records the analytics core reads: clients and the mapping from
clients to physically named product tables on the read replica. The lead
tables themselves are not modelled; their names are data.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _record_id() -> str:
    return f"rec_{uuid4().hex}"


class Client(Base):
    """A customer whose leads land in one or more product tables."""
    __tablename__ = "Client"

    xata_id = Column(String(255), primary_key=True, default=_record_id)
    name = Column(Text, nullable=False)
    phone = Column(Text)
    company = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="active")

    created_at = Column("xata_createdat", DateTime, default=datetime.utcnow)
    updated_at = Column("xata_updatedat", DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    table_mappings = relationship("TableMapping", back_populates="client")

    def __repr__(self):
        return f"<Client {self.name}>"


class TableMapping(Base):
    """
    Assignment of a read-replica lead table to a client.

    is_active is stored as the text "true"/"false" in the existing schema.
    """
    __tablename__ = "TableMapping"

    xata_id = Column(String(255), primary_key=True, default=_record_id)
    client_id = Column(Text, ForeignKey("Client.xata_id"), nullable=False)
    table_name = Column(String(64), nullable=False, unique=True)
    custom_table_name = Column(Text)
    table_schema = Column(Text, nullable=False, default="")
    description = Column(Text)
    image_url = Column(Text)
    is_active = Column(Text, nullable=False, default="true")

    created_at = Column("xata_createdat", DateTime, default=datetime.utcnow)
    updated_at = Column("xata_updatedat", DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = relationship("Client", back_populates="table_mappings")

    __table_args__ = (
        Index("idx_table_mapping_active", "is_active"),
    )

    def __repr__(self):
        return f"<TableMapping {self.table_name}>"
