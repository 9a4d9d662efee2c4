"""Contact model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, String, text
from sqlalchemy.orm import relationship

from app.persistence.database import Base


class Contact(Base):
    """Deduplicated identity of a person within one webhook source.

    At most one non-deleted contact exists per (source_webhook_id, phone);
    the partial unique index is what the resolver's insert-or-fetch relies on.
    """

    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, index=True)
    source_webhook_id = Column(String(100), nullable=False, index=True)
    phone = Column(String(20), nullable=True)  # +1XXXXXXXXXX
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(2), nullable=True)
    zip_code = Column(String(10), nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index(
            "uq_contacts_source_phone_active",
            "source_webhook_id",
            "phone",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    # Relationships
    leads = relationship("Lead", back_populates="contact", passive_deletes=True)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def __repr__(self) -> str:
        return f"<Contact(id={self.id}, source_webhook_id={self.source_webhook_id}, phone={self.phone})>"
