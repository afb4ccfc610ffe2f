# catalog_service/models.py

"""
SQLAlchemy database models for the Catalog Service.
These classes define the structure of tables in the database.
"""

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base

# Base class for the ORM models
Base = declarative_base()


class Product(Base):
    """
    SQLAlchemy model for the 'products' table.
    Represents a catalog product and the filenames of its uploaded images.
    """

    # Name of the database table
    __tablename__ = "products"

    # Primary Key: random UUID hex assigned by the service, never reassigned.
    id = Column(String(32), primary_key=True)

    name = Column(String(255), nullable=False)

    description = Column(Text, nullable=False)

    # Whole currency units; fractional input is truncated before it gets here.
    price = Column(Integer, nullable=False)

    category = Column(String(64), nullable=False)

    # Ordered list of generated image filenames (at most four).
    images = Column(JSON, nullable=False, default=list)

    # Default sort key for listings (newest first).
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        # A helpful representation when debugging
        return f"<Product(id={self.id}, name='{self.name}', images={len(self.images or [])})>"
