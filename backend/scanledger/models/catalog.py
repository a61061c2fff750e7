"""
ScanLedger Backend — Master Catalog SQLAlchemy Model
======================================================

What:  ORM model for the `master_catalog` table, one row per registered SKU
       barcode.
Who:   Read by the catalog resolver on every scan. Written only by catalog
       management tooling, which lives outside this service.

Barcodes are the primary key, so the database itself guarantees at most one
entry per barcode.
"""

from sqlalchemy import Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from scanledger.database import Base


class MasterCatalogEntry(Base):
    """
    A registered item: the single source of truth for the attributes a scan
    copies into the ledger.

    Query Patterns:
        - Resolve a scan: SELECT ... WHERE barcode = :barcode  (primary key)
    """

    __tablename__ = "master_catalog"

    barcode: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Printed barcode; immutable once assigned",
    )
    brand: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    color: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    size: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    four_digit: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="",
        server_default=text("''"),
        comment="Short code printed next to the barcode",
    )
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        server_default=text("1"),
        comment="Nominal quantity carried by one scan of this barcode",
    )
    production: Mapped[str] = mapped_column(
        String(100), nullable=False, default="", comment="Production line"
    )
    model: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    model_code: Mapped[str] = mapped_column(
        String(50), nullable=False, default="", server_default=text("''")
    )
    item: Mapped[str] = mapped_column(
        String(100), nullable=False, default="", comment="Item category"
    )
    stock: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
        comment="Opening stock maintained by catalog management",
    )

    def __repr__(self) -> str:
        return f"<MasterCatalogEntry(barcode='{self.barcode}', model='{self.model}')>"
