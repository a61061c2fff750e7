"""
ScanLedger Backend — Catalog Resolver
=======================================

What:  Looks a scanned barcode up in the master catalog.
How:   Exact primary-key match on the trimmed barcode. No fuzzy matching and
       no normalization beyond trimming.

A missing barcode is an ordinary outcome and comes back as None. The caller
decides how to report it; database failures are the only thing raised here.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from scanledger.exceptions import DatabaseError
from scanledger.models.catalog import MasterCatalogEntry

logger = logging.getLogger(__name__)


class CatalogResolver:
    """Read-only access to the master catalog for the scan workflow."""

    async def resolve(self, db: AsyncSession, barcode: str) -> Optional[MasterCatalogEntry]:
        """
        Find the catalog entry for a barcode.

        Returns:
            The entry, or None when the barcode is not registered.

        Raises:
            DatabaseError: the lookup query failed
        """
        code = barcode.strip()
        try:
            result = await db.execute(
                select(MasterCatalogEntry).where(MasterCatalogEntry.barcode == code)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Catalog lookup failed for barcode %s: %s", code, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not look up the barcode. Please try again.",
                context={"barcode": code, "error_type": type(e).__name__},
            ) from e


catalog_resolver = CatalogResolver()
