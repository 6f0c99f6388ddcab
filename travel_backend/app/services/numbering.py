"""
Document number allocation.

Numbers look like ``ADV-20261018-0001``: a prefix, the local date and a
per-day sequence. The sequence comes from a locked counter row, never from
counting existing documents, so two concurrent requests cannot receive the
same number. The increment is rolled back together with the caller's
transaction.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from travel_backend.app.core.clock import today
from travel_backend.app.models.sequence_counter import SequenceCounter

logger = logging.getLogger("travel.numbering")

TRIP_PREFIX = "TRP"
ADVANCE_PREFIX = "ADV"
RECEIPT_PREFIX = "RCP"
SETTLEMENT_PREFIX = "STL"


async def _lock_counter(db: AsyncSession, name: str) -> Optional[SequenceCounter]:
    result = await db.execute(
        select(SequenceCounter)
        .where(SequenceCounter.name == name)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def next_number(db: AsyncSession, prefix: str, on: Optional[date] = None) -> str:
    """Allocate the next document number for ``prefix`` on the given day."""
    name = f"{prefix}-{(on or today()):%Y%m%d}"

    counter = await _lock_counter(db, name)
    if counter is None:
        # First number of the day; a concurrent creator wins the unique constraint
        try:
            async with db.begin_nested():
                counter = SequenceCounter(name=name, current_value=0)
                db.add(counter)
        except IntegrityError:
            counter = await _lock_counter(db, name)

    counter.current_value = counter.current_value + 1
    await db.flush()

    logger.debug("Allocated %s value %d", name, counter.current_value)
    return f"{name}-{counter.current_value:04d}"
