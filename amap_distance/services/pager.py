from __future__ import annotations

import logging
from typing import AsyncIterator, Optional

from amap_distance.services.control import CancellationToken
from amap_distance.services.exceptions import PipelineError
from amap_distance.services.table import Record, TableClient

logger = logging.getLogger(__name__)


async def page_through(
    table: TableClient,
    page_size: int,
    token: Optional[CancellationToken] = None,
) -> AsyncIterator[Record]:
    """Yield every record of ``table`` following the collaborator's cursor.

    Raises :class:`RunCancelled` before a page fetch once ``token`` is set,
    so a stopped enumeration is never mistaken for an exhausted one.
    """

    cursor: Optional[str] = None
    page_number = 0
    while True:
        if token is not None:
            token.raise_if_cancelled()

        page = await table.get_record_page(page_size, cursor)
        page_number += 1
        logger.debug("Fetched page %s with %s records", page_number, len(page.records))

        for record in page.records:
            yield record

        if not page.has_more:
            return
        if not page.next_cursor:
            raise PipelineError(f"Table reported more records after page {page_number} without a cursor")
        cursor = page.next_cursor
