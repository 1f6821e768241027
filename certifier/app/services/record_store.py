"""
Persistent record store boundary.

The store is an external collaborator. The engine hands it one flat
payload per issuance and gets back the new record id. There is no
update or delete: issuance history is append-only.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Protocol

logger = logging.getLogger(__name__)


class CertificateRecordStore(Protocol):
    async def insert_certificate(self, payload: Mapping[str, Any]) -> int:
        """
        Append one issuance record and return its id.

        ``payload`` holds ``resident_name``, ``type_``, ``issued_date``
        (ISO-8601), ``amount`` and, when known, ``age``, ``civil_status``,
        ``ownership_text`` and ``purpose``.
        """
        ...


class InMemoryRecordStore:
    """
    Append-only store held in process memory.

    Ids start at 1 and increase by one per insert, like an autoincrement
    primary key. No uniqueness constraint is applied.
    """

    def __init__(self) -> None:
        self.records: List[Dict[str, Any]] = []
        self._next_id = 1

    async def insert_certificate(self, payload: Mapping[str, Any]) -> int:
        record_id = self._next_id
        self._next_id += 1
        self.records.append({"id": record_id, **payload})
        logger.debug("Stored certificate record %d", record_id)
        return record_id
