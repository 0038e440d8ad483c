from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping

from .errors import RegistryError
from .models import CERTIFICATE_ENTITY

logger = logging.getLogger(__name__)


class InMemoryRegistry:
    """A tiny in-memory stand-in for the credential registry.

    Supports the same ``query(entity_type, filter)`` capability as the HTTP
    client, with ``{"field": {"eq": value}}`` predicates ANDed together.
    """

    def __init__(self) -> None:
        self._entities: Dict[str, List[Dict[str, Any]]] = {}

    # Records --------------------------------------------------------------
    def add(self, record: Mapping[str, Any], entity_type: str = CERTIFICATE_ENTITY) -> None:
        self._entities.setdefault(entity_type, []).append(dict(record))

    def extend(self, records: Iterable[Mapping[str, Any]], entity_type: str = CERTIFICATE_ENTITY) -> None:
        for record in records:
            self.add(record, entity_type)

    def count(self, entity_type: str = CERTIFICATE_ENTITY) -> int:
        return len(self._entities.get(entity_type, []))

    # Query ----------------------------------------------------------------
    def query(self, entity_type: str, filter: Mapping[str, Any]) -> List[Dict[str, Any]]:
        matches = []
        for record in self._entities.get(entity_type, []):
            if all(self._matches(record.get(field), predicate) for field, predicate in filter.items()):
                matches.append(copy.deepcopy(record))
        return matches

    @staticmethod
    def _matches(value: Any, predicate: Any) -> bool:
        if not isinstance(predicate, Mapping):
            return value == predicate
        for operator, expected in predicate.items():
            if operator == "eq":
                if value != expected:
                    return False
            else:
                raise RegistryError(f"Unsupported filter operator {operator!r}")
        return True

    # Housekeeping ---------------------------------------------------------
    def load_seed(self, path: Path) -> int:
        """Load ``{"VaccinationCertificate": [...]}`` style records from a JSON file."""
        with open(path, encoding="utf-8") as fd:
            payload = json.load(fd)
        if isinstance(payload, list):
            payload = {CERTIFICATE_ENTITY: payload}
        loaded = 0
        for entity_type, records in payload.items():
            self.extend(records, entity_type)
            loaded += len(records)
        logger.info("Seeded in-memory registry with %d record(s) from %s", loaded, path)
        return loaded

    def reset(self) -> None:
        self.__init__()
