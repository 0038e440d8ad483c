from __future__ import annotations

import json
import logging
import socket
import urllib.error
import urllib.request
from typing import Any, Dict, List, Mapping, Protocol

from pydantic import ValidationError

from .errors import RegistryError, SchemaMismatch
from .models import RegistryRecord

logger = logging.getLogger(__name__)

SEARCH_API_ID = "open-saber.registry.search"


class RegistryQuery(Protocol):
    def query(self, entity_type: str, filter: Mapping[str, Any]) -> List[Dict[str, Any]]:
        ...


def eq_filter(**fields: str) -> Dict[str, Dict[str, str]]:
    return {name: {"eq": value} for name, value in fields.items()}


class RegistryClient:
    """Talks to the registry search API over HTTP."""

    def __init__(self, base_url: str, timeout: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def query(self, entity_type: str, filter: Mapping[str, Any]) -> List[Dict[str, Any]]:
        payload = {
            "id": SEARCH_API_ID,
            "ver": "1.0",
            "request": {"entityType": [entity_type], "filters": dict(filter)},
        }
        request = urllib.request.Request(
            f"{self.base_url}/search",
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
        )
        request.add_header("Content-Type", "application/json")

        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                body = response.read()
                encoding = response.headers.get_content_charset() or "utf-8"
        except urllib.error.HTTPError as exc:
            raise RegistryError(f"Registry answered HTTP {exc.code}: {exc.reason}") from exc
        except urllib.error.URLError as exc:
            raise RegistryError(f"Registry unavailable: {exc.reason}") from exc
        except (socket.timeout, TimeoutError) as exc:
            raise RegistryError(f"Registry did not answer within {self.timeout}s") from exc

        try:
            document = json.loads(body.decode(encoding))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise RegistryError("Registry response is not JSON") from exc

        result = document.get("result") if isinstance(document, dict) else None
        if not isinstance(result, dict):
            raise RegistryError("Registry response carries no result object")
        records = result.get(entity_type, [])
        if not isinstance(records, list):
            raise SchemaMismatch(f"Registry result for {entity_type} is not a list")
        logger.debug("Registry returned %d %s record(s)", len(records), entity_type)
        return records


def project_records(records: List[Any]) -> List[RegistryRecord]:
    """Validate raw registry rows, failing fast on shape errors."""
    projected = []
    for index, record in enumerate(records):
        try:
            projected.append(RegistryRecord.model_validate(record))
        except ValidationError as exc:
            raise SchemaMismatch(f"Registry record #{index} has an unexpected shape: {exc}") from exc
    return projected
