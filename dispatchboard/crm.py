"""Pipedrive Projects API client.

Every call is authenticated with the caller's API token, bounded by a
timeout, and converts the raw payload into typed models before returning.
"""

from typing import Any, Callable, Dict, List, Optional, TypeVar

import requests

from .errors import CrmError, CrmTimeout, PayloadError
from .logger import get_logger
from .models import Board, Contact, Phase, ProjectRecord, parse_board, parse_contact, parse_phase, parse_record

logger = get_logger()

T = TypeVar("T")


class PipedriveClient:
    """Thin wrapper over the Pipedrive v1 endpoints the dispatcher needs."""

    def __init__(
        self,
        api_token: str,
        base_url: str = "https://api.pipedrive.com/v1",
        address_field: str = "",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.address_field = address_field
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None, json: Optional[dict] = None) -> Any:
        """Issue one API call and return the 'data' member of the response.

        Raises:
            CrmTimeout: If the call exceeds the timeout
            CrmError: On any HTTP error, transport failure or unsuccessful payload
        """
        url = f"{self.base_url}{path}"
        query = dict(params or {})
        query["api_token"] = self.api_token
        logger.record_crm_call()
        try:
            resp = self.session.request(method, url, params=query, json=json, timeout=self.timeout)
            resp.raise_for_status()
            body = resp.json()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            logger.record_error(f"HTTPError_{status}")
            logger.error("CRM request failed", method=method, path=path, status=status)
            raise CrmError(f"CRM request failed ({status}): {method} {path}", status=status) from e
        except requests.exceptions.Timeout as e:
            logger.record_error("Timeout")
            logger.warning("CRM request timed out", method=method, path=path, timeout=self.timeout)
            raise CrmTimeout(f"CRM request timed out after {self.timeout}s: {method} {path}") from e
        except requests.exceptions.RequestException as e:
            logger.record_error("RequestException")
            logger.error("CRM request error", method=method, path=path, error=str(e))
            raise CrmError(f"CRM request error: {e}") from e
        except ValueError as e:
            logger.record_error("InvalidJSON")
            raise CrmError(f"CRM returned invalid JSON for {method} {path}") from e

        if isinstance(body, dict) and body.get("success") is False:
            message = body.get("error") or "unknown error"
            logger.record_error("ApiError")
            logger.error("CRM API reported failure", method=method, path=path, error=message)
            raise CrmError(f"CRM API error: {message}")
        return body.get("data") if isinstance(body, dict) else None

    def _parse_list(self, items: Any, parser: Callable[[Dict[str, Any]], T], kind: str) -> List[T]:
        """Parse a list payload, skipping malformed entries."""
        result: List[T] = []
        for raw in items or []:
            try:
                result.append(parser(raw))
            except (PayloadError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed {kind}", error=str(e))
        return result

    def list_boards(self) -> List[Board]:
        data = self._request("GET", "/projects/boards")
        return self._parse_list(data, parse_board, "board")

    def list_phases(self, board_id: int) -> List[Phase]:
        data = self._request("GET", "/projects/phases", params={"board_id": board_id})
        return self._parse_list(data, parse_phase, "phase")

    def list_open_records(self, limit: int = 500) -> List[ProjectRecord]:
        """Open projects in default order. No pagination: anything past limit is dropped."""
        data = self._request("GET", "/projects", params={"status": "open", "limit": limit})
        return self._parse_list(data, parse_record, "project")

    def get_contact(self, person_id: int) -> Contact:
        data = self._request("GET", f"/persons/{person_id}")
        if not isinstance(data, dict):
            raise CrmError(f"Person {person_id} not found")
        try:
            return parse_contact(data, self.address_field)
        except (TypeError, ValueError) as e:
            raise PayloadError(f"Malformed person {person_id}: {e}") from e

    def update_contact_address(self, person_id: int, address: str) -> None:
        self._request("PUT", f"/persons/{person_id}", json={self.address_field: address})

    def update_record_phase(self, record_id: int, phase_id: int) -> None:
        self._request("PUT", f"/projects/{record_id}", json={"phase_id": phase_id})
