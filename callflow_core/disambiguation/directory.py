"""
Entity Directory

Looks up candidate customer accounts for a caller address. Accounts are
indexed by two phone number fields; addresses in international form are
normalized to the national form before lookup.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

import structlog

logger = structlog.get_logger(__name__)


INTERNATIONAL_PREFIX = "+61"
NATIONAL_PREFIX = "0"

PHONE_FIELDS = ("PhoneNumber1", "PhoneNumber2")


def normalize_phone_number(address: str) -> str:
    """Convert +61 numbers to their national form."""
    if address.startswith(INTERNATIONAL_PREFIX):
        return NATIONAL_PREFIX + address[len(INTERNATIONAL_PREFIX):]
    return address


def make_account(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build an account candidate from a stored record, deriving
    DateOfBirthSimple (DDMMYYYY), FirstName and LastName.
    """
    account = dict(record)
    account["DateOfBirthSimple"] = str(account.get("DateOfBirth") or "").replace("/", "")

    account["FirstName"] = ""
    account["LastName"] = ""

    name = account.get("AccountName")
    if name:
        names = str(name).split(" ")
        account["FirstName"] = names[0]
        if len(names) > 1:
            account["LastName"] = " ".join(names[1:])

    return account


class EntityDirectory(ABC):
    """Source of candidate accounts for a caller."""

    @abstractmethod
    async def find_candidates(self, address: str) -> List[Dict[str, Any]]:
        """
        Find accounts matching an address.

        Returns:
            Candidate accounts, unique by AccountNumber
        """
        pass


class InMemoryEntityDirectory(EntityDirectory):
    """Entity directory over account records held in memory."""

    def __init__(self, records: Optional[Iterable[Dict[str, Any]]] = None):
        self._records: List[Dict[str, Any]] = list(records or [])

    def add(self, record: Dict[str, Any]) -> None:
        self._records.append(record)

    async def find_candidates(self, address: str) -> List[Dict[str, Any]]:
        normalized = normalize_phone_number(address)

        seen = set()
        accounts: List[Dict[str, Any]] = []

        for field in PHONE_FIELDS:
            for record in self._records:
                if record.get(field) != normalized:
                    continue
                account = make_account(record)
                if account.get("AccountNumber") in seen:
                    continue
                seen.add(account.get("AccountNumber"))
                accounts.append(account)

        logger.debug("account_candidates_found", address=normalized, count=len(accounts))
        return accounts
