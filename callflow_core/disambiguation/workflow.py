"""
Disambiguation Workflow

Identifies which account a caller is acting on. The caller's address is
used to load candidate accounts; a single candidate is bound as the
Customer, several candidates are separated by asking for a discriminator
(post code, then date of birth), and no candidates prompt for an alternate
address. All progress is recorded in session state so the workflow resumes
across turns.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import structlog

from ..state.keys import StateKeys
from ..state.session import SessionState
from .directory import EntityDirectory

logger = structlog.get_logger(__name__)


ANONYMOUS_ADDRESS = "anonymous"
TRUE = "true"


class DisambiguationOutcome(str, Enum):
    """Result of one disambiguation pass."""

    SKIPPED = "skipped"
    RESOLVED = "resolved"
    AWAITING_ALTERNATE = "awaiting_alternate"
    AWAITING_DISCRIMINATOR = "awaiting_discriminator"
    IRRECONCILABLE = "irreconcilable"


class Discriminator(str, Enum):
    """Values the caller can be asked for."""

    PHONE_NUMBER = "PhoneNumber"
    POST_CODE = "PostCode"
    DATE_OF_BIRTH = "DateOfBirth"


@dataclass(frozen=True)
class DiscriminatorField:
    """A discriminator and the account field it is matched against."""

    discriminator: Discriminator
    state_key: str
    account_field: str


# Tried in order when several candidates share an address
DISCRIMINATOR_FIELDS: List[DiscriminatorField] = [
    DiscriminatorField(Discriminator.POST_CODE, "PostCode", "PostCode"),
    DiscriminatorField(Discriminator.DATE_OF_BIRTH, "DateOfBirth", "DateOfBirthSimple"),
]


class DisambiguationWorkflow:
    """Binds a caller to exactly one account, or flags that it cannot."""

    def __init__(
        self,
        directory: EntityDirectory,
        discriminators: Optional[List[DiscriminatorField]] = None,
    ):
        self.directory = directory
        self.discriminators = discriminators or DISCRIMINATOR_FIELDS

    async def run(self, state: SessionState) -> DisambiguationOutcome:
        """Advance disambiguation by one step."""
        if state.get(StateKeys.CUSTOMER) is not None:
            logger.debug("customer_already_loaded", session_id=state.session_id)
            return DisambiguationOutcome.SKIPPED

        if state.get(StateKeys.NO_ACCOUNTS) == TRUE:
            logger.debug("customer_lookup_previously_failed", session_id=state.session_id)
            return DisambiguationOutcome.SKIPPED

        address = state.get(StateKeys.CUSTOMER_PHONE_NUMBER)
        if address is None or address == ANONYMOUS_ADDRESS:
            logger.info("customer_address_missing", session_id=state.session_id)
            state.update(StateKeys.ACCOUNT_DISAMBIGUATE, Discriminator.PHONE_NUMBER.value)
            return DisambiguationOutcome.AWAITING_ALTERNATE

        requested = state.get(StateKeys.ACCOUNT_DISAMBIGUATE)
        for field in self.discriminators:
            if requested == field.discriminator.value and state.get(field.state_key) is not None:
                return self._match_discriminator(state, field)

        accounts = state.get(StateKeys.ACCOUNTS)
        alternate_supplied = requested == Discriminator.PHONE_NUMBER.value

        if accounts is None or alternate_supplied:
            accounts = await self.directory.find_candidates(address)
            state.update(StateKeys.ACCOUNTS, accounts)

        if not accounts and alternate_supplied:
            logger.info(
                "customer_alternate_address_unmatched",
                session_id=state.session_id,
                address=address,
            )
            state.update(StateKeys.NO_ACCOUNTS, TRUE)
            return DisambiguationOutcome.IRRECONCILABLE

        self._clear_progress(state)

        if len(accounts) == 1:
            logger.info(
                "customer_resolved",
                session_id=state.session_id,
                account=accounts[0].get("AccountNumber"),
            )
            state.update(StateKeys.CUSTOMER, accounts[0])
            return DisambiguationOutcome.RESOLVED

        if not accounts:
            logger.info("customer_accounts_not_found", session_id=state.session_id)
            state.update(StateKeys.ACCOUNT_DISAMBIGUATE, Discriminator.PHONE_NUMBER.value)
            state.update(StateKeys.CUSTOMER_PHONE_NUMBER, ANONYMOUS_ADDRESS)
            return DisambiguationOutcome.AWAITING_ALTERNATE

        field = self.choose_discriminator(accounts)
        if field is None:
            logger.info(
                "customer_accounts_inseparable",
                session_id=state.session_id,
                address=address,
                count=len(accounts),
            )
            state.update(StateKeys.NO_ACCOUNTS, TRUE)
            return DisambiguationOutcome.IRRECONCILABLE

        logger.info(
            "customer_discriminator_requested",
            session_id=state.session_id,
            discriminator=field.discriminator.value,
        )
        state.update(StateKeys.ACCOUNT_DISAMBIGUATE, field.discriminator.value)
        return DisambiguationOutcome.AWAITING_DISCRIMINATOR

    def choose_discriminator(
        self,
        accounts: List[Dict[str, Any]],
    ) -> Optional[DiscriminatorField]:
        """First discriminator whose values differ across every account."""
        for field in self.discriminators:
            values = {account.get(field.account_field) for account in accounts}
            if len(values) == len(accounts):
                return field
        return None

    def _match_discriminator(
        self,
        state: SessionState,
        field: DiscriminatorField,
    ) -> DisambiguationOutcome:
        supplied = state.get(field.state_key)
        accounts = state.get(StateKeys.ACCOUNTS) or []

        match = next(
            (account for account in accounts if account.get(field.account_field) == supplied),
            None,
        )

        self._clear_progress(state)

        if match is None:
            logger.info(
                "customer_discriminator_unmatched",
                session_id=state.session_id,
                discriminator=field.discriminator.value,
            )
            state.update(StateKeys.NO_ACCOUNTS, TRUE)
            return DisambiguationOutcome.IRRECONCILABLE

        logger.info(
            "customer_resolved",
            session_id=state.session_id,
            account=match.get("AccountNumber"),
            discriminator=field.discriminator.value,
        )
        state.update(StateKeys.CUSTOMER, match)
        return DisambiguationOutcome.RESOLVED

    def _clear_progress(self, state: SessionState) -> None:
        state.delete(StateKeys.NO_ACCOUNTS)
        state.delete(StateKeys.ACCOUNT_DISAMBIGUATE)
