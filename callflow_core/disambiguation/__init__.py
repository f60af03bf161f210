"""
Caller Disambiguation

    from callflow_core.disambiguation import DisambiguationWorkflow, InMemoryEntityDirectory

    workflow = DisambiguationWorkflow(InMemoryEntityDirectory(records))
    outcome = await workflow.run(session)
"""

from .directory import (
    EntityDirectory,
    InMemoryEntityDirectory,
    make_account,
    normalize_phone_number,
)
from .workflow import (
    DISCRIMINATOR_FIELDS,
    DisambiguationOutcome,
    DisambiguationWorkflow,
    Discriminator,
    DiscriminatorField,
)

__all__ = [
    "EntityDirectory",
    "InMemoryEntityDirectory",
    "make_account",
    "normalize_phone_number",
    "DISCRIMINATOR_FIELDS",
    "DisambiguationOutcome",
    "DisambiguationWorkflow",
    "Discriminator",
    "DiscriminatorField",
]
