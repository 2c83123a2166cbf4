"""
Configuration lifecycle status.

A law change produces a new configuration version with a later effective
date; a published version is never edited in place.  Superseded versions
remain resolvable for their own date range so that past periods can be
recomputed against the rules that governed them.
"""

from enum import Enum, unique


@unique
class ConfigStatus(str, Enum):
    DRAFT = "draft"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    PUBLISHED = "published"
    SUPERSEDED = "superseded"


# Review can send a version back to draft until it is published
_NEXT_STATUSES: dict[ConfigStatus, frozenset[ConfigStatus]] = {
    ConfigStatus.DRAFT: frozenset({ConfigStatus.REVIEWED}),
    ConfigStatus.REVIEWED: frozenset({ConfigStatus.APPROVED, ConfigStatus.DRAFT}),
    ConfigStatus.APPROVED: frozenset({ConfigStatus.PUBLISHED, ConfigStatus.DRAFT}),
    ConfigStatus.PUBLISHED: frozenset({ConfigStatus.SUPERSEDED}),
    ConfigStatus.SUPERSEDED: frozenset(),
}

# Only these can govern a calculation
RESOLVABLE_STATUSES: frozenset[ConfigStatus] = frozenset(
    {ConfigStatus.PUBLISHED, ConfigStatus.SUPERSEDED}
)


def validate_transition(current: ConfigStatus, target: ConfigStatus) -> bool:
    """True when ``current`` may move to ``target``."""
    return target in _NEXT_STATUSES[current]
