from enum import Enum


class LifecycleState(str, Enum):
    """Lifecycle of an Asset or Folder.

    Persisted as a nullable ``deleted_at`` timestamp; PURGED rows no longer
    exist, so it is only ever observed as the result of a transition.
    """

    ACTIVE = "active"
    TRASHED = "trashed"
    PURGED = "purged"


class StateFilter(str, Enum):
    """Which folders a subtree walk descends into."""

    ACTIVE = "active"
    TRASHED = "trashed"
    ANY = "any"
