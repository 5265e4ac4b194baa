from common.errors import NotFound
from models.enums import LifecycleState

TRASH = 'trash'
RESTORE = 'restore'
PURGE = 'purge'

# (current state, action) -> next state
TRANSITIONS = {
    (LifecycleState.ACTIVE, TRASH): LifecycleState.TRASHED,
    (LifecycleState.TRASHED, RESTORE): LifecycleState.ACTIVE,
    (LifecycleState.ACTIVE, PURGE): LifecycleState.PURGED,
    (LifecycleState.TRASHED, PURGE): LifecycleState.PURGED,
}

_REJECTIONS = {
    TRASH: "not found or already in trash",
    RESTORE: "not found in trash",
    PURGE: "not found",
}


def next_state(current: LifecycleState, action: str) -> LifecycleState:
    """Look up a transition; an item that is not in a state the action applies to is NotFound."""
    try:
        return TRANSITIONS[(current, action)]
    except KeyError:
        raise NotFound(_REJECTIONS.get(action, "not found")) from None


def allowed_actions(current: LifecycleState):
    return sorted(action for (state, action) in TRANSITIONS if state == current)
