ACTIVE = "active"
ARCHIVED = "archived"

MATCH_STATUSES = frozenset({ACTIVE, ARCHIVED})
TERMINAL_STATUSES = frozenset({ARCHIVED})


def transition_status(current: str, action: str) -> str:
    if current in TERMINAL_STATUSES:
        return current

    if action == "archive":
        if current == ACTIVE:
            return ARCHIVED
        return current

    return current


def is_active(status: str | None) -> bool:
    return status == ACTIVE
