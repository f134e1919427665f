from enum import StrEnum


class SyncAction(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    CONFLICT = "conflict"
    UNCHANGED = "unchanged"


class StatisticKey(StrEnum):
    TOTAL_NOTES = "total_notes"
    TOTAL_SHARES = "total_shares"


# Device ids are opaque but must carry enough entropy to act as an
# anonymous namespace for note ids.
MIN_DEVICE_ID_LENGTH = 8

DEFAULT_NOTE_TITLE = "Untitled Note"
DEFAULT_SHARE_TITLE = "Shared Note"

# Share ids are the first 8 hex characters of a uuid4.
SHARE_ID_LENGTH = 8
