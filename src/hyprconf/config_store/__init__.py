"""Profile Store: persisted configuration profiles, backups and batch operations."""
from .batch import (
    BatchOperation,
    apply_profile,
    combine,
    concat_unique,
    merge_profile,
    replace_with_profile,
)
from .snapshot import (
    document_from_dict,
    document_to_dict,
    dump_snapshot,
    dump_snapshot_json,
    load_snapshot,
    load_snapshot_json,
)
from .store import Profile, ProfileStore, ProfileSummary

__all__ = [
    "ProfileStore",
    "Profile",
    "ProfileSummary",
    "BatchOperation",
    "combine",
    "apply_profile",
    "merge_profile",
    "replace_with_profile",
    "concat_unique",
    "document_to_dict",
    "document_from_dict",
    "dump_snapshot",
    "dump_snapshot_json",
    "load_snapshot",
    "load_snapshot_json",
]
