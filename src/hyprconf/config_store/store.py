"""Profile Store for named configuration snapshots.

Handles:
- One self-contained YAML file per profile
- A name -> id index that is derived data, rebuilt whenever it looks wrong
- Timestamped backups in a reserved namespace, with pruning
- Soft delete into the backup area and quarantine of corrupt files

Directory structure:
    ~/.hyprconf/
    ├── profiles/
    │   ├── <id>.yaml
    │   └── index.yaml
    ├── backups/
    │   ├── <id>.yaml
    │   └── deleted/       # Soft-deleted profiles
    └── quarantine/        # Profile files that failed to load
"""
import logging
import os
import re
import shutil
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import yaml

from ..config_engine.schema import ConfigDocument
from ..config_engine.validator import ConfigValidator
from ..errors import StorageError, ValidationError
from ..utils.logging_config import timed
from .snapshot import document_from_dict, document_to_dict

logger = logging.getLogger(__name__)

INDEX_FILE = "index.yaml"
PROFILE_ID = re.compile(r"^[0-9a-f]{32}$")

KIND_PROFILE = "profile"
KIND_BACKUP = "backup"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


def _parse_time(value: Any, path: Optional[Path] = None) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except (TypeError, ValueError):
        raise StorageError(f"Invalid timestamp: {value!r}", path)


@dataclass
class ProfileSummary:
    """Lightweight listing entry for a profile or backup."""
    id: str
    name: str
    description: str
    tags: list[str]
    created_at: datetime
    updated_at: datetime
    kind: str = KIND_PROFILE
    field_count: int = 0
    keybind_count: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "tags": list(self.tags),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "kind": self.kind,
            "field_count": self.field_count,
            "keybind_count": self.keybind_count,
        }


@dataclass
class Profile:
    """A named, persisted ConfigDocument snapshot."""
    name: str
    document: ConfigDocument
    id: str = field(default_factory=_new_id)
    description: str = ""
    tags: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    kind: str = KIND_PROFILE

    def summary(self) -> ProfileSummary:
        return ProfileSummary(
            id=self.id,
            name=self.name,
            description=self.description,
            tags=list(self.tags),
            created_at=self.created_at,
            updated_at=self.updated_at,
            kind=self.kind,
            field_count=self.document.field_count,
            keybind_count=len(self.document.keybinds),
        )

    def to_yaml(self) -> str:
        """Convert to YAML string with metadata header."""
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "kind": self.kind,
            "tags": list(self.tags),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "document": document_to_dict(self.document),
        }
        return yaml.dump(data, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_yaml(
        cls,
        yaml_str: str,
        path: Optional[Path] = None,
        validator: Optional[ConfigValidator] = None,
    ) -> "Profile":
        """
        Parse from YAML string.

        Raises:
            StorageError: If the file is not a valid profile
        """
        try:
            data = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise StorageError(f"Malformed profile YAML: {e}", path) from e
        if not isinstance(data, dict):
            raise StorageError("Profile file must contain a mapping", path)

        profile_id = str(data.get("id") or "")
        if not PROFILE_ID.match(profile_id):
            raise StorageError(f"Invalid profile id: {profile_id!r}", path)
        name = data.get("name")
        if not name:
            raise StorageError("Profile has no name", path)
        tags = data.get("tags") or []
        if not isinstance(tags, list):
            raise StorageError("Profile tags must be a list", path)

        try:
            document = document_from_dict(data.get("document") or {}, validator)
        except StorageError as e:
            raise StorageError(str(e), path) from e

        return cls(
            name=str(name),
            document=document,
            id=profile_id,
            description=str(data.get("description") or ""),
            tags=[str(tag) for tag in tags],
            created_at=_parse_time(data.get("created_at"), path),
            updated_at=_parse_time(data.get("updated_at"), path),
            kind=str(data.get("kind") or KIND_PROFILE),
        )


class ProfileStore:
    """Manages profile and backup files under one base directory."""

    def __init__(
        self,
        base_dir: Path,
        validator: Optional[ConfigValidator] = None,
        max_backups: int = 0,
    ):
        """
        Initialize the profile store.

        Args:
            base_dir: Engine data directory (profiles/, backups/, quarantine/)
            validator: Validator used when loading and saving documents
            max_backups: Keep at most this many backups (0 = unlimited)
        """
        self.base_dir = Path(base_dir)
        self.validator = validator or ConfigValidator()
        self.max_backups = max_backups
        self._ensure_directories()

    def _ensure_directories(self) -> None:
        """Create directory structure if it doesn't exist."""
        for d in (self.profiles_dir, self.backups_dir, self.deleted_dir, self.quarantine_dir):
            d.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Profile store initialized at {self.base_dir}")

    @property
    def timing_target(self) -> str:
        return str(self.base_dir)

    @property
    def profiles_dir(self) -> Path:
        return self.base_dir / "profiles"

    @property
    def backups_dir(self) -> Path:
        return self.base_dir / "backups"

    @property
    def deleted_dir(self) -> Path:
        return self.base_dir / "backups" / "deleted"

    @property
    def quarantine_dir(self) -> Path:
        return self.base_dir / "quarantine"

    @property
    def index_path(self) -> Path:
        return self.profiles_dir / INDEX_FILE

    # === File primitives ===

    @timed("profile_write")
    def _write_atomic(self, path: Path, text: str) -> None:
        """Write to a temporary name, then rename into place."""
        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to write {path.name}: {e}", path) from e

    def _load_file(self, path: Path) -> Profile:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read {path.name}: {e}", path) from e
        profile = Profile.from_yaml(text, path, self.validator)
        if profile.id != path.stem:
            raise StorageError(f"Profile id {profile.id} does not match file name", path)
        return profile

    def _quarantine(self, path: Path, error: Exception) -> Path:
        target = self.quarantine_dir / f"{path.stem}.{_now():%Y%m%d%H%M%S%f}{path.suffix}"
        shutil.move(str(path), str(target))
        logger.warning(f"Quarantined corrupt profile file {path.name}: {error}")
        return target

    def _profile_files(self, directory: Path) -> list[Path]:
        return sorted(
            p for p in directory.glob("*.yaml")
            if p.name != INDEX_FILE and p.is_file()
        )

    def _scan(self, directory: Path) -> list[Profile]:
        """Load every profile file in a directory, quarantining the corrupt ones."""
        profiles = []
        for path in self._profile_files(directory):
            try:
                profiles.append(self._load_file(path))
            except StorageError as e:
                self._quarantine(path, e)
        return profiles

    # === Index ===

    def _read_index(self) -> Optional[dict[str, dict]]:
        if not self.index_path.exists():
            return None
        try:
            data = yaml.safe_load(self.index_path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Profile index unreadable, rebuilding: {e}")
            return None
        entries = data.get("profiles") if isinstance(data, dict) else None
        if not isinstance(entries, dict) or not all(
            isinstance(v, dict) and "id" in v for v in entries.values()
        ):
            logger.warning("Profile index malformed, rebuilding")
            return None
        return entries

    def _index_consistent(self, entries: dict[str, dict]) -> bool:
        on_disk = {p.stem for p in self._profile_files(self.profiles_dir)}
        indexed = [str(v["id"]) for v in entries.values()]
        return len(indexed) == len(set(indexed)) and set(indexed) == on_disk

    def _write_index(self, profiles: list[Profile]) -> dict[str, dict]:
        entries: dict[str, dict] = {}
        for profile in sorted(profiles, key=lambda p: p.updated_at):
            if profile.name in entries:
                logger.warning(
                    f"Duplicate profile name '{profile.name}', index keeps the newest ({profile.id})"
                )
            entries[profile.name] = {
                "id": profile.id,
                "created_at": profile.created_at.isoformat(),
                "updated_at": profile.updated_at.isoformat(),
            }
        text = yaml.dump({"profiles": dict(sorted(entries.items()))}, default_flow_style=False)
        self._write_atomic(self.index_path, text)
        return entries

    def rebuild_index(self) -> dict[str, dict]:
        """Regenerate the index from the profile files on disk."""
        logger.info("Rebuilding profile index")
        return self._write_index(self._scan(self.profiles_dir))

    def index(self) -> dict[str, dict]:
        """The name -> id index, rebuilt if missing, corrupt or stale."""
        entries = self._read_index()
        if entries is None or not self._index_consistent(entries):
            return self.rebuild_index()
        return entries

    # === Profiles ===

    def list_profiles(self, tag: Optional[str] = None) -> list[ProfileSummary]:
        """
        List profiles, optionally filtered by tag.

        Corrupt files are quarantined and left out.
        """
        profiles = self._scan(self.profiles_dir)
        self.index()
        summaries = [p.summary() for p in profiles if tag is None or tag in p.tags]
        return sorted(summaries, key=lambda s: s.name.casefold())

    def get_profile(self, profile_id: str) -> Profile:
        """
        Load a profile by id.

        Raises:
            StorageError: If the profile does not exist or cannot be loaded
        """
        return self._get(self.profiles_dir, profile_id, "Profile")

    def _get(self, directory: Path, profile_id: str, label: str) -> Profile:
        if not PROFILE_ID.match(profile_id or ""):
            raise StorageError(f"{label} not found: {profile_id}")
        path = directory / f"{profile_id}.yaml"
        if not path.exists():
            raise StorageError(f"{label} not found: {profile_id}", path)
        return self._load_file(path)

    def find_by_name(self, name: str) -> Optional[Profile]:
        entry = self.index().get(name)
        if entry is None:
            return None
        return self.get_profile(str(entry["id"]))

    def _check_document(self, name: str, document: ConfigDocument) -> None:
        report = self.validator.validate_document(document)
        if not report.valid:
            raise ValidationError(name, "; ".join(report.errors))
        for warning in report.warnings:
            logger.warning(f"Profile '{name}': {warning}")

    def create_profile(
        self,
        name: str,
        document: ConfigDocument,
        description: str = "",
        tags: Optional[list[str]] = None,
    ) -> Profile:
        """
        Persist a new profile from a document.

        Raises:
            StorageError: If the name is taken or the file cannot be written
            ValidationError: If the document does not validate
        """
        name = name.strip()
        if not name:
            raise StorageError("Profile name cannot be empty")
        entries = self.index()
        if name in entries:
            raise StorageError(f"Profile '{name}' already exists")
        self._check_document(name, document)

        profile = Profile(
            name=name,
            document=document.copy(),
            description=description,
            tags=list(tags or []),
        )
        self._write_atomic(self.profiles_dir / f"{profile.id}.yaml", profile.to_yaml())
        self._write_index(self._scan(self.profiles_dir))
        logger.info(f"Created profile '{name}' ({profile.id})")
        return profile

    def save_profile(self, profile: Profile) -> Profile:
        """
        Persist changes to an existing profile (rename, tags, document).

        Raises:
            StorageError: If the profile does not exist or the new name is taken
        """
        path = self.profiles_dir / f"{profile.id}.yaml"
        if not PROFILE_ID.match(profile.id) or not path.exists():
            raise StorageError(f"Profile not found: {profile.id}", path)
        owner = self.index().get(profile.name)
        if owner is not None and owner["id"] != profile.id:
            raise StorageError(f"Profile '{profile.name}' already exists")
        self._check_document(profile.name, profile.document)

        profile.updated_at = _now()
        self._write_atomic(path, profile.to_yaml())
        self._write_index(self._scan(self.profiles_dir))
        logger.info(f"Saved profile '{profile.name}' ({profile.id})")
        return profile

    def delete_profile(self, profile_id: str) -> Path:
        """
        Soft-delete a profile into the backup area.

        Returns:
            Path of the moved file
        """
        profile = self.get_profile(profile_id)
        source = self.profiles_dir / f"{profile_id}.yaml"
        target = self.deleted_dir / f"{profile_id}.{_now():%Y%m%d%H%M%S%f}.yaml"
        try:
            shutil.move(str(source), str(target))
        except OSError as e:
            raise StorageError(f"Failed to delete profile: {e}", source) from e
        self._write_index(self._scan(self.profiles_dir))
        logger.info(f"Deleted profile '{profile.name}' ({profile_id}), kept at {target}")
        return target

    # === Backups ===

    def create_backup(self, document: ConfigDocument, reason: str = "") -> Profile:
        """Snapshot a document into the backup namespace."""
        now = _now()
        backup = Profile(
            name=f"backup-{now:%Y%m%d-%H%M%S-%f}",
            document=document.copy(),
            description=reason,
            created_at=now,
            updated_at=now,
            kind=KIND_BACKUP,
        )
        self._write_atomic(self.backups_dir / f"{backup.id}.yaml", backup.to_yaml())
        logger.info(f"Created backup {backup.name} ({backup.id}): {reason}")
        if self.max_backups > 0:
            self.prune_backups(self.max_backups)
        return backup

    def list_backups(self) -> list[ProfileSummary]:
        """Backups, newest first."""
        backups = [b.summary() for b in self._scan(self.backups_dir)]
        return sorted(backups, key=lambda s: s.created_at, reverse=True)

    def get_backup(self, backup_id: str) -> Profile:
        return self._get(self.backups_dir, backup_id, "Backup")

    def prune_backups(self, keep: int) -> list[str]:
        """
        Delete the oldest backups beyond ``keep``.

        Returns:
            Ids of the removed backups
        """
        if keep <= 0:
            return []
        removed = []
        for summary in self.list_backups()[keep:]:
            path = self.backups_dir / f"{summary.id}.yaml"
            path.unlink(missing_ok=True)
            removed.append(summary.id)
        if removed:
            logger.info(f"Pruned {len(removed)} old backup(s)")
        return removed
