"""Main Config Engine - owns the active configuration session.

Provides a single entry point for:
1. Loading state from the config file and the live channel
2. Validated field edits, pushed through to the running compositor
3. Saving the document back to hyprland.conf
4. Profile batch operations (apply, merge, replace, backup)
5. Export to native, snapshot (YAML or JSON) and Nix module text
6. Undo/redo of in-memory changes
"""
import asyncio
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from ..channel.hyprctl import HyprCtl
from ..config_store.batch import BatchOperation, combine
from ..config_store.snapshot import dump_snapshot, dump_snapshot_json
from ..config_store.store import ProfileStore, ProfileSummary
from ..errors import (
    ChannelUnavailable,
    ChannelWriteFailed,
    HyprconfError,
    ParseWarning,
    StorageError,
    ValidationError,
)
from ..nix.generator import NixModuleGenerator, NixTarget
from ..nix.importer import NixModuleImporter
from ..settings import EngineSettings
from ..utils.audit_log import AuditLog
from ..utils.logging_config import timed, timed_section
from .history import DocumentHistory
from .parser import ConfigParser
from .schema import ConfigDocument, DocumentLayout
from .serializer import ConfigSerializer
from .validator import ConfigValidator

logger = logging.getLogger(__name__)


class ExportTarget(str, Enum):
    """Text formats the active document can be exported to."""
    NATIVE = "native"
    SNAPSHOT = "snapshot"
    JSON = "json"
    NIX_SYSTEM = "nix_system"
    NIX_HOME = "nix_home"
    NIX_FLAKE_SYSTEM = "nix_flake_system"
    NIX_FLAKE_HOME = "nix_flake_home"


NIX_TARGETS = {
    ExportTarget.NIX_SYSTEM: NixTarget.SYSTEM,
    ExportTarget.NIX_HOME: NixTarget.HOME_MANAGER,
    ExportTarget.NIX_FLAKE_SYSTEM: NixTarget.FLAKE_SYSTEM,
    ExportTarget.NIX_FLAKE_HOME: NixTarget.FLAKE_HOME_MANAGER,
}


@dataclass
class EngineResult:
    """Outcome of an engine operation."""
    success: bool = False
    operation: str = ""
    message: str = ""
    error: Optional[str] = None
    error_type: Optional[str] = None
    warnings: list[str] = field(default_factory=list)
    backup_id: Optional[str] = None
    changed: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "operation": self.operation,
            "message": self.message,
            "error": self.error,
            "error_type": self.error_type,
            "warnings": self.warnings,
            "backup_id": self.backup_id,
            "changed": self.changed,
        }


class ConfigEngine:
    """
    Session object holding the one active ConfigDocument.

    Every mutation runs under a single lock, so two validate-then-apply
    sequences never interleave.

    Usage:
        engine = ConfigEngine(EngineSettings.load())
        await engine.load()
        result = await engine.set_field("general", "border_size", "3")
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        channel: Optional[HyprCtl] = None,
        store: Optional[ProfileStore] = None,
        validator: Optional[ConfigValidator] = None,
        audit: Optional[AuditLog] = None,
    ):
        """
        Initialize the Config Engine.

        Args:
            settings: Paths and knobs; defaults when omitted
            channel: Live channel adapter (defaults to the real hyprctl)
            store: Profile store (defaults to one under settings.data_dir)
            validator: Shared validator
            audit: Audit trail (defaults to settings.data_dir/audit.log)
        """
        self.settings = settings or EngineSettings()
        self.validator = validator or ConfigValidator()
        self.parser = ConfigParser(self.validator)
        self.serializer = ConfigSerializer()
        self.channel = channel or HyprCtl(self.settings.hyprctl_binary)
        self.store = store or ProfileStore(
            self.settings.data_dir, self.validator, self.settings.max_backups
        )
        self.audit = audit or AuditLog(self.settings.data_dir)
        self.generator = NixModuleGenerator(user=self.settings.nix_user)
        self.importer = NixModuleImporter(self.validator)

        self.document = ConfigDocument(layout=DocumentLayout())
        self.parse_warnings: list[ParseWarning] = []
        self.channel_available: Optional[bool] = None
        self.imported: Optional[ConfigDocument] = None
        self.history = DocumentHistory(self.settings.max_history)
        self._lock = asyncio.Lock()

    @property
    def config_path(self) -> Path:
        return self.settings.hyprland_config_path

    @property
    def timing_target(self) -> str:
        return self.config_path.name

    # === Loading ===

    async def load(self) -> ConfigDocument:
        """
        Load the active document from the config file, overlaid with live values.

        The channel being unavailable is expected; the file alone is used then.

        Returns:
            Copy of the active document

        Raises:
            StorageError: If the config file exists but cannot be read
        """
        async with self._lock:
            async with timed_section("load", target=self.config_path.name):
                document = self._read_config()
                await self._overlay_channel(document)
                self.document = document
                self.history.clear()
            logger.info(
                f"Loaded {document.field_count} fields, {len(document.keybinds)} keybinds "
                f"({len(self.parse_warnings)} parse warnings)"
            )
            return document.copy()

    async def reload(self) -> ConfigDocument:
        """Discard unsaved edits and load again."""
        logger.info("Reloading; unsaved in-memory changes are discarded")
        return await self.load()

    def _read_config(self) -> ConfigDocument:
        path = self.config_path
        if not path.exists():
            logger.warning(f"Config file {path} not found, starting from an empty document")
            self.parse_warnings = []
            return ConfigDocument(layout=DocumentLayout())
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}", path) from e
        result = self.parser.parse(text)
        self.parse_warnings = result.warnings
        return result.document

    async def _overlay_channel(self, document: ConfigDocument) -> None:
        """Take live values for fields the file sets or the compositor reports as set."""
        try:
            snapshot = await self.channel.get_all_options()
        except ChannelUnavailable as e:
            self.channel_available = False
            logger.warning(f"Control channel unavailable, using file values only: {e}")
            return
        self.channel_available = True

        overlaid = 0
        for reading in snapshot.readings.values():
            spec = reading.spec
            current = document.get(spec.section, spec.key)
            if current is None and reading.is_set is not True:
                continue
            if document.verbatim_for(spec.section, spec.key):
                # the file sets it through a $variable; keep the reference
                continue
            if current != reading.value:
                # read_option already ran the value through the validator
                document.put_field(spec.section, spec.key, reading.value)
                overlaid += 1
        if snapshot.errors:
            logger.warning(f"{len(snapshot.errors)} options could not be read from the channel")
        logger.info(f"Overlaid {overlaid} live values from the control channel")

    # === Field edits ===

    async def set_field(self, section: str, key: str, raw: Any) -> EngineResult:
        """
        Validate and apply one field edit.

        The value is pushed to the running compositor when ``push_to_channel``
        is set. A refused write rolls the in-memory value back.

        Args:
            section: Section name (own or native, e.g. "animation" or "animations")
            key: Field key, e.g. "border_size" or "blur:enabled"
            raw: Raw input

        Returns:
            EngineResult; ``changed`` is False when the value was already set
        """
        result = EngineResult(operation="set_field")
        target = f"{section}:{key}"
        async with self._lock:
            try:
                spec = self.validator.spec_for(section, key)
                target = spec.path
                before = self.document.copy()
                verbatim = self.document.verbatim_for(spec.section, spec.key)
                previous, value = self.validator.apply_field(self.document, spec.section, spec.key, raw)
            except ValidationError as e:
                return self._fail(result, e, target, {"raw": str(raw)})

            if previous == value and not verbatim:
                result.success = True
                result.message = f"{spec.path} already {value.render()}"
                return result

            if self.settings.push_to_channel:
                try:
                    await self.channel.set_option(spec, value)
                except ChannelWriteFailed as e:
                    if previous is None:
                        self.document.remove_field(spec.section, spec.key)
                    else:
                        self.document.put_field(spec.section, spec.key, previous)
                    self.document.unrecognized.extend(verbatim)
                    self.document.unrecognized.sort(key=lambda entry: entry.group_key)
                    logger.warning(f"Rolled back {spec.path} after failed write")
                    return self._fail(result, e, spec.path, {"raw": str(raw)})
                except ChannelUnavailable as e:
                    result.warnings.append(f"Control channel unavailable, change kept in memory: {e}")

            self.history.record(before, f"set {spec.path}")
            result.success = True
            result.changed = True
            result.message = f"Set {spec.path} = {value.render()}"
            self.audit.log_change(
                "set_field",
                spec.path,
                True,
                parameters={"raw": str(raw)},
                before=previous.render() if previous is not None else None,
                after=value.render(),
                message=result.message,
            )
            logger.info(result.message)
            return result

    async def add_keybind(self, bind_type: str, text: str, submap: str = "") -> EngineResult:
        """Parse, validate and append a keybind, registering it live when possible."""
        result = EngineResult(operation="add_keybind")
        async with self._lock:
            try:
                entry = self.validator.parse_keybind(bind_type, text, submap)
            except ValidationError as e:
                return self._fail(result, e, bind_type, {"text": text})
            if any(bind.identity == entry.identity for bind in self.document.keybinds):
                result.success = True
                result.message = f"Keybind already present: {entry.display_string()}"
                return result

            if self.settings.push_to_channel and not entry.submap:
                try:
                    await self.channel.add_keybind(entry)
                except ChannelWriteFailed as e:
                    return self._fail(result, e, entry.render(), {"text": text})
                except ChannelUnavailable as e:
                    result.warnings.append(f"Control channel unavailable, change kept in memory: {e}")

            self.history.record(self.document, f"add keybind {entry.display_string()}")
            self.document.keybinds.append(entry)
            result.success = True
            result.changed = True
            result.message = f"Added keybind {entry.display_string()}"
            self.audit.log_change("add_keybind", entry.render(), True, {"text": text}, after=entry.render())
            return result

    # === Persistence ===

    async def save(self) -> EngineResult:
        """Validate the active document and write it to the config file."""
        result = EngineResult(operation="save")
        async with self._lock:
            report = self.validator.validate_document(self.document)
            result.warnings.extend(report.warnings)
            if not report.valid:
                error = ValidationError(str(self.config_path), "; ".join(report.errors))
                return self._fail(result, error, str(self.config_path))
            try:
                self._write_config(self.serializer.serialize(self.document))
            except StorageError as e:
                return self._fail(result, e, str(self.config_path))

            result.success = True
            result.changed = True
            result.message = f"Saved {self.document.field_count} fields to {self.config_path}"
            self.audit.log_change("save", str(self.config_path), True, message=result.message)
            logger.info(result.message)
            return result

    @timed("config_write")
    def _write_config(self, text: str) -> None:
        """Write to a temporary name, then rename into place."""
        path = self.config_path
        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to write {path}: {e}", path) from e

    def _read_config_text(self) -> Optional[str]:
        if not self.config_path.exists():
            return None
        try:
            return self.config_path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot read {self.config_path}: {e}", self.config_path) from e

    def _restore_config_text(self, original: Optional[str]) -> None:
        if original is None:
            self.config_path.unlink(missing_ok=True)
        else:
            self._write_config(original)
        logger.warning(f"Restored {self.config_path} to its pre-operation contents")

    # === Profiles ===

    def list_profiles(self, tag: Optional[str] = None) -> list[ProfileSummary]:
        return self.store.list_profiles(tag)

    def list_backups(self) -> list[ProfileSummary]:
        return self.store.list_backups()

    async def create_profile(
        self,
        name: str,
        description: str = "",
        tags: Optional[list[str]] = None,
    ) -> EngineResult:
        """Persist the active document as a new profile."""
        result = EngineResult(operation="create_profile")
        async with self._lock:
            try:
                profile = self.store.create_profile(name, self.document, description, tags)
            except (StorageError, ValidationError) as e:
                return self._fail(result, e, name)
            result.success = True
            result.changed = True
            result.message = f"Created profile '{profile.name}' ({profile.id})"
            self.audit.log_change(
                "create_profile", profile.id, True, {"name": name, "tags": tags or []},
                message=result.message,
            )
            return result

    async def delete_profile(self, profile_id: str) -> EngineResult:
        """Soft-delete a profile into the backup area."""
        result = EngineResult(operation="delete_profile")
        async with self._lock:
            try:
                kept_at = self.store.delete_profile(profile_id)
            except StorageError as e:
                return self._fail(result, e, profile_id)
            result.success = True
            result.changed = True
            result.message = f"Deleted profile {profile_id}, kept at {kept_at}"
            self.audit.log_change("delete_profile", profile_id, True, message=result.message)
            return result

    # === Batch operations ===

    async def run_batch(self, operation: "BatchOperation | str", profile_id: str = "") -> EngineResult:
        """
        Run a batch operation against the active document.

        Every operation except BACKUP first backs up the current state. If
        writing the result fails, the config file is restored and the error
        names the backup to restore from.

        Args:
            operation: apply, merge, replace or backup
            profile_id: Source profile (unused for backup)

        Returns:
            EngineResult carrying the backup id
        """
        result = EngineResult(operation=f"batch_{operation}")
        try:
            operation = BatchOperation(operation)
        except ValueError:
            return self._fail(
                result, ValidationError("operation", f"unknown batch operation '{operation}'"), profile_id
            )
        result.operation = f"batch_{operation.value}"

        async with self._lock:
            async with timed_section("batch", target=operation.value, profile=profile_id or "-"):
                if operation == BatchOperation.BACKUP:
                    try:
                        backup = self.store.create_backup(self.document, "manual backup")
                    except StorageError as e:
                        return self._fail(result, e, "backup")
                    result.success = True
                    result.backup_id = backup.id
                    result.message = f"Created backup {backup.name}"
                    self.audit.log_change(result.operation, backup.id, True, message=result.message)
                    return result

                try:
                    profile = self.store.get_profile(profile_id)
                except StorageError as e:
                    return self._fail(result, e, profile_id)
                new_document = combine(operation, self.document, profile.document)
                return await self._commit(
                    result,
                    new_document,
                    target=profile_id,
                    reason=f"before {operation.value} of profile '{profile.name}'",
                )

    async def restore_backup(self, backup_id: str) -> EngineResult:
        """Make a backup the active document again (backing up the current one first)."""
        result = EngineResult(operation="restore_backup")
        async with self._lock:
            try:
                backup = self.store.get_backup(backup_id)
            except StorageError as e:
                return self._fail(result, e, backup_id)
            return await self._commit(
                result, backup.document, target=backup_id, reason=f"before restoring {backup.name}"
            )

    async def _commit(
        self,
        result: EngineResult,
        new_document: ConfigDocument,
        target: str,
        reason: str,
    ) -> EngineResult:
        """Back up, write the new document to disk and the channel, or undo the write."""
        report = self.validator.validate_document(new_document)
        result.warnings.extend(report.warnings)
        if not report.valid:
            return self._fail(result, ValidationError(target, "; ".join(report.errors)), target)

        try:
            backup = self.store.create_backup(self.document, reason)
            original = self._read_config_text()
        except StorageError as e:
            return self._fail(result, e, target)
        result.backup_id = backup.id

        try:
            self._write_config(self.serializer.serialize(new_document))
            if self.settings.push_to_channel:
                try:
                    await self.channel.reload()
                except ChannelUnavailable as e:
                    result.warnings.append(f"Control channel unavailable, file updated only: {e}")
        except (StorageError, ChannelWriteFailed) as e:
            try:
                self._restore_config_text(original)
            except StorageError as restore_error:
                logger.error(f"Could not restore {self.config_path}: {restore_error}")
                result.warnings.append(f"Config file not restored: {restore_error}")
            failure = self._fail(result, e, target, {"backup_id": backup.id})
            failure.message = f"Restore backup {backup.id} to recover the previous state"
            return failure

        before = self.document.field_count
        self.history.record(self.document, result.operation)
        self.document = new_document
        result.success = True
        result.changed = True
        result.message = (
            f"{result.operation}: {before} -> {new_document.field_count} fields, "
            f"backup {backup.id}"
        )
        self.audit.log_change(
            result.operation, target, True, {"backup_id": backup.id}, message=result.message
        )
        logger.info(result.message)
        return result

    # === History ===

    async def undo(self) -> EngineResult:
        """Step the active document back one change; save() writes it to disk."""
        return await self._step_history("undo")

    async def redo(self) -> EngineResult:
        """Re-apply the change the last undo stepped back over."""
        return await self._step_history("redo")

    async def _step_history(self, direction: str) -> EngineResult:
        result = EngineResult(operation=direction)
        async with self._lock:
            step = self.history.undo if direction == "undo" else self.history.redo
            entry = step(self.document)
            if entry is None:
                result.error = f"Nothing to {direction}"
                return result
            self.document = entry.document
            result.success = True
            result.changed = True
            result.message = f"{direction.capitalize()} '{entry.description}'"
            self.audit.log_change(direction, entry.description, True, message=result.message)
            logger.info(result.message)
            return result

    # === Export / import ===

    def export(self, target: "ExportTarget | str") -> str:
        """
        Render the active document.

        Raises:
            ValueError: If the target is unknown
        """
        target = ExportTarget(target)
        if target == ExportTarget.NATIVE:
            return self.serializer.serialize(self.document)
        if target == ExportTarget.SNAPSHOT:
            return dump_snapshot(self.document)
        if target == ExportTarget.JSON:
            return dump_snapshot_json(self.document)
        return self.generator.generate(self.document, NIX_TARGETS[target])

    async def import_module(self, text: str, replace: bool = False) -> EngineResult:
        """
        Recover a document from generated Nix module text.

        The recovered document is kept in ``self.imported``; with ``replace``
        it also becomes the active document, backed up like a batch replace.
        """
        result = EngineResult(operation="import_module")
        try:
            document = self.importer.import_module(text)
        except HyprconfError as e:
            return self._fail(result, e, "module")
        report = self.validator.validate_document(document)
        result.warnings.extend(report.warnings)
        if not report.valid:
            return self._fail(result, ValidationError("module", "; ".join(report.errors)), "module")

        async with self._lock:
            self.imported = document
            if not replace:
                result.success = True
                result.message = (
                    f"Imported {document.field_count} fields, {len(document.keybinds)} keybinds"
                )
                return result
            return await self._commit(result, document.copy(), "module", "before module import")

    # === Helpers ===

    def _fail(
        self,
        result: EngineResult,
        error: HyprconfError,
        target: str,
        parameters: Optional[dict] = None,
    ) -> EngineResult:
        result.success = False
        result.error = str(error)
        result.error_type = type(error).__name__
        logger.warning(f"{result.operation} failed: {error}")
        self.audit.log_change(result.operation, target, False, parameters, error=str(error))
        return result
