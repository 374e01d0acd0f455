"""Live control channel: the ``hyprctl`` command.

Every invocation is a subprocess call that may suspend the caller until the
compositor answers. There are no retries and no internal timeouts; a failed
call surfaces once, to the caller, as a ChannelError.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Optional

from ..config_engine.fields import FIELD_SPECS
from ..config_engine.schema import (
    FieldSpec,
    FieldValue,
    KeybindEntry,
    LayerRuleEntry,
    WindowRuleEntry,
)
from ..errors import ChannelReplyError, ChannelUnavailable, ChannelWriteFailed
from ..utils.logging_config import timed
from .replies import decode_binds_reply, read_scalar_reply

logger = logging.getLogger(__name__)


# Output fragments meaning no compositor session is reachable
NO_SESSION_MARKERS = (
    "hyprland_instance_signature",
    "couldn't connect",
    "could not connect",
    "is hyprland running",
)

WRITE_OK_REPLIES = ("", "ok")


@dataclass
class CommandResult:
    """Result of one hyprctl invocation."""
    returncode: int
    stdout: str = ""
    stderr: str = ""
    command: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return (self.stdout or self.stderr).strip()

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "returncode": self.returncode,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "command": self.command,
        }


@dataclass
class OptionReading:
    """One option as reported by the running compositor."""
    spec: FieldSpec
    value: FieldValue
    is_set: Optional[bool] = None


@dataclass
class OptionSnapshot:
    """Result of querying many options; per-option failures are kept, not dropped."""
    readings: dict[str, OptionReading] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)


Runner = Callable[[list[str]], Awaitable[CommandResult]]


async def run_subprocess(argv: list[str]) -> CommandResult:
    """Run a command and capture its output."""
    process = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()
    return CommandResult(
        returncode=process.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        command=" ".join(argv),
    )


class HyprCtl:
    """Reader/writer for the running compositor."""

    def __init__(self, binary: str = "hyprctl", runner: Optional[Runner] = None):
        """
        Args:
            binary: hyprctl executable name or path
            runner: Coroutine executing an argv list; defaults to a real subprocess
        """
        self.binary = binary
        self._runner = runner or run_subprocess

    @property
    def timing_target(self) -> str:
        return self.binary

    @timed("hyprctl")
    async def _run(self, *args: str) -> CommandResult:
        argv = [self.binary, *args]
        logger.debug(f"Running: {' '.join(argv)}")
        try:
            result = await self._runner(argv)
        except (FileNotFoundError, PermissionError) as e:
            raise ChannelUnavailable(f"{self.binary} cannot be executed: {e}") from e

        combined = f"{result.stdout}\n{result.stderr}".lower()
        if any(marker in combined for marker in NO_SESSION_MARKERS):
            raise ChannelUnavailable(f"No active compositor session: {result.output}")
        return result

    async def _query(self, *args: str) -> str:
        result = await self._run(*args)
        if not result.success:
            raise ChannelReplyError(f"'{result.command or ' '.join(args)}' failed: {result.output}")
        return result.stdout

    async def _write(self, *args: str) -> CommandResult:
        result = await self._run(*args)
        command = " ".join(args)
        if not result.success:
            raise ChannelWriteFailed(command, result.output or f"exit status {result.returncode}")
        if result.stdout.strip().lower() not in WRITE_OK_REPLIES:
            raise ChannelWriteFailed(command, result.stdout.strip())
        logger.info(f"hyprctl {command}: ok")
        return result

    # === Queries ===

    async def is_available(self) -> bool:
        """True if a compositor session answers."""
        try:
            result = await self._run("version")
        except ChannelUnavailable as e:
            logger.info(f"Control channel unavailable: {e}")
            return False
        return result.success

    async def version(self) -> str:
        return (await self._query("version")).strip()

    async def read_option(self, spec: FieldSpec) -> OptionReading:
        """Query one option, keeping the ``set:`` flag."""
        reply = await self._query("getoption", spec.path)
        value, is_set = read_scalar_reply(spec, reply)
        return OptionReading(spec=spec, value=value, is_set=is_set)

    async def get_option(self, spec: FieldSpec) -> FieldValue:
        return (await self.read_option(spec)).value

    async def get_all_options(self, specs: Optional[Iterable[FieldSpec]] = None) -> OptionSnapshot:
        """
        Query every supported option.

        Undecodable replies are recorded per option in ``errors``.

        Raises:
            ChannelUnavailable: If the channel cannot be reached at all
        """
        snapshot = OptionSnapshot()
        for spec in specs if specs is not None else FIELD_SPECS.values():
            try:
                snapshot.readings[spec.path] = await self.read_option(spec)
            except ChannelReplyError as e:
                logger.warning(f"Failed to read option {spec.path}: {e}")
                snapshot.errors[spec.path] = str(e)
        return snapshot

    async def get_binds(self) -> list[KeybindEntry]:
        return decode_binds_reply(await self._query("binds"))

    # === Writes ===

    async def set_option(self, spec: FieldSpec, value: FieldValue) -> CommandResult:
        """Write an already validated value."""
        return await self._write("keyword", spec.path, value.render())

    async def add_keybind(self, entry: KeybindEntry) -> CommandResult:
        return await self._write("keyword", entry.bind_type, entry.render_value())

    async def remove_keybind(self, entry: KeybindEntry) -> CommandResult:
        return await self._write("keyword", "unbind", f"{' '.join(entry.modifiers)}, {entry.key}")

    async def add_rule(self, entry: "WindowRuleEntry | LayerRuleEntry") -> CommandResult:
        return await self._write("keyword", entry.syntax, entry.render_value())

    async def reload(self) -> CommandResult:
        """Make the compositor re-read its config file."""
        return await self._write("reload")

    async def dispatch(self, dispatcher: str, arg: str = "") -> CommandResult:
        args = ["dispatch", dispatcher] + ([arg] if arg else [])
        return await self._write(*args)
