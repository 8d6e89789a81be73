"""Command scripts: name resolution, loading and dispatch.

A command script is a Python file ``<commands dir>/<name>.py`` that exports a
single entry point::

    async def run(ctx, *args): ...

``ctx`` is an :class:`ExecutionContext`; ``args`` are the strings the client
sent after the command name.  ``run`` may also be a plain function.  Argument
validation is the script's own business.
"""

from __future__ import annotations

import importlib.util
import inspect
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path, PureWindowsPath
from types import ModuleType
from typing import Any, Callable

from beachpatrol.active_page import ActivePageTracker
from beachpatrol.protocol import SUCCESS_MESSAGE, CommandRequest, single_line

logger = logging.getLogger("beachpatrol.dispatch")

SCRIPT_SUFFIX = ".py"
ENTRY_POINT = "run"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class CommandResolutionError(Exception):
    """The command name did not resolve to a script."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(self.response_line())

    def response_line(self) -> str:
        return single_line(f"Error: Command '{self.name}' could not be resolved.")


class InvalidCommandName(CommandResolutionError):
    """The command name tries to escape the commands directory."""

    def response_line(self) -> str:
        return single_line(
            f"Error: Invalid command name '{self.name}'. No path traversal allowed."
        )


class CommandNotFound(CommandResolutionError):
    """No script exists for the command name."""

    def response_line(self) -> str:
        return single_line(
            f"Error: Command script {self.name}{SCRIPT_SUFFIX} does not exist."
        )


class CommandScriptError(Exception):
    """The script was loaded but does not export a usable entry point."""


# ---------------------------------------------------------------------------
# Execution context
# ---------------------------------------------------------------------------


@dataclass
class ExecutionContext:
    """What every command script receives as its first argument."""

    context: Any
    tracker: ActivePageTracker = field(default_factory=ActivePageTracker)
    download_dir: Path | None = None

    @property
    def active_page(self) -> Any | None:
        """The page the user last focused, or ``None``.

        Read it once per use: another command or the user may change it at any
        ``await``.
        """
        return self.tracker.page


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class CommandResolver:
    """Maps command names to script paths under a fixed root."""

    def __init__(self, commands_dir: Path) -> None:
        self.commands_dir = Path(commands_dir)

    @staticmethod
    def validate(name: str) -> None:
        """Reject names that could leave the commands directory.

        Runs before any filesystem access.
        """
        if ".." in name or "\x00" in name:
            raise InvalidCommandName(name)
        if name.startswith(("/", "\\")) or os.path.isabs(name):
            raise InvalidCommandName(name)
        if PureWindowsPath(name).drive:
            raise InvalidCommandName(name)

    def location(self, name: str) -> Path:
        """Return the script path for *name* without checking it exists."""
        self.validate(name)
        return self.commands_dir / f"{name}{SCRIPT_SUFFIX}"

    def resolve(self, name: str) -> Path:
        """Return the script path for *name*.

        Raises ``InvalidCommandName`` or ``CommandNotFound``.
        """
        path = self.location(name)
        try:
            exists = path.is_file()
        except OSError as exc:
            # e.g. ENAMETOOLONG; such a script cannot exist either
            logger.debug(f"Cannot stat {path}: {exc}")
            exists = False
        if not exists:
            raise CommandNotFound(name)
        return path


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


@dataclass
class _LoadedScript:
    mtime_ns: int
    size: int
    handler: Callable[..., Any]


class CommandLoader:
    """Loads command scripts, re-executing a file only when it changed on disk.

    A script is keyed by its path and the ``(mtime, size)`` of its file, so an
    edited script takes effect on the next invocation without restarting the
    server.  Modules are never registered in ``sys.modules``.
    """

    def __init__(self) -> None:
        self._cache: dict[Path, _LoadedScript] = {}

    def load(self, path: Path) -> Callable[..., Any]:
        """Return the entry point of the script at *path*."""
        stat = path.stat()
        cached = self._cache.get(path)
        if (
            cached is not None
            and cached.mtime_ns == stat.st_mtime_ns
            and cached.size == stat.st_size
        ):
            return cached.handler

        logger.debug(f"Loading command script {path}")
        module = self._exec_module(path)
        handler = getattr(module, ENTRY_POINT, None)
        if not callable(handler):
            raise CommandScriptError(
                f"Command script {path.name} does not define a '{ENTRY_POINT}' function."
            )
        self._cache[path] = _LoadedScript(stat.st_mtime_ns, stat.st_size, handler)
        return handler

    def invalidate(self, path: Path | None = None) -> None:
        """Drop one cached script, or all of them."""
        if path is None:
            self._cache.clear()
        else:
            self._cache.pop(path, None)

    @staticmethod
    def _exec_module(path: Path) -> ModuleType:
        module_name = "beachpatrol_command_" + re.sub(r"\W", "_", path.stem)
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise CommandScriptError(f"Cannot load command script {path.name}.")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class CommandDispatcher:
    """Resolves, loads and runs one command, producing one response line."""

    def __init__(
        self,
        resolver: CommandResolver,
        context: ExecutionContext,
        loader: CommandLoader | None = None,
    ) -> None:
        self.resolver = resolver
        self.context = context
        self.loader = loader or CommandLoader()

    async def dispatch(self, request: CommandRequest) -> str:
        """Run *request* and return the response line (without newline)."""
        name = request.name
        try:
            path = self.resolver.resolve(name)
        except InvalidCommandName as exc:
            logger.warning(f"Rejected path traversal attempt: {name!r}")
            return exc.response_line()
        except CommandNotFound as exc:
            logger.info(exc.response_line())
            return exc.response_line()

        logger.info(f"Received command: {name} {' '.join(request.args)}".rstrip())
        try:
            try:
                handler = self.loader.load(path)
            except BaseException:
                self.loader.invalidate(path)
                raise
            result = handler(self.context, *request.args)
            if inspect.isawaitable(result):
                await result
        except (Exception, SystemExit) as exc:
            # SystemExit from a script must not stop the server
            logger.exception(f"Command {name!r} failed")
            return single_line(f"Error: Failed to execute command. {exc}")

        logger.info(SUCCESS_MESSAGE)
        return SUCCESS_MESSAGE
