"""Exception types raised while resolving variables and applying steps."""

from __future__ import annotations

from typing import Optional


class ProvisionError(Exception):
    """Base class for every failure that aborts a provisioning run."""


class VariableError(ProvisionError, ValueError):
    """A variable is missing, empty, invalid, or referenced but undeclared."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Variable {name}: {reason}")


class FileLookupError(VariableError):
    """A file lookup points at a file that cannot be read."""

    def __init__(self, name: str, path: str, reason: str = "file not found"):
        self.path = path
        super().__init__(name, f"{reason}: {path}")


class PlaybookError(ProvisionError):
    """The step list itself is malformed (unknown module, unknown handler)."""


class ModuleError(ProvisionError):
    """A capability module failed to converge the host to the requested state."""


class CommandError(ModuleError):
    def __init__(self, cmd: str, returncode: int, stderr: Optional[str] = None):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        detail = self.stderr.splitlines()[0] if self.stderr else f"exit code {returncode}"
        super().__init__(f"Command failed: {cmd}: {detail}")


class ValidationError(ModuleError):
    """Content was rejected by its validate command and was not installed."""


class StepError(ProvisionError):
    def __init__(self, step_name: str, cause: BaseException):
        self.step_name = step_name
        self.cause = cause
        super().__init__(f"Step '{step_name}' failed: {cause}")


class HandlerError(ProvisionError):
    def __init__(self, handler_name: str, cause: BaseException):
        self.handler_name = handler_name
        self.cause = cause
        super().__init__(f"Handler '{handler_name}' failed: {cause}")
