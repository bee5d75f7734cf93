"""Error taxonomy for the engine core."""

from typing import Optional, Sequence


class CargoholdError(Exception):
    """Base class for every error raised by cargohold."""


class ConfigError(CargoholdError):
    """Invalid settings file, environment variable or option."""


class EngineCommandError(CargoholdError):
    """The engine process exited non-zero or could not be spawned."""

    def __init__(self, args: Sequence[str], exit_code: int, stderr: str = ""):
        self.command = tuple(args)
        self.exit_code = exit_code
        self.stderr = stderr
        detail = stderr.strip() or f"exit code {exit_code}"
        super().__init__(f"'{' '.join(self.command)}' failed: {detail}")


class EngineTimeoutError(EngineCommandError):
    """The engine process did not finish within the configured timeout."""

    def __init__(self, args: Sequence[str], timeout: float):
        self.timeout = timeout
        super().__init__(args, exit_code=-1, stderr=f"timed out after {timeout}s")


class EngineCommandCancelled(EngineCommandError):
    """The caller cancelled the command before it finished."""

    def __init__(self, args: Sequence[str]):
        super().__init__(args, exit_code=-1, stderr="cancelled")


class InventoryParseError(CargoholdError):
    """A listing report line could not be turned into an entity."""

    def __init__(self, kind: str, reason: str, line_number: Optional[int] = None, line: str = ""):
        self.kind = kind
        self.reason = reason
        self.line_number = line_number
        self.line = line
        where = f" (line {line_number})" if line_number is not None else ""
        super().__init__(f"Failed to parse {kind} listing{where}: {reason}")


class OperationError(CargoholdError):
    """An operation was refused before anything was sent to the engine."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(message)


class MissingIdentifierError(OperationError):
    def __init__(self, operation: str):
        super().__init__(operation, f"Operation '{operation}' needs a target identifier")


class MissingParameterError(OperationError):
    def __init__(self, operation: str, parameter: str):
        self.parameter = parameter
        super().__init__(operation, f"Operation '{operation}' needs the '{parameter}' parameter")


class ConfirmationRequiredError(OperationError):
    def __init__(self, operation: str, prompt: str):
        self.prompt = prompt
        super().__init__(operation, f"Operation '{operation}' requires confirmation: {prompt}")


class InvalidArgumentError(OperationError):
    """An operand would reach the engine as an option flag."""

    def __init__(self, operation: str, parameter: str, value: str):
        self.parameter = parameter
        self.value = value
        super().__init__(operation, f"Operation '{operation}': {parameter} must not start with '-', got '{value}'")
