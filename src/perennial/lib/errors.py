"""Custom exception hierarchy for Perennial configuration and operations."""


class PerennialError(Exception):
    """Base exception for all Perennial errors.

    All Perennial-specific exceptions inherit from this class, enabling
    centralized exception handling at the CLI and scheduler boundaries.
    """

    pass


class ConfigError(PerennialError):
    """Raised when perennial.yaml cannot be loaded or fails validation.

    Also used for CLI preconditions that the operator fixes by editing the
    configuration or the state directory (unknown provider, missing record).

    Attributes:
        field: Dotted path of the offending setting (or a pseudo-field such
            as ``config_file`` or ``deployment_state``)
        message: What is wrong and how to fix it
    """

    def __init__(self, field: str, message: str) -> None:
        """Create a configuration error for one setting.

        Args:
            field: Offending setting
            message: Explanation shown to the operator
        """
        self.field = field
        self.message = message
        super().__init__(f"Configuration error in '{field}': {message}")


class DeploymentError(PerennialError):
    """Exception raised when a compute provider operation fails.

    Attributes:
        operation: The operation that failed (deploy, status, destroy, ...)
        message: Human-readable error message
    """

    def __init__(self, operation: str, message: str) -> None:
        """Create a deployment error for a specific operation.

        Args:
            operation: Name of the failed operation
            message: Descriptive error message
        """
        self.operation = operation
        self.message = message
        super().__init__(f"{operation} failed: {message}")


class TransactionError(DeploymentError):
    """Error raised when a marketplace transaction is rejected.

    Attributes:
        code: Non-zero result code reported by the chain
        raw_log: Raw log returned alongside the failed broadcast
    """

    def __init__(self, operation: str, code: int, raw_log: str | None = None) -> None:
        """Initialize TransactionError from a broadcast result.

        Args:
            operation: Operation whose transaction failed
            code: Result code returned by the chain
            raw_log: Optional raw log describing the rejection
        """
        self.code = code
        self.raw_log = raw_log
        super().__init__(
            operation,
            f"Transaction failed (code {code}): {raw_log or 'unknown error'}",
        )


class RemoteCommandError(DeploymentError):
    """Error raised when a command on a remote host fails.

    Attributes:
        command: The shell command that was executed
        exit_code: Exit code of the remote command (None on timeout)
        stderr: Captured standard error output
    """

    def __init__(
        self,
        command: str,
        exit_code: int | None,
        stderr: str = "",
        operation: str = "remote-exec",
    ) -> None:
        """Initialize RemoteCommandError with command details.

        Args:
            command: Command that failed
            exit_code: Exit status, or None when the command timed out
            stderr: Captured stderr (or stdout when stderr is empty)
            operation: Provider operation that issued the command
        """
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        if exit_code is None:
            detail = "timed out"
        else:
            detail = f"exited with code {exit_code}"
        message = f"SSH command {detail}"
        if stderr.strip():
            message += f": {stderr.strip()}"
        super().__init__(operation, message)


class MissingMetadataError(DeploymentError):
    """Error raised when deployment metadata lacks a provider-required key."""

    def __init__(self, provider: str, key: str) -> None:
        """Create an error naming the missing metadata key."""
        self.provider = provider
        self.key = key
        super().__init__(
            "metadata",
            f"Deployment metadata for provider '{provider}' is missing '{key}'",
        )


class ProviderExhaustedError(DeploymentError):
    """Error raised when every configured provider failed.

    Attributes:
        last_error: Message of the last underlying failure
    """

    def __init__(self, operation: str, last_error: str | None) -> None:
        """Initialize ProviderExhaustedError.

        Args:
            operation: Either 'deploy' or 'failover'
            last_error: Message of the final provider failure, if any
        """
        self.last_error = last_error
        prefix = (
            "All providers failed to deploy"
            if operation == "deploy"
            else "Failover exhausted all providers"
        )
        super().__init__(operation, f"{prefix}. Last error: {last_error or 'unknown'}")


class SchedulerError(PerennialError):
    """Exception raised for heartbeat scheduler misuse."""

    def __init__(self, message: str) -> None:
        """Create a scheduler error."""
        self.message = message
        super().__init__(message)


class StorageError(PerennialError):
    """Exception raised when the local memory store cannot be read or written."""

    def __init__(self, message: str) -> None:
        """Create a storage error."""
        self.message = message
        super().__init__(message)
