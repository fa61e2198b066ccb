from __future__ import annotations

"""Exception hierarchy for the agent execution core.

Policy violations are raised by ``AuthorizationPolicy.validate_command`` and
are always fatal to the session. Provider and storage errors wrap failures of
the external collaborators. Tool failures never surface as exceptions: the
``ToolDispatcher`` converts them into failed ``ToolResult`` values.
"""


class AgentCoreError(Exception):
    pass


class PolicyViolation(AgentCoreError):
    """An action was rejected by the security policy before execution."""


class CommandBlacklistedError(PolicyViolation):
    def __init__(self, command: str) -> None:
        self.command = command
        super().__init__(f"Command '{command}' is blacklisted for security reasons")


class SudoNotAllowedError(PolicyViolation):
    def __init__(self) -> None:
        super().__init__("Sudo commands are not allowed by the current security policy")


class CommandNotWhitelistedError(PolicyViolation):
    def __init__(self, command: str) -> None:
        self.command = command
        super().__init__(f"Command '{command}' is not in the whitelist")


class ProviderError(AgentCoreError):
    """The model provider failed to produce a usable reply."""


class MalformedResponseError(ProviderError):
    pass


class IterationLimitError(AgentCoreError):
    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Maximum execution iterations reached ({limit})")


class StorageError(AgentCoreError):
    """A repository or audit sink could not persist or load a record."""


class ApprovalError(AgentCoreError):
    pass


class ApprovalNotFoundError(ApprovalError):
    def __init__(self, approval_id: str) -> None:
        self.approval_id = approval_id
        super().__init__(f"Approval request not found: '{approval_id}'")


class ApprovalAlreadyResolvedError(ApprovalError):
    def __init__(self, approval_id: str) -> None:
        self.approval_id = approval_id
        super().__init__(f"Approval request already resolved: '{approval_id}'")


class SessionAlreadyRunningError(AgentCoreError):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Another execution is already in progress for session '{session_id}'")


class SessionClosedError(AgentCoreError):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' is finished and can no longer be modified")
