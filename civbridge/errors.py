from typing import Any, Optional
import json


class BridgeError(Exception):
    """Base class for every failure raised inside the bridge."""
    pass


class ConfigurationError(BridgeError):
    """Node, artifacts or signers are not usable."""
    pass


class NodeUnreachable(ConfigurationError):
    def __init__(self, node_url: str, cause: Optional[BaseException] = None):
        self.node_url = node_url
        self.cause = cause
        super().__init__(
            f"Cannot reach node at {node_url}. "
            "Start Katana with: katana --dev --dev.no-fee --dev.no-account-validation"
        )


class ArtifactsMissing(ConfigurationError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Contract artifact not found: {path}")


class SignerResolutionError(ConfigurationError):
    pass


class UnknownActionKind(BridgeError, ValueError):
    def __init__(self, kind: Any):
        self.kind = kind
        super().__init__(f"Unknown action type: {kind}")


class EmptyActionBatch(BridgeError, ValueError):
    def __init__(self):
        super().__init__("No actions")


class InvalidSigner(BridgeError):
    def __init__(self, index: Any):
        self.index = index
        super().__init__(f"Invalid player: {index}")


class NoSession(BridgeError):
    def __init__(self):
        super().__init__("Game not set up yet")


class ChainFault(BridgeError):
    """The node answered with an error. `payload` is forwarded to the caller as-is."""
    def __init__(self, payload: Any):
        self.payload = payload
        super().__init__(self.describe())

    def describe(self) -> str:
        if isinstance(self.payload, str):
            return self.payload
        return json.dumps(self.payload, default=str)


class TransactionRejected(ChainFault):
    pass


class ClassAlreadyDeclared(ChainFault):
    pass
