from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


class StrataError(Exception):
    """Base exception for Strata."""

    context: Dict[str, Any]

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        if context is not None:
            # Store a shallow copy to avoid accidental mutation.
            self.context = dict(context)
        else:
            self.context = {}

    def to_json_error(self) -> Dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {
            "message": str(self),
            "code": self.__class__.__name__,
            "context": self.context,
        }


class ConfigurationError(StrataError, ValueError):
    """Raised when configuration cannot be read or turned into settings."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        StrataError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class LayerSourceError(StrataError):
    """A layer could not materialize or read its content.

    Non-fatal to the engine: the failure is recorded on the layer's init
    result and the layer contributes no new items.
    """

    def __init__(
        self,
        message: str,
        *,
        layer_name: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        if layer_name:
            ctx["layer_name"] = layer_name
        super().__init__(message, context=ctx)
        self.layer_name = layer_name


class AuthenticationError(LayerSourceError):
    """Git authentication failed or credentials could not be resolved."""

    def __init__(
        self,
        message: str,
        *,
        remediation: str = "",
        layer_name: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        if remediation:
            ctx["remediation"] = remediation
        super().__init__(message, layer_name=layer_name, context=ctx)
        self.remediation = remediation

    def __str__(self) -> str:
        base = super().__str__()
        if self.remediation:
            return f"{base} ({self.remediation})"
        return base


class NetworkError(LayerSourceError):
    """The git remote could not be reached (includes timeouts)."""


class GitSyncError(LayerSourceError):
    """A git operation failed for a reason other than auth or network."""


class EmbeddedKnowledgeError(LayerSourceError):
    """The bundled knowledge baseline is missing or unreadable."""


class ContentParseError(StrataError, ValueError):
    """A single content file could not be parsed."""

    def __init__(self, message: str, *, path: Optional[str] = None) -> None:
        ctx = {"path": path} if path else None
        StrataError.__init__(self, message, context=ctx)
        ValueError.__init__(self, message)
        self.path = path

    def __str__(self) -> str:
        base = super().__str__()
        return f"{self.path}: {base}" if self.path else base


class ReloadInProgressError(StrataError, RuntimeError):
    """Raised when a reload is requested while another reload is running."""


class NoUsableLayersError(StrataError, RuntimeError):
    """Raised at startup when not a single layer produced usable content."""


class UnknownLayerError(StrataError, KeyError):
    """Raised when an operation names a layer the engine does not know."""

    def __init__(self, name: str) -> None:
        StrataError.__init__(self, f"Unknown layer: {name}", context={"layer_name": name})
        self.name = name

    def __str__(self) -> str:
        return f"Unknown layer: {self.name}"


__all__ = [
    "StrataError",
    "ConfigurationError",
    "LayerSourceError",
    "AuthenticationError",
    "NetworkError",
    "GitSyncError",
    "EmbeddedKnowledgeError",
    "ContentParseError",
    "ReloadInProgressError",
    "NoUsableLayersError",
    "UnknownLayerError",
]
