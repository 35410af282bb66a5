"""Remote control-plane client: contract and REST implementation."""

from .protocol import ControlPlane
from .rest import WorkspaceClient, classify

__all__ = ["ControlPlane", "WorkspaceClient", "classify"]
