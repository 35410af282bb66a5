"""Which control-plane actions each cluster phase permits.

The reconciler consults this table before every mutating call, so an
illegal action is a bug in the engine rather than a remote rejection.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType

from clustersync.api.model import ClusterState
from clustersync.core.exceptions import IllegalActionError


class Action(Enum):
    START = "start"
    EDIT = "edit"
    DELETE = "delete"
    PERMANENT_DELETE = "permanent-delete"
    INSTALL_LIBRARIES = "install-libraries"
    UNINSTALL_LIBRARIES = "uninstall-libraries"
    WAIT = "wait"


_LEGAL: MappingProxyType[ClusterState, frozenset[Action]] = MappingProxyType({
    ClusterState.RUNNING: frozenset({
        Action.EDIT,
        Action.DELETE,
        Action.INSTALL_LIBRARIES,
        Action.UNINSTALL_LIBRARIES,
    }),
    ClusterState.TERMINATED: frozenset({
        Action.START,
        Action.DELETE,
        Action.PERMANENT_DELETE,
    }),
    ClusterState.PENDING: frozenset({Action.WAIT}),
    ClusterState.TERMINATING: frozenset({Action.WAIT}),
    ClusterState.ERROR: frozenset({Action.DELETE, Action.PERMANENT_DELETE}),
    ClusterState.UNKNOWN: frozenset({Action.WAIT}),
})


def legal_actions(state: ClusterState) -> frozenset[Action]:
    return _LEGAL[state]


def is_legal(state: ClusterState, action: Action) -> bool:
    return action in _LEGAL[state]


def require(state: ClusterState, action: Action) -> None:
    if action not in _LEGAL[state]:
        raise IllegalActionError(action.value, state)


def is_stable(state: ClusterState) -> bool:
    """A phase from which some mutating action is possible."""
    return any(a is not Action.WAIT for a in _LEGAL[state])
