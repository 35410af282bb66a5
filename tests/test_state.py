from __future__ import annotations

import pytest

from clustersync.api.model import ClusterState
from clustersync.core.exceptions import IllegalActionError
from clustersync.engine.state import Action, is_legal, is_stable, legal_actions, require

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]

_RUNNING_ONLY = (Action.EDIT, Action.INSTALL_LIBRARIES, Action.UNINSTALL_LIBRARIES)


@pytest.mark.parametrize("state", list(ClusterState))
def test_every_state_has_actions(state: ClusterState):
    assert legal_actions(state)


@pytest.mark.parametrize("state", [s for s in ClusterState if s is not ClusterState.RUNNING])
@pytest.mark.parametrize("action", _RUNNING_ONLY)
def test_shape_and_library_changes_need_running(state: ClusterState, action: Action):
    assert not is_legal(state, action)
    with pytest.raises(IllegalActionError, match=action.value):
        require(state, action)


@pytest.mark.parametrize("action", _RUNNING_ONLY)
def test_running_permits_changes(action: Action):
    require(ClusterState.RUNNING, action)


def test_start_only_from_terminated():
    assert [s for s in ClusterState if is_legal(s, Action.START)] == [ClusterState.TERMINATED]


def test_permanent_delete_needs_terminated_or_error():
    allowed = {s for s in ClusterState if is_legal(s, Action.PERMANENT_DELETE)}
    assert allowed == {ClusterState.TERMINATED, ClusterState.ERROR}


@pytest.mark.parametrize("state", [ClusterState.PENDING, ClusterState.TERMINATING, ClusterState.UNKNOWN])
def test_transitional_states_only_wait(state: ClusterState):
    assert legal_actions(state) == {Action.WAIT}
    assert not is_stable(state)


@pytest.mark.parametrize("state", [ClusterState.RUNNING, ClusterState.TERMINATED, ClusterState.ERROR])
def test_stable_states(state: ClusterState):
    assert is_stable(state)


def test_illegal_action_message():
    with pytest.raises(IllegalActionError) as exc_info:
        require(ClusterState.PENDING, Action.EDIT)
    assert str(exc_info.value) == "edit is not permitted while the cluster is PENDING"
