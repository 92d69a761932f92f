"""
Order status state machine.
"""
import pytest

from delivery_api.core.exceptions import InvalidTransition
from delivery_api.models.order import OrderStatus as S
from delivery_api.ops.lifecycle import (
    CLAIMABLE_STATUSES,
    STATUS_MESSAGES,
    TERMINAL_STATUSES,
    TRANSITIONS,
    can_transition,
    ensure_transition,
)


def test_happy_path_is_linear():
    path = [S.PENDING, S.CONFIRMED, S.PREPARING, S.READY, S.ON_WAY, S.DELIVERED]
    for current, target in zip(path, path[1:]):
        assert can_transition(current, target)


@pytest.mark.parametrize("status", [S.PENDING, S.CONFIRMED, S.PREPARING, S.READY, S.ON_WAY])
def test_every_open_status_can_be_cancelled(status):
    assert can_transition(status, S.CANCELLED)


def test_terminal_statuses_have_no_successors():
    assert TERMINAL_STATUSES == {S.DELIVERED, S.CANCELLED}
    for status in TERMINAL_STATUSES:
        assert not TRANSITIONS[status]


@pytest.mark.parametrize("current,target", [
    (S.PENDING, S.DELIVERED),
    (S.PENDING, S.ON_WAY),
    (S.READY, S.PREPARING),
    (S.DELIVERED, S.CANCELLED),
    (S.CANCELLED, S.PENDING),
])
def test_illegal_transitions_raise(current, target):
    assert not can_transition(current, target)
    with pytest.raises(InvalidTransition):
        ensure_transition(current, target, has_driver=True)


def test_on_way_needs_a_driver():
    with pytest.raises(InvalidTransition, match="no assigned driver"):
        ensure_transition(S.READY, S.ON_WAY, has_driver=False)
    ensure_transition(S.READY, S.ON_WAY, has_driver=True)


def test_claimable_statuses():
    assert CLAIMABLE_STATUSES == {S.PENDING, S.CONFIRMED}


def test_every_status_has_a_message():
    assert set(STATUS_MESSAGES) == set(S)
