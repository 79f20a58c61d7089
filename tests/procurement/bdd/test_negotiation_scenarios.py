"""BDD scenarios for delivery window negotiation."""

from datetime import timedelta

from protean.exceptions import ValidationError
from pytest_bdd import parsers, scenarios, then, when

from procurement.errors import OrderAuthorizationError, OrderConflictError
from procurement.utils.clock import as_utc

scenarios("features/window_negotiation.feature")

WINDOW_LENGTH = timedelta(hours=4)
_REJECTIONS = (OrderConflictError, OrderAuthorizationError, ValidationError)


def _window(now, hours):
    start = now + timedelta(hours=hours)
    return start, start + WINDOW_LENGTH


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse("the {role} proposes a window starting in {hours:d} hours"))
def propose_window(order, parties, now, role, hours):
    start, end = _window(now, hours)
    order.propose_window(role, parties[role], start, end, now=now)


@when(parsers.cfparse("the {role} counter-proposes a window starting in {hours:d} hours"))
def counter_propose_window(order, parties, now, role, hours):
    start, end = _window(now, hours)
    order.counter_propose_window(role, parties[role], start, end, now=now)


@when(parsers.cfparse("the {role} accepts the proposal"))
def accept_proposal(order, parties, now, role):
    order.accept_window(role, parties[role], now=now)


@when(parsers.cfparse("the {role} rejects the proposal"))
def reject_proposal(order, parties, now, role):
    order.reject_window(role, parties[role], now=now)


@when(parsers.cfparse("the {role} tries to accept the proposal"))
def try_accept_proposal(order, parties, now, role, error):
    try:
        order.accept_window(role, parties[role], now=now)
    except _REJECTIONS as exc:
        error["exc"] = exc


@when(parsers.cfparse("the {role} tries to propose a window starting in {hours:d} hours"))
def try_propose_window(order, parties, now, role, hours, error):
    start, end = _window(now, hours)
    try:
        order.propose_window(role, parties[role], start, end, now=now)
    except _REJECTIONS as exc:
        error["exc"] = exc


@when(parsers.cfparse("the {role} tries to propose a window that started {hours:d} hours ago"))
def try_propose_past_window(order, parties, now, role, hours, error):
    start, end = _window(now, -hours)
    try:
        order.propose_window(role, parties[role], start, end, now=now)
    except _REJECTIONS as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the negotiation took {rounds:d} rounds"))
def negotiation_rounds(order, rounds):
    assert order.negotiation_rounds == rounds


@then(parsers.cfparse("the promised window starts in {hours:d} hours"))
def promised_window_starts(order, now, hours):
    assert order.promised_window is not None
    assert as_utc(order.promised_window.start) == now + timedelta(hours=hours)
