import pytest

from grocery_admin.services import order_workflow as wf


@pytest.mark.parametrize(
    "current,target",
    [
        ("pending", "processing"),
        ("pending", "cancelled"),
        ("processing", "shipped"),
        ("processing", "cancelled"),
        ("shipped", "delivered"),
    ],
)
def test_allowed_transitions(current, target):
    assert wf.can_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        ("delivered", "pending"),
        ("cancelled", "processing"),
        ("shipped", "cancelled"),
        ("pending", "delivered"),
        ("pending", "refunded"),
        ("unknown", "pending"),
    ],
)
def test_forbidden_transitions(current, target):
    assert not wf.can_transition(current, target)
    with pytest.raises(wf.InvalidTransition, match=f"{current} -> {target}"):
        wf.ensure_transition(current, target)


def test_same_status_is_a_noop():
    for status in wf.ORDER_STATUSES:
        assert wf.can_transition(status, status)


def test_unknown_status_displays_as_pending():
    assert wf.normalize_status("on_hold") == "pending"
    assert wf.normalize_status(None) == "pending"
    assert wf.status_label("on_hold") == "Menunggu Konfirmasi"
    assert wf.status_label("delivered") == "Selesai"


def test_only_cancelled_orders_are_deletable():
    assert wf.can_delete("cancelled")
    for status in ("pending", "processing", "shipped", "delivered", None):
        assert not wf.can_delete(status)


def test_pending_quick_actions():
    approve = wf.QUICK_ACTIONS["pending"]["approve"]
    reject = wf.QUICK_ACTIONS["pending"]["reject"]
    assert (approve.target_status, approve.note) == ("processing", "Pesanan dikonfirmasi")
    assert (reject.target_status, reject.note) == ("cancelled", "Pesanan ditolak")
    assert approve.confirm_message.format(order_number="1001") == "Konfirmasi pesanan #1001?"


def test_navigation_actions_do_not_mutate():
    assert wf.QUICK_ACTIONS["shipped"]["track"].is_navigation
    assert wf.QUICK_ACTIONS["completed"]["invoice"].is_navigation
    assert not wf.QUICK_ACTIONS["completed"]["reorder"].is_navigation


def test_bulk_target_status():
    assert wf.bulk_target_status("complete_all") == "delivered"
    assert wf.bulk_target_status("approve_all") == "processing"
    assert wf.bulk_target_status("update_status", "shipped") == "shipped"
    assert wf.bulk_target_status("export") is None


def test_every_page_menu_uses_known_actions():
    for actions in wf.PAGE_BULK_ACTIONS.values():
        assert set(actions) <= wf.BULK_ACTIONS
    assert wf.bulk_actions_for_status("delivered") == wf.PAGE_BULK_ACTIONS["completed"]
    assert wf.bulk_actions_for_status("cancelled") == ("export", "delete")
