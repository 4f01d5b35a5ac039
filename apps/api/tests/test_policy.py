from datetime import datetime, timezone

import pytest

from ticketdesk.core.errors import Forbidden
from ticketdesk.core.policy import assert_access, can_access, is_admin, require_admin
from ticketdesk.stores.records import TicketRecord


def make_ticket(user_id=None) -> TicketRecord:
    return TicketRecord(
        id="t1",
        sequential_id=1,
        title="Printer",
        description="jammed",
        type="Bug",
        department="IT",
        status="New",
        submitter_name=None,
        submitter_email=None,
        user_id=user_id,
        created_at=datetime.now(timezone.utc),
    )


def test_owner_can_access(alice):
    assert can_access(alice, make_ticket(alice.id))


def test_other_user_cannot_access(alice, bob):
    assert not can_access(bob, make_ticket(alice.id))
    with pytest.raises(Forbidden):
        assert_access(bob, make_ticket(alice.id))


def test_admin_can_access_everything(admin, alice):
    assert can_access(admin, make_ticket(alice.id))
    assert can_access(admin, make_ticket(None))


def test_anonymous_ticket_is_admin_only(alice):
    assert not can_access(alice, make_ticket(None))


def test_no_principal_has_no_access(alice):
    assert not can_access(None, make_ticket(alice.id))
    assert not is_admin(None)


def test_require_admin(admin, alice):
    require_admin(admin)
    with pytest.raises(Forbidden):
        require_admin(alice)
