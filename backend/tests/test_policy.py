from restaurant_pos.constants.permissions import Capability, Role
from restaurant_pos.errors import Forbidden, InsufficientPermission, Unauthenticated
from restaurant_pos.services.policy import Identity, DenyReason, authorize
from restaurant_pos.utils.bitmask import PermissionSet
import pytest

CUSTOMER = Identity(user_id=1, role=Role.CUSTOMER, customer_id=10)
STOCK_CLERK = Identity(user_id=2, role=Role.STAFF, permissions=PermissionSet.of(Capability.STOCK_CONTROL), staff_id=20)
BARE_STAFF = Identity(user_id=3, role=Role.STAFF, staff_id=21)
ADMIN = Identity(user_id=4, role=Role.ADMIN, staff_id=22)


@pytest.mark.parametrize('capability', [None, *Capability])
@pytest.mark.parametrize('role', [None, *Role])
def test_no_identity_is_unauthenticated_first(role, capability):
    d = authorize(None, role, capability)
    assert not d
    assert d.reason is DenyReason.UNAUTHENTICATED
    with pytest.raises(Unauthenticated):
        d.raise_for_deny()


def test_role_mismatch_is_forbidden():
    d = authorize(CUSTOMER, required_role=Role.STAFF)
    assert d.reason is DenyReason.FORBIDDEN
    assert authorize(STOCK_CLERK, required_role=Role.ADMIN).reason is DenyReason.FORBIDDEN
    assert authorize(ADMIN, required_role=Role.CUSTOMER).reason is DenyReason.FORBIDDEN


def test_admin_satisfies_staff_role():
    assert authorize(ADMIN, required_role=Role.STAFF)
    assert authorize(STOCK_CLERK, required_role=Role.STAFF)


def test_capability_for_customer_is_forbidden():
    d = authorize(CUSTOMER, required_capability=Capability.ORDERS)
    assert d.reason is DenyReason.FORBIDDEN
    assert isinstance(d.to_error(), Forbidden)


def test_staff_needs_the_bit():
    assert authorize(STOCK_CLERK, required_capability=Capability.STOCK_CONTROL)
    d = authorize(STOCK_CLERK, required_capability=Capability.PROMO_CODES)
    assert d.reason is DenyReason.INSUFFICIENT_PERMISSION
    err = d.to_error()
    assert isinstance(err, InsufficientPermission)
    assert err.code == 403
    assert 'promo_codes' in err.description


@pytest.mark.parametrize('cap', list(Capability))
def test_admin_bypasses_every_capability(cap):
    assert authorize(ADMIN, required_capability=cap).allowed is True
    assert authorize(BARE_STAFF, required_capability=cap).allowed is False


def test_no_requirement_allows_any_identity():
    for ident in (CUSTOMER, BARE_STAFF, ADMIN):
        assert authorize(ident).raise_for_deny().allowed
