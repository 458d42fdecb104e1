from datetime import timedelta

import pytest

from barberbook.core import (
    ActorRole,
    Appointment,
    CancellationPolicy,
    CancellationReason,
    PolicyViolation,
)

from .conftest import MONDAY, at


@pytest.fixture
def appointment():
    return Appointment(
        id=7, customer_id=100, provider_id=1, shop_id=1, service_id=1,
        date=MONDAY, start=600, end=630, version=1,
    )


@pytest.fixture
def policy():
    return CancellationPolicy()


def test_customer_inside_cutoff_is_refused(policy, appointment):
    now = at(MONDAY, "10:00") - timedelta(hours=10)
    with pytest.raises(PolicyViolation):
        policy.can_cancel(appointment, ActorRole.customer, now, cutoff_hours=48)


def test_customer_before_cutoff_is_allowed(policy, appointment):
    now = at(MONDAY, "10:00") - timedelta(hours=49)
    assert policy.can_cancel(appointment, ActorRole.customer, now, cutoff_hours=48)


def test_customer_exactly_at_cutoff_is_allowed(policy, appointment):
    now = at(MONDAY, "10:00") - timedelta(hours=24)
    assert policy.can_cancel(appointment, ActorRole.customer, now, cutoff_hours=24)


def test_cutoff_is_per_call_not_global(policy, appointment):
    now = at(MONDAY, "10:00") - timedelta(hours=30)
    assert policy.can_cancel(appointment, ActorRole.customer, now, cutoff_hours=24)
    with pytest.raises(PolicyViolation):
        policy.can_cancel(appointment, ActorRole.customer, now, cutoff_hours=48)


@pytest.mark.parametrize("role", [ActorRole.provider, ActorRole.shop_staff, ActorRole.system])
def test_staff_roles_may_always_cancel_with_reason(policy, appointment, role):
    now = at(MONDAY, "09:59")
    assert policy.can_cancel(appointment, role, now, cutoff_hours=48, reason=CancellationReason.emergency)


@pytest.mark.parametrize("role", [ActorRole.provider, ActorRole.shop_staff, ActorRole.system])
def test_staff_roles_need_a_reason(policy, appointment, role):
    with pytest.raises(PolicyViolation):
        policy.can_cancel(appointment, role, at(MONDAY, "08:00"), cutoff_hours=48)
