"""Shared BDD fixtures and step definitions for the Notifications domain."""

import pytest
from notifications.device_token.registry import DeviceRegistry
from notifications.notification.dispatcher import NotificationDispatcher
from notifications.notification.notification import NotificationRecord
from protean import current_domain
from pytest_bdd import given, parsers, then


@pytest.fixture()
def devices():
    """Endpoint values registered during the scenario, per user."""
    return {}


@pytest.fixture()
def registry(clock):
    return DeviceRegistry(clock=clock)


@pytest.fixture()
def dispatcher(registry, gateway, directory):
    return NotificationDispatcher(registry=registry, gateway=gateway, directory=directory, enabled=True)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('user "{user_id}" has {count:d} registered device'))
@given(parsers.cfparse('user "{user_id}" has {count:d} registered devices'))
def registered_devices(registry, devices, make_token, clock, user_id, count):
    for index in range(count):
        token = make_token(f"{user_id}-{index}")
        registry.register(user_id, token)
        devices.setdefault(user_id, []).append(token)
        clock.advance(minutes=1)


@given(parsers.cfparse('the gateway no longer knows device {index:d} of user "{user_id}"'))
def gateway_forgets_device(gateway, devices, index, user_id):
    gateway.configure(invalid_tokens={devices[user_id][index - 1]})


@given("the gateway rejects every device")
def gateway_rejects_everything(gateway, devices):
    gateway.configure(failing_tokens={token for tokens in devices.values() for token in tokens})


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the notification is recorded as "{status}"'))
def notification_recorded_as(delivery, status):
    record = current_domain.repository_for(NotificationRecord).get(delivery["notification_record_id"])
    assert record.status == status


@then(parsers.cfparse('user "{user_id}" has {count:d} active device'))
@then(parsers.cfparse('user "{user_id}" has {count:d} active devices'))
def active_devices(registry, user_id, count):
    assert len(registry.active_for(user_id)) == count
