import pytest

from embhttp.storage import ServerStorage, for_microcontroller, for_server_host


def test_server_host_profile():
    storage = for_server_host()
    assert storage.slot_count == 256
    assert storage.route_count == 32
    assert storage.request_buffer_size == 8192
    assert storage.response_buffer_size == 8192


def test_microcontroller_profile():
    storage = for_microcontroller()
    assert storage.slot_count == 4
    assert storage.route_count == 8
    assert storage.request_buffer_size == 1024
    assert storage.response_buffer_size == 1024


def test_profiles_are_shared_instances():
    host_first, host_second = for_server_host(), for_server_host()
    mcu_first, mcu_second = for_microcontroller(), for_microcontroller()
    assert host_first is host_second
    assert mcu_first is mcu_second
    assert host_second.slot_count == 256
    assert mcu_second.slot_count == 4


def test_microcontroller_is_smaller_than_host():
    small, big = for_microcontroller(), for_server_host()
    assert small.slot_count < big.slot_count
    assert small.route_count < big.route_count
    assert small.request_buffer_size < big.request_buffer_size


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(slot_count=0, route_count=1, request_buffer_size=1, response_buffer_size=1),
        dict(slot_count=1, route_count=0, request_buffer_size=1, response_buffer_size=1),
        dict(slot_count=1, route_count=1, request_buffer_size=0, response_buffer_size=1),
        dict(slot_count=1, route_count=1, request_buffer_size=1, response_buffer_size=0),
    ],
)
def test_zero_sizes_rejected(kwargs):
    with pytest.raises(ValueError):
        ServerStorage(**kwargs)


def test_custom_storage_keeps_values():
    storage = ServerStorage(2, 3, 64, 128)
    assert (storage.slot_count, storage.route_count) == (2, 3)
    assert (storage.request_buffer_size, storage.response_buffer_size) == (64, 128)