from collections import Counter
from concurrent.futures import ThreadPoolExecutor

import pytest

from backend.app.errors import ConfigurationError
from backend.app.services.credentials import CredentialRotator


def test_round_robin_order():
    rotator = CredentialRotator(["k1", "k2", "k3"])
    used = [rotator.next_key() for _ in range(7)]
    assert used == ["k1", "k2", "k3", "k1", "k2", "k3", "k1"]


def test_each_key_used_at_least_floor_n_over_k():
    keys = ["a", "b", "c", "d"]
    rotator = CredentialRotator(keys)
    n = 23
    counts = Counter(rotator.next_key() for _ in range(n))
    assert all(counts[key] >= n // len(keys) for key in keys)


def test_parses_comma_separated_value():
    rotator = CredentialRotator.from_env_value(" first, ,second,,third ")
    assert len(rotator) == 3
    assert [rotator.next_key() for _ in range(3)] == ["first", "second", "third"]


def test_empty_pool_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        CredentialRotator.from_env_value("").next_key()
    with pytest.raises(ConfigurationError):
        CredentialRotator([]).next_key()


def test_concurrent_requests_share_the_rotation_evenly():
    rotator = CredentialRotator(["x", "y", "z"])
    with ThreadPoolExecutor(max_workers=8) as pool:
        used = list(pool.map(lambda _: rotator.next_key(), range(300)))
    assert Counter(used) == {"x": 100, "y": 100, "z": 100}
