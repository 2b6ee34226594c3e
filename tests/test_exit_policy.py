from __future__ import annotations

import pytest

from procexec.domain.exit_policy import ExitValuePolicy


def test_default_policy_accepts_only_zero() -> None:
    policy = ExitValuePolicy()
    assert policy.is_failure(0) is False
    assert policy.is_failure(1) is True


def test_policy_accepting_set_of_values() -> None:
    policy = ExitValuePolicy.any_of([1, 2])
    assert policy.is_failure(1) is False
    assert policy.is_failure(2) is False
    assert policy.is_failure(0) is True
    assert ExitValuePolicy.only(1) == ExitValuePolicy.any_of([1])


def test_policy_accepting_any_value() -> None:
    policy = ExitValuePolicy.accept_any()
    assert policy.is_failure(-9) is False
    assert policy.is_failure(255) is False


def test_policy_rejects_empty_set() -> None:
    with pytest.raises(ValueError):
        ExitValuePolicy.any_of([])
