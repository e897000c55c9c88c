from concurrent.futures import ThreadPoolExecutor

import pytest

from apps.accounts import AccountResolver
from apps.quota import QuotaDecision, QuotaEnforcer
from apps.store import RecordStore
from lib.contracts.errors import StoreUnavailable


def test_allows_below_limit(accounts, quota):
    account = accounts.resolve("7")
    assert quota.check_and_maybe_reject(account) is QuotaDecision.ALLOWED


def test_rejects_at_limit(accounts, quota):
    account = accounts.resolve("7")
    for _ in range(5):
        quota.increment(account.account_id)
    account = accounts.resolve("7")
    assert account.usage_count == 5
    assert quota.check_and_maybe_reject(account) is QuotaDecision.REJECTED


def test_explicit_limit_overrides_default(accounts, quota):
    account = accounts.resolve("7")
    assert quota.check_and_maybe_reject(account, limit=0) is QuotaDecision.REJECTED


def test_increment_adds_exactly_one(accounts, quota):
    account = accounts.resolve("7")
    assert quota.increment(account.account_id) == 1
    assert quota.increment(account.account_id) == 2
    assert accounts.resolve("7").usage_count == 2


def test_increment_unknown_account(quota):
    with pytest.raises(StoreUnavailable):
        quota.increment(999)


def test_concurrent_increments_are_not_lost(tmp_path):
    file_store = RecordStore(f"sqlite:///{tmp_path / 'relay.db'}")
    file_store.create_schema()
    try:
        account = AccountResolver(file_store).resolve("7")
        enforcer = QuotaEnforcer(file_store)

        def bump(_):
            for _ in range(20):
                enforcer.increment(account.account_id)

        with ThreadPoolExecutor(max_workers=5) as pool:
            list(pool.map(bump, range(5)))

        assert AccountResolver(file_store).resolve("7").usage_count == 100
    finally:
        file_store.dispose()
