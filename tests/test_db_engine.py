"""Tests for engine initialisation and the session_scope helper."""

import pytest
from sqlalchemy import event, func, select

from ledger_config.schema import DatabaseConfig
from ledger_kernel.db import immutability
from ledger_kernel.db.engine import (
    get_engine,
    get_session,
    init_engine_from_config,
    init_engine_from_url,
    is_postgres,
    reset_engine,
    session_scope,
)
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.ledger import LedgerEntry, PostingGroup
from ledger_kernel.services.account_registry import AccountRegistry


def _account_count():
    s = get_session()
    try:
        return s.scalar(select(func.count()).select_from(Account))
    finally:
        s.close()


class TestSessionScope:

    def test_commits_on_success(self, engine, organization_id):
        with session_scope() as s:
            AccountRegistry(s).resolve(organization_id, "9000", "Suspense", AccountType.ASSET)

        assert _account_count() == 1

    def test_rolls_back_and_reraises(self, engine, organization_id, captured_logs):
        with pytest.raises(RuntimeError, match="boom"):
            with session_scope() as s:
                AccountRegistry(s).resolve(organization_id, "9000", "Suspense", AccountType.ASSET)
                s.flush()
                raise RuntimeError("boom")

        assert _account_count() == 0
        assert any(r["message"] == "transaction_rolled_back" for r in captured_logs())


class TestEngineLifecycle:

    def test_uninitialised_engine(self):
        reset_engine()

        with pytest.raises(RuntimeError, match="not initialized"):
            get_engine()
        with pytest.raises(RuntimeError, match="not initialized"):
            get_session()
        assert is_postgres() is False

    def test_init_from_config(self, tmp_path):
        config = DatabaseConfig(url=f"sqlite:///{tmp_path / 'configured.db'}", pool_size=2)
        try:
            engine = init_engine_from_config(config)

            assert get_engine() is engine
            assert engine.dialect.name == "sqlite"
            assert is_postgres() is False
        finally:
            reset_engine()

    def test_init_registers_immutability_listeners(self, tmp_path):
        listeners = immutability._listeners(Account, LedgerEntry, PostingGroup)
        for target, name, fn in listeners:
            if event.contains(target, name, fn):
                event.remove(target, name, fn)
        try:
            init_engine_from_url(f"sqlite:///{tmp_path / 'listeners.db'}")

            for target, name, fn in listeners:
                assert event.contains(target, name, fn), (target.__name__, name)
        finally:
            reset_engine()
            immutability.register_immutability_listeners()

    def test_listener_registration_idempotent(self):
        immutability.register_immutability_listeners()
        immutability.register_immutability_listeners()

        assert event.contains(PostingGroup, "before_update", immutability._check_posting_group_update)
        assert event.contains(Account, "before_delete", immutability._check_account_delete)
