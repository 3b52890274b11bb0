"""
Concurrent writes to different properties through separate sessions.

On SQLite every session shares the ledger-wide sequence counters and the
audit chain head with no row locks, so writes for different properties
must still run one at a time.
"""

import threading

from sqlalchemy import select

from rental_kernel.db.engine import session_scope
from rental_kernel.domain.rental import RentalStatus
from rental_kernel.models.audit_event import AuditEvent
from rental_kernel.services.property_locks import PropertyLockRegistry
from rental_kernel.services.rental_ledger_service import RentalLedgerService
from tests.conftest import DEPOSIT, RENT, TENANT

PROPERTY_IDS = [f"p{i}" for i in range(8)]


# =============================================================================
# Lock scope
# =============================================================================


class TestLockScope:
    def test_sqlite_writes_share_the_ledger_lock(self, ledger):
        keys = {ledger._lock_key(pid) for pid in PROPERTY_IDS}
        assert keys == {ledger._lock_key(None)}


# =============================================================================
# Threaded writes
# =============================================================================


class TestConcurrentProperties:
    def test_parallel_activate_and_pay_keep_one_chain(
        self, ledger, create_standard_rental, deterministic_clock, selector, auditor, session
    ):
        for pid in PROPERTY_IDS:
            create_standard_rental(pid)

        registry = PropertyLockRegistry()
        start = threading.Barrier(len(PROPERTY_IDS))
        errors: list[Exception] = []

        def worker(property_id: str):
            try:
                start.wait(timeout=5)
                with session_scope() as s:
                    service = RentalLedgerService(
                        s, clock=deterministic_clock, lock_registry=registry
                    )
                    service.activate_rental(TENANT, property_id, RENT + DEPOSIT)
                    service.pay_rent(TENANT, property_id, RENT)
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(pid,)) for pid in PROPERTY_IDS]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert errors == []
        session.expire_all()
        for pid in PROPERTY_IDS:
            record = selector.get(pid)
            assert record.status is RentalStatus.ACTIVE
            assert selector.deposit(pid) == DEPOSIT

        seqs = session.execute(select(AuditEvent.seq).order_by(AuditEvent.seq)).scalars().all()
        # initialize + 8 creates + 8 activations + 8 payments
        assert len(seqs) == 1 + 3 * len(PROPERTY_IDS)
        assert len(set(seqs)) == len(seqs)
        assert seqs == list(range(seqs[0], seqs[0] + len(seqs)))
        assert auditor.validate_chain() is True
