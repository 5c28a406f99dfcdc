"""Check and secure flows around a dispatch.

``check``: load the bank, drop exempted IDs, dispatch, record the run.
``secure``: look up a prior run's failed IDs, dispatch their remediations,
record the outcomes against that run.
"""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from stewart.bank.loader import load_bank
from stewart.checks.models import Check, CheckResult, SecureResult
from stewart.core.logging import LOG
from stewart.dispatch.coordinator import DispatchCoordinator
from stewart.audit.store import AuditStore

BankLoader = Callable[[Union[str, Path]], Dict[str, Check]]


class AuditSession:
    """
    One audit store plus the coordinator that feeds it.

    Example:
        >>> session = AuditSession(AuditStore("audit.json"))
        >>> run_id, results = session.check("bank.json")
        >>> remediations = session.secure("bank.json", run_id)
    """

    def __init__(
        self,
        store: Optional[AuditStore] = None,
        coordinator: Optional[DispatchCoordinator] = None,
        loader: BankLoader = load_bank,
    ):
        self.store = store if store is not None else AuditStore()
        self.coordinator = coordinator if coordinator is not None else DispatchCoordinator()
        self.loader = loader

    def check(self, bank_path: Union[str, Path]) -> Tuple[str, List[CheckResult]]:
        """Run every non-exempt check in the bank.

        Returns:
            (run ID, results)

        Raises:
            BankError: If the bank cannot be loaded
            PoolError: If no shell worker could be started
        """
        bank = self.loader(bank_path)
        exempt = self.store.exempted_ids()
        checks = [check for cid, check in bank.items() if cid not in exempt]
        if len(checks) < len(bank):
            LOG.i(f"Skipping {len(bank) - len(checks)} exempted check(s)")

        run_id = uuid.uuid4().hex
        with LOG.scope(run=run_id[:8]):
            results = self.coordinator.check(checks)

        self.store.record_run(run_id, bank_path=Path(bank_path).resolve())
        self.store.record_results(run_id, results)
        LOG.i(f"Run {run_id}: {sum(not r.check_pass for r in results)} finding(s) in {len(results)} check(s)")
        return run_id, results

    def secure(self, bank_path: Union[str, Path], run_id: str) -> List[SecureResult]:
        """Remediate the checks that failed in ``run_id``.

        Raises:
            AuditError: If the run is unknown
            BankError: If the bank cannot be loaded
        """
        failed = self.store.failed_ids(run_id)
        if not failed:
            LOG.i(f"Run {run_id} has no failed checks to secure")
            return []

        bank = self.loader(bank_path)
        missing = [cid for cid in failed if cid not in bank]
        if missing:
            LOG.w(f"{len(missing)} failed check(s) are no longer in the bank: {', '.join(missing)}")
        exempt = self.store.exempted_ids()
        checks = [bank[cid] for cid in failed if cid in bank and cid not in exempt]

        with LOG.scope(run=run_id[:8]):
            results = self.coordinator.secure(checks)
        for result in results:
            self.store.record_remediation(run_id, result.id, result.secured)
        return results
