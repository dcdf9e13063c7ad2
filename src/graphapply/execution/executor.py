"""Apply planned operations through provider adapters."""

import heapq
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, Dict, Iterable, List, Optional, Set
from ..config.settings import EngineSettings
from ..ingest.references import Reference, attribute_value, resolve_references
from ..planning.models import ActionType, Operation, OperationKind, Plan
from ..providers.registry import ProviderRegistry
from ..state.models import StateRecord, utcnow
from ..state.store import StateStore
from ..utils.errors import GraphApplyError, ReferenceResolutionError, UnsupportedUpdateError
from ..utils.logging import get_logger
from .cancellation import CancellationToken
from .report import OperationResult, OperationStatus, RunReport, SUCCESS_STATUSES
from .retry import RetryPolicy

logger = get_logger("execution.executor")


class Executor:
    """
    Applies a plan with a bounded worker pool.

    An operation is dispatched once all operations it depends on are APPLIED
    or NO_OP. A failure skips its transitive dependents; independent
    subgraphs keep going.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        state_store: StateStore,
        settings: Optional[EngineSettings] = None,
        retry_policy: Optional[RetryPolicy] = None
    ):
        self.registry = registry
        self.state_store = state_store
        self.settings = settings or EngineSettings()
        self.retry_policy = retry_policy or RetryPolicy.from_settings(self.settings.retry)

    def execute(
        self,
        plan: Plan,
        cancel_token: Optional[CancellationToken] = None,
        blocked: Iterable[str] = ()
    ) -> RunReport:
        """
        Apply every operation of the plan.

        Args:
            plan: Plan from the Planner
            cancel_token: Optional run-level cancellation signal
            blocked: Node ids whose operations are skipped without being attempted

        Returns:
            RunReport with one result per operation, in plan order
        """
        cancel_token = cancel_token or CancellationToken()
        blocked = set(blocked)
        operations = {op.op_id: op for op in plan.operations}
        position = {op.op_id: i for i, op in enumerate(plan.operations)}
        results: Dict[str, OperationResult] = {}

        waiting_on: Dict[str, Set[str]] = {}
        dependents: Dict[str, List[str]] = {op_id: [] for op_id in operations}
        for op in plan.operations:
            waiting_on[op.op_id] = {dep for dep in op.depends_on if dep in operations}
            for dep in waiting_on[op.op_id]:
                dependents[dep].append(op.op_id)

        ready: List[int] = []
        for op in plan.operations:
            if not waiting_on[op.op_id]:
                heapq.heappush(ready, position[op.op_id])

        def finish(result: OperationResult) -> None:
            results[result.op_id] = result
            if result.status in SUCCESS_STATUSES:
                for dependent_id in dependents[result.op_id]:
                    waiting_on[dependent_id].discard(result.op_id)
                    if not waiting_on[dependent_id] and dependent_id not in results:
                        heapq.heappush(ready, position[dependent_id])
            else:
                self._skip_dependents(result, operations, dependents, results)

        logger.info(f"Applying {len(plan.changes())} changes with concurrency {self.settings.concurrency}")

        with ThreadPoolExecutor(max_workers=self.settings.concurrency, thread_name_prefix="graphapply") as pool:
            in_flight: Dict[Future, str] = {}
            while True:
                while ready and len(in_flight) < self.settings.concurrency and not cancel_token.cancelled:
                    op = plan.operations[heapq.heappop(ready)]
                    if op.op_id in results:
                        continue
                    if op.kind == OperationKind.NO_OP:
                        finish(self._record_no_op(op))
                    elif op.node_id in blocked:
                        finish(self._result(op, OperationStatus.SKIPPED, error="blocked by an earlier failure"))
                    else:
                        in_flight[pool.submit(self._apply, op)] = op.op_id

                if not in_flight:
                    break

                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    in_flight.pop(future)
                    finish(future.result())

        for op in plan.operations:
            if op.op_id in results:
                continue
            if op.kind == OperationKind.NO_OP:
                results[op.op_id] = self._result(op, OperationStatus.NO_OP, provider_id=op.provider_id)
            else:
                reason = cancel_token.reason or "run cancelled"
                results[op.op_id] = self._result(op, OperationStatus.SKIPPED, error=reason)

        report = RunReport(
            results=[results[op.op_id] for op in plan.operations],
            cancelled=cancel_token.cancelled
        )
        counts = ", ".join(f"{count} {status.lower()}" for status, count in report.counts().items() if count)
        if report.success:
            logger.info(f"Run complete: {counts or 'nothing to do'}")
        else:
            logger.error(f"Run finished with failures: {counts}")
        return report

    def _skip_dependents(
        self,
        failed: OperationResult,
        operations: Dict[str, Operation],
        dependents: Dict[str, List[str]],
        results: Dict[str, OperationResult]
    ) -> None:
        """Mark every not-yet-started transitive dependent SKIPPED."""
        stack = list(dependents[failed.op_id])
        while stack:
            op_id = stack.pop()
            if op_id in results:
                continue
            results[op_id] = self._result(
                operations[op_id],
                OperationStatus.SKIPPED,
                error=f"dependency {failed.op_id} {failed.status.value.lower()}"
            )
            logger.warning(f"Skipping {op_id}: dependency {failed.op_id} {failed.status.value.lower()}")
            stack.extend(dependents[op_id])

    def _result(self, op: Operation, status: OperationStatus, **kwargs: Any) -> OperationResult:
        return OperationResult(
            op_id=op.op_id,
            node_id=op.node_id,
            kind=op.kind,
            action=op.action,
            status=status,
            **kwargs
        )

    def _record_no_op(self, op: Operation) -> OperationResult:
        """Nothing to apply; keep recorded dependencies current."""
        record = self.state_store.load(op.node_id)
        if record is not None and record.depends_on != op.resource_depends_on:
            record.depends_on = list(op.resource_depends_on)
            self.state_store.save(op.node_id, record)
        return self._result(op, OperationStatus.NO_OP, provider_id=record.provider_id if record else None)

    def _apply(self, op: Operation) -> OperationResult:
        """Worker body: never raises, always returns a terminal result."""
        started = time.monotonic()
        attempts = 0
        try:
            if op.action == ActionType.CREATE:
                provider_id, attempts = self._create(op)
            elif op.action == ActionType.UPDATE:
                provider_id, attempts = self._update(op)
            else:
                provider_id, attempts = self._delete(op)
        except UnsupportedUpdateError as e:
            logger.warning(f"{op.op_id}: {e}; will be re-planned as a replacement")
            return self._result(
                op, OperationStatus.REPLANNED, error=str(e),
                attempts=getattr(e, "attempts", 1),
                provider_id=op.provider_id,
                duration_seconds=time.monotonic() - started
            )
        except GraphApplyError as e:
            logger.error(f"{op.op_id} failed: {e}")
            return self._result(
                op, OperationStatus.FAILED, error=str(e),
                attempts=getattr(e, "attempts", attempts),
                provider_id=op.provider_id,
                duration_seconds=time.monotonic() - started
            )
        except Exception as e:
            logger.error(f"Unexpected error applying {op.op_id}: {e}", exc_info=True)
            return self._result(
                op, OperationStatus.FAILED, error=f"unexpected error: {e}",
                attempts=attempts,
                provider_id=op.provider_id,
                duration_seconds=time.monotonic() - started
            )

        logger.info(f"Applied {op.op_id} ({provider_id or 'deleted'})")
        return self._result(
            op, OperationStatus.APPLIED,
            attempts=attempts,
            provider_id=provider_id,
            duration_seconds=time.monotonic() - started
        )

    def _resolve(self, op: Operation) -> Dict[str, Any]:
        """Resolve references against the state store as it is now."""
        def lookup(ref: Reference) -> Any:
            record = self.state_store.load(ref.node_id)
            if record is None:
                raise ReferenceResolutionError(f"Cannot resolve {ref.token}: {ref.node_id} has no state")
            return attribute_value(record.attributes, record.provider_id, ref)

        return resolve_references(op.desired, lookup)

    def _create(self, op: Operation):
        adapter = self.registry.get(op.resource_kind)
        desired = self._resolve(op)
        (provider_id, actual), attempts = self.retry_policy.call(
            lambda: adapter.create(desired),
            f"create {op.node_id}"
        )

        previous = self.state_store.load(op.node_id)
        now = utcnow()
        kind, name = op.node_id.split(".", 1)
        record = StateRecord(
            node_id=op.node_id,
            kind=kind,
            name=name,
            provider_id=provider_id,
            attributes=actual,
            declared=list(desired),
            depends_on=list(op.resource_depends_on),
            create_before_destroy=op.create_before_destroy,
            created_at=now,
            updated_at=now,
            refreshed_at=now
        )
        # Replace: the new record supersedes the old one in a single write.
        self.state_store.save(op.node_id, record)
        if previous is not None:
            logger.debug(f"{op.node_id}: record {previous.provider_id} superseded by {provider_id}")
        return provider_id, attempts

    def _update(self, op: Operation):
        adapter = self.registry.get(op.resource_kind)
        desired = self._resolve(op)
        changes = {change.name: desired.get(change.name) for change in op.diff}
        actual, attempts = self.retry_policy.call(
            lambda: adapter.update(op.provider_id, changes),
            f"update {op.node_id}"
        )

        record = self.state_store.load(op.node_id)
        if record is None:
            raise ReferenceResolutionError(f"{op.node_id} has no state to update")
        now = utcnow()
        record.attributes = actual
        record.declared = list(desired)
        record.depends_on = list(op.resource_depends_on)
        record.updated_at = now
        record.refreshed_at = now
        self.state_store.save(op.node_id, record)
        return record.provider_id, attempts

    def _delete(self, op: Operation):
        adapter = self.registry.get(op.resource_kind)
        _, attempts = self.retry_policy.call(
            lambda: adapter.delete(op.provider_id),
            f"delete {op.node_id}"
        )

        record = self.state_store.load(op.node_id)
        # After a create-before-destroy replace the record already names the new object.
        if record is not None and record.provider_id == op.provider_id:
            self.state_store.delete(op.node_id)
        return None, attempts
