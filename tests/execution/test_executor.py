"""Tests for the executor."""

import threading
import time
import pytest
from graphapply.config.settings import EngineSettings
from graphapply.execution.cancellation import CancellationToken
from graphapply.execution.executor import Executor
from graphapply.execution.report import OperationStatus
from graphapply.execution.retry import RetryPolicy
from graphapply.graph.resource_graph import ResourceGraph
from graphapply.planning.planner import Planner
from graphapply.providers.memory import InMemoryProvider
from graphapply.providers.registry import ProviderRegistry
from graphapply.state.store import InMemoryStateStore
from graphapply.utils.errors import ProviderError


class CancellingProvider(InMemoryProvider):
    """Cancels the run from inside its first create."""

    def __init__(self, kind, token):
        super().__init__(kind)
        self.token = token

    def create(self, desired):
        result = super().create(desired)
        self.token.cancel()
        return result


class SlowProvider(InMemoryProvider):
    """Tracks how many creates run at once."""

    def __init__(self, kind):
        super().__init__(kind)
        self.active = 0
        self.peak = 0
        self._gauge = threading.Lock()

    def create(self, desired):
        with self._gauge:
            self.active += 1
            self.peak = max(self.peak, self.active)
        time.sleep(0.05)
        try:
            return super().create(desired)
        finally:
            with self._gauge:
                self.active -= 1


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def providers():
    return {
        "role": InMemoryProvider("role", force_new=["name"], computed={"arn": "arn:role/{id}"}),
        "cluster": InMemoryProvider("cluster", reject_updates=["version"]),
        "bucket": InMemoryProvider("bucket"),
    }


@pytest.fixture
def engine(providers, sleeps):
    registry = ProviderRegistry(providers.values())
    store = InMemoryStateStore()
    policy = RetryPolicy(max_attempts=3, sleep=sleeps.append)
    return Planner(registry, store, retry_policy=policy), Executor(registry, store, retry_policy=policy)


def chain_graph(role_name="eks-role", version="1.29"):
    """role.x <- cluster.y, plus an independent bucket.z."""
    graph = ResourceGraph()
    graph.add_node("role", "x", {"name": role_name})
    graph.add_node("cluster", "y", {"role_arn": "${role.x.arn}", "version": version})
    graph.add_node("bucket", "z", {"name": "logs"})
    graph.add_reference_edges()
    return graph


class TestSuccessfulRuns:
    """Test applying plans end to end."""

    def test_all_applied_and_recorded(self, engine):
        """Test every create is applied and writes a state record."""
        planner, executor = engine
        report = executor.execute(planner.plan(chain_graph()))

        assert report.success
        assert [r.status for r in report.results] == [OperationStatus.APPLIED] * 3
        store = executor.state_store
        assert sorted(store.list_ids()) == ["bucket.z", "cluster.y", "role.x"]
        cluster = store.load("cluster.y")
        assert cluster.attributes["role_arn"] == store.load("role.x").attributes["arn"]
        assert cluster.depends_on == ["role.x"]

    def test_report_in_plan_order(self, engine):
        """Test results follow plan order whatever the completion order."""
        planner, executor = engine
        plan = planner.plan(chain_graph())
        report = executor.execute(plan)

        assert [r.op_id for r in report.results] == [op.op_id for op in plan.operations]

    def test_no_op_results(self, engine, providers):
        """Test a converged plan reports NO_OP without provider calls."""
        planner, executor = engine
        executor.execute(planner.plan(chain_graph()))
        calls = len(providers["role"].calls)

        report = executor.execute(planner.plan(chain_graph()))

        assert report.counts()["NO_OP"] == 3
        assert report.success
        assert len(providers["role"].calls) == calls

    def test_replace_supersedes_state_record(self, engine, providers):
        """Test a replace leaves one record naming the new object and deletes the old one."""
        planner, executor = engine
        executor.execute(planner.plan(chain_graph()))
        old_id = executor.state_store.load("role.x").provider_id

        report = executor.execute(planner.plan(chain_graph(role_name="renamed")))

        assert report.success
        record = executor.state_store.load("role.x")
        assert record.provider_id != old_id
        assert record.attributes["name"] == "renamed"
        assert list(providers["role"].resources) == [record.provider_id]
        assert executor.state_store.load("cluster.y").attributes["role_arn"] == record.attributes["arn"]

    def test_update_keeps_provider_id(self, engine, providers):
        """Test an in-place update rewrites attributes under the same provider id."""
        providers["cluster"].reject_updates = frozenset()
        planner, executor = engine
        executor.execute(planner.plan(chain_graph()))
        before = executor.state_store.load("cluster.y")

        report = executor.execute(planner.plan(chain_graph(version="1.30")))

        assert report.get("cluster.y:update").status == OperationStatus.APPLIED
        after = executor.state_store.load("cluster.y")
        assert after.provider_id == before.provider_id
        assert report.get("cluster.y:update").provider_id == before.provider_id
        assert after.attributes["version"] == "1.30"
        assert after.created_at == before.created_at
        assert after.updated_at >= before.updated_at
        assert providers["cluster"].call_count("create") == 1
        assert list(providers["cluster"].resources) == [before.provider_id]

    def test_concurrency_is_bounded(self, sleeps):
        """Test no more than settings.concurrency operations run at once."""
        provider = SlowProvider("bucket")
        registry = ProviderRegistry([provider])
        store = InMemoryStateStore()
        settings = EngineSettings(concurrency=2)
        graph = ResourceGraph()
        for i in range(6):
            graph.add_node("bucket", f"b{i}", {"index": i})
        graph.add_reference_edges()

        report = Executor(registry, store, settings).execute(Planner(registry, store, settings).plan(graph))

        assert report.success
        assert provider.peak <= 2
        assert len(store.list_ids()) == 6


class TestFailures:
    """Test retries, failure isolation and re-plan signalling."""

    def test_transient_errors_retried(self, engine, providers, sleeps):
        """Test transient, transient, success is APPLIED after exactly 3 calls."""
        planner, executor = engine
        providers["bucket"].fail_next(
            "create",
            ProviderError("throttled", transient=True),
            ProviderError("throttled", transient=True),
        )

        report = executor.execute(planner.plan(chain_graph()))

        result = report.get("bucket.z:create")
        assert result.status == OperationStatus.APPLIED
        assert result.attempts == 3
        assert providers["bucket"].call_count("create") == 3
        assert sleeps == [0.5, 1.0]

    def test_retries_exhausted(self, engine, providers):
        """Test an op failing transiently max_attempts times is FAILED."""
        planner, executor = engine
        providers["bucket"].fail_next("create", *[ProviderError("503", transient=True)] * 3)

        report = executor.execute(planner.plan(chain_graph()))

        result = report.get("bucket.z:create")
        assert result.status == OperationStatus.FAILED
        assert result.attempts == 3
        assert providers["bucket"].call_count("create") == 3

    def test_permanent_failure_skips_dependents_only(self, engine, providers):
        """Test X fails, Y (depends on X) is SKIPPED, independent Z is APPLIED."""
        planner, executor = engine
        providers["role"].fail_next("create", ProviderError("access denied"))

        report = executor.execute(planner.plan(chain_graph()))

        assert report.get("role.x:create").status == OperationStatus.FAILED
        assert report.get("role.x:create").attempts == 1
        skipped = report.get("cluster.y:create")
        assert skipped.status == OperationStatus.SKIPPED
        assert "role.x:create" in skipped.error
        assert report.get("bucket.z:create").status == OperationStatus.APPLIED
        assert not report.success
        assert providers["cluster"].call_count() == 0
        assert executor.state_store.load("role.x") is None

    def test_failure_skips_through_unchanged_node(self, sleeps):
        """Test x fails, so y is SKIPPED even though unchanged n sits between them."""
        provider = InMemoryProvider("thing")
        registry = ProviderRegistry([provider])
        store = InMemoryStateStore()
        policy = RetryPolicy(sleep=sleeps.append)
        planner, executor = Planner(registry, store, retry_policy=policy), Executor(registry, store, retry_policy=policy)

        def graph(size):
            g = ResourceGraph()
            g.add_node("thing", "x", {"size": size})
            g.add_node("thing", "n", {"size": 1}, ["thing.x"])
            g.add_node("thing", "y", {"size": size}, ["thing.n"])
            g.add_reference_edges()
            return g

        executor.execute(planner.plan(graph(1)))
        provider.fail_next("update", ProviderError("denied"))

        report = executor.execute(planner.plan(graph(2)))

        assert report.get("thing.x:update").status == OperationStatus.FAILED
        assert report.get("thing.n:noop").status == OperationStatus.SKIPPED
        skipped = report.get("thing.y:update")
        assert skipped.status == OperationStatus.SKIPPED
        assert "thing.x:update" in skipped.error
        assert provider.call_count("update") == 1
        assert store.load("thing.y").attributes["size"] == 1

    def test_unexpected_exception_fails_op(self, engine, providers):
        """Test non-provider exceptions are contained as FAILED."""
        planner, executor = engine
        providers["bucket"].fail_next("create", RuntimeError("boom"))

        report = executor.execute(planner.plan(chain_graph()))

        result = report.get("bucket.z:create")
        assert result.status == OperationStatus.FAILED
        assert "boom" in result.error

    def test_unsupported_update_replanned(self, engine):
        """Test an update the provider refuses is REPLANNED, not retried."""
        planner, executor = engine
        executor.execute(planner.plan(chain_graph()))

        report = executor.execute(planner.plan(chain_graph(version="1.30")))

        result = report.get("cluster.y:update")
        assert result.status == OperationStatus.REPLANNED
        assert "version" in result.error
        assert result.attempts == 1
        assert not report.success

    def test_blocked_nodes_skipped(self, engine, providers):
        """Test blocked nodes are skipped without any provider call."""
        planner, executor = engine

        report = executor.execute(planner.plan(chain_graph()), blocked={"role.x"})

        assert report.get("role.x:create").status == OperationStatus.SKIPPED
        assert report.get("cluster.y:create").status == OperationStatus.SKIPPED
        assert providers["role"].call_count() == 0


class TestCancellation:
    """Test run-level cancellation."""

    def test_cancelled_before_start(self, engine, providers):
        """Test a cancelled token dispatches nothing."""
        planner, executor = engine
        token = CancellationToken()
        token.cancel()

        report = executor.execute(planner.plan(chain_graph()), cancel_token=token)

        assert report.cancelled
        assert all(r.status == OperationStatus.SKIPPED for r in report.results)
        assert all(r.error == "run cancelled" for r in report.results)
        assert sum(p.call_count() for p in providers.values()) == 0

    def test_cancelled_run_keeps_no_op_results(self, engine):
        """Test undispatched unchanged resources are reported NO_OP, not SKIPPED."""
        planner, executor = engine
        executor.execute(planner.plan(chain_graph()))
        token = CancellationToken()
        token.cancel()

        report = executor.execute(planner.plan(chain_graph(role_name="renamed")), cancel_token=token)

        assert report.cancelled
        assert report.get("bucket.z:noop").status == OperationStatus.NO_OP
        assert report.get("bucket.z:noop").provider_id == executor.state_store.load("bucket.z").provider_id
        assert report.get("role.x:replace-create").status == OperationStatus.SKIPPED
        assert report.get("role.x:replace-create").error == "run cancelled"

    def test_in_flight_operation_finishes(self):
        """Test an op running when cancel arrives completes and is recorded."""
        token = CancellationToken()
        registry = ProviderRegistry([CancellingProvider("role", token), InMemoryProvider("cluster")])
        store = InMemoryStateStore()
        settings = EngineSettings(concurrency=1)
        graph = ResourceGraph()
        graph.add_node("role", "x", {"name": "r"})
        graph.add_node("cluster", "y", {"role": "${role.x.id}"})
        graph.add_reference_edges()

        report = Executor(registry, store, settings).execute(
            Planner(registry, store, settings).plan(graph), cancel_token=token
        )

        assert report.get("role.x:create").status == OperationStatus.APPLIED
        assert store.load("role.x") is not None
        assert report.get("cluster.y:create").status == OperationStatus.SKIPPED
        assert report.cancelled


class TestRetryPolicy:
    """Test backoff computation."""

    def test_delays_grow_and_cap(self):
        """Test exponential growth bounded by max_delay."""
        policy = RetryPolicy(base_delay=0.5, max_delay=3.0, multiplier=2.0)
        assert [policy.delay_for(n) for n in range(1, 6)] == [0.5, 1.0, 2.0, 3.0, 3.0]

    def test_permanent_error_not_retried(self):
        """Test permanent errors propagate after one call."""
        calls = []

        def fail():
            calls.append(1)
            raise ProviderError("bad request")

        with pytest.raises(ProviderError) as exc_info:
            RetryPolicy(sleep=lambda s: None).call(fail, "create thing")
        assert len(calls) == 1
        assert exc_info.value.attempts == 1

    def test_invalid_attempts(self):
        """Test max_attempts must be positive."""
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
