"""Shared fixtures: configuration, canned job results and processor wiring."""

import pytest
import structlog

from bqbatch.config import Config
from bqbatch.processor import PutBigQueryBatch
from bqbatch.warehouse import JobError, JobResult

from tests.fakes import FakeWarehouse


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep structlog output out of the test run."""
    structlog.configure(
        processors=[structlog.processors.KeyValueRenderer()],
        logger_factory=structlog.ReturnLoggerFactory(),
    )
    yield
    structlog.reset_defaults()


@pytest.fixture
def config() -> Config:
    return Config(
        env="test",
        project_id="test-project",
        bq_location="europe-west2",
        job_timeout_seconds=600,
        log_level="INFO",
        dynatrace_endpoint="",
        dynatrace_token_path="/nonexistent/token",
    )


@pytest.fixture
def success_result() -> JobResult:
    return JobResult(create_time=90, start_time=100, end_time=200, link="https://job/1")


@pytest.fixture
def error_result() -> JobResult:
    return JobResult(
        create_time=90,
        start_time=100,
        end_time=150,
        link="https://job/2",
        error=JobError(
            message="Provided Schema does not match Table raw.events",
            reason="invalid",
            location="row 3",
        ),
    )


@pytest.fixture
def make_processor(config):
    """Build a processor wired to the given fake warehouse."""
    def _make(warehouse: FakeWarehouse, **kwargs) -> PutBigQueryBatch:
        return PutBigQueryBatch(
            config=config,
            warehouse_factory=lambda project: warehouse,
            **kwargs,
        )
    return _make
