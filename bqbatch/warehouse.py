"""
BigQuery load job adapter.

The processor reaches BigQuery through two small interfaces:

- WriteChannel: collects the bytes of one flow unit and, when closed,
  submits them as a load job
- Warehouse: opens write channels and blocks until a submitted job ends

BigQueryWarehouse implements both on top of google-cloud-bigquery, using
load_table_from_file (a resumable, chunked upload) rather than streaming
inserts. A job that finishes with an error is returned as a JobResult
carrying a JobError; only local and transport failures raise.
"""

import io
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from types import TracebackType
from typing import Any, Protocol

import structlog
from google.api_core.exceptions import GoogleAPICallError
from google.cloud import bigquery

log = structlog.get_logger()

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class LoadSettings:
    """
    Load job configuration for one flow unit.

    Built fresh for every unit from the resolved processor properties.
    The schema is shared across units and must not be mutated.
    """
    dataset: str
    table: str
    source_format: str
    create_disposition: str
    write_disposition: str
    max_bad_records: int
    ignore_unknown_values: bool
    schema: list[bigquery.SchemaField] | None = None
    project: str | None = None

    def __post_init__(self) -> None:
        if not self.dataset.strip():
            raise ValueError("Dataset evaluated to an empty string")
        if not self.table.strip():
            raise ValueError("Table name evaluated to an empty string")
        for label, value in (("Dataset", self.dataset), ("Table name", self.table)):
            if "." in value:
                raise ValueError(f"{label} must not contain '.', got '{value}'")

    @property
    def table_id(self) -> str:
        """Table ID in standard SQL form; the client's project is used if none is set."""
        if self.project:
            return f"{self.project}.{self.dataset}.{self.table}"
        return f"{self.dataset}.{self.table}"

    def table_reference(self, default_project: str) -> bigquery.TableReference:
        """Destination table, in the configured project or else the given one."""
        dataset = bigquery.DatasetReference(self.project or default_project, self.dataset)
        return bigquery.TableReference(dataset, self.table)

    def to_job_config(self) -> bigquery.LoadJobConfig:
        job_config = bigquery.LoadJobConfig(
            source_format=self.source_format,
            create_disposition=self.create_disposition,
            write_disposition=self.write_disposition,
            max_bad_records=self.max_bad_records,
            ignore_unknown_values=self.ignore_unknown_values,
        )
        # No schema: BigQuery uses the table's schema, or Avro's embedded one
        if self.schema is not None:
            job_config.schema = self.schema
        return job_config


@dataclass(frozen=True)
class JobError:
    """Error reported by BigQuery for a finished job."""
    message: str | None
    reason: str | None
    location: str | None


@dataclass(frozen=True)
class JobResult:
    """
    Terminal state of a load job.

    Times are epoch milliseconds, matching the job statistics BigQuery
    reports. Any of them may be None if the job never reached that stage.
    """
    create_time: int | None
    start_time: int | None
    end_time: int | None
    link: str | None
    error: JobError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def from_job(cls, job: Any) -> "JobResult":
        error = None
        if job.error_result:
            error = JobError(
                message=job.error_result.get("message"),
                reason=job.error_result.get("reason"),
                location=job.error_result.get("location"),
            )

        return cls(
            create_time=to_epoch_millis(job.created),
            start_time=to_epoch_millis(job.started),
            end_time=to_epoch_millis(job.ended),
            link=job.self_link,
            error=error,
        )


def to_epoch_millis(value: datetime | None) -> int | None:
    """Convert a job timestamp to whole epoch milliseconds (naive means UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // timedelta(milliseconds=1)


class WriteChannel(Protocol):
    """
    Upload session for a single load job.

    Used as a context manager: leaving the block normally submits the
    written bytes, leaving it with an exception discards them.
    """

    @property
    def job(self) -> Any:
        """The submitted job, or None until the channel is closed."""
        ...

    def write(self, data: bytes) -> int:
        ...

    def close(self) -> Any:
        """Submit the written bytes and return the job handle."""
        ...

    def __enter__(self) -> "WriteChannel":
        ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        ...


class Warehouse(Protocol):
    """Opens write channels and waits for the jobs they submit."""

    def open_channel(self, settings: LoadSettings) -> WriteChannel:
        ...

    def wait_for(self, job: Any, timeout: float | None = None) -> JobResult:
        """
        Block until the job is finished.

        Returns a JobResult whether the job succeeded or BigQuery reported
        an error. Raises on transport failures and on timeout.
        """
        ...


class BigQueryWriteChannel:
    """Buffers the written bytes and submits them with load_table_from_file."""

    def __init__(self, client: bigquery.Client, settings: LoadSettings) -> None:
        self.client = client
        self.settings = settings
        self._buffer: io.BytesIO | None = io.BytesIO()
        self._job: bigquery.LoadJob | None = None

    @property
    def job(self) -> bigquery.LoadJob | None:
        return self._job

    def write(self, data: bytes) -> int:
        if self._buffer is None:
            raise ValueError("Write channel is closed")
        return self._buffer.write(data)

    def close(self) -> bigquery.LoadJob:
        if self._job is not None:
            return self._job
        if self._buffer is None:
            raise ValueError("Write channel was discarded")

        self._job = self.client.load_table_from_file(
            self._buffer,
            self.settings.table_reference(self.client.project),
            job_config=self.settings.to_job_config(),
            rewind=True,
        )
        self._buffer = None

        log.debug(
            "bigquery_load_job_submitted",
            table=self.settings.table_id,
            job_id=self._job.job_id,
        )
        return self._job

    def discard(self) -> None:
        """Drop buffered bytes without submitting a job."""
        self._buffer = None

    def __enter__(self) -> "BigQueryWriteChannel":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            self.close()
        else:
            self.discard()


class BigQueryWarehouse:
    """Warehouse implementation backed by a google-cloud-bigquery client."""

    def __init__(self, client: bigquery.Client) -> None:
        self.client = client

    @classmethod
    def connect(cls, project: str | None = None, location: str | None = None) -> "BigQueryWarehouse":
        """Create a client using application default credentials."""
        return cls(bigquery.Client(project=project, location=location))

    def open_channel(self, settings: LoadSettings) -> BigQueryWriteChannel:
        return BigQueryWriteChannel(self.client, settings)

    def wait_for(self, job: bigquery.LoadJob, timeout: float | None = None) -> JobResult:
        try:
            # Raises concurrent.futures.TimeoutError if the job outlives the timeout
            job.result(timeout=timeout)
        except GoogleAPICallError:
            # A finished job with error_result is reported in the JobResult
            if job.state != "DONE" or not job.error_result:
                raise

        return JobResult.from_job(job)
