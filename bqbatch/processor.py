"""
Batch load flow files into a BigQuery table.

PutBigQueryBatch is driven by the host runtime through three hooks:

1. on_scheduled: validate static properties, parse the table schema and
   connect to BigQuery, once per scheduling lifecycle
2. on_trigger: take one flow file, stream its content into a load job,
   wait for the job and route the flow file to success or failure
3. on_stopped: drop the run state so the next schedule re-reads properties

Failure handling:
- Write or wait errors are logged, the flow file is penalized and routed
  to failure unchanged
- Errors reported by the load job are attached as bq.error.* attributes
  before the flow file is penalized and routed to failure
- Retrying is left to the host, which re-delivers penalized flow files
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable

import structlog
from google.cloud import bigquery

from bqbatch import attributes as attrs
from bqbatch.config import Config
from bqbatch.host import REL_FAILURE, REL_SUCCESS, FlowFile, ProcessContext, ProcessSession
from bqbatch.metrics import MetricsClient
from bqbatch.properties import (
    BOOLEAN_VALIDATOR,
    NON_EMPTY_VALIDATOR,
    NON_NEGATIVE_INTEGER_VALIDATOR,
    POSITIVE_INTEGER_VALIDATOR,
    PropertyDescriptor,
)
from bqbatch.schema import schema_from_string, schema_to_json
from bqbatch.warehouse import BigQueryWarehouse, JobResult, LoadSettings, Warehouse

log = structlog.get_logger()


PROJECT_ID = PropertyDescriptor(
    name="gcp.project.id",
    display_name="Project ID",
    description="Google Cloud project that owns the dataset. Defaults to the client's project.",
    expression_language_supported=True,
    validators=(NON_EMPTY_VALIDATOR,),
)

DATASET = PropertyDescriptor(
    name=attrs.DATASET_ATTR,
    display_name="Dataset",
    description=attrs.DATASET_DESC,
    required=True,
    default_value="${" + attrs.DATASET_ATTR + "}",
    expression_language_supported=True,
    validators=(NON_EMPTY_VALIDATOR,),
)

TABLE_NAME = PropertyDescriptor(
    name=attrs.TABLE_NAME_ATTR,
    display_name="Table Name",
    description=attrs.TABLE_NAME_DESC,
    required=True,
    default_value="${" + attrs.TABLE_NAME_ATTR + "}",
    expression_language_supported=True,
    validators=(NON_EMPTY_VALIDATOR,),
)

TABLE_SCHEMA = PropertyDescriptor(
    name=attrs.TABLE_SCHEMA_ATTR,
    display_name="Table Schema",
    description=attrs.TABLE_SCHEMA_DESC,
    validators=(NON_EMPTY_VALIDATOR,),
)

SOURCE_TYPE = PropertyDescriptor(
    name=attrs.SOURCE_TYPE_ATTR,
    display_name="Load file type",
    description=attrs.SOURCE_TYPE_DESC,
    required=True,
    default_value=bigquery.SourceFormat.AVRO,
    allowable_values=(
        bigquery.SourceFormat.NEWLINE_DELIMITED_JSON,
        bigquery.SourceFormat.AVRO,
        bigquery.SourceFormat.CSV,
    ),
)

IGNORE_UNKNOWN = PropertyDescriptor(
    name=attrs.IGNORE_UNKNOWN_ATTR,
    display_name="Ignore Unknown Values",
    description=attrs.IGNORE_UNKNOWN_DESC,
    required=True,
    default_value="true",
    validators=(BOOLEAN_VALIDATOR,),
)

CREATE_DISPOSITION = PropertyDescriptor(
    name=attrs.CREATE_DISPOSITION_ATTR,
    display_name="Create Disposition",
    description=attrs.CREATE_DISPOSITION_DESC,
    required=True,
    default_value=bigquery.CreateDisposition.CREATE_IF_NEEDED,
    allowable_values=(
        bigquery.CreateDisposition.CREATE_IF_NEEDED,
        bigquery.CreateDisposition.CREATE_NEVER,
    ),
)

WRITE_DISPOSITION = PropertyDescriptor(
    name=attrs.WRITE_DISPOSITION_ATTR,
    display_name="Write Disposition",
    description=attrs.WRITE_DISPOSITION_DESC,
    required=True,
    default_value=bigquery.WriteDisposition.WRITE_EMPTY,
    allowable_values=(
        bigquery.WriteDisposition.WRITE_EMPTY,
        bigquery.WriteDisposition.WRITE_APPEND,
        bigquery.WriteDisposition.WRITE_TRUNCATE,
    ),
)

MAX_BAD_RECORDS = PropertyDescriptor(
    name=attrs.MAX_BADRECORDS_ATTR,
    display_name="Max Bad Records",
    description=attrs.MAX_BADRECORDS_DESC,
    required=True,
    default_value="0",
    validators=(NON_NEGATIVE_INTEGER_VALIDATOR,),
)

JOB_WAIT_TIMEOUT = PropertyDescriptor(
    name="bq.job.wait_timeout",
    display_name="Job Wait Timeout",
    description=(
        "Maximum number of seconds to wait for a load job to finish. The flow file is "
        "routed to failure if the job is still running. Defaults to BQ_JOB_TIMEOUT_SECONDS."
    ),
    validators=(POSITIVE_INTEGER_VALIDATOR,),
)


# Project ID (or None for the client default) -> connected warehouse
WarehouseFactory = Callable[[str | None], Warehouse]


class ProcessorConfigError(Exception):
    """Static processor properties failed validation at schedule time."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = problems
        super().__init__("Invalid processor configuration: " + "; ".join(problems))


@dataclass(frozen=True)
class RunState:
    """Values resolved once when the processor is scheduled and shared by every trigger."""
    schema: list[bigquery.SchemaField] | None
    schema_json: str | None
    project: str | None
    warehouse: Warehouse
    job_timeout: int


class PutBigQueryBatch:
    """Batch loads flow files to a Google BigQuery table."""

    tags = ("google", "google cloud", "bq", "bigquery")
    relationships = (REL_SUCCESS, REL_FAILURE)
    writes_attributes = attrs.WRITTEN_ATTRIBUTES

    def __init__(
        self,
        config: Config | None = None,
        warehouse_factory: WarehouseFactory | None = None,
        metrics: MetricsClient | None = None,
    ) -> None:
        self.config = config or Config.from_env()
        self.metrics = metrics
        self._warehouse_factory = warehouse_factory or self._connect
        self._state: RunState | None = None
        self._state_lock = threading.Lock()

    def _connect(self, project: str | None) -> Warehouse:
        return BigQueryWarehouse.connect(
            project=project or self.config.project_id,
            location=self.config.bq_location,
        )

    def get_supported_property_descriptors(self) -> list[PropertyDescriptor]:
        return [
            PROJECT_ID,
            DATASET,
            TABLE_NAME,
            TABLE_SCHEMA,
            SOURCE_TYPE,
            CREATE_DISPOSITION,
            WRITE_DISPOSITION,
            MAX_BAD_RECORDS,
            IGNORE_UNKNOWN,
            JOB_WAIT_TIMEOUT,
        ]

    def get_supported_dynamic_property_descriptor(self, name: str) -> PropertyDescriptor:
        """User-added properties are accepted and templated but not interpreted."""
        return PropertyDescriptor(
            name=name,
            validators=(NON_EMPTY_VALIDATOR,),
            expression_language_supported=True,
            dynamic=True,
        )

    def validate(self, context: ProcessContext) -> list[str]:
        """Check every supported property; returns the list of problems."""
        problems = []
        for descriptor in self.get_supported_property_descriptors():
            problems.extend(descriptor.validate(context.get_property(descriptor).value))
        return problems

    def on_scheduled(self, context: ProcessContext) -> RunState:
        """
        Resolve the run state once per scheduling lifecycle.

        Safe to call from several threads: the first caller builds the state,
        the others wait for it and get the same object.

        Raises:
            ProcessorConfigError: If static properties are invalid
            SchemaParseError: If the configured table schema cannot be parsed
        """
        state = self._state
        if state is not None:
            return state

        with self._state_lock:
            if self._state is None:
                self._state = self._build_run_state(context)
            return self._state

    def on_stopped(self) -> None:
        with self._state_lock:
            self._state = None

    def _build_run_state(self, context: ProcessContext) -> RunState:
        problems = self.validate(context)
        if problems:
            raise ProcessorConfigError(problems)

        schema = schema_from_string(context.get_property(TABLE_SCHEMA).value)
        project = context.get_property(PROJECT_ID).evaluate_attribute_expressions().value or None
        job_timeout = context.get_property(JOB_WAIT_TIMEOUT).as_int() or self.config.job_timeout_seconds

        state = RunState(
            schema=schema,
            schema_json=schema_to_json(schema) if schema is not None else None,
            project=project,
            warehouse=self._warehouse_factory(project),
            job_timeout=job_timeout,
        )

        log.info(
            "bigquery_batch_scheduled",
            project=project,
            schema_fields=len(schema) if schema is not None else None,
            job_timeout=job_timeout,
        )
        return state

    def on_trigger(self, context: ProcessContext, session: ProcessSession) -> None:
        state = self.on_scheduled(context)

        flow = session.get()
        if flow is None:
            return

        started = time.monotonic()
        settings = None

        try:
            settings = self._load_settings(context, flow, state)
            with state.warehouse.open_channel(settings) as channel:
                payload = session.read(flow)
                channel.write(payload)
            job = channel.job
        except Exception as e:
            self._route_local_failure(session, flow, "write", e, settings)
            return

        try:
            result = state.warehouse.wait_for(job, timeout=state.job_timeout)
        except Exception as e:
            self._route_local_failure(session, flow, "wait", e, settings)
            return

        attributes = self._settings_attributes(settings, state)

        if result.error is not None:
            attributes.update({
                attrs.JOB_ERROR_MSG_ATTR: result.error.message or "",
                attrs.JOB_ERROR_REASON_ATTR: result.error.reason or "",
                attrs.JOB_ERROR_LOCATION_ATTR: result.error.location or "",
            })
            flow = session.remove_all_attributes(flow, attrs.JOB_STAT_ATTRIBUTES)
            flow = session.put_all_attributes(flow, attributes)
            flow = session.penalize(flow)
            session.transfer(flow, REL_FAILURE)

            log.warning(
                "bigquery_load_job_failed",
                flow_id=flow.id,
                table=settings.table_id,
                reason=result.error.reason,
                error=result.error.message,
                location=result.error.location,
                job_link=result.link,
            )
            if self.metrics:
                self.metrics.load_failed("job", settings.table_id)
            return

        # In case it got looped back from failure
        flow = session.remove_all_attributes(flow, attrs.JOB_ERROR_ATTRIBUTES)
        attributes.update(self._job_attributes(result))
        flow = session.put_all_attributes(flow, attributes)
        session.transfer(flow, REL_SUCCESS)

        duration = time.monotonic() - started
        log.info(
            "bigquery_load_complete",
            flow_id=flow.id,
            table=settings.table_id,
            bytes=len(payload),
            duration_seconds=round(duration, 3),
            job_link=result.link,
        )
        if self.metrics:
            self.metrics.load_succeeded(settings.table_id)
            self.metrics.load_duration(duration, settings.table_id)

    def _load_settings(self, context: ProcessContext, flow: FlowFile, state: RunState) -> LoadSettings:
        return LoadSettings(
            project=state.project,
            dataset=context.get_property(DATASET).evaluate_attribute_expressions(flow).value or "",
            table=context.get_property(TABLE_NAME).evaluate_attribute_expressions(flow).value or "",
            schema=state.schema,
            source_format=context.get_property(SOURCE_TYPE).value,
            create_disposition=context.get_property(CREATE_DISPOSITION).value,
            write_disposition=context.get_property(WRITE_DISPOSITION).value,
            max_bad_records=context.get_property(MAX_BAD_RECORDS).as_int(),
            ignore_unknown_values=context.get_property(IGNORE_UNKNOWN).as_bool(),
        )

    def _settings_attributes(self, settings: LoadSettings, state: RunState) -> dict[str, str]:
        attributes = {
            attrs.DATASET_ATTR: settings.dataset,
            attrs.TABLE_NAME_ATTR: settings.table,
            attrs.SOURCE_TYPE_ATTR: settings.source_format,
            attrs.IGNORE_UNKNOWN_ATTR: "true" if settings.ignore_unknown_values else "false",
            attrs.CREATE_DISPOSITION_ATTR: settings.create_disposition,
            attrs.WRITE_DISPOSITION_ATTR: settings.write_disposition,
            attrs.MAX_BADRECORDS_ATTR: str(settings.max_bad_records),
        }
        if state.schema_json is not None:
            attributes[attrs.TABLE_SCHEMA_ATTR] = state.schema_json
        return attributes

    def _job_attributes(self, result: JobResult) -> dict[str, str]:
        values = {
            attrs.JOB_CREATE_TIME_ATTR: result.create_time,
            attrs.JOB_START_TIME_ATTR: result.start_time,
            attrs.JOB_END_TIME_ATTR: result.end_time,
            attrs.JOB_LINK_ATTR: result.link,
        }
        return {k: str(v) for k, v in values.items() if v is not None}

    def _route_local_failure(
        self,
        session: ProcessSession,
        flow: FlowFile,
        stage: str,
        error: Exception,
        settings: LoadSettings | None,
    ) -> None:
        table = settings.table_id if settings is not None else None
        log.error(
            f"bigquery_{stage}_failed",
            flow_id=flow.id,
            table=table,
            error=str(error),
            error_type=type(error).__name__,
            exc_info=error,
        )
        if self.metrics:
            self.metrics.load_failed(stage, table)

        flow = session.penalize(flow)
        session.transfer(flow, REL_FAILURE)
