"""
Local runner for the BigQuery batch processor.

Stands in for the host runtime: every file given on the command line
becomes one flow file, the processor is scheduled once and triggered once
per file, and the outcome of each file is printed as a JSON line.

Usage:
    python -m bqbatch.main --properties load.yaml events_1.json events_2.json
    python -m bqbatch.main --properties load.yaml --attr bq.dataset=raw data.avro

Each flow file gets a "filename" attribute (the file's base name) plus any
--attr values, so property templates such as ${filename} resolve per file.

Exit codes:
    0: every file routed to success
    1: at least one file routed to failure
    2: the processor could not be scheduled (bad properties or schema)
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import structlog

from bqbatch.config import Config, load_properties
from bqbatch.host import REL_FAILURE, REL_SUCCESS, FlowFile, InMemoryProcessContext, InMemoryProcessSession
from bqbatch.metrics import MetricsClient
from bqbatch.processor import ProcessorConfigError, PutBigQueryBatch
from bqbatch.schema import SchemaParseError

log = structlog.get_logger()


def configure_logging(level: str = "INFO") -> None:
    """Emit JSON log lines on stderr, filtered at the given level."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def parse_attributes(values: list[str]) -> dict[str, str]:
    """Parse repeated key=value arguments."""
    result = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ValueError(f"Attribute must be key=value, got '{item}'")
        result[key] = value
    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Batch load files into a BigQuery table")
    parser.add_argument(
        "--properties",
        required=True,
        help="YAML file with processor property values",
    )
    parser.add_argument(
        "--attr",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Attribute added to every flow file (repeatable)",
    )
    parser.add_argument("files", nargs="+", help="Files to load, one load job each")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = Config.from_env()
    configure_logging(config.log_level)

    try:
        extra_attributes = parse_attributes(args.attr)
    except ValueError as e:
        parser.error(str(e))

    properties = load_properties(args.properties)

    session = InMemoryProcessSession()
    for path in map(Path, args.files):
        session.enqueue(FlowFile(
            content=path.read_bytes(),
            attributes={"filename": path.name, **extra_attributes},
        ))

    metrics = MetricsClient(config)
    processor = PutBigQueryBatch(config=config, metrics=metrics)
    context = InMemoryProcessContext(properties)

    try:
        processor.on_scheduled(context)
    except (ProcessorConfigError, SchemaParseError) as e:
        log.error("processor_schedule_failed", error=str(e), properties=args.properties)
        return 2

    try:
        while session.queue_size:
            processor.on_trigger(context, session)
    finally:
        processor.on_stopped()
        metrics.flush()

    for relationship in (REL_SUCCESS, REL_FAILURE):
        for flow in session.transferred(relationship):
            print(json.dumps({
                "file": flow.attributes.get("filename"),
                "relationship": relationship.name,
                "penalized": flow.penalized,
                "attributes": dict(flow.attributes),
            }))

    failed = len(session.transferred(REL_FAILURE))
    log.info(
        "batch_complete",
        files_succeeded=len(session.transferred(REL_SUCCESS)),
        files_failed=failed,
    )
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
