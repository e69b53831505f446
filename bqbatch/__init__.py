"""
bqbatch - Batch loading of flow units into Google BigQuery.

A flow processor that takes one unit of data per invocation, streams its
bytes into a BigQuery load job, waits for the job to finish and routes the
unit to success or failure with the job outcome attached as attributes.

Also provides the schema translator used to turn a JSON field list into
BigQuery SchemaField objects.

Usage:
    python -m bqbatch.main --properties load.yaml data.avro

Environment Variables:
    PROJECT_ID: Default GCP project for the BigQuery client
    BQ_LOCATION: BigQuery location (default: europe-west2)
    BQ_JOB_TIMEOUT_SECONDS: Default load job wait timeout (default: 600)
    LOG_LEVEL: Log level for the CLI runner (default: INFO)
"""

__version__ = "0.1.0"
