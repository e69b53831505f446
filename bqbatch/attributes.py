"""Flow file attribute names written by the BigQuery batch processor."""

# Load configuration
DATASET_ATTR = "bq.dataset"
DATASET_DESC = "BigQuery dataset"

TABLE_NAME_ATTR = "bq.table.name"
TABLE_NAME_DESC = "BigQuery table name"

TABLE_SCHEMA_ATTR = "bq.table.schema"
TABLE_SCHEMA_DESC = "BigQuery schema in JSON format"

SOURCE_TYPE_ATTR = "bq.load.type"
SOURCE_TYPE_DESC = "Data type of the file to be loaded. Possible values: AVRO, NEWLINE_DELIMITED_JSON, CSV."

IGNORE_UNKNOWN_ATTR = "bq.load.ignore_unknown"
IGNORE_UNKNOWN_DESC = (
    "Sets whether BigQuery should allow extra values that are not represented in the table schema. "
    "If true, the extra values are ignored. If false, records with extra columns are treated as bad "
    "records, and if there are too many bad records, an invalid error is returned in the job result."
)

CREATE_DISPOSITION_ATTR = "bq.load.create_disposition"
CREATE_DISPOSITION_DESC = (
    "Sets whether the job is allowed to create new tables. CREATE_IF_NEEDED creates the table if it "
    "does not exist; CREATE_NEVER requires the table to exist already."
)

WRITE_DISPOSITION_ATTR = "bq.load.write_disposition"
WRITE_DISPOSITION_DESC = (
    "Sets the action that should occur if the destination table already exists. WRITE_EMPTY requires "
    "the table to be empty, WRITE_APPEND appends to it and WRITE_TRUNCATE replaces its data."
)

MAX_BADRECORDS_ATTR = "bq.load.max_badrecords"
MAX_BADRECORDS_DESC = (
    "Sets the maximum number of bad records that BigQuery can ignore when running the job. If the "
    "number of bad records exceeds this value, an invalid error is returned in the job result."
)

# Job statistics
JOB_CREATE_TIME_ATTR = "bq.job.stat.creation_time"
JOB_CREATE_TIME_DESC = "Time load job creation, in epoch milliseconds"

JOB_END_TIME_ATTR = "bq.job.stat.end_time"
JOB_END_TIME_DESC = "Time load job ended, in epoch milliseconds"

JOB_START_TIME_ATTR = "bq.job.stat.start_time"
JOB_START_TIME_DESC = "Time load job started, in epoch milliseconds"

JOB_LINK_ATTR = "bq.job.link"
JOB_LINK_DESC = "API Link to load job"

# Job errors
JOB_ERROR_MSG_ATTR = "bq.error.message"
JOB_ERROR_MSG_DESC = "Load job error message"

JOB_ERROR_REASON_ATTR = "bq.error.reason"
JOB_ERROR_REASON_DESC = "Load job error reason"

JOB_ERROR_LOCATION_ATTR = "bq.error.location"
JOB_ERROR_LOCATION_DESC = "Load job error location"


JOB_STAT_ATTRIBUTES = (
    JOB_CREATE_TIME_ATTR,
    JOB_START_TIME_ATTR,
    JOB_END_TIME_ATTR,
    JOB_LINK_ATTR,
)

JOB_ERROR_ATTRIBUTES = (
    JOB_ERROR_MSG_ATTR,
    JOB_ERROR_REASON_ATTR,
    JOB_ERROR_LOCATION_ATTR,
)

# Every attribute the processor may write, with its description
WRITTEN_ATTRIBUTES = {
    DATASET_ATTR: DATASET_DESC,
    TABLE_NAME_ATTR: TABLE_NAME_DESC,
    TABLE_SCHEMA_ATTR: TABLE_SCHEMA_DESC,
    SOURCE_TYPE_ATTR: SOURCE_TYPE_DESC,
    IGNORE_UNKNOWN_ATTR: IGNORE_UNKNOWN_DESC,
    CREATE_DISPOSITION_ATTR: CREATE_DISPOSITION_DESC,
    WRITE_DISPOSITION_ATTR: WRITE_DISPOSITION_DESC,
    MAX_BADRECORDS_ATTR: MAX_BADRECORDS_DESC,
    JOB_CREATE_TIME_ATTR: JOB_CREATE_TIME_DESC,
    JOB_END_TIME_ATTR: JOB_END_TIME_DESC,
    JOB_START_TIME_ATTR: JOB_START_TIME_DESC,
    JOB_LINK_ATTR: JOB_LINK_DESC,
    JOB_ERROR_MSG_ATTR: JOB_ERROR_MSG_DESC,
    JOB_ERROR_REASON_ATTR: JOB_ERROR_REASON_DESC,
    JOB_ERROR_LOCATION_ATTR: JOB_ERROR_LOCATION_DESC,
}
