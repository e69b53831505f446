"""Configuration loaded from environment variables and YAML property files."""

import os
from dataclasses import dataclass
from pathlib import Path

import yaml


@dataclass(frozen=True)
class Config:
    """Runtime configuration for the BigQuery batch loader."""
    
    # Environment
    env: str
    project_id: str | None
    
    # BigQuery
    bq_location: str
    job_timeout_seconds: int
    
    # Logging
    log_level: str
    
    # Metrics
    dynatrace_endpoint: str
    dynatrace_token_path: str
    
    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            env=os.environ.get("ENV", "int"),
            project_id=os.environ.get("PROJECT_ID") or None,
            
            bq_location=os.environ.get("BQ_LOCATION", "europe-west2"),
            job_timeout_seconds=int(os.environ.get("BQ_JOB_TIMEOUT_SECONDS", "600")),
            
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            
            dynatrace_endpoint=os.environ.get("DYNATRACE_ENDPOINT", ""),
            dynatrace_token_path=os.environ.get("DYNATRACE_TOKEN_PATH", "/secrets/dynatrace-token"),
        )


def load_properties(path: str) -> dict[str, str]:
    """
    Load processor property values from a YAML file.
    
    The file is a flat mapping of property name to value. Values are
    coerced to strings because the processor resolves every property
    from its textual form, the same way the host runtime supplies them.
    
    Args:
        path: Path to the YAML file
    
    Returns:
        Dictionary of property name to string value
    
    Raises:
        ValueError: If the file does not contain a mapping
    
    Example YAML:
    
        bq.dataset: raw
        bq.table.name: ${filename}
        bq.load.type: NEWLINE_DELIMITED_JSON
        bq.load.write_disposition: WRITE_APPEND
        bq.table.schema: |
          [{"name": "id", "type": "INTEGER", "mode": "REQUIRED"}]
    """
    raw = yaml.safe_load(Path(path).read_text())
    
    # Empty file means "all defaults"
    if raw is None:
        return {}
    
    if not isinstance(raw, dict):
        raise ValueError(f"Property file {path} must contain a mapping, got {type(raw).__name__}")
    
    result = {}
    for name, value in raw.items():
        if value is None:
            continue
        # YAML booleans come back as True/False; the processor expects "true"/"false"
        if isinstance(value, bool):
            value = "true" if value else "false"
        result[str(name)] = str(value)
    
    return result
