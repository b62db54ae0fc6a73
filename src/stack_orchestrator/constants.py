"""Global constants for the stack orchestrator.

This module defines constants used throughout the application to avoid
hardcoded strings and make the codebase more maintainable.
"""

# Service names used by gates, checks and the CLI
SERVICE_INGESTION = "ingestion_server"
SERVICE_API = "api"
SERVICE_SEARCH = "search"

# Health and task paths
INGESTION_HEALTH_PATH = "/"
API_HEALTH_PATH = "/healthcheck/"
SEARCH_HEALTH_PATH = "/_cluster/health"
SEARCH_INDICES_PATH = "/_cat/indices/"
SEARCH_ALIAS_PATH = "/_alias/"
TASK_PATH = "/task"

# Readiness pipeline stage names
STAGE_SEARCH = "search_backend"
STAGE_INGESTION = "ingestion_server"
STAGE_API = "api"
STAGE_INDEX = "search_index"

# Compose files
COMPOSE_FILE_DEV = "docker-compose.yml"
COMPOSE_FILE_PROD = "ingestion_server/docker-compose.yml"

# Process exit codes for terminal outcomes
EXIT_OK = 0
EXIT_FAILED = 1
EXIT_TIMED_OUT = 124  # same as coreutils `timeout`
EXIT_CANCELLED = 130
