"""Readiness checks and start-up pipeline builders for the service stack."""

from .gate_check import GateCheck
from .pipeline_builders import (
    add_api_stage,
    add_index_stage,
    add_ingestion_stage,
    add_search_stage,
    build_startup_pipeline,
)

__all__ = [
    "GateCheck",
    "add_api_stage",
    "add_index_stage",
    "add_ingestion_stage",
    "add_search_stage",
    "build_startup_pipeline",
]
