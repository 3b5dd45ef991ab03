"""Workflow orchestration for running enrichment passes over a job."""

from .service import JobRunner, PassSummary, map_with_concurrency

__all__ = ["JobRunner", "PassSummary", "map_with_concurrency"]
