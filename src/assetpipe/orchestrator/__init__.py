"""Lightweight in-repo orchestrator for the static asset build.

Provides Task and Pipeline primitives, level-parallel DAG scheduling, caching,
immutable configuration and a Typer CLI.
"""

from .core import Pipeline, TaskResult, TaskSpec, task  # re-export for convenience

__all__ = ["TaskSpec", "TaskResult", "Pipeline", "task"]
