"""Isovertex placement, dual triangle assembly, and the end-to-end pipeline."""

from .pipeline import PipelineResult, run_pipeline
