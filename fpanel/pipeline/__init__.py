"""End-to-end pipelines."""

from .run_panel_pipeline import PanelPipelineResult, run_pipeline

__all__ = ["PanelPipelineResult", "run_pipeline"]
