"""
Pipeline configuration and orchestration.

Import from the submodules directly:
    from bcclust.pipeline.config import PipelineConfig
    from bcclust.pipeline.runner import run_pipeline
"""
