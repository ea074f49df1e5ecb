from .graph import SufficiencyThreshold, create_pipeline
from .runner import PipelineRunner

__all__ = ['PipelineRunner', 'SufficiencyThreshold', 'create_pipeline']
