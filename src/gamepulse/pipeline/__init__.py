from .events import ProgressChannel
from .orchestrator import AnalysisPipeline, create_pipeline

__all__ = ["ProgressChannel", "AnalysisPipeline", "create_pipeline"]
