"""
Services module for the salary prediction pipeline.

Provides:
- AnalyticsService: Grouped salary statistics
- TrainingService: Model training orchestration
- SalaryPredictor: Inference over a trained model
- ModelRegistry: Bundled and cached model resolution
- SalaryPipeline: Load-or-train facade used by the CLIs
"""

from src.services.analytics_service import AnalyticsService
from src.services.inference_service import SalaryPredictor
from src.services.model_registry import ModelRegistry
from src.services.pipeline_service import SalaryPipeline
from src.services.training_service import TrainingService

__all__ = [
    "AnalyticsService",
    "TrainingService",
    "SalaryPredictor",
    "ModelRegistry",
    "SalaryPipeline",
]
