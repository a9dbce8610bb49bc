import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import mlflow

from src.model.dataset import ProcessedData
from src.model.model import SalaryForecaster
from src.model.schemas import MODEL_VERSION, ModelMetadata
from src.services.model_registry import CachedModel
from src.utils.config_loader import get_config
from src.utils.logger import RunTracingContext, get_logger
from src.utils.performance import TRAINING_RUN_TIME, PerformanceMetrics


class TrainingService:
    """Service for orchestrating model training."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.logger = get_logger(__name__)
        self.config = config if config is not None else get_config()
        self.logger.debug("Initialized TrainingService")

    def train_model(
        self,
        data: ProcessedData,
        callback: Optional[Callable[[str, Optional[Dict[str, Any]]], None]] = None,
    ) -> CachedModel:
        """Train a network on processed data. Args: data (ProcessedData): Encoded dataset. callback (Optional[Callable]): Progress callback. Returns: CachedModel: Trained network, scaler and metadata. Raises: TrainingFailure: If training fails."""
        run_id = str(uuid.uuid4())
        with RunTracingContext(run_id, stage="train"):
            self.logger.info(f"Starting training on {data.size} records")
            forecaster = SalaryForecaster(config=self.config)

            with PerformanceMetrics(TRAINING_RUN_TIME) as timer:
                forecaster.train(data.features, data.targets, callback=callback)

            metadata = ModelMetadata(
                version=MODEL_VERSION,
                trained_at=datetime.now().isoformat(),
                data_size=data.size,
                features=list(data.feature_names),
                top_job_titles=list(data.top_job_titles),
            )
            self.logger.info(f"Training finished in {timer.elapsed:.1f}s")

            if self.config["tracking"]["enabled"]:
                self._log_run(forecaster, data, timer.elapsed)

            return CachedModel(network=forecaster.network, scaler=forecaster.scaler, metadata=metadata)

    def _log_run(self, forecaster: SalaryForecaster, data: ProcessedData, elapsed: float) -> None:
        """Log params and final metrics of a training run to MLflow."""
        try:
            mlflow.set_experiment(self.config["tracking"]["experiment_name"])
            with mlflow.start_run(run_name=f"Training_{datetime.now():%Y%m%d_%H%M%S}"):
                mlflow.set_tags({"model_type": "FeedForward", "model_version": MODEL_VERSION})
                mlflow.log_params(
                    {
                        "epochs": forecaster.epochs,
                        "batch_size": forecaster.batch_size,
                        "learning_rate": forecaster.learning_rate,
                        "validation_split": forecaster.validation_split,
                        "data_rows": data.size,
                    }
                )
                for record in forecaster.history:
                    mlflow.log_metric("loss", record["loss"], step=record["epoch"])
                    if record["val_loss"] is not None:
                        mlflow.log_metric("val_loss", record["val_loss"], step=record["epoch"])
                mlflow.log_metric("training_total_time", elapsed)
        except Exception as e:
            self.logger.warning(f"MLflow tracking failed: {type(e).__name__}: {e}")
