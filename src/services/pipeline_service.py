"""Pipeline facade: dataset processing and the load-or-train model protocol."""

from typing import Any, Callable, Dict, Optional

from src.exceptions import TrainingFailure
from src.model.dataset import ProcessedData
from src.model.preprocessing import FeatureEncoder
from src.model.schemas import ModelMetadata
from src.services.analytics_service import AnalyticsService
from src.services.inference_service import SalaryPredictor
from src.services.model_registry import (
    BundledModelStore,
    CachedModel,
    LocalModelCache,
    ModelRegistry,
)
from src.services.training_service import TrainingService
from src.utils.config_loader import get_config
from src.utils.data_utils import DataSource, load_data
from src.utils.logger import RunTracingContext, get_logger

ProgressCallback = Callable[[str, Optional[Dict[str, Any]]], None]


def create_model_registry(config: Dict[str, Any]) -> ModelRegistry:
    """Build the default registry from config. Args: config (Dict[str, Any]): Configuration. Returns: ModelRegistry: Registry over the bundled and local tiers."""
    cache_config = config["cache"]
    return ModelRegistry(
        cache=LocalModelCache(cache_config["directory"], storage_key=cache_config["storage_key"]),
        bundled=BundledModelStore(cache_config["bundled_directory"]),
    )


class SalaryPipeline:
    """Entry point consumed by the CLIs and any presentation layer."""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        registry: Optional[ModelRegistry] = None,
        training_service: Optional[TrainingService] = None,
        analytics_service: Optional[AnalyticsService] = None,
    ) -> None:
        self.logger = get_logger(__name__)
        self.config = config if config is not None else get_config()
        self.registry = registry or create_model_registry(self.config)
        self.training_service = training_service or TrainingService(config=self.config)
        self.analytics = analytics_service or AnalyticsService()

    def load_and_process_data(self, source: Optional[DataSource] = None) -> ProcessedData:
        """Load the dataset and derive statistics and training arrays.

        Args:
            source (Optional[DataSource]): CSV path, bytes or buffer. Defaults to the configured path.

        Returns:
            ProcessedData: Valid records, statistics tables, features and targets.

        Raises:
            EmptyDatasetError: If the dataset is blank.
            InvalidEncodingError: If the dataset is not valid UTF-8.
            InsufficientDataError: If too few valid records remain.
        """
        if source is None:
            source = self.config["dataset"]["path"]

        with RunTracingContext(stage="ingest"):
            df = load_data(source, min_valid_records=self.config["dataset"]["min_valid_records"])
        statistics = self.analytics.build_statistics(df)

        encoder = FeatureEncoder.fit(df, top_n=self.config["encoding"]["top_job_titles"])
        features, targets = encoder.transform(df)
        self.logger.info(
            f"Created {features.shape[0]} feature vectors with {features.shape[1]} features each"
        )

        return ProcessedData(
            raw_data=df,
            statistics=statistics,
            features=features,
            targets=targets,
            feature_names=encoder.feature_names,
            top_job_titles=encoder.vocabulary,
        )

    def get_or_train_model(
        self, data: ProcessedData, callback: Optional[ProgressCallback] = None
    ) -> SalaryPredictor:
        """Return a predictor from a compatible cached model, training one if none exists.

        Args:
            data (ProcessedData): Freshly processed dataset.
            callback (Optional[ProgressCallback]): Training progress observer.

        Returns:
            SalaryPredictor: Predictor bound to the loaded or trained model.

        Raises:
            TrainingFailure: If training or persisting the new model fails.
        """
        cached = self.registry.load(
            expected_feature_count=len(data.feature_names),
            expected_vocabulary_size=len(data.top_job_titles),
        )
        if cached is None:
            self.logger.info("No existing model found. Training new model...")
            return self.retrain(data, callback=callback)
        return self._build_predictor(cached, data)

    def retrain(self, data: ProcessedData, callback: Optional[ProgressCallback] = None) -> SalaryPredictor:
        """Discard the durable cache entry, train a fresh model and persist it."""
        self.registry.clear()
        cached = self.training_service.train_model(data, callback=callback)
        try:
            with RunTracingContext(stage="persist"):
                self.registry.save(cached)
        except OSError as e:
            raise TrainingFailure(f"Failed to persist trained model: {e}") from e
        return self._build_predictor(cached, data)

    def _build_predictor(self, cached: CachedModel, data: ProcessedData) -> SalaryPredictor:
        # bundled models may ship without a vocabulary; fall back to the fresh one
        vocabulary = cached.metadata.top_job_titles or data.top_job_titles
        return SalaryPredictor(
            network=cached.network,
            scaler=cached.scaler,
            metadata=cached.metadata,
            vocabulary=vocabulary,
            confidence_margin=self.config["prediction"]["confidence_margin"],
        )

    def get_model_info(self) -> Optional[ModelMetadata]:
        return self.registry.info()

    def clear_cache(self) -> None:
        self.registry.clear()

    def export_bundle(self, predictor: SalaryPredictor, directory: Optional[str] = None) -> Dict[str, str]:
        """Write the predictor's model as a bundled model.

        Args:
            predictor (SalaryPredictor): Predictor whose model to export.
            directory (Optional[str]): Target directory. Defaults to the configured bundle path.

        Returns:
            Dict[str, str]: Paths written.
        """
        store = BundledModelStore(directory or self.config["cache"]["bundled_directory"])
        metadata = predictor.metadata
        if not metadata.top_job_titles:
            metadata = metadata.model_copy(update={"top_job_titles": list(predictor.encoder.vocabulary)})
        return store.export(CachedModel(network=predictor.network, scaler=predictor.scaler, metadata=metadata))
