"""Durable persistence of trained models, their scalers and metadata."""

import io
import os
from typing import Any, Dict, Optional, Protocol

import torch
from pydantic import ValidationError

from src.exceptions import CacheCorruptionError
from src.model.model import SalaryNetwork
from src.model.scaler import Scaler
from src.model.schemas import (
    MODEL_VERSION,
    BundledScalerDocument,
    CacheDocument,
    ModelMetadata,
)
from src.utils.logger import get_logger

logger = get_logger(__name__)

BUNDLED_WEIGHTS_FILE = "salary_prediction_model.pt"
BUNDLED_SCALER_FILE = "scaler.json"


class CachedModel:
    """A trained network together with its scaler and metadata."""

    def __init__(self, network: SalaryNetwork, scaler: Scaler, metadata: ModelMetadata) -> None:
        self.network = network
        self.scaler = scaler
        self.metadata = metadata

    def to_document(self) -> CacheDocument:
        return CacheDocument(scaler=self.scaler.to_document(), metadata=self.metadata)


class ModelCache(Protocol):
    """Storage interface injected into the pipeline."""

    def load(self) -> Optional[CachedModel]: ...

    def save(self, cached: CachedModel) -> None: ...

    def clear(self) -> None: ...

    def info(self) -> Optional[ModelMetadata]: ...


def serialize_weights(network: SalaryNetwork) -> bytes:
    """Serialize network weights. Args: network (SalaryNetwork): Network. Returns: bytes: Serialized state dict."""
    buffer = io.BytesIO()
    torch.save(network.state_dict(), buffer)
    return buffer.getvalue()


def build_network(weights: bytes, input_dim: int) -> SalaryNetwork:
    """Rebuild a network from serialized weights.

    Args:
        weights (bytes): Serialized state dict.
        input_dim (int): Number of input features.

    Returns:
        SalaryNetwork: Network in eval mode with frozen parameters.

    Raises:
        CacheCorruptionError: If the weights cannot be loaded.
    """
    try:
        state_dict = torch.load(io.BytesIO(weights), map_location="cpu", weights_only=True)
        network = SalaryNetwork(input_dim=input_dim)
        network.load_state_dict(state_dict)
    except Exception as e:
        raise CacheCorruptionError(f"Unreadable model weights: {type(e).__name__}: {e}") from e
    network.eval()
    for param in network.parameters():
        param.requires_grad_(False)
    return network


def decode_cached_model(document_json: str, weights: Optional[bytes]) -> CachedModel:
    """Decode a cache document and weights.

    Raises:
        CacheCorruptionError: If either part is missing or malformed.
    """
    try:
        document = CacheDocument.model_validate_json(document_json)
        scaler = Scaler.from_document(document.scaler)
    except (ValidationError, ValueError) as e:
        raise CacheCorruptionError(f"Unparsable cache document: {e}") from e
    if weights is None:
        raise CacheCorruptionError("Cache document has no matching weights")
    network = build_network(weights, input_dim=scaler.n_features)
    return CachedModel(network=network, scaler=scaler, metadata=document.metadata)


class BaseModelCache:
    """Shared load/self-heal protocol for durable caches."""

    def __init__(self, expected_version: str = MODEL_VERSION) -> None:
        self.logger = get_logger(__name__)
        self.expected_version = expected_version

    def _read_document(self) -> Optional[str]:
        raise NotImplementedError

    def _read_weights(self) -> Optional[bytes]:
        raise NotImplementedError

    def _write(self, document_json: str, weights: bytes) -> None:
        raise NotImplementedError

    def _delete(self) -> None:
        raise NotImplementedError

    def load(self) -> Optional[CachedModel]:
        """Load the cached model.

        Returns:
            Optional[CachedModel]: The cached model, or None when absent, stale or corrupted.
            Corrupted entries are deleted.
        """
        try:
            document_json = self._read_document()
            if document_json is None:
                self.logger.info("No saved model found in cache")
                return None
            cached = decode_cached_model(document_json, self._read_weights())
        except (CacheCorruptionError, UnicodeDecodeError, OSError) as e:
            self.logger.warning(f"Discarding corrupted model cache: {e}")
            self.clear()
            return None

        if cached.metadata.version != self.expected_version:
            self.logger.info(
                f"Model version mismatch ({cached.metadata.version} != {self.expected_version}), will retrain"
            )
            return None

        self.logger.info("Model loaded successfully from cache")
        return cached

    def save(self, cached: CachedModel) -> None:
        """Persist a trained model, its scaler and metadata."""
        self._write(cached.to_document().to_json(), serialize_weights(cached.network))
        self.logger.info("Model saved successfully to cache")

    def clear(self) -> None:
        """Remove the durable copy."""
        self._delete()
        self.logger.info("Saved model data cleared")

    def info(self) -> Optional[ModelMetadata]:
        """Return the stored metadata without loading weights, or None."""
        try:
            document_json = self._read_document()
            if document_json is None:
                return None
            return CacheDocument.model_validate_json(document_json).metadata
        except (ValidationError, ValueError, OSError) as e:
            self.logger.error(f"Error getting model info: {e}")
            return None


class LocalModelCache(BaseModelCache):
    """File-backed cache: ``<key>.pt`` holds weights, ``<key>.json`` the scaler and metadata."""

    def __init__(
        self,
        directory: str,
        storage_key: str = "salary_prediction_model",
        expected_version: str = MODEL_VERSION,
    ) -> None:
        super().__init__(expected_version=expected_version)
        self.directory = directory
        self.storage_key = storage_key

    @property
    def document_path(self) -> str:
        return os.path.join(self.directory, f"{self.storage_key}.json")

    @property
    def weights_path(self) -> str:
        return os.path.join(self.directory, f"{self.storage_key}.pt")

    def _read_document(self) -> Optional[str]:
        if not os.path.exists(self.document_path):
            return None
        with open(self.document_path, "r", encoding="utf-8") as f:
            return f.read()

    def _read_weights(self) -> Optional[bytes]:
        if not os.path.exists(self.weights_path):
            return None
        with open(self.weights_path, "rb") as f:
            return f.read()

    def _write(self, document_json: str, weights: bytes) -> None:
        os.makedirs(self.directory, exist_ok=True)
        # the document is written last; it marks the entry as complete
        with open(self.weights_path, "wb") as f:
            f.write(weights)
        tmp_path = f"{self.document_path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(document_json)
        os.replace(tmp_path, self.document_path)

    def _delete(self) -> None:
        for path in (self.document_path, self.weights_path):
            if os.path.exists(path):
                os.remove(path)


class InMemoryModelCache(BaseModelCache):
    """Process-local cache with the same serialization path as LocalModelCache."""

    def __init__(self, expected_version: str = MODEL_VERSION) -> None:
        super().__init__(expected_version=expected_version)
        self.document_json: Optional[str] = None
        self.weights: Optional[bytes] = None

    def _read_document(self) -> Optional[str]:
        return self.document_json

    def _read_weights(self) -> Optional[bytes]:
        return self.weights

    def _write(self, document_json: str, weights: bytes) -> None:
        self.weights = weights
        self.document_json = document_json

    def _delete(self) -> None:
        self.document_json = None
        self.weights = None


class BundledModelStore:
    """Read-only model shipped at a well-known path, usable without any prior training."""

    def __init__(
        self,
        directory: Optional[str],
        weights_file: str = BUNDLED_WEIGHTS_FILE,
        scaler_file: str = BUNDLED_SCALER_FILE,
        expected_version: str = MODEL_VERSION,
    ) -> None:
        self.logger = get_logger(__name__)
        self.directory = directory
        self.weights_file = weights_file
        self.scaler_file = scaler_file
        self.expected_version = expected_version

    def _paths(self) -> Optional[Dict[str, str]]:
        if not self.directory:
            return None
        return {
            "weights": os.path.join(self.directory, self.weights_file),
            "scaler": os.path.join(self.directory, self.scaler_file),
        }

    def load(self) -> Optional[CachedModel]:
        """Load the bundled model. Missing provenance fields default to zero values.

        Returns:
            Optional[CachedModel]: The bundled model, or None if unavailable or unusable.
        """
        paths = self._paths()
        if paths is None or not all(os.path.exists(p) for p in paths.values()):
            self.logger.debug("No bundled model available")
            return None

        try:
            with open(paths["scaler"], "r", encoding="utf-8") as f:
                document = BundledScalerDocument.model_validate_json(f.read())
            scaler = Scaler.from_document(document)
            with open(paths["weights"], "rb") as f:
                network = build_network(f.read(), input_dim=scaler.n_features)
        except (ValidationError, ValueError, OSError, CacheCorruptionError) as e:
            self.logger.error(f"Error loading bundled model: {e}")
            return None

        metadata = document.to_metadata()
        if metadata.version != self.expected_version:
            self.logger.info(f"Bundled model version {metadata.version} is not {self.expected_version}")
            return None

        self.logger.info("Model loaded from bundled model files")
        return CachedModel(network=network, scaler=scaler, metadata=metadata)

    def export(self, cached: CachedModel) -> Dict[str, str]:
        """Write a model as a bundle at this store's location.

        Args:
            cached (CachedModel): Model to export.

        Returns:
            Dict[str, str]: Paths written.
        """
        paths = self._paths()
        if paths is None:
            raise ValueError("Bundled model directory is not configured")
        os.makedirs(self.directory, exist_ok=True)

        document: Dict[str, Any] = cached.scaler.to_dict()
        document.update(cached.metadata.model_dump(by_alias=True))
        with open(paths["weights"], "wb") as f:
            f.write(serialize_weights(cached.network))
        with open(paths["scaler"], "w", encoding="utf-8") as f:
            f.write(BundledScalerDocument.model_validate(document).model_dump_json(by_alias=True, indent=2))

        self.logger.info(f"Exported bundled model to {self.directory}")
        return paths


class ModelRegistry:
    """Resolves a usable model across storage tiers: bundled first, then the durable cache."""

    def __init__(self, cache: ModelCache, bundled: Optional[BundledModelStore] = None) -> None:
        self.logger = get_logger(__name__)
        self.cache = cache
        self.bundled = bundled

    def load(
        self,
        expected_feature_count: Optional[int] = None,
        expected_vocabulary_size: Optional[int] = None,
    ) -> Optional[CachedModel]:
        """Load the first compatible model.

        Args:
            expected_feature_count (Optional[int]): Feature count of the fresh encoding.
            expected_vocabulary_size (Optional[int]): Vocabulary size of the fresh encoding.

        Returns:
            Optional[CachedModel]: Model, or None to signal that a fresh one must be trained.
        """
        tiers = []
        if self.bundled is not None:
            tiers.append(("bundled", self.bundled.load))
        tiers.append(("local", self.cache.load))

        for source, loader in tiers:
            cached = loader()
            if cached is None:
                continue
            if not self._is_compatible(cached, expected_feature_count, expected_vocabulary_size):
                self.logger.info(f"Cached {source} model does not match the current encoding")
                if source == "local":
                    self.cache.clear()
                continue
            self.logger.info(f"Using {source} model trained at {cached.metadata.trained_at or 'unknown'}")
            return cached

        return None

    @staticmethod
    def _is_compatible(
        cached: CachedModel,
        expected_feature_count: Optional[int],
        expected_vocabulary_size: Optional[int],
    ) -> bool:
        metadata = cached.metadata
        if cached.scaler.n_features != cached.network.input_dim:
            return False
        if expected_feature_count is not None:
            if cached.scaler.n_features != expected_feature_count:
                return False
            if metadata.features and len(metadata.features) != expected_feature_count:
                return False
        if (
            expected_vocabulary_size is not None
            and metadata.top_job_titles
            and len(metadata.top_job_titles) != expected_vocabulary_size
        ):
            return False
        return True

    def save(self, cached: CachedModel) -> None:
        self.cache.save(cached)

    def clear(self) -> None:
        self.cache.clear()

    def info(self) -> Optional[ModelMetadata]:
        return self.cache.info()
