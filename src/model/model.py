import math
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import torch
import torch.nn as nn
import torch.nn.functional as F
from torch.utils.data import DataLoader, TensorDataset

from src.exceptions import TrainingAbandoned, TrainingFailure
from src.model.preprocessing import FEATURE_NAMES
from src.model.scaler import Scaler
from src.utils.config_loader import get_config
from src.utils.logger import get_logger
from src.utils.performance import TRAINING_TIME, timing_decorator

ProgressCallback = Callable[[str, Optional[Dict[str, Any]]], None]


class SalaryNetwork(nn.Module):
    """Feed-forward regressor from standardized features to a standardized salary."""

    def __init__(self, input_dim: int = len(FEATURE_NAMES)) -> None:
        super().__init__()
        self.input_dim = input_dim
        self.dense1 = nn.Linear(input_dim, 256)
        self.dense2 = nn.Linear(256, 128)
        self.dense3 = nn.Linear(128, 64)
        self.dense4 = nn.Linear(64, 32)
        self.output = nn.Linear(32, 1)

    def forward(self, x: torch.Tensor, train: bool = False) -> torch.Tensor:
        """Runs the network. Dropout is only applied when ``train`` is True."""
        h = F.relu(self.dense1(x))
        h = F.dropout(h, p=0.3, training=train)
        h = F.relu(self.dense2(h))
        h = F.dropout(h, p=0.2, training=train)
        h = F.relu(self.dense3(h))
        h = F.relu(self.dense4(h))
        return self.output(h)

    def l2_penalty(self) -> torch.Tensor:
        """Sum of squared kernel weights of the regularized layers."""
        return self.dense1.weight.pow(2).sum() + self.dense2.weight.pow(2).sum()


class SalaryForecaster:
    def __init__(self, config: Optional[Dict[str, Any]] = None) -> None:
        self.logger = get_logger(__name__)
        # Use provided config or load from disk
        if config is None:
            config = get_config()

        training_config = config["training"]
        self.epochs: int = training_config["epochs"]
        self.batch_size: int = training_config["batch_size"]
        self.learning_rate: float = training_config["learning_rate"]
        self.validation_split: float = training_config["validation_split"]
        self.l2_factor: float = training_config["l2_factor"]
        self.seed: int = training_config["seed"]

        self.network: Optional[SalaryNetwork] = None
        self.scaler: Optional[Scaler] = None
        self.history: List[Dict[str, float]] = []

    @property
    def is_trained(self) -> bool:
        return self.network is not None and self.scaler is not None

    @timing_decorator(metric_name=TRAINING_TIME)
    def train(
        self,
        features: np.ndarray,
        targets: np.ndarray,
        callback: Optional[ProgressCallback] = None,
    ) -> None:
        """Fits the scaler and trains the network.

        Args:
            features (np.ndarray): Raw feature matrix of shape (n, 6).
            targets (np.ndarray): Raw salaries of shape (n,).
            callback (Optional[Callable]): Progress observer called as
                ``callback(message, data)``; ``data["stage"]`` is one of
                ``train_start``, ``epoch_end``, ``train_end``. It may raise
                ``TrainingAbandoned`` to stop the run.

        Raises:
            TrainingFailure: On any numeric or training fault.
            TrainingAbandoned: If the callback abandoned the run.
        """
        try:
            self._train(features, targets, callback)
        except (TrainingFailure, TrainingAbandoned):
            raise
        except Exception as e:
            self.logger.error(f"Training failed: {e}", exc_info=True)
            raise TrainingFailure(f"Training failed: {e}") from e

    def _notify(self, callback: Optional[ProgressCallback], msg: str, data: Dict[str, Any]) -> None:
        if callback:
            callback(msg, data)
        else:
            self.logger.info(msg)

    def _train(
        self,
        features: np.ndarray,
        targets: np.ndarray,
        callback: Optional[ProgressCallback],
    ) -> None:
        X = np.asarray(features, dtype=np.float64)
        y = np.asarray(targets, dtype=np.float64).reshape(-1)
        if X.ndim != 2 or X.shape[0] < 2:
            raise TrainingFailure(f"Need at least 2 samples to train, got shape {X.shape}")
        if not (np.isfinite(X).all() and np.isfinite(y).all()):
            raise TrainingFailure("Training data contains non-finite values")

        scaler = Scaler.fit(X, y)
        X_std = torch.tensor(scaler.transform_features(X), dtype=torch.float32)
        y_std = torch.tensor(scaler.transform_target(y), dtype=torch.float32).unsqueeze(1)

        torch.manual_seed(self.seed)
        generator = torch.Generator().manual_seed(self.seed)

        n = X_std.shape[0]
        n_val = min(int(n * self.validation_split), n - 1)
        permutation = torch.randperm(n, generator=generator)
        val_idx, train_idx = permutation[:n_val], permutation[n_val:]

        train_loader = DataLoader(
            TensorDataset(X_std[train_idx], y_std[train_idx]),
            batch_size=self.batch_size,
            shuffle=True,
            generator=generator,
        )
        X_val, y_val = X_std[val_idx], y_std[val_idx]

        network = SalaryNetwork(input_dim=X_std.shape[1])
        criterion = nn.MSELoss()
        optimizer = torch.optim.Adam(network.parameters(), lr=self.learning_rate)
        history: List[Dict[str, float]] = []

        self._notify(
            callback,
            f"Training on {len(train_idx)} samples, validating on {n_val}...",
            {"stage": "train_start", "train_size": len(train_idx), "val_size": n_val, "epochs": self.epochs},
        )

        for epoch in range(self.epochs):
            network.train()
            running_loss = 0.0
            for X_batch, y_batch in train_loader:
                optimizer.zero_grad()
                outputs = network(X_batch, train=True)
                loss = criterion(outputs, y_batch) + self.l2_factor * network.l2_penalty()
                loss.backward()
                optimizer.step()
                running_loss += loss.item() * X_batch.size(0)

            epoch_loss = running_loss / len(train_idx)
            if not math.isfinite(epoch_loss):
                raise TrainingFailure(f"Loss diverged at epoch {epoch + 1}", {"epoch": epoch + 1})

            network.eval()
            epoch_val_loss: Optional[float] = None
            if n_val > 0:
                with torch.no_grad():
                    epoch_val_loss = criterion(network(X_val, train=False), y_val).item()

            record = {"epoch": epoch + 1, "loss": epoch_loss, "val_loss": epoch_val_loss}
            history.append(record)

            val_msg = f", val_loss = {epoch_val_loss:.4f}" if epoch_val_loss is not None else ""
            msg = f"Epoch {epoch + 1}/{self.epochs}: loss = {epoch_loss:.4f}{val_msg}"
            if callback:
                callback(msg, {"stage": "epoch_end", "epochs": self.epochs, **record})
            else:
                self.logger.debug(msg)

        network.eval()
        for param in network.parameters():
            param.requires_grad_(False)

        self.network = network
        self.scaler = scaler
        self.history = history

        self._notify(
            callback,
            f"Training complete after {self.epochs} epochs.",
            {"stage": "train_end", "final_loss": history[-1]["loss"], "final_val_loss": history[-1]["val_loss"]},
        )
