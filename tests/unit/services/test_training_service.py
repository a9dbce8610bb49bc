import unittest
from unittest.mock import MagicMock, patch

import pytest

from conftest import build_processed_data, create_test_config, level_records
from src.exceptions import TrainingFailure
from src.model.schemas import MODEL_VERSION
from src.services.model_registry import CachedModel
from src.services.training_service import TrainingService
from src.utils.logger import get_run_id


class TestTrainingService(unittest.TestCase):
    def setUp(self):
        self.config = create_test_config()
        self.service = TrainingService(config=self.config)
        self.data = build_processed_data(level_records())

    def test_train_model_returns_cached_model(self):
        cached = self.service.train_model(self.data)

        self.assertIsInstance(cached, CachedModel)
        self.assertEqual(cached.metadata.version, MODEL_VERSION)
        self.assertEqual(cached.metadata.data_size, 12)
        self.assertEqual(cached.metadata.features, self.data.feature_names)
        self.assertEqual(cached.metadata.top_job_titles, self.data.top_job_titles)
        self.assertTrue(cached.metadata.trained_at)
        self.assertEqual(cached.scaler.n_features, 6)

    def test_callback_is_forwarded(self):
        callback = MagicMock()
        self.service.train_model(self.data, callback=callback)

        stages = [c.args[1]["stage"] for c in callback.call_args_list]
        self.assertEqual(stages[0], "train_start")
        self.assertEqual(stages[-1], "train_end")
        self.assertEqual(stages.count("epoch_end"), 3)

    def test_run_id_is_scoped_to_training(self):
        seen = []
        self.service.train_model(self.data, callback=lambda msg, data: seen.append(get_run_id()))

        self.assertTrue(all(run_id == seen[0] for run_id in seen))
        self.assertIsNotNone(seen[0])
        self.assertIsNone(get_run_id())

    @patch("src.services.training_service.mlflow")
    def test_tracking_disabled_by_default(self, mock_mlflow):
        self.service.train_model(self.data)
        mock_mlflow.start_run.assert_not_called()

    @patch("src.services.training_service.mlflow")
    def test_tracking_logs_params_and_metrics(self, mock_mlflow):
        self.config["tracking"]["enabled"] = True

        self.service.train_model(self.data)

        mock_mlflow.set_experiment.assert_called_once_with("SalaryPrediction")
        mock_mlflow.start_run.assert_called_once()
        params = mock_mlflow.log_params.call_args.args[0]
        self.assertEqual(params["epochs"], 3)
        self.assertEqual(params["data_rows"], 12)
        logged = [c.args[0] for c in mock_mlflow.log_metric.call_args_list]
        self.assertEqual(logged.count("loss"), 3)
        self.assertIn("training_total_time", logged)

    @patch("src.services.training_service.mlflow")
    def test_tracking_errors_do_not_fail_training(self, mock_mlflow):
        self.config["tracking"]["enabled"] = True
        mock_mlflow.set_experiment.side_effect = RuntimeError("tracking server down")

        cached = self.service.train_model(self.data)

        self.assertIsNotNone(cached.network)

    def test_training_failure_propagates(self):
        with patch("src.services.training_service.SalaryForecaster") as MockForecaster:
            MockForecaster.return_value.train.side_effect = TrainingFailure("Loss diverged")
            with pytest.raises(TrainingFailure):
                self.service.train_model(self.data)
