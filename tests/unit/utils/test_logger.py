import io
import json
import logging

from src.utils.logger import RunTracingContext, get_logger, get_run_id, get_stage, setup_logging


def teardown_function():
    logging.getLogger().handlers.clear()


def test_run_tracing_context_sets_and_resets():
    assert get_run_id() is None
    with RunTracingContext("run-123", stage="train"):
        assert get_run_id() == "run-123"
        assert get_stage() == "train"
        with RunTracingContext(stage="persist"):
            assert get_run_id() == "run-123"
            assert get_stage() == "persist"
        assert get_stage() == "train"
    assert get_run_id() is None
    assert get_stage() is None


def test_text_format_includes_run_id():
    stream = io.StringIO()
    setup_logging(level=logging.INFO, stream=stream)
    logger = get_logger("tests.logger")

    with RunTracingContext("abc", stage="train"):
        logger.info("inside run")
    logger.info("outside run")

    lines = stream.getvalue().strip().splitlines()
    assert "[run_id=abc stage=train]" in lines[0]
    assert "inside run" in lines[0]
    assert "[run_id=none stage=-]" in lines[1]


def test_json_format():
    stream = io.StringIO()
    setup_logging(level=logging.INFO, json_format=True, stream=stream)

    with RunTracingContext("json-run"):
        get_logger("tests.logger").warning("structured")

    record = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert record["message"] == "structured"
    assert record["run_id"] == "json-run"
    assert record["levelname"] == "WARNING"


def test_module_levels_and_file_handler(tmp_path):
    log_file = tmp_path / "app.log"
    setup_logging(
        level=logging.INFO,
        log_file=str(log_file),
        module_levels={"tests.quiet": logging.ERROR},
        stream=io.StringIO(),
    )

    get_logger("tests.quiet").info("suppressed")
    get_logger("tests.loud").info("written")

    content = log_file.read_text()
    assert "written" in content
    assert "suppressed" not in content
    assert logging.getLogger("mlflow").level == logging.WARNING
