import json
import logging
from pathlib import Path

from docrag.ingest.pipeline import IngestionPipeline
from docrag.logging_config import AUDIT_LOGGER_NAME, MinimalJSONFormatter, configure_logging
from docrag.tasks import InlineTaskRunner
from docrag.telemetry import log_event


def _flush(logger_name: str) -> None:
    for handler in logging.getLogger(logger_name).handlers:
        handler.flush()


def test_upload_and_ingest_are_written_to_audit_log(tmp_path: Path, storage, embedding_client) -> None:
    configure_logging(log_dir=tmp_path)
    pipeline = IngestionPipeline(storage, embedding_client, task_runner=InlineTaskRunner())

    document = pipeline.upload(b"The cat sat on the mat.", "cat.txt", "text/plain", owner_id=3)
    _flush(AUDIT_LOGGER_NAME)

    lines = (tmp_path / "ingest_audit.log").read_text(encoding="utf-8").strip().splitlines()
    records = [json.loads(line) for line in lines]
    events = [record["event"] for record in records]
    assert events[-2:] == ["upload", "ingest"]
    assert records[-2]["document_id"] == document.id
    assert records[-2]["owner_id"] == 3
    assert records[-1]["status"] == "ready"


def test_formatter_merges_dict_messages() -> None:
    record = logging.LogRecord("docrag.test", logging.INFO, __file__, 1, {"step": "x", "count": 2}, None, None)

    payload = json.loads(MinimalJSONFormatter().format(record))

    assert payload["step"] == "x"
    assert payload["count"] == 2
    assert payload["level"] == "INFO"
    assert payload["timestamp"].endswith("Z")


def test_log_event_includes_exception_text(caplog) -> None:
    logger = logging.getLogger("docrag.test.events")
    try:
        raise RuntimeError("boom")
    except RuntimeError as error:
        with caplog.at_level(logging.INFO, logger="docrag.test.events"):
            log_event(logger, "unit.step", level="error", document_id=4, exc=error, details={"a": 1})

    message = caplog.records[-1].msg
    assert message["step"] == "unit.step"
    assert message["document_id"] == 4
    assert message["details"] == {"a": 1}
    assert "RuntimeError: boom" in message["exc"]
