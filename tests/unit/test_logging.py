import logging

from vibes_pipeline.infrastructure.observability.logging import RunLogFile, _drop_secrets


def test_drop_secrets_redacts_known_keys():
    event = _drop_secrets(None, "info", {"event": "call", "api_key": "sk-1", "messages": [1], "model": "m"})

    assert event["api_key"] == "[redacted]"
    assert event["messages"] == "[redacted]"
    assert event["model"] == "m"


def test_run_log_file_mirrors_and_detaches(tmp_path):
    path = tmp_path / "runs" / "property_vibes.log"
    root = logging.getLogger()
    previous_level = root.level
    root.setLevel(logging.INFO)

    try:
        with RunLogFile(path) as log_file:
            assert log_file.is_open
            logging.getLogger("vibes.test").info("page done")
            log_file.close()
            log_file.close()
            assert not log_file.is_open
    finally:
        root.setLevel(previous_level)

    logging.getLogger("vibes.test").info("after close")
    text = path.read_text()
    assert "page done" in text
    assert "after close" not in text
