import pytest

from imagescan import log


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    log.init_logger(False, False)


def test_info_goes_to_stdout_and_error_to_stderr(capsys):
    logger = log.new_logger(False, False)
    logger.info("hello info")
    logger.error("bad thing")
    captured = capsys.readouterr()
    assert "hello info" in captured.out
    assert "hello info" not in captured.err
    assert "bad thing" in captured.err
    assert "bad thing" not in captured.out


def test_debug_hidden_without_debug_flag(capsys):
    logger = log.new_logger(False, False)
    logger.debug("hidden message")
    captured = capsys.readouterr()
    assert "hidden message" not in captured.out
    assert "hidden message" not in captured.err


def test_debug_shown_with_debug_flag(capsys):
    logger = log.new_logger(True, False)
    logger.debug("visible message")
    captured = capsys.readouterr()
    assert "visible message" in captured.out
    assert "DEBUG" in captured.out


def test_disable_discards_low_priority_only(capsys):
    logger = log.new_logger(False, True)
    logger.warning("quiet warning")
    logger.error("loud error")
    captured = capsys.readouterr()
    assert "quiet warning" not in captured.out
    assert "loud error" in captured.err


def test_init_logger_replaces_global(capsys):
    returned = log.init_logger(True, False)
    assert log.get_logger() is returned
    log.get_logger().debug("from global")
    assert "from global" in capsys.readouterr().out


def test_fatal_logs_and_exits(capsys):
    log.init_logger(False, False)
    with pytest.raises(SystemExit) as exc:
        log.fatal(RuntimeError("fatal failure"))
    assert exc.value.code == 1
    assert "fatal failure" in capsys.readouterr().err