"""Tests for uploader CLI helpers."""
import logging
import os

import pytest

from fileuploader.cli import (
    CLIError,
    _build_config,
    _build_parser,
    _load_env_file,
    _setup_logging,
    run_cli,
)


def test_load_env_file(tmp_path, monkeypatch):
    env_path = tmp_path / ".env"
    env_path.write_text(
        "\n".join(
            [
                "# upload target",
                "# UPLOADER_COMMENTED=1",
                "UPLOADER_URL=http://localhost:8080/upload",
                "UPLOADER_ALLOWED_FILE_TYPES='image/png,^video/'",
                "export UPLOADER_ALLOWED_CONCURRENT_UPLOAD=5",
                "not a pair",
            ]
        ),
        encoding="utf-8",
    )

    monkeypatch.delenv("UPLOADER_URL", raising=False)
    monkeypatch.delenv("UPLOADER_ALLOWED_FILE_TYPES", raising=False)
    monkeypatch.delenv("UPLOADER_ALLOWED_CONCURRENT_UPLOAD", raising=False)
    monkeypatch.delenv("UPLOADER_COMMENTED", raising=False)

    _load_env_file(env_path)

    assert os.environ["UPLOADER_URL"] == "http://localhost:8080/upload"
    assert os.environ["UPLOADER_ALLOWED_FILE_TYPES"] == "image/png,^video/"
    assert os.environ["UPLOADER_ALLOWED_CONCURRENT_UPLOAD"] == "5"
    assert "UPLOADER_COMMENTED" not in os.environ


def test_load_env_file_keeps_existing_values(tmp_path, monkeypatch):
    env_path = tmp_path / ".env"
    env_path.write_text("UPLOADER_URL=http://from-file\n", encoding="utf-8")
    monkeypatch.setenv("UPLOADER_URL", "http://from-shell")

    _load_env_file(env_path)

    assert os.environ["UPLOADER_URL"] == "http://from-shell"


def test_load_env_file_missing(tmp_path):
    with pytest.raises(CLIError, match="could not read env file"):
        _load_env_file(tmp_path / "absent.env")


def test_build_config_merges_env_and_flags(monkeypatch):
    monkeypatch.setenv("UPLOADER_ALLOWED_CONCURRENT_UPLOAD", "5")
    monkeypatch.setenv("UPLOADER_MAX_ALLOWED_FILE_SIZE", "2048")
    args = _build_parser().parse_args(["a.txt", "-j", "2", "-t", "image/png", "-t", "^video/"])

    config = _build_config(args)

    assert config.allowed_concurrent_upload == 2
    assert config.max_allowed_file_size == 2048
    assert config.allowed_file_types == ("image/png", "^video/")


def test_build_config_reports_invalid_values(monkeypatch):
    monkeypatch.delenv("UPLOADER_ALLOWED_CONCURRENT_UPLOAD", raising=False)
    args = _build_parser().parse_args(["a.txt", "-j", "0"])

    with pytest.raises(CLIError, match="allowed_concurrent_upload"):
        _build_config(args)


def test_run_cli_without_sources_prints_help(monkeypatch, tmp_path, capsys):
    monkeypatch.chdir(tmp_path)
    assert run_cli([]) == 0
    assert "usage: fileuploader" in capsys.readouterr().out
    logging.disable(logging.NOTSET)


def test_run_cli_requires_url(monkeypatch, tmp_path, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("UPLOADER_URL", raising=False)
    (tmp_path / "a.txt").write_text("hello")

    assert run_cli(["a.txt"]) == 1
    assert "no upload URL" in capsys.readouterr().err
    logging.disable(logging.NOTSET)


def test_run_cli_missing_source(monkeypatch, tmp_path, capsys):
    monkeypatch.chdir(tmp_path)

    assert run_cli(["missing.txt", "--url", "http://localhost"]) == 1
    assert "source does not exist" in capsys.readouterr().err
    logging.disable(logging.NOTSET)


def test_setup_logging_defaults_to_silent():
    mode = _setup_logging(debug=False, silent=False, log_level=None)
    assert mode == "silent"
    assert logging.getLogger().isEnabledFor(logging.CRITICAL) is False
    logging.disable(logging.NOTSET)


def test_setup_logging_debug_mode():
    mode = _setup_logging(debug=True, silent=False, log_level=None)
    assert mode == "DEBUG"
    assert logging.getLogger().isEnabledFor(logging.DEBUG) is True
    logging.disable(logging.NOTSET)


def test_setup_logging_explicit_level():
    assert _setup_logging(debug=False, silent=False, log_level="warning") == "WARNING"
    logging.disable(logging.NOTSET)


def test_setup_logging_unknown_level():
    with pytest.raises(CLIError, match="unknown log level"):
        _setup_logging(debug=False, silent=False, log_level="chatty")
    logging.disable(logging.NOTSET)


def test_run_cli_reports_bad_log_level(monkeypatch, tmp_path, capsys):
    monkeypatch.chdir(tmp_path)
    assert run_cli(["--log-level", "chatty"]) == 1
    assert "unknown log level" in capsys.readouterr().err
