import logging

import pytest

import c2.config as config


@pytest.mark.parametrize(
    "db_backend, vector_backend, expected",
    [
        ("sqlite", "", ("sqlite", "json")),
        ("postgres", "", ("postgres", "pgvector")),
        ("sqlite", "pgvector", ("sqlite", "json")),
        ("postgres", "json", ("postgres", "json")),
        ("sqlite", "none", ("sqlite", "none")),
        ("mysql", "", ("sqlite", "json")),
        ("postgres", "faiss", ("postgres", "none")),
    ],
)
def test_derive_effective_backends(db_backend, vector_backend, expected):
    assert config._derive_effective_backends(db_backend, vector_backend) == expected


def test_env_helpers(monkeypatch):
    monkeypatch.setenv("C2_TEST_BOOL", "Yes")
    monkeypatch.setenv("C2_TEST_INT", "12")
    monkeypatch.setenv("C2_TEST_BAD_INT", "twelve")
    monkeypatch.setenv("C2_TEST_FLOAT", "0.75")
    monkeypatch.delenv("C2_TEST_MISSING", raising=False)

    assert config._get_bool("C2_TEST_BOOL", False) is True
    assert config._get_bool("C2_TEST_MISSING", True) is True
    assert config._get_int("C2_TEST_INT", 1) == 12
    assert config._get_int("C2_TEST_BAD_INT", 3) == 3
    assert config._get_float("C2_TEST_FLOAT", 0.1) == 0.75
    assert config._get_float("C2_TEST_MISSING", 0.1) == 0.1


def test_resolve_database_url(monkeypatch):
    monkeypatch.setattr(config, "DB_BACKEND_EFFECTIVE", "sqlite")
    monkeypatch.setattr(config, "DATABASE_URL", None)

    assert config.resolve_database_url(":memory:") == "sqlite://"
    assert config.resolve_database_url("/tmp/c2.db") == "sqlite:////tmp/c2.db"

    monkeypatch.setattr(config, "DATABASE_URL", "sqlite:///explicit.db")
    assert config.resolve_database_url() == "sqlite:///explicit.db"
    assert config.resolve_database_url(":memory:") == "sqlite://"


def test_validate_and_prepare_config_rejects_unknown_provider(monkeypatch):
    monkeypatch.setattr(config, "DATABASE_URL", "sqlite:///ok.db")
    monkeypatch.setattr(config, "DB_BACKEND", "sqlite")
    monkeypatch.setattr(config, "VECTOR_BACKEND", "json")
    monkeypatch.setattr(config, "EMBEDDING_PROVIDER", "bogus")

    with pytest.raises(RuntimeError, match="EMBEDDING_PROVIDER"):
        config.validate_and_prepare_config()


def test_validate_and_prepare_config_rejects_pgvector_on_sqlite(monkeypatch):
    monkeypatch.setattr(config, "DATABASE_URL", "sqlite:///ok.db")
    monkeypatch.setattr(config, "DB_BACKEND", "sqlite")
    monkeypatch.setattr(config, "VECTOR_BACKEND", "pgvector")

    with pytest.raises(RuntimeError, match="requires DB_BACKEND=postgres"):
        config.validate_and_prepare_config()


def test_validate_and_prepare_config_fills_sqlite_url(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "DATABASE_URL", None)
    monkeypatch.setattr(config, "DB_BACKEND", "sqlite")
    monkeypatch.setattr(config, "VECTOR_BACKEND", "")
    monkeypatch.setattr(config, "EMBEDDING_PROVIDER", "ollama")
    monkeypatch.setattr(config, "DB_PATH", str(tmp_path / "contacts.db"))
    monkeypatch.setattr(config, "DB_BACKEND_EFFECTIVE", config.DB_BACKEND_EFFECTIVE)
    monkeypatch.setattr(config, "VECTOR_BACKEND_EFFECTIVE", config.VECTOR_BACKEND_EFFECTIVE)

    config.validate_and_prepare_config()

    assert config.DATABASE_URL == f"sqlite:///{tmp_path / 'contacts.db'}"
    assert config.VECTOR_BACKEND_EFFECTIVE == "json"


def test_configure_logging_adds_file_handler_once(tmp_path):
    log_file = tmp_path / "logs" / "mcp.log"
    before = list(config.logger.handlers)
    try:
        config.configure_logging(str(log_file))
        config.configure_logging(str(log_file))

        added = [handler for handler in config.logger.handlers if handler not in before]
        assert len(added) == 1
        assert isinstance(added[0], logging.FileHandler)
        assert log_file.parent.is_dir()
    finally:
        for handler in list(config.logger.handlers):
            if handler not in before:
                config.logger.removeHandler(handler)
                handler.close()
