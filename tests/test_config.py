import json

from balance_tracker.config import DEFAULT_DATABASE_URL, AppConfig


def test_defaults_without_file_or_env():
    cfg = AppConfig.load(environ={})

    assert cfg.database_url == DEFAULT_DATABASE_URL
    assert cfg.session_hours == 24
    assert cfg.log_level == "INFO"
    assert cfg.debug is False


def test_json_file_then_env_overrides(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps({"database_url": "sqlite:///file.db", "session_hours": 2, "log_level": "debug", "unknown": 1}),
        encoding="utf-8",
    )

    cfg = AppConfig.load(path, environ={"SESSION_HOURS": "8", "FLASK_DEBUG": "true"})

    assert cfg.database_url == "sqlite:///file.db"
    assert cfg.session_hours == 8
    assert cfg.log_level == "DEBUG"
    assert cfg.debug is True


def test_missing_file_is_ignored(tmp_path):
    cfg = AppConfig.load(tmp_path / "absent.json", environ={"DATABASE_URL": "sqlite:///env.db"})
    assert cfg.database_url == "sqlite:///env.db"


def test_app_uses_config(tmp_path):
    from balance_tracker.webapp import create_app

    cfg = AppConfig(database_url=f"sqlite:///{tmp_path / 'x.db'}", secret_key="s3cret", session_hours=3)
    app = create_app(cfg)

    assert app.config["SECRET_KEY"] == "s3cret"
    assert app.config["PERMANENT_SESSION_LIFETIME"].total_seconds() == 3 * 3600
    assert app.config["SESSION_COOKIE_SAMESITE"] == "Strict"
