from __future__ import annotations

from datetime import timedelta

import pytest

from quizplay import config as cfg


def _write(home, text):
    path = home / "config" / cfg.CONFIG_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_without_config_file(workspace_home):
    result = cfg.load_config()

    assert result.config_path is None
    assert result.layout.home == workspace_home
    assert result.config == cfg.QuizplayConfig(
        flashcard=None,
        seed=None,
        base_interval_hours=24.0,
        max_exponent=5,
        log_level="INFO",
    )


def test_file_values_are_applied(workspace_home):
    path = _write(
        workspace_home,
        "[session]\nflashcard = true\nseed = 7\n\n"
        "[scheduling]\nbase_interval_hours = 12\nmax_exponent = 3\n",
    )

    result = cfg.load_config()

    assert result.config_path == path
    assert result.config.flashcard is True
    assert result.config.seed == 7
    policy = result.config.scheduling_policy()
    assert policy.base_interval == timedelta(hours=12)
    assert policy.max_exponent == 3


def test_precedence_cli_over_env_over_file(workspace_home, monkeypatch):
    _write(
        workspace_home,
        '[session]\nflashcard = false\n[logging]\nlevel = "WARNING"\n',
    )
    monkeypatch.setenv("QUIZPLAY_FLASHCARD", "yes")
    monkeypatch.setenv("QUIZPLAY_LOG_LEVEL", "debug")
    monkeypatch.setenv("QUIZPLAY_BASE_INTERVAL_HOURS", "6")

    from_env = cfg.load_config()
    from_cli = cfg.load_config(
        overrides=cfg.ConfigOverrides(flashcard=False, log_level="error")
    )

    assert from_env.config.flashcard is True
    assert from_env.config.log_level == "DEBUG"
    assert from_env.config.base_interval_hours == 6.0
    assert from_cli.config.flashcard is False
    assert from_cli.config.log_level == "ERROR"


def test_unknown_key_is_rejected(workspace_home):
    _write(workspace_home, "[session]\nshuffle = true\n")

    with pytest.raises(cfg.QuizplayConfigError, match="session.shuffle"):
        cfg.load_config()


@pytest.mark.parametrize(
    "text",
    [
        '[session]\nflashcard = "yes"\n',
        "[session]\nseed = 1.5\n",
        "[scheduling]\nbase_interval_hours = 0\n",
        "[scheduling]\nmax_exponent = -1\n",
    ],
)
def test_invalid_values_are_rejected(workspace_home, text):
    _write(workspace_home, text)

    with pytest.raises(cfg.QuizplayConfigError):
        cfg.load_config()


def test_invalid_env_boolean(workspace_home, monkeypatch):
    monkeypatch.setenv("QUIZPLAY_FLASHCARD", "maybe")

    with pytest.raises(cfg.QuizplayConfigError, match="QUIZPLAY_FLASHCARD"):
        cfg.load_config()


def test_missing_explicit_config_is_an_error(workspace_home, tmp_path):
    with pytest.raises(cfg.QuizplayConfigError, match="not found"):
        cfg.load_config(config_path=tmp_path / "nope.toml")


def test_config_env_points_at_file(workspace_home, tmp_path, monkeypatch):
    custom = tmp_path / "custom.toml"
    custom.write_text("[session]\nseed = 99\n", encoding="utf-8")
    monkeypatch.setenv(cfg.CONFIG_ENV, str(custom))

    result = cfg.load_config()

    assert result.config_path == custom
    assert result.config.seed == 99


def test_write_config_template_round_trips(workspace_home):
    path = workspace_home / "config" / cfg.CONFIG_FILENAME

    cfg.write_config_template(path)
    result = cfg.load_config()

    assert result.config_path == path
    assert result.config.base_interval_hours == 24.0
    with pytest.raises(cfg.QuizplayConfigError):
        cfg.write_config_template(path)


def test_file_false_is_kept_so_it_can_override_a_quiz(workspace_home):
    _write(workspace_home, "[session]\nflashcard = false\n")

    assert cfg.load_config().config.flashcard is False


def test_env_false_wins_over_file_true(workspace_home, monkeypatch):
    _write(workspace_home, "[session]\nflashcard = true\n")
    monkeypatch.setenv("QUIZPLAY_FLASHCARD", "off")

    assert cfg.load_config().config.flashcard is False


def test_broken_toml_is_reported(workspace_home):
    _write(workspace_home, "[session\n")

    with pytest.raises(cfg.QuizplayConfigError, match="parse"):
        cfg.load_config()


def test_scalar_in_place_of_table_is_rejected(workspace_home):
    _write(workspace_home, "session = 3\n")

    with pytest.raises(cfg.QuizplayConfigError, match="must be a table"):
        cfg.load_config()


def test_write_config_template_overwrite(tmp_path):
    path = tmp_path / "nested" / cfg.CONFIG_FILENAME
    cfg.write_config_template(path)
    path.write_text("# edited\n", encoding="utf-8")

    with pytest.raises(cfg.QuizplayConfigError, match="already exists"):
        cfg.write_config_template(path)
    cfg.write_config_template(path, overwrite=True)

    assert path.read_text(encoding="utf-8") == cfg.CONFIG_TEMPLATE
