from fractions import Fraction

import pytest

from nappbot.inc.settings import Settings

INI = """
[BOT]
token = abc
guildid = 1234

[GAMES]
min_bet = 25
blackjack_natural_multiplier = 3/2
"""


@pytest.fixture
def ini(tmp_path):
    path = tmp_path / "nappbot.ini"
    path.write_text(INI, encoding="utf-8")
    return path


def test_reads_ini_with_casts(ini):
    settings = Settings(ini, environ={})
    assert settings.get("BOT.guildid", 0, cast=int) == 1234
    assert settings.get("GAMES.min_bet", 10, cast=int) == 25
    assert settings.get("GAMES.blackjack_natural_multiplier", Fraction(1), cast=Fraction) == Fraction(3, 2)
    assert settings.get("GAMES.decision_timeout", 60, cast=float) == 60.0
    assert settings.get("nodot", "fallback") == "fallback"


def test_env_overlays_win_over_the_file(ini, tmp_path):
    secret = tmp_path / "token.txt"
    secret.write_text("from-file\n", encoding="utf-8")
    environ = {
        "NAPPBOT__GAMES__replay_window": "45",
        "NAPPBOT_INT__GAMES__min_bet": "50",
        "NAPPBOT_BOOL__GAMES__enabled": "yes",
        "NAPPBOT_JSON__DATABASE__extra": '{"sslmode": "require"}',
        "NAPPBOT_FILE__BOT__token": str(secret),
        "NAPPBOT__broken": "ignored",
        "UNRELATED": "x",
    }
    settings = Settings(ini, environ=environ)
    assert settings.get("GAMES.replay_window", 30, cast=int) == 45
    assert settings["GAMES"]["min_bet"] == 50
    assert settings.get("GAMES.enabled", False, cast=bool) is True
    assert settings.get("DATABASE.extra") == {"sslmode": "require"}
    assert settings.get("BOT.token") == "from-file"


def test_missing_file_is_an_empty_config(tmp_path):
    settings = Settings(tmp_path / "nope.ini", environ={})
    assert settings.section("BOT") == {}
    with pytest.raises(RuntimeError):
        settings.require("BOT", "guildid")


def test_require_reports_missing_and_empty_keys(ini):
    settings = Settings(ini, environ={"NAPPBOT__BOT__token": ""})
    settings.require("BOT", "guildid")
    with pytest.raises(RuntimeError) as err:
        settings.require("BOT", "token", "owner", allow_empty=False)
    assert "owner" in str(err.value)
    assert "token" in str(err.value)


def test_bad_values_fall_back_to_defaults(ini):
    settings = Settings(ini, environ={"NAPPBOT__GAMES__min_bet": "lots"})
    assert settings.get("GAMES.min_bet", 10, cast=int) == 10
