import pytest

from engine.config import GameConfig
from engine.errors import ConfigError


def test_defaults():
    config = GameConfig()
    assert (config.size, config.win_tile, config.four_probability) == (4, 2048, 0.1)


@pytest.mark.parametrize(
    "kwargs",
    [{"size": 1}, {"win_tile": 1000}, {"win_tile": 4}, {"four_probability": -0.1}, {"four_probability": 2}],
)
def test_invalid_config(kwargs):
    with pytest.raises(ConfigError):
        GameConfig(**kwargs)


def test_from_env():
    config = GameConfig.from_env({"GAME_BOARD_SIZE": "5", "GAME_WIN_TILE": "512", "GAME_FOUR_PROBABILITY": "0.25"})
    assert config == GameConfig(size=5, win_tile=512, four_probability=0.25)


def test_from_env_defaults_when_unset():
    assert GameConfig.from_env({}) == GameConfig()


def test_from_env_rejects_garbage():
    with pytest.raises(ConfigError):
        GameConfig.from_env({"GAME_BOARD_SIZE": "four"})
