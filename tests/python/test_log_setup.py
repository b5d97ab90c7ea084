import logging

import pytest
import structlog
from pygame.math import Vector2

from biotope.app.log_setup import LOG_LEVELS, configure_logging, level_number
from biotope.sim.core.agent import Species
from biotope.sim.core.world import World


@pytest.fixture(autouse=True)
def _restore_structlog():
    yield
    structlog.reset_defaults()


def test_level_names_map_to_logging_levels():
    assert level_number("warning") == logging.WARNING
    assert level_number("DEBUG") == logging.DEBUG
    assert [level_number(name) for name in LOG_LEVELS] == sorted(level_number(name) for name in LOG_LEVELS)


def test_unknown_level_is_rejected():
    with pytest.raises(ValueError):
        configure_logging("verbose")


def _starved_world(config):
    world = World(config)
    world.spawn_agent(Species.COLLECTOR, Vector2(100.0, 100.0), energy=0.0)
    return world


def test_lifecycle_events_hidden_above_debug(quiet_config, capsys):
    configure_logging("warning")
    capsys.readouterr()

    world = _starved_world(quiet_config)
    world.step()

    assert world.metrics.deaths == 1
    assert "agent_died" not in capsys.readouterr().out


def test_lifecycle_events_shown_at_debug(quiet_config, capsys):
    configure_logging("debug")
    capsys.readouterr()

    world = _starved_world(quiet_config)
    world.step()

    assert "agent_died" in capsys.readouterr().out
