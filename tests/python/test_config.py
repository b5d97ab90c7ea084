from __future__ import annotations

import pytest

from biotope.sim.core.agent import Species
from biotope.sim.core.config import SimulationConfig, load_config, validate_config
from biotope.sim.core.world import World


def test_defaults_validate():
    config = validate_config(SimulationConfig())
    assert config.species_config(Species.COLLECTOR).can_scan
    assert config.species_config(Species.PREDATOR).can_hook
    assert config.collector.reproduction_threshold == pytest.approx(99.0)
    assert config.predator.reproduction_threshold == pytest.approx(100.0)


def test_from_yaml_overrides_defaults(tmp_path):
    path = tmp_path / "biotope.yaml"
    path.write_text(
        """
seed: 99
world_width: 640
world_height: 480
initial_collectors: 5
initial_predators: 1
collector:
  energy_decay: 0.05
predator:
  base_speed: 2.0
abilities:
  hook_max_length: 90
food:
  base_pool_size: 10
  tiers:
    - {name: plain, energy: 4, chance: 0.75}
    - {name: sweet, energy: 20, chance: 0.25}
hazards:
  - {position: [100, 100], radius: 20, drain: 0.5}
"""
    )

    config = SimulationConfig.from_yaml(path)

    assert config.seed == 99
    assert config.world_width == 640
    assert config.collector.energy_decay == pytest.approx(0.05)
    assert config.collector.initial_energy == pytest.approx(45.0)
    assert config.predator.base_speed == pytest.approx(2.0)
    assert config.predator.can_hook
    assert config.abilities.hook_max_length == 90
    assert [tier.name for tier in config.food.tiers] == ["plain", "sweet"]
    assert config.hazards[0].position == (100.0, 100.0)

    world = World(config)
    assert len(world.agents) == 6
    assert len(world.food) == 10


def test_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    config = SimulationConfig.from_yaml(path)
    assert config.seed == SimulationConfig().seed


def test_rejects_tier_chances_not_summing_to_one():
    with pytest.raises(ValueError, match="sum to 1.0"):
        load_config({"food": {"tiers": [{"name": "a", "energy": 1, "chance": 0.5}]}})


def test_rejects_empty_tier_table():
    with pytest.raises(ValueError, match="at least one tier"):
        load_config({"food": {"tiers": []}})


def test_rejects_bad_extents_and_sizes():
    with pytest.raises(ValueError):
        load_config({"world_width": 0})
    with pytest.raises(ValueError):
        load_config({"min_cell_size": 30, "max_cell_size": 10})


def test_unknown_key_raises_type_error():
    with pytest.raises(TypeError):
        load_config({"collector": {"wings": True}})
