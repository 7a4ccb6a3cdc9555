import math
from dataclasses import dataclass, field, fields, replace

# --- Simulation Parameters ---
# Every tunable constant of the simulation lives in one immutable Params
# instance that is handed to the GA, the networks, the agents and the
# simulation. Use Params.with_overrides() to derive a variant.

PI = math.pi
HALF_PI = PI / 2
TWO_PI = PI * 2


@dataclass(frozen=True)
class Params:
    # Window / world
    window_width: int = 1920
    window_height: int = 1080

    # Dense network shape
    num_inputs: int = 4
    num_outputs: int = 2
    num_hidden: int = 1
    neurons_per_hidden_layer: int = 6
    max_weight: float = 1 / math.sqrt(4) # 1 / sqrt(num_inputs)
    activation_divisor: float = 20.0 # activation is x / activation_divisor
    max_turn_angle: float = PI / 40 # radians, ~4.5 degrees
    max_speed: float = 3.0

    # World population
    num_goals: int = 40
    num_agents: int = 30
    num_ticks: int = 1800 # 60/sec = 30 sec generations
    max_generations: int = None # None runs until quit

    # Fitness
    base_fitness: float = 375.0
    max_fitness: float = 800.0
    death: float = -0.2 # fitness lost every tick
    food_value: float = 1.0
    food_width: int = 30
    food_scale: float = 0.5

    # Sensors
    agent_num_sensors: int = 6
    agent_visual_range: float = HALF_PI
    agent_sensor_range_theta: float = 15 * PI / 180
    agent_sensor_range_mag: float = 600.0
    sensor_sentinel: float = 1.0e6 # signal of a sensor that sees nothing

    # Genetic algorithm
    crossover_rate: float = 0.7
    mutation_rate: float = 0.1
    max_perturbation: float = 0.3
    num_elite: int = 4
    num_elite_copies: int = 1

    # Reporting
    stats_window: int = 7 # generations shown in the trailing fitness history

    agent_reach: float = field(init=False)

    def __post_init__(self):
        # Derived once, at construction.
        object.__setattr__(self, 'agent_reach', self.food_scale * self.food_width)

    def with_overrides(self, overrides=None, **kwargs):
        """
        Returns a copy of these parameters with some values replaced.
        Accepts a dict (like the old config.update() calls) and/or keyword arguments.
        """
        changes = dict(overrides or {})
        changes.update(kwargs)
        known = {f.name for f in fields(self) if f.init}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown parameter(s): {', '.join(sorted(unknown))}")
        return replace(self, **changes)


DEFAULT_PARAMS = Params()


def rad_to_degrees(n):
    """Converts an angle from radians to degrees."""
    return n * 180 / PI
