from dataclasses import dataclass


class ALifeError(Exception):
    """Base class for errors raised by the simulation."""


class SimulationHalted(ALifeError):
    """
    The run cannot continue. When the simulation raises this, statistics have
    already been flushed.
    """
    def __init__(self, reason, generation=None):
        self.reason = reason
        self.generation = generation
        message = reason if generation is None else f"{reason} (generation {generation})"
        super().__init__(message)


class PopulationExtinct(SimulationHalted):
    """No genomes are left to breed from."""


@dataclass(frozen=True)
class MalformedControllerOutput:
    """
    Returned instead of a Response when a controller produced fewer outputs
    than the agent needs. This means the weight vector and the layer shapes
    disagree.
    """
    expected: int
    actual: int

    @property
    def ok(self):
        return False

    def describe(self):
        return f"Controller returned {self.actual} output(s), expected {self.expected}"


class ConfigurationError(ALifeError, ValueError):
    """The parts handed to the simulation do not fit together, e.g. a resumed GA of the wrong size."""
