import csv
import random
from typing import Protocol, Sequence

import numpy as np

from linalg import (
    column_vector,
    diagonal_matrix,
    median_of_three,
    random_matrix,
    with_bias_column,
    with_bias_row,
)

# Scale the output; this is a linear rescale, not a squashing function
DEFAULT_ACTIVATION_DIVISOR = 20.0


class Controller(Protocol):
    """
    What an agent needs from its brain. Weights travel between a genome and a
    controller only as flat vectors, and weights()/set_weights() must walk the
    layers in the same order.
    """
    num_weights: int

    def respond(self, inputs: Sequence) -> list: ...

    def weights(self) -> list: ...

    def set_weights(self, weights: Sequence) -> "Controller": ...


# --- Shared layer functions ---

def activate_layer(inputs, weights, divisor=DEFAULT_ACTIVATION_DIVISOR):
    """
    Feeds a column vector through one layer.
    The input is extended with a constant bias of 1 before multiplying by the
    (outputs x inputs+1) weight matrix.
    Returns the activated output and the net input.
    """
    net_input = weights @ with_bias_row(inputs)
    return net_input / divisor, net_input


def convert(output_matrix, max_turn_angle):
    """
    Converts an (m x 1) output matrix to a list of m numbers, each rounded to
    3 places and then clamped into [-max_turn_angle, max_turn_angle].
    """
    return [median_of_three(-max_turn_angle, round(float(value), 3), max_turn_angle)
            for value in np.ravel(output_matrix)]


# --- DenseNet Class ---

class DenseNet:
    """
    A plain feed-forward network: num_hidden_layers hidden layers followed by an
    output layer, each an (outputs x inputs+1) matrix whose last column is the
    bias weight.
    """
    def __init__(self,
                 num_inputs,
                 num_hidden_layers,
                 neurons_per_hidden,
                 num_outputs,
                 max_weight,
                 max_turn_angle,
                 activation_divisor=DEFAULT_ACTIVATION_DIVISOR,
                 rng=None):
        self.num_inputs = num_inputs
        self.num_hidden_layers = num_hidden_layers
        self.neurons_per_hidden = neurons_per_hidden
        self.num_outputs = num_outputs
        self.max_weight = max_weight
        self.max_turn_angle = max_turn_angle
        self.activation_divisor = activation_divisor
        self.rng = rng or random.Random()

        self.layers = self._build_network()
        self.num_weights = sum(layer.size for layer in self.layers)

    @classmethod
    def from_params(cls, params, rng=None):
        return cls(params.num_inputs,
                   params.num_hidden,
                   params.neurons_per_hidden_layer,
                   params.num_outputs,
                   params.max_weight,
                   params.max_turn_angle,
                   params.activation_divisor,
                   rng)

    def _build_network(self):
        layers = []
        fan_in = self.num_inputs
        for _ in range(self.num_hidden_layers):
            layers.append(self._build_layer(self.neurons_per_hidden, fan_in))
            fan_in = self.neurons_per_hidden
        layers.append(self._build_layer(self.num_outputs, fan_in))
        return layers

    def _build_layer(self, m, n):
        """
        An m x (n+1) matrix with weights in [-max_weight, max_weight] and a bias
        column initialised to 1.
        """
        return with_bias_column(random_matrix(m, n, self.max_weight, self.rng))

    def respond(self, inputs):
        """
        Applies the feed-forward function to the entire network.
        Expects a flat sequence of num_inputs values and returns num_outputs values.
        """
        if len(inputs) != self.num_inputs:
            raise ValueError(f"Input size mismatch. Expected {self.num_inputs}, got {len(inputs)}")

        outputs = column_vector(inputs)
        for layer in self.layers:
            outputs, _net = activate_layer(outputs, layer, self.activation_divisor)
        return convert(outputs, self.max_turn_angle)

    def weights(self):
        """Every entry of every layer, layer by layer, row-major."""
        return [float(w) for layer in self.layers for w in layer.ravel()]

    def set_weights(self, weights):
        """
        Replaces the weights of this network with a flat vector in the order
        produced by weights(). Returns self to allow chaining.
        """
        if len(weights) != self.num_weights:
            raise ValueError(f"Weight count mismatch. Expected {self.num_weights}, got {len(weights)}")

        index = 0
        for layer in self.layers:
            size = layer.size
            layer[:] = np.asarray(weights[index:index + size], dtype=float).reshape(layer.shape)
            index += size
        return self

    def __repr__(self):
        shapes = ", ".join(f"{r}x{c}" for r, c in (layer.shape for layer in self.layers))
        return f"DenseNet(Layers:[{shapes}], Weights:{self.num_weights})"


# --- SensorGatedNet Class ---

class SensorGatedNet:
    """
    A 3-layer network that steers towards the closest thing the agent can see.

    Layer 0 scales each sensor signal independently (diagonal matrix plus bias).
    Layer 1 is a "winner takes all" layer rebuilt on every call: a diagonal
    matrix whose only nonzero entry sits at the strongest (smallest) signal.
    Layer 2 weighs the winner into a single steering value.

    Only the structurally nonzero entries of layers 0 and 2 are weights; the
    winner layer is never evolved.
    """
    def __init__(self,
                 num_sensors,
                 max_weight,
                 max_turn_angle,
                 sentinel=1.0e6,
                 activation_divisor=DEFAULT_ACTIVATION_DIVISOR,
                 rng=None):
        self.num_sensors = num_sensors
        self.max_weight = max_weight
        self.max_turn_angle = max_turn_angle
        self.sentinel = sentinel
        self.activation_divisor = activation_divisor
        self.rng = rng or random.Random()

        summation = with_bias_column(diagonal_matrix(
            [self.rng.uniform(-max_weight, max_weight) for _ in range(num_sensors)]))
        output = with_bias_column(random_matrix(1, num_sensors, max_weight, self.rng))
        self.layers = [summation, None, output]

        # Positions that hold weights; fixed by the layer shapes, not by values
        self.masks = [with_bias_column(np.eye(num_sensors)) != 0,
                      None,
                      np.ones(output.shape, dtype=bool)]
        self.num_weights = int(sum(mask.sum() for mask in self.masks if mask is not None))

    @classmethod
    def from_params(cls, params, rng=None):
        return cls(params.agent_num_sensors,
                   params.max_weight,
                   params.max_turn_angle,
                   params.sensor_sentinel,
                   params.activation_divisor,
                   rng)

    def _evolvable(self):
        return [(layer, mask) for layer, mask in zip(self.layers, self.masks) if mask is not None]

    def build_winning_layer(self, signals):
        """
        Builds the winner-takes-all layer for this set of signals.
        The smallest signal (closest object) wins; ties go to the lowest index.
        """
        signals = np.ravel(signals)
        windex = int(np.argmin(signals))
        diags = [self.rng.uniform(-self.max_weight, self.max_weight) if i == windex else 0.0
                 for i in range(len(signals))]
        return with_bias_column(diagonal_matrix(diags))

    def signals_from(self, readings):
        """
        One signal per sensor: the distance to the closest object that sensor
        detects, or the sentinel when it detects nothing.
        """
        return [min(found) if len(found) else self.sentinel for found in readings]

    def respond(self, readings):
        """
        Expects one sequence of detected distances per sensor.
        Returns a one-element list holding the steering angle.
        """
        if len(readings) != self.num_sensors:
            raise ValueError(f"Input size mismatch. Expected {self.num_sensors}, got {len(readings)}")

        # Nothing in sight; wander
        if not any(len(found) for found in readings):
            return [self.rng.uniform(-self.max_turn_angle, self.max_turn_angle)]

        inputs = column_vector(self.signals_from(readings))
        input_layer, output_layer = self.layers[0], self.layers[2]

        outputs, _net = activate_layer(inputs, input_layer, self.activation_divisor)
        winning_layer = self.layers[1] = self.build_winning_layer(outputs)
        outputs, _net = activate_layer(outputs, winning_layer, self.activation_divisor)
        outputs, _net = activate_layer(outputs, output_layer, self.activation_divisor)
        return convert(outputs, self.max_turn_angle)

    def weights(self):
        """Nonzero-position weights of layers 0 and 2, layer by layer, row-major."""
        return [float(w) for layer, mask in self._evolvable() for w in layer[mask]]

    def set_weights(self, weights):
        """Inverse of weights(). Returns self to allow chaining."""
        if len(weights) != self.num_weights:
            raise ValueError(f"Weight count mismatch. Expected {self.num_weights}, got {len(weights)}")

        index = 0
        for layer, mask in self._evolvable():
            count = int(mask.sum())
            layer[mask] = np.asarray(weights[index:index + count], dtype=float)
            index += count
        return self

    def __repr__(self):
        return f"SensorGatedNet(Sensors:{self.num_sensors}, Weights:{self.num_weights})"


# --- Save/Load Functions ---

def save_weights(weights, filename):
    """Writes a flat weight vector to a file as a single comma-separated row."""
    try:
        with open(filename, 'w', newline='') as f:
            csv.writer(f).writerow(list(weights))
        return True
    except IOError as e:
        print(f"Error saving weights to {filename}: {e}")
        return False


def load_weights(filename, expected_length=None):
    """Reads back a weight row written by save_weights."""
    try:
        with open(filename, 'r', newline='') as f:
            row = next(csv.reader(f), [])
    except IOError:
        print(f"No saved weights found at {filename}. Starting fresh.")
        return None

    try:
        weights = [float(value) for value in row]
    except ValueError as e:
        print(f"Error loading weights from {filename}: {e}")
        return None

    if expected_length is not None and len(weights) != expected_length:
        print(f"Weights in {filename} have length {len(weights)}, expected {expected_length}.")
        return None
    return weights
