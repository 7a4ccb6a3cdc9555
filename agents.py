import math
import random
from dataclasses import dataclass

from errors import MalformedControllerOutput
from linalg import cross, directional_vector, distance_to, normalize
from network import DenseNet, SensorGatedNet
from params import TWO_PI, rad_to_degrees


@dataclass(frozen=True)
class Response:
    """A controller answered with enough outputs; `outputs` is what it said."""
    outputs: tuple = ()

    @property
    def ok(self):
        return True


# --- Goals ---

class Food:
    """A goal: a point in the world with a value. Reaching it raises fitness."""
    def __init__(self, x, y, value=1.0):
        self.x = x
        self.y = y
        self.value = value

    @classmethod
    def random(cls, params, rng=None):
        """A food item at a random position, kept half a sprite away from the edges."""
        rng = rng or random
        margin = 0.5 * params.food_width
        return cls(rng.uniform(margin, params.window_width - margin),
                   rng.uniform(margin, params.window_height - margin),
                   params.food_value)

    def __repr__(self):
        return f"Food(x={self.x:.1f}, y={self.y:.1f}, value={self.value})"


# --- Body: position, heading and health shared by every agent ---

class Body:
    def __init__(self, params, rng):
        self.params = params
        self.rng = rng
        self.closest_goal = None
        self.reset()

    def reset(self):
        """Random position and orientation, base fitness, zero age and goals."""
        margin = 0.5 * self.params.food_width
        self.x = self.rng.uniform(margin, self.params.window_width - margin)
        self.y = self.rng.uniform(margin, self.params.window_height - margin)
        self.fitness = self.params.base_fitness
        self.age = 0
        self.goals_reached = 0
        self.angle = self.rng.uniform(0.0, TWO_PI)
        self.calculate_heading()

    @property
    def position(self):
        return self.x, self.y

    def calculate_heading(self):
        self.heading = directional_vector(self.angle)

    def turn(self, this_much):
        self.angle += this_much
        self.calculate_heading()

    def move(self, this_fast):
        """Moves along the current angle, wrapping around the window edges."""
        self.x = (self.x + math.cos(self.angle) * this_fast) % self.params.window_width
        self.y = (self.y + math.sin(self.angle) * this_fast) % self.params.window_height

    def distance_to(self, obj):
        return distance_to(self.x, self.y, obj.x, obj.y)

    def within_reach(self, obj):
        if obj is None:
            return False
        return self.distance_to(obj) <= self.params.agent_reach

    def find_closest(self, env):
        """
        Remembers the closest goal and returns the vector pointing at it,
        or None when there are no goals at all.
        """
        self.closest_goal = min(env, key=self.distance_to, default=None)
        if self.closest_goal is None:
            return None
        return self.closest_goal.x - self.x, self.closest_goal.y - self.y

    def try_for_goal(self, env):
        """
        Returns the closest goal if it is within reach, else None.
        A goal need not be in sight to be collected; the agent may be on top of it.
        """
        self.find_closest(env)
        return self.closest_goal if self.within_reach(self.closest_goal) else None

    def update_fitness(self, goal=None):
        if goal is not None:
            self.fitness += goal.value
            self.goals_reached += 1
        # Slowly die
        self.fitness += self.params.death
        self.fitness = min(self.fitness, self.params.max_fitness)
        return self.fitness

    def dead(self):
        return self.fitness <= 0

    def update_age(self):
        self.age += 1

    def alpha(self):
        """Opacity in [0, 255] that fades as fitness runs out."""
        alpha_min, alpha_max = 25, 256
        new_alpha = alpha_min + (alpha_max - alpha_min) / self.params.max_fitness * self.fitness
        return int(max(0, min(255, new_alpha + 15)))


# --- Agents ---

class BasicAgent:
    """Turns randomly and never uses a brain."""
    expected_outputs = 0

    def __init__(self, params, rng=None):
        self.params = params
        self.rng = rng or random.Random()
        self.body = Body(params, self.rng)
        self.brain = None

    # Body delegation used by the simulation
    @property
    def fitness(self):
        return self.body.fitness

    def try_for_goal(self, env):
        return self.body.try_for_goal(env)

    def update_fitness(self, goal=None):
        return self.body.update_fitness(goal)

    def update_age(self):
        self.body.update_age()

    def dead(self):
        return self.body.dead()

    def reset(self):
        self.body.reset()

    def respond_to(self, env):
        self.body.turn(self.rng.uniform(-self.params.max_turn_angle, self.params.max_turn_angle))
        self.body.move(self.params.max_speed)
        return Response()

    def check_outputs(self, outputs):
        """Wraps controller outputs in a Response, or flags them as malformed."""
        if len(outputs) < self.expected_outputs:
            return MalformedControllerOutput(expected=self.expected_outputs, actual=len(outputs))
        return Response(tuple(outputs))

    @property
    def num_weights(self):
        return self.brain.num_weights if self.brain is not None else 0

    def weights(self):
        return self.brain.weights() if self.brain is not None else []

    def set_weights(self, weights):
        if self.brain is not None:
            self.brain.set_weights(weights)
        return self

    def report(self, genome=None):
        genetics = genome.summary() if genome is not None else "none (deceased)"
        return (f"{self}\n"
                f"        Age: {self.body.age}\n"
                f"        Genetics: {genetics}\n"
                f"        Goals reached: {self.body.goals_reached}\n")

    def __repr__(self):
        return (f"#<{type(self).__name__}: fitness={self.body.fitness:.2f}, "
                f"position=({self.body.x:.1f}, {self.body.y:.1f})>")


class OmniscientAgent(BasicAgent):
    """
    Always knows where the closest goal is. A DenseNet maps the direction to
    that goal plus the agent's heading to two leg strengths.
    """
    expected_outputs = 2

    def __init__(self, params, rng=None):
        super().__init__(params, rng)
        self.brain = DenseNet.from_params(params, self.rng)
        self.left_leg = 0.0
        self.right_leg = 0.0

    def respond_to(self, env):
        goal_vector = self.body.find_closest(env)
        if goal_vector is not None:
            # Standing on the goal gives a zero vector, which normalizes to zeros
            inputs = list(normalize(goal_vector)) + list(self.body.heading)
            response = self.check_outputs(self.brain.respond(inputs))
            if not response.ok:
                return response
            self.left_leg, self.right_leg = response.outputs[:2]
        else:
            response = Response((self.left_leg, self.right_leg))

        # Steering forces
        this_much = self.left_leg - self.right_leg
        this_fast = min((self.left_leg + self.right_leg) * 20, self.params.max_speed)

        self.body.turn(this_much)
        self.body.move(this_fast)
        return response


class SeekingAgent(BasicAgent):
    """
    Sees the world through a fan of sensors and steers with a SensorGatedNet
    towards whatever its strongest sensor picks up.
    """
    expected_outputs = 1

    def __init__(self, params, rng=None):
        super().__init__(params, rng)
        self.visual_range = params.agent_visual_range
        self.sensor_theta = params.agent_sensor_range_theta
        self.sensor_mag = params.agent_sensor_range_mag
        self.brain = SensorGatedNet.from_params(params, self.rng)

    @property
    def sensors(self):
        """
        Angle of the left bound of each sensor. Each sensor covers sensor_theta
        radians; together they span the visual range centred on the heading.
        """
        count = self.params.agent_num_sensors
        theta = -self.visual_range / 2
        angles = []
        for i in range(count):
            # The middle sensor faces straight ahead; use the exact angle
            angles.append(self.body.angle if i == count // 2 else self.body.angle + theta)
            theta += self.sensor_theta
        return angles

    def in_sight(self, obj, start=None, end=None):
        """
        True if obj lies between the two bounding angles (defaults to the whole
        visual range) and within sensor range.
        """
        if start is None:
            start = self.body.angle - self.visual_range / 2
            end = self.body.angle + self.visual_range / 2
        to_obj = (obj.x - self.body.x, obj.y - self.body.y)
        in_range = (cross(directional_vector(start), to_obj) >= 0 and
                    cross(to_obj, directional_vector(end)) >= 0)
        return in_range and self.body.distance_to(obj) <= self.sensor_mag

    def parse(self, env):
        """The visible part of the environment, closest first."""
        return sorted((obj for obj in env if self.in_sight(obj)), key=self.body.distance_to)

    def parse_with_sensor(self, env, sensor):
        return [obj for obj in env if self.in_sight(obj, sensor, sensor + self.sensor_theta)]

    def sense(self, env):
        """Distances of the objects each sensor detects, closest first."""
        visible = self.parse(env)
        return [[self.body.distance_to(obj) for obj in self.parse_with_sensor(visible, sensor)]
                for sensor in self.sensors]

    def respond_to(self, env):
        response = self.check_outputs(self.brain.respond(self.sense(env)))
        if not response.ok:
            return response

        this_much = response.outputs[0]
        this_fast = min(abs(rad_to_degrees(this_much)), self.params.max_speed)

        self.body.turn(this_much)
        self.body.move(this_fast)
        return response


AGENT_TYPES = {
    'basic': BasicAgent,
    'omniscient': OmniscientAgent,
    'seeking': SeekingAgent,
}
