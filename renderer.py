import pygame

from linalg import rotate_point
from params import DEFAULT_PARAMS

# Colors
BG_COLOR = (10, 72, 13)
FONT_COLOR = (0, 0, 0)
FOOD_COLOR = (230, 200, 40)
AGENT_COLOR = (255, 255, 255)
HENRY_COLOR = (220, 40, 40)

FPS = 60
AGENT_SIZE = 10


class PygameRenderer:
    """
    Draws the world in a pygame window: goals, agents (faded by fitness, the
    tracked individual in red) and the run statistics.
    ESC or closing the window ends the run; W exports the tracked agent's weights.
    """
    def __init__(self, params=DEFAULT_PARAMS, fps=FPS):
        pygame.init()
        self.params = params
        self.fps = fps
        self.screen = pygame.display.set_mode((params.window_width, params.window_height))
        pygame.display.set_caption("ALife Simulator")
        self.clock = pygame.time.Clock()
        self.font = pygame.font.Font(None, 24)
        self.overlay = pygame.Surface(self.screen.get_size(), pygame.SRCALPHA)

    def handle_events(self, simulation):
        """Returns False when the user asked to quit."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return False
            if event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    print("Escape pressed. Saving stats and exiting.")
                    return False
                if event.key == pygame.K_w:
                    simulation.export_weights()
        return True

    def render(self, simulation):
        if not self.handle_events(simulation):
            return False

        self.screen.fill(BG_COLOR)
        self.overlay.fill((0, 0, 0, 0))

        radius = max(2, int(self.params.agent_reach / 2))
        for food in simulation.env:
            pygame.draw.circle(self.screen, FOOD_COLOR, (int(food.x), int(food.y)), radius)

        for agent in simulation.agents:
            color = HENRY_COLOR if agent is simulation.henry else AGENT_COLOR
            pygame.draw.polygon(self.overlay, color + (agent.body.alpha(),), self._triangle(agent.body))
        self.screen.blit(self.overlay, (0, 0))

        self.draw_stats(simulation)
        pygame.display.flip()
        self.clock.tick(self.fps)
        return True

    def _triangle(self, body):
        """Points of a triangle centred on the body, nose along the heading."""
        origin = body.position
        points = []
        for offset, length in ((0.0, AGENT_SIZE), (2.5, AGENT_SIZE * 0.6), (-2.5, AGENT_SIZE * 0.6)):
            points.append(rotate_point(origin, (body.x + length, body.y), body.angle + offset))
        return points

    def draw_stats(self, simulation):
        lines = [
            f"Generation: {simulation.generation}",
            f"Current Population: {len(simulation.agents)}",
            f"Average fitnesses: {simulation.recent(simulation.fitness_averages)}",
            f"Best fitnesses: {simulation.recent(simulation.hall_of_fame)}",
        ]
        for i, line in enumerate(lines):
            self.screen.blit(self.font.render(line, True, FONT_COLOR), (10, 10 + 20 * i))

    def close(self):
        pygame.quit()
