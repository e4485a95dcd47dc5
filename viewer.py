# viewer.py

"""
Interactive viewer for a generated map image.

The generated world wraps on both axes, so the map is drawn as an endless
tiling of the same image. Pan with WASD, zoom with the mouse wheel.

Usage:
    python viewer.py map.png
"""
import argparse
import logging
import math
import os
import sys

import pygame

# --- Application Constants ---
PAN_SPEED_PIXELS = 15
ZOOM_SPEED = 0.1
MAX_ZOOM = 16.0
MIN_ZOOM = 0.05
SCREEN_WIDTH = 1280
SCREEN_HEIGHT = 720
BACKGROUND_COLOR = (10, 10, 20)


class Camera:
    """A simple camera for the viewer to handle pan and zoom."""
    def __init__(self, screen_width, screen_height, world_pixel_width, world_pixel_height):
        self.screen_width = screen_width
        self.screen_height = screen_height
        self.world_pixel_width = world_pixel_width
        self.world_pixel_height = world_pixel_height

        zoom_x = self.screen_width / self.world_pixel_width
        zoom_y = self.screen_height / self.world_pixel_height
        self.zoom = min(MAX_ZOOM, max(MIN_ZOOM, min(zoom_x, zoom_y)))

        self.x = self.world_pixel_width / 2
        self.y = self.world_pixel_height / 2

    def world_to_screen(self, world_x, world_y):
        screen_x = (world_x - self.x) * self.zoom + self.screen_width / 2
        screen_y = (world_y - self.y) * self.zoom + self.screen_height / 2
        return screen_x, screen_y

    def screen_to_world(self, screen_x, screen_y):
        world_x = (screen_x - self.screen_width / 2) / self.zoom + self.x
        world_y = (screen_y - self.screen_height / 2) / self.zoom + self.y
        return world_x, world_y

    def pan(self, dx, dy):
        # Panning speed is independent of zoom level. The position wraps so
        # coordinates stay bounded on a toroidal map.
        self.x = (self.x + dx / self.zoom) % self.world_pixel_width
        self.y = (self.y + dy / self.zoom) % self.world_pixel_height

    def zoom_in(self):
        self.zoom = min(MAX_ZOOM, self.zoom * (1 + ZOOM_SPEED))

    def zoom_out(self):
        self.zoom = max(MIN_ZOOM, self.zoom * (1 - ZOOM_SPEED))


def visible_tile_range(camera: Camera, image_width: int, image_height: int):
    """
    Returns (start_tx, end_tx, start_ty, end_ty), the half-open range of map
    copies that overlap the screen. Tile (tx, ty) sits at world position
    (tx * image_width, ty * image_height).
    """
    left, top = camera.screen_to_world(0, 0)
    right, bottom = camera.screen_to_world(camera.screen_width, camera.screen_height)
    start_tx = math.floor(left / image_width)
    start_ty = math.floor(top / image_height)
    end_tx = math.floor(right / image_width) + 1
    end_ty = math.floor(bottom / image_height) + 1
    return start_tx, end_tx, start_ty, end_ty


class ViewerApp:
    """The main application class for the map viewer."""
    def __init__(self, image_path: str):
        self.logger = logging.getLogger(__name__)

        self.logger.info("Initializing Pygame...")
        pygame.init()

        self.screen_width = SCREEN_WIDTH
        self.screen_height = SCREEN_HEIGHT
        self.screen = pygame.display.set_mode((self.screen_width, self.screen_height))
        pygame.display.set_caption("Map Viewer")

        self.clock = pygame.time.Clock()
        self.is_running = True

        self.map_surface = pygame.image.load(image_path).convert()
        self.map_width, self.map_height = self.map_surface.get_size()
        self.camera = Camera(self.screen_width, self.screen_height, self.map_width, self.map_height)
        self._scaled_cache = (None, None)
        self.logger.info(f"Loaded '{image_path}' ({self.map_width}x{self.map_height} pixels).")

    def run(self):
        """The main application loop."""
        while self.is_running:
            self.handle_events()
            self.update()
            self.draw()
            self.clock.tick(60)

        self.logger.info("Exiting viewer.")
        pygame.quit()

    def handle_events(self):
        """Processes user input and other events."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.is_running = False
            elif event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                self.is_running = False
            elif event.type == pygame.MOUSEWHEEL:
                if event.y > 0:
                    self.camera.zoom_in()
                elif event.y < 0:
                    self.camera.zoom_out()

    def update(self):
        """Handles continuous input like key presses for panning."""
        keys = pygame.key.get_pressed()
        if keys[pygame.K_w]:
            self.camera.pan(0, -PAN_SPEED_PIXELS)
        if keys[pygame.K_s]:
            self.camera.pan(0, PAN_SPEED_PIXELS)
        if keys[pygame.K_a]:
            self.camera.pan(-PAN_SPEED_PIXELS, 0)
        if keys[pygame.K_d]:
            self.camera.pan(PAN_SPEED_PIXELS, 0)

    def _scaled_surface(self):
        size = (max(1, math.ceil(self.map_width * self.camera.zoom)),
                max(1, math.ceil(self.map_height * self.camera.zoom)))
        cached_size, cached_surface = self._scaled_cache
        if cached_size != size:
            cached_surface = pygame.transform.scale(self.map_surface, size)
            self._scaled_cache = (size, cached_surface)
        return cached_surface

    def draw(self):
        """Handles all rendering for the application."""
        self.screen.fill(BACKGROUND_COLOR)
        scaled_surface = self._scaled_surface()

        start_tx, end_tx, start_ty, end_ty = visible_tile_range(self.camera, self.map_width, self.map_height)
        rendered_tiles = 0
        for ty in range(start_ty, end_ty):
            for tx in range(start_tx, end_tx):
                screen_pos = self.camera.world_to_screen(tx * self.map_width, ty * self.map_height)
                self.screen.blit(scaled_surface, (math.floor(screen_pos[0]), math.floor(screen_pos[1])))
                rendered_tiles += 1

        pygame.display.set_caption(f"Map Viewer | Rendering {rendered_tiles} tiles | Zoom: {self.camera.zoom:.2f}")
        pygame.display.flip()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="View a generated map image.")
    parser.add_argument("image", type=str, help="Path to the generated PNG.")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    if not os.path.isfile(args.image):
        print(f"Error: Map image not found at '{args.image}'")
        print("Please run generate_world_map.py first.")
        return 1

    ViewerApp(args.image).run()
    return 0


if __name__ == '__main__':
    sys.exit(main())
