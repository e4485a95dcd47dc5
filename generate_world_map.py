# generate_world_map.py

"""
================================================================================
MAP GENERATOR COMMAND-LINE TOOL
================================================================================
Generates a grayscale elevation map from a JSON configuration and writes it to
disk as a PNG, together with the exact settings used ("generation_config.json")
so the map can be reproduced later.

Usage:
    python generate_world_map.py --config path/to/config.json --output map.png
================================================================================
"""
import argparse
import json
import logging
import os
import sys

import numpy as np
from PIL import Image
from tqdm import tqdm

from map_generator import MapGenerator, MapGenerationError
from map_generator import color_maps
from map_generator.finalize import render_grayscale
from map_generator.noise import seed_to_int

CONFIG_SECTION = 'map_generation_parameters'


class ProgressBars:
    """Turns pipeline progress events into one tqdm bar per simulated phase."""
    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.bars = {}

    def __call__(self, event: dict):
        phase = event['phase']
        if 'current_step' in event:
            bar = self.bars.get(phase)
            if bar is None:
                bar = tqdm(total=event['total_steps'], desc=phase, unit='step')
                self.bars[phase] = bar
            bar.update(event['current_step'] - bar.n)
            return

        bar = self.bars.pop(phase, None)
        if bar is not None:
            bar.close()
        self.logger.info(f"{phase}: {event.get('status', '')}")

    def close(self):
        for bar in self.bars.values():
            bar.close()
        self.bars.clear()


def load_config(config_path: str) -> dict:
    """Loads a JSON config, accepting either a flat dict or a nested section."""
    with open(config_path, 'r') as f:
        config = json.load(f)
    if not isinstance(config, dict):
        raise ValueError("The configuration file must contain a JSON object")
    return config.get(CONFIG_SECTION, config)


def parse_seed(value: str):
    """Reads "42" as the integer 42, so it matches a JSON config with "seed": 42."""
    if value.lstrip("-").isdigit():
        return int(value)
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tectonic and erosion based map generator.")
    parser.add_argument("--config", type=str, help="Path to a JSON configuration file.")
    parser.add_argument("--output", type=str, default="map.png", help="Path of the PNG to write.")
    parser.add_argument("--seed", type=parse_seed, help="Override the random seed. Whole numbers are used as integers.")
    parser.add_argument("--width", type=int, help="Override the grid width.")
    parser.add_argument("--height", type=int, help="Override the grid height.")
    parser.add_argument("--inline", action="store_true", help="Run every phase in this process.")
    parser.add_argument("--plates-output", type=str, help="Also write a plate ownership debug image.")
    parser.add_argument("--crust-output", type=str, help="Also write a crust type debug image.")
    parser.add_argument("--log-level", type=str, default="INFO", help="Logging level (DEBUG, INFO, ...).")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # 1. --- Setup Logging ---
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s',
        stream=sys.stdout
    )
    logger = logging.getLogger("MapGenerator")

    # 2. --- Load Configuration ---
    config = {}
    if args.config:
        logger.info(f"Loading configuration from: {args.config}")
        try:
            config = load_config(args.config)
        except (OSError, ValueError) as e:
            logger.critical(f"Failed to load or parse config file: {e}")
            return 1

    if args.seed is not None:
        config['seed'] = args.seed
    if args.width is not None:
        config['width'] = args.width
    if args.height is not None:
        config['height'] = args.height
    if args.inline:
        config['use_worker_processes'] = False

    # 3. --- Generate ---
    progress = ProgressBars(logger)
    try:
        generator = MapGenerator(config=config, logger=logger)
        world_state = generator.generate_world(on_progress=progress)
        image = render_grayscale(world_state.grid, generator.settings.sea_level, logger=logger)
    except MapGenerationError as e:
        logger.critical(f"Map generation failed: {e}")
        return 1
    finally:
        progress.close()

    # 4. --- Save Outputs ---
    output_dir = os.path.dirname(os.path.abspath(args.output))
    os.makedirs(output_dir, exist_ok=True)
    with open(args.output, 'wb') as f:
        f.write(image)
    logger.info(f"Map saved to '{args.output}'")

    if args.plates_output:
        settings = generator.settings
        plate_colors = color_maps.get_plate_color_array(
            world_state.grid.plate_id, settings.num_plates, seed_to_int(settings.seed)
        )
        Image.fromarray(np.ascontiguousarray(plate_colors)).save(args.plates_output)
        logger.info(f"Plate layer saved to '{args.plates_output}'")

    if args.crust_output:
        crust_colors = color_maps.get_crust_color_array(world_state.grid.crust_type)
        Image.fromarray(np.ascontiguousarray(crust_colors)).save(args.crust_output)
        logger.info(f"Crust layer saved to '{args.crust_output}'")

    gen_config_path = os.path.join(output_dir, "generation_config.json")
    with open(gen_config_path, 'w') as f:
        json.dump(generator.settings.to_dict(), f, indent=4)
    logger.info(f"Saved generation_config.json to '{output_dir}'")
    return 0


if __name__ == "__main__":
    sys.exit(main())
