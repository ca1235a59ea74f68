"""
Planet Generator - Command Line

    python -m planetgen --seed 7 --subdivisions 4 --output surface.json --map surface.png
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from planetgen.config import GeneratorSettings, PlanetConfig, WaterCoverage, get_environment
from planetgen.errors import EncodingError, PlanetGenError
from planetgen.generation.profiles import StageProfile
from planetgen.io.hex_encoder import encode_hex_data
from planetgen.io.serializer import to_json
from planetgen.io.tile_loader import load_tile_csv
from planetgen.rendering import SurfaceView
from planetgen.service import PlanetGenerationService
from planetgen.topology import icosphere_template

logger = logging.getLogger("planetgen")

DEFAULT_SUBDIVISIONS = 4


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="planetgen", description="Generate a planet surface")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")

    mesh = parser.add_mutually_exclusive_group()
    mesh.add_argument("--subdivisions", type=int, default=None,
                      help=f"Icosphere subdivisions (default {DEFAULT_SUBDIVISIONS})")
    mesh.add_argument("--tiles", type=Path, default=None, help="Tile template CSV")

    parser.add_argument("--tilt", type=float, default=23.5, help="Axial tilt in degrees")
    parser.add_argument(
        "--water", default=WaterCoverage.OCEANS.name.lower(),
        choices=[w.name.lower() for w in WaterCoverage],
        help="Water regime",
    )
    parser.add_argument("--profile", default=None,
                        help="Stage profile name (chosen from the planet when omitted)")
    parser.add_argument("--output", type=Path, default=None, help="Write the surface JSON here")
    parser.add_argument("--map", type=Path, default=None, help="Write a surface map PNG here")
    parser.add_argument("--hex", type=Path, default=None, help="Write the viewer hex data JSON here")
    parser.add_argument("--log-level", default=None, help="Logging level (default from PLANETGEN_LOG_LEVEL)")
    return parser


def print_summary(context) -> None:
    print("\n" + "=" * 60)
    print(" SURFACE GENERATION COMPLETE")
    print("=" * 60)
    print(f"\nSeed: {context.settings.seed}")
    print(f"Tiles: {len(context.tiles):,}")
    for line in context.stats.summary_lines():
        print(f"  {line}")
    print("\n" + "=" * 60)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    level = (args.log_level or get_environment().log_level).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format="%(levelname)s: %(message)s")

    try:
        if args.tiles is not None:
            template = load_tile_csv(args.tiles)
        else:
            subdivisions = DEFAULT_SUBDIVISIONS if args.subdivisions is None else args.subdivisions
            template = icosphere_template(subdivisions)

        planet = PlanetConfig(axial_tilt=args.tilt, water_coverage=WaterCoverage[args.water.upper()])
        settings = GeneratorSettings(seed=args.seed)
        profile = StageProfile.named(args.profile) if args.profile else None

        result = PlanetGenerationService(template).generate(planet, settings, profile)
    except (PlanetGenError, ValueError) as e:
        logger.error("%s", e)
        return 1

    print_summary(result.context)

    try:
        if args.output is not None:
            args.output.write_text(to_json(result.tiles, result.context.planet), encoding="utf-8")
            print(f"\nSurface written to: {args.output}")
        if args.hex is not None:
            args.hex.write_text(encode_hex_data(result.tiles), encoding="utf-8")
            print(f"Hex data written to: {args.hex}")
    except EncodingError as e:
        logger.error("%s", e)
        return 1

    if args.map is not None:
        from planetgen.utils.visualization import render_surface_map

        render_surface_map(SurfaceView(result.tiles, result.context.planet), args.map)
        print(f"Surface map saved to: {args.map}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
