#!/usr/bin/env python3
"""
Construct a straight straw-bale wall and summarise the result.

Packs posts and straw into the wall, adds inside/outside finish layers and
prints element counts, issues and material usage.

Usage:
    python scripts/construct_wall.py --length 5000 --height 2500
    python scripts/construct_wall.py --length 5000 --opening 1200,1000,1200,900 --inside "Clay Plaster"
    python scripts/construct_wall.py --length 3000 --config infill.json --json
"""
import sys
import json
import argparse
import logging
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from construction_model import merge_models, transform_model
from geometry_primitives import Transform
from infill import DoublePostConfig, FullPostConfig, InfillConfig, construct_infill_wall
from layer_stack import Opening, WallLayersConfig, construct_wall_layers
from layers import DEFAULT_WALL_LAYER_SETS
from materials import material_usage


def parse_opening(value: str) -> Opening:
    """``offset,width,height[,sill]`` in mm."""
    parts = [p.strip() for p in value.split(",")]
    if len(parts) not in (3, 4):
        raise argparse.ArgumentTypeError(f"Expected offset,width,height[,sill], got {value!r}")
    try:
        numbers = [float(p) for p in parts]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid opening {value!r}: {exc}") from exc
    sill = numbers[3] if len(numbers) == 4 else 0.0
    return Opening(offset_from_start=numbers[0], width=numbers[1], height=numbers[2], sill_height=sill)


def build_config(args) -> InfillConfig:
    if args.config:
        data = json.loads(Path(args.config).read_text(encoding="utf-8"))
        return InfillConfig.from_dict(data)
    if args.double_posts:
        posts = DoublePostConfig(width=args.post_width)
    else:
        posts = FullPostConfig(width=args.post_width)
    config = InfillConfig(
        max_post_spacing=args.max_post_spacing,
        min_straw_space=args.min_straw_space,
        posts=posts,
    )
    config.validate()
    return config


def main():
    parser = argparse.ArgumentParser(
        description="Construct a straw-bale wall with posts, infill and finish layers.",
    )
    parser.add_argument("--length", type=float, required=True, help="Wall length in mm")
    parser.add_argument("--height", type=float, default=2500.0, help="Wall height in mm (default: 2500)")
    parser.add_argument("--thickness", type=float, default=360.0, help="Wall core thickness in mm (default: 360)")
    parser.add_argument(
        "--opening", type=parse_opening, action="append", default=[],
        help="Opening as offset,width,height[,sill] in mm (repeatable)",
    )
    parser.add_argument("--max-post-spacing", type=float, default=800.0, help="Maximum straw span between posts")
    parser.add_argument("--min-straw-space", type=float, default=70.0, help="Minimum straw segment width")
    parser.add_argument("--post-width", type=float, default=60.0, help="Post width along the wall")
    parser.add_argument("--double-posts", action="store_true", help="Use double posts instead of full posts")
    parser.add_argument("--config", default=None, help="JSON file with infill settings (overrides post options)")
    parser.add_argument(
        "--inside", default=None, choices=list(DEFAULT_WALL_LAYER_SETS.keys()),
        help="Inside finish layer set",
    )
    parser.add_argument(
        "--outside", default=None, choices=list(DEFAULT_WALL_LAYER_SETS.keys()),
        help="Outside finish layer set",
    )
    parser.add_argument("--json", action="store_true", help="Print the summary as JSON")
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = build_config(args)
    except (OSError, ValueError, TypeError) as exc:
        parser.error(f"Invalid infill configuration: {exc}")

    try:
        infill = construct_infill_wall(args.length, args.height, args.thickness, config, args.opening)
    except ValueError as exc:
        parser.error(str(exc))

    layers = WallLayersConfig(
        inside_layers=tuple(DEFAULT_WALL_LAYER_SETS[args.inside]) if args.inside else (),
        outside_layers=tuple(DEFAULT_WALL_LAYER_SETS[args.outside]) if args.outside else (),
    )
    finish = construct_wall_layers(
        args.length, args.height, args.thickness + layers.inside_thickness + layers.outside_thickness,
        layers, args.opening,
    )
    # Core sits between the inside and outside finish layers
    core = transform_model(infill, Transform.translation(0.0, layers.inside_thickness, 0.0))
    model = merge_models(core, finish)
    usage = material_usage(model)

    summary = {
        "wall": {"length": args.length, "height": args.height, "thickness": args.thickness},
        "elements": len(model.elements),
        "measurements": len(model.measurements),
        "warnings": [w.description for w in model.warnings],
        "errors": [e.description for e in model.errors],
        "bounds": None if model.bounds is None else {"min": model.bounds.min, "max": model.bounds.max},
        "materials": [
            {
                "material": u.material_id,
                "elements": u.element_count,
                "volume_m3": round(u.volume_m3, 4),
                "mass_kg": None if u.mass_kg is None else round(u.mass_kg, 1),
            }
            for u in usage
        ],
    }

    if args.json:
        print(json.dumps(summary, indent=2))
        return

    print(f"Wall {args.length:.0f} x {args.height:.0f} x {args.thickness:.0f} mm")
    print(f"  Elements:     {summary['elements']}")
    print(f"  Measurements: {summary['measurements']}")
    for warning in summary["warnings"]:
        print(f"  WARNING: {warning}")
    for error in summary["errors"]:
        print(f"  ERROR: {error}")
    print("Materials:")
    for row in summary["materials"]:
        mass = "n/a" if row["mass_kg"] is None else f"{row['mass_kg']:.1f} kg"
        print(f"  {row['material']:<24} {row['elements']:>4} pcs  {row['volume_m3']:.4f} m3  {mass}")


if __name__ == "__main__":
    main()
