#!/usr/bin/env python
"""
Command-line interface for the Shadow Compliance Engine

Usage:
    python cli.py check --lat 35.68 --lon 139.69 --zone residential_1 --far 200 \\
        --usage residential_multi --floors 5 --area 400 --height 16 --output shadow.json
    python cli.py massing --usage office --floors 8 --area 600 --output massing.json
    python cli.py sunpath --lat 35.68 --lon 139.69
    python cli.py batch --input scenarios.csv --output ./results/
"""

import os
import sys
import json
import csv
import argparse
from datetime import date

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from loguru import logger
from shadowcheck.config import load_config_from_env, validate_config
from shadowcheck.exceptions import ShadowCheckError
from shadowcheck.models import (
    SiteLocation, BuildingParameters, RegulationOverrides, NeighborParcel,
    UsageCategory, StructureType
)
from shadowcheck.pipeline import ShadowCompliancePipeline


def setup_logging(verbose: bool = False):
    """Configure logging"""
    logger.remove()
    level = "DEBUG" if verbose else "INFO"
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
        level=level
    )


def build_pipeline(args) -> ShadowCompliancePipeline:
    engine_config = load_config_from_env(args.env)
    if getattr(args, "cache_dir", None):
        engine_config.cache_dir = args.cache_dir
    validate_config(engine_config)
    return ShadowCompliancePipeline(config=engine_config)


def add_building_arguments(parser):
    parser.add_argument("--usage", required=True, choices=[u.value for u in UsageCategory], help="Building usage")
    parser.add_argument("--structure", default=StructureType.OTHER.value,
                        choices=[s.value for s in StructureType], help="Structure type")
    parser.add_argument("--floors", type=int, required=True, help="Floors above ground")
    parser.add_argument("--area", type=float, required=True, help="Building (footprint) area in sqm")
    parser.add_argument("--height", type=float, help="Maximum height in meters")
    parser.add_argument("--total-floor-area", type=float, help="Total floor area in sqm")
    parser.add_argument("--units", type=int, help="Dwelling units (residential only)")
    parser.add_argument("--foundation-height", type=float, help="Foundation height in meters")


def building_from_args(args) -> BuildingParameters:
    return BuildingParameters(
        usage=UsageCategory(args.usage),
        structure=StructureType(args.structure),
        floors=args.floors,
        building_area_sqm=args.area,
        total_floor_area_sqm=args.total_floor_area,
        max_height_m=args.height,
        units=args.units,
        foundation_height_m=args.foundation_height
    )


def load_neighbors(path):
    """Neighbour parcels from a JSON list of {zone, floor_area_ratio, distance_m}"""
    if not path:
        return None
    with open(path, "r", encoding="utf-8") as f:
        return [NeighborParcel(**item) for item in json.load(f)]


def print_summary(result):
    print(f"Status:            {result.status.value}")
    print(f"Zone:              {result.regulation.zone} ({result.regulation.category.value})")
    if result.regulation.is_regulated:
        print(f"Limits:            {result.regulation.near_limit_hours}h near / "
              f"{result.regulation.far_limit_hours}h far at {result.regulation.measurement_height_m}m")
    print(f"Compliance rate:   {result.compliance_rate:.1f}%")
    print(f"Max violation:     {result.max_violation_hours:.1f}h")
    print(f"Violation area:    {result.violation_area_sqm:.0f} sqm")
    if result.peak_violation_time is not None:
        print(f"Peak violation at: {result.peak_violation_time:05.2f}h")
    for rec in result.recommendations:
        print(f"  [{rec.priority}] {rec.description}")
    if result.error_reason:
        print(f"Error:             {result.error_reason}")


def cmd_check(args):
    """Run a compliance check for a single building"""
    setup_logging(args.verbose)

    pipeline = build_pipeline(args)
    overrides = None
    if args.measurement_height is not None or args.near_limit is not None or args.far_limit is not None:
        overrides = RegulationOverrides(
            measurement_height_m=args.measurement_height,
            near_limit_hours=args.near_limit,
            far_limit_hours=args.far_limit
        )

    try:
        result = pipeline.check_compliance(
            site=SiteLocation(latitude=args.lat, longitude=args.lon, address=args.address or ""),
            building=building_from_args(args),
            zoning_classification=args.zone,
            floor_area_ratio=args.far,
            overrides=overrides,
            reference_date=date.fromisoformat(args.date) if args.date else None,
            neighbor_parcels=load_neighbors(args.neighbors)
        )
    except ShadowCheckError as e:
        logger.error(f"✗ {e}")
        return 1

    if args.output:
        pipeline.save(result, args.output)
        logger.info(f"✓ Generated: {args.output}")
    if args.summary or not args.output:
        print_summary(result)

    return 0 if result.status.value != "error" else 1


def cmd_massing(args):
    """Generate and dump the building massing"""
    setup_logging(args.verbose)

    pipeline = build_pipeline(args)
    site = SiteLocation(latitude=args.lat, longitude=args.lon) if args.lat is not None else None
    try:
        massing = pipeline.generate_massing(building_from_args(args), site)
    except ShadowCheckError as e:
        logger.error(f"✗ {e}")
        return 1

    data = massing.model_dump(mode="json")
    if args.output:
        os.makedirs(os.path.dirname(args.output) or ".", exist_ok=True)
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        logger.info(f"✓ Massing saved to {args.output}")
    else:
        print(json.dumps(data, indent=2))
    return 0


def cmd_sunpath(args):
    """Print the sun path for the reference day"""
    setup_logging(args.verbose)

    pipeline = build_pipeline(args)
    site = SiteLocation(latitude=args.lat, longitude=args.lon)
    try:
        pipeline.validate_inputs(site, 100.0)
    except ShadowCheckError as e:
        logger.error(f"✗ {e}")
        return 1

    table = pipeline.sun_path(site, date.fromisoformat(args.date) if args.date else None)
    steps = table.steps if args.all else table.window(
        pipeline.config.regulation.window_start_hour, pipeline.config.regulation.window_end_hour
    )

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump({
                "reference_date": table.reference_date.isoformat(),
                "steps": [s.model_dump() for s in steps]
            }, f, indent=2)
        logger.info(f"✓ Sun path saved to {args.output}")
        return 0

    print(f"Sun path on {table.reference_date} at ({args.lat}, {args.lon})")
    print(f"{'Time':>6}  {'Altitude':>9}  {'Azimuth':>8}")
    for step in steps:
        hh = int(step.hour)
        mm = int(round((step.hour - hh) * 60))
        print(f"{hh:02d}:{mm:02d}  {step.altitude_deg:9.2f}  {step.azimuth_deg:8.2f}")
    return 0


def cmd_batch(args):
    """Run compliance checks for multiple scenarios from CSV"""
    setup_logging(args.verbose)

    if not os.path.exists(args.input):
        logger.error(f"Input file not found: {args.input}")
        return 1

    # Read scenarios from CSV
    scenarios = []
    with open(args.input, "r", newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for row in reader:
            try:
                scenarios.append({
                    "name": row.get("name", ""),
                    "site": SiteLocation(latitude=float(row["lat"]), longitude=float(row["lon"])),
                    "zone": row["zone"],
                    "far": float(row["far"]),
                    "building": BuildingParameters(
                        usage=UsageCategory(row["usage"]),
                        structure=StructureType(row.get("structure") or StructureType.OTHER.value),
                        floors=int(row["floors"]),
                        building_area_sqm=float(row["area"]),
                        max_height_m=float(row["height"]) if row.get("height") else None,
                        units=int(row["units"]) if row.get("units") else None
                    )
                })
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping invalid row: {e}")

    if not scenarios:
        logger.error("No valid scenarios found in CSV")
        return 1

    logger.info(f"Processing {len(scenarios)} scenarios...")

    # Create output directory
    os.makedirs(args.output, exist_ok=True)

    pipeline = build_pipeline(args)
    success = 0
    failed = 0

    for i, scenario in enumerate(scenarios, 1):
        name = scenario.get("name") or f"scenario_{i:03d}"
        logger.info(f"[{i}/{len(scenarios)}] {name}: {scenario['zone']}, {scenario['building'].floors} floors")

        try:
            result = pipeline.check_compliance(
                site=scenario["site"],
                building=scenario["building"],
                zoning_classification=scenario["zone"],
                floor_area_ratio=scenario["far"]
            )
        except ShadowCheckError as e:
            logger.error(f"  ✗ Failed: {e}")
            failed += 1
            continue

        filename = f"{name.replace(' ', '_').lower()}.json"
        pipeline.save(result, os.path.join(args.output, filename))

        if result.status.value == "error":
            logger.error(f"  ✗ {filename}: {result.error_reason}")
            failed += 1
        else:
            logger.info(f"  ✓ {filename} ({result.status.value}, {result.compliance_rate:.1f}%)")
            success += 1

    logger.info(f"\nComplete: {success} succeeded, {failed} failed")
    return 0 if failed == 0 else 1


def main():
    parser = argparse.ArgumentParser(
        description="Shadow Compliance Engine CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Check a single building:
    python cli.py check --lat 35.68 --lon 139.69 --zone residential_1 --far 200 \\
        --usage residential_multi --floors 5 --area 400 --height 16 -o shadow.json

  Dump the generated massing:
    python cli.py massing --usage office --floors 8 --area 600

  Sun path on the winter solstice:
    python cli.py sunpath --lat 35.68 --lon 139.69

  Batch check from CSV:
    python cli.py batch --input scenarios.csv --output ./results/
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--env", help="Path to a .env file with SHADOWCHECK_* settings")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Check command
    check_parser = subparsers.add_parser("check", help="Check shadow compliance for a building")
    check_parser.add_argument("--lat", type=float, required=True, help="Latitude")
    check_parser.add_argument("--lon", type=float, required=True, help="Longitude")
    check_parser.add_argument("--address", help="Site address (display only)")
    check_parser.add_argument("--zone", required=True, help="Zoning classification")
    check_parser.add_argument("--far", type=float, required=True, help="Floor area ratio in percent")
    add_building_arguments(check_parser)
    check_parser.add_argument("--date", help="Reference date (YYYY-MM-DD), default latest winter solstice")
    check_parser.add_argument("--neighbors", help="JSON file of neighbouring parcels")
    check_parser.add_argument("--measurement-height", type=float, help="Confirmed measurement height override")
    check_parser.add_argument("--near-limit", type=float, help="Confirmed near-band limit override (hours)")
    check_parser.add_argument("--far-limit", type=float, help="Confirmed far-band limit override (hours)")
    check_parser.add_argument("--cache-dir", help="Directory for cached results")
    check_parser.add_argument("--output", "-o", help="Output JSON file")
    check_parser.add_argument("--summary", "-s", action="store_true", help="Print summary to stdout")
    check_parser.set_defaults(func=cmd_check)

    # Massing command
    massing_parser = subparsers.add_parser("massing", help="Generate the building massing")
    add_building_arguments(massing_parser)
    massing_parser.add_argument("--lat", type=float, help="Latitude (anchors setbacks to the sunny side)")
    massing_parser.add_argument("--lon", type=float, help="Longitude")
    massing_parser.add_argument("--output", "-o", help="Output JSON file (stdout if not specified)")
    massing_parser.set_defaults(func=cmd_massing)

    # Sunpath command
    sun_parser = subparsers.add_parser("sunpath", help="Print the sun path for the reference day")
    sun_parser.add_argument("--lat", type=float, required=True, help="Latitude")
    sun_parser.add_argument("--lon", type=float, required=True, help="Longitude")
    sun_parser.add_argument("--date", help="Reference date (YYYY-MM-DD), default latest winter solstice")
    sun_parser.add_argument("--all", action="store_true", help="Whole day instead of the regulated window")
    sun_parser.add_argument("--output", "-o", help="Output JSON file")
    sun_parser.set_defaults(func=cmd_sunpath)

    # Batch command
    batch_parser = subparsers.add_parser("batch", help="Batch check from CSV file")
    batch_parser.add_argument("--input", "-i", required=True,
                              help="Input CSV file (columns: name,lat,lon,zone,far,usage,structure,floors,area,height,units)")
    batch_parser.add_argument("--output", "-o", default="output", help="Output directory")
    batch_parser.add_argument("--cache-dir", help="Directory for cached results")
    batch_parser.set_defaults(func=cmd_batch)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
