"""
vdc-extract: Voronoi dual-contouring isosurface extraction.

Usage:
    vdc-extract ISOVALUE INPUT {off,ply} OUTPUT [options]

    vdc-extract 0.5 volume.npz ply surface.ply --multi_isov --out_csv voronoi.csv
"""

import argparse
import logging
import sys
from typing import List, Optional

from .analysis.pipeline import run_pipeline
from .io.mesh_writers import write_mesh
from .io.volume import load_volume
from .io.voronoi_export import dump_voronoi_diagram, export_voronoi_csv
from .kernel.delaunay import DegenerateGeometryError
from .spec.constants import (
    CELL_HULL,
    MODE_MULTI,
    MODE_SINGLE,
    SEP_GREEDY,
    VALID_CELL_METHODS,
    VALID_FORMATS,
    VALID_SEP_METHODS,
)
from .spec.structures import RunConfig

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vdc-extract",
        description="Extract an isosurface with Voronoi-diagram dual contouring")
    parser.add_argument("isovalue", type=float, help="Isovalue of the surface")
    parser.add_argument("input", help="Scalar volume (.npy or .npz)")
    parser.add_argument("output_format", help="Output mesh format (off or ply)")
    parser.add_argument("output", help="Output mesh path")
    parser.add_argument("--multi_isov", action="store_true",
                        help="Multi-isovertex mode (one vertex per sheet per Voronoi cell)")
    parser.add_argument("--sep_isov", action="store_true",
                        help="Keep only a non-adjacent subset of active cubes")
    parser.add_argument("--sep_method", choices=VALID_SEP_METHODS, default=SEP_GREEDY,
                        help="Subset selection for --sep_isov")
    parser.add_argument("--supersample", type=int, default=None, metavar="R",
                        help="Supersample the volume by an integer factor first")
    parser.add_argument("--cell_method", choices=VALID_CELL_METHODS, default=CELL_HULL,
                        help="Voronoi cell construction in multi mode")
    parser.add_argument("--out_csv", default=None, metavar="PATH",
                        help="Write Voronoi vertices and edges to a CSV file")
    parser.add_argument("--dump_voronoi", default=None, metavar="PATH",
                        help="Write a human-readable Voronoi dump")
    parser.add_argument("--binary", action="store_true",
                        help="Binary little-endian PLY output")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def config_from_args(args: argparse.Namespace) -> RunConfig:
    return RunConfig(
        isovalue=args.isovalue,
        mode=MODE_MULTI if args.multi_isov else MODE_SINGLE,
        sep_isov=args.sep_isov,
        sep_method=args.sep_method,
        supersample=args.supersample,
        cell_method=args.cell_method,
        out_csv=args.out_csv,
        dump_voronoi=args.dump_voronoi,
    ).validate()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        fmt = args.output_format.lower()
        if fmt not in VALID_FORMATS:
            raise ValueError(f"Unsupported output format: {args.output_format} "
                             f"(expected one of {VALID_FORMATS})")
        config = config_from_args(args)
        grid = load_volume(args.input)
        result = run_pipeline(grid, config)

        if result.diagram is not None:
            if config.out_csv:
                export_voronoi_csv(result.diagram, result.grid, config.out_csv)
            if config.dump_voronoi:
                dump_voronoi_diagram(result.diagram, config.dump_voronoi)

        write_mesh(args.output, result.surface, fmt, binary=args.binary)
    except (OSError, ValueError, DegenerateGeometryError) as e:
        print(f"vdc-extract: error: {e}", file=sys.stderr)
        return 1

    if result.surface.n_dropped:
        logger.warning(f"{result.surface.n_dropped} triangle(s) dropped by topology resolution")
    return 0


if __name__ == "__main__":
    sys.exit(main())
