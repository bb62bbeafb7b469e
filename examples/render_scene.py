#!/usr/bin/env python3
"""Render a showcase scene with the Whitted ray tracer.

The scene has a checkered reflective floor, a mirror sphere, a glass sphere
with an air bubble, a striped cube, a cube carved by a sphere, a closed
cylinder with checkered caps and a cone, lit by a soft area light.

Usage:
    python -m examples.render_scene [options]

Options:
    --width WIDTH       Image width in pixels (default: 400)
    --height HEIGHT     Image height in pixels (default: 200)
    --grid N            Supersampling grid per axis (default: 1)
    --depth DEPTH       Reflection/refraction depth (default: 5)
    --output OUTPUT     Output file path (default: scene.png)
    --no-acceleration   Disable bounding-box culling
    --quiet             Suppress progress output

Example:
    python -m examples.render_scene --width 800 --height 400 --grid 3
"""

from __future__ import annotations

import argparse
import logging
import math
import sys
from pathlib import Path

import taichi as ti


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render the showcase scene.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--width", type=int, default=400, help="Image width in pixels (default: 400)")
    parser.add_argument("--height", type=int, default=200, help="Image height in pixels (default: 200)")
    parser.add_argument("--grid", type=int, default=1, help="Supersampling grid per axis (default: 1)")
    parser.add_argument("--depth", type=int, default=5, help="Reflection/refraction depth (default: 5)")
    parser.add_argument("--output", type=str, default="scene.png", help="Output file path (default: scene.png)")
    parser.add_argument("--no-acceleration", action="store_true", help="Disable bounding-box culling")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    return parser.parse_args()


def build_scene(max_depth: int = 5):
    """Create the showcase world.

    Returns:
        A World ready to render.
    """
    # Lazy imports to allow Taichi initialization first
    from src.whitted.core.transform import Transform
    from src.whitted.geometry.cone import Cone
    from src.whitted.geometry.cube import Cube
    from src.whitted.geometry.cylinder import Cylinder
    from src.whitted.geometry.plane import Plane
    from src.whitted.geometry.sphere import Sphere
    from src.whitted.materials.material import GLASS, Material
    from src.whitted.materials.patterns import (
        AlignmentCheck,
        CappedCylinderMap,
        Checkers,
        CubeMap,
        Solid,
        Striped,
        UVCheckers,
    )
    from src.whitted.scene.lights import AreaLight
    from src.whitted.scene.objects import Object, csg_difference, group
    from src.whitted.scene.world import World, WorldSettings

    floor = Object(
        Plane(),
        material=Material(
            Checkers((0.9, 0.9, 0.9), (0.2, 0.2, 0.25)),
            specular=0.0,
            reflective=0.15,
        ),
    )
    mirror = Object(
        Sphere(),
        Transform.translation(-1.6, 1, 0.6),
        Material(Solid((0.1, 0.1, 0.12)), diffuse=0.3, specular=1.0, shininess=300, reflective=0.9),
    )
    glass = Object(
        Sphere(),
        Transform.translation(0.6, 0.75, -0.8) @ Transform.scaling(0.75, 0.75, 0.75),
        Material(
            Solid((0.05, 0.05, 0.05)),
            diffuse=0.1,
            specular=1.0,
            shininess=300,
            reflective=0.1,
            transparency=0.9,
            refractive_index=GLASS,
            casts_shadow=False,
        ),
    )
    bubble = Object(
        Sphere(),
        Transform.translation(0.6, 0.75, -0.8) @ Transform.scaling(0.3, 0.3, 0.3),
        Material(
            Solid((0.0, 0.0, 0.0)),
            ambient=0.0,
            diffuse=0.0,
            transparency=1.0,
            refractive_index=1.0,
            casts_shadow=False,
        ),
    )
    cube = Object(
        Cube(),
        Transform.translation(2.4, 0.5, 1.2) @ Transform.rotation_y(math.pi / 5) @ Transform.scaling(0.5, 0.5, 0.5),
        Material(
            Striped((0.9, 0.4, 0.1), (1.0, 0.9, 0.6), transform=Transform.scaling(0.25, 1, 1)),
            specular=0.3,
        ),
    )
    card = AlignmentCheck((0.9, 0.9, 0.9))
    carved = csg_difference(
        Object(Cube(), material=Material(CubeMap(card, card, card, card, card, card), specular=0.2)),
        Object(Sphere(), Transform.scaling(1.3, 1.3, 1.3), Material(Solid((0.8, 0.2, 0.2)))),
        Transform.translation(-0.4, 0.5, 2.2) @ Transform.rotation_y(-math.pi / 6) @ Transform.scaling(0.5, 0.5, 0.5),
    )
    props = group(
        [
            Object(
                Cylinder(minimum=0, maximum=1.2, closed=True),
                Transform.translation(-3.2, 0, -1.5) @ Transform.scaling(0.4, 1, 0.4),
                Material(
                    CappedCylinderMap(
                        UVCheckers((0.2, 0.5, 0.9), (0.9, 0.9, 0.9), width=16, height=2),
                        UVCheckers((0.2, 0.5, 0.9), (0.9, 0.9, 0.9), width=4, height=4),
                        UVCheckers((0.2, 0.5, 0.9), (0.9, 0.9, 0.9), width=4, height=4),
                    ),
                    specular=0.6,
                    shininess=50,
                ),
            ),
            Object(
                Cone(minimum=-1, maximum=0, closed=True),
                Transform.translation(3.4, 1, -1.4) @ Transform.scaling(0.5, 1, 0.5),
                Material(Solid((0.3, 0.8, 0.3)), specular=0.4),
            ),
        ]
    )

    light = AreaLight((-6, 8, -6), (2, 0, 0), (0, 2, 0), 4, 4, (1.0, 1.0, 1.0), seed=1)
    settings = WorldSettings(max_depth=max_depth, background=(0.05, 0.07, 0.1))
    return World([floor, mirror, glass, bubble, cube, carved, props], [light], settings)


def render_scene(
    width: int = 400,
    height: int = 200,
    grid: int = 1,
    max_depth: int = 5,
    output_path: str = "scene.png",
    use_acceleration: bool = True,
    quiet: bool = False,
) -> Path:
    """Render the showcase scene and save it to a file.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
        grid: Supersampling grid size per axis.
        max_depth: Recursion depth for reflection and refraction.
        output_path: Output file path (PNG).
        use_acceleration: Whether to cull by bounding box.
        quiet: If True, suppress progress output.

    Returns:
        Path to the saved image file.
    """
    from src.whitted.camera.sampling import Grid
    from src.whitted.core.renderer import Renderer
    from src.whitted.preview.export import save_png

    world = build_scene(max_depth)
    renderer = Renderer(width, height, Grid(grid))
    camera = renderer.camera(math.pi / 3, (0, 2.5, -7), (0, 0.8, 0))

    def progress_callback(done: int, total: int) -> None:
        if not quiet:
            print(f"\r  Progress: {done}/{total} pixels ({100.0 * done / total:.1f}%)", end="", flush=True)

    canvas = renderer.render(world, camera, use_acceleration=use_acceleration, callback=progress_callback)
    if not quiet:
        print()

    output_file = Path(output_path)
    save_png(canvas, output_file, tone_map="reinhard", gamma=2.2)

    if not quiet:
        print(f"Saved to: {output_file.absolute()}")
        print(f"Render time: {renderer.last_render_seconds:.2f}s")

    return output_file


def main() -> int:
    """Main entry point."""
    args = parse_args()
    logging.basicConfig(level=logging.WARNING if args.quiet else logging.INFO)

    ti.init(arch=ti.cpu)

    try:
        render_scene(
            width=args.width,
            height=args.height,
            grid=args.grid,
            max_depth=args.depth,
            output_path=args.output,
            use_acceleration=not args.no_acceleration,
            quiet=args.quiet,
        )
        return 0
    except (ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
