from __future__ import annotations
import logging
import math
import os
import sys

import numpy as np
from PIL import Image as PILImage

from svg_builder import DocumentBuilder
from svg_errors import SVGError
from svg_rasterizer import Rasterizer, create_rasterizer
from svg_units import DEFAULT_DPI

def flatten_onto_background(pixels: np.ndarray, background: tuple[int, int, int]) -> np.ndarray:
    """Composite straight-alpha RGBA pixels over an opaque colour, returning RGB."""
    alpha = pixels[:, :, 3:4].astype(np.float32) / 255.0
    rgb = pixels[:, :, :3].astype(np.float32)
    bg = np.array(background, dtype=np.float32)
    return np.rint(rgb * alpha + bg * (1.0 - alpha)).astype(np.uint8)

def process_svg_file(svg_path: str, rasterizer: Rasterizer, output_path: str = None,
                     verbose: bool = False, scale: float = 1.0, width: int = None,
                     height: int = None, dpi: float = DEFAULT_DPI,
                     background: tuple[int, int, int] = None, skip_render: bool = False):
    if not os.path.exists(svg_path):
        print(f"Error: File not found: {svg_path}")
        return False

    if not svg_path.lower().endswith('.svg'):
        print(f"Warning: {svg_path} does not have .svg extension")

    try:
        with open(svg_path, 'rb') as file:
            data = file.read()
        builder = DocumentBuilder(dpi=dpi)
        image = builder.build(data.decode('utf-8-sig'))
    except (OSError, UnicodeDecodeError, SVGError) as e:
        print(f"Error processing {svg_path}: {e}")
        return False

    if verbose:
        print(f"\nProcessing: {svg_path}")
        print(f"Size: {image.width:g}x{image.height:g}, {len(image.shapes)} shape(s)")
        builder.print_validation_report()

    if output_path is None:
        base_name = os.path.splitext(os.path.basename(svg_path))[0]
        output_path = f"{base_name}.png"

    if width is None:
        width = max(1, int(math.ceil(image.width * scale)))
    if height is None:
        height = max(1, int(math.ceil(image.height * scale)))

    if verbose:
        print(f"Output will be: {output_path}")
        print(f"Output dimensions: {width}x{height} at scale {scale:g}")
        if background is not None:
            print(f"Background color: RGB{background}")

    if skip_render:
        print(f"[OK] Parsed: {svg_path} -> {output_path} (rendering skipped)")
        return True

    try:
        pixels = rasterizer.rasterize_array(image, 0.0, 0.0, scale, width, height)
    except SVGError as e:
        print(f"Error during rendering: {e}")
        return False

    try:
        if background is not None:
            png = PILImage.fromarray(flatten_onto_background(pixels, background), 'RGB')
        else:
            png = PILImage.fromarray(pixels, 'RGBA')
        png.save(output_path)
    except OSError as e:
        print(f"Error saving PNG: {e}")
        return False

    if verbose:
        print(f"[OK] Rendered and saved: {output_path}")
    else:
        print(f"[OK] {svg_path} -> {output_path}")
    return True

def print_usage():
    print("SVG to PNG Converter")
    print("Usage: python main.py <svg_file1> [svg_file2] ... [options]")
    print("\nOptions:")
    print("  -v, --verbose         Print detailed information and debug logging")
    print("  -o, --output PATH     Specify output directory or file")
    print("  -s, --scale SCALE     Scale factor applied to the drawing (default: 1)")
    print("  -w, --width WIDTH     Override output width in pixels")
    print("  -h, --height HEIGHT   Override output height in pixels")
    print("  --dpi DPI             Resolution for physical units (default: 96)")
    print("  -b, --background RGB  Flatten onto a background colour R,G,B (default: transparent)")
    print("  --skip-render         Skip rendering (only parse and validate)")
    print("\nExamples:")
    print("  python main.py test.svg")
    print("  python main.py *.svg -v")
    print("  python main.py test.svg -s 2")
    print("  python main.py test.svg -w 800 -h 600")
    print("  python main.py test.svg -b 255,255,255  # White background")

def parse_positive(value: str, kind=float):
    number = kind(value)
    if not math.isfinite(number) or number <= 0:
        raise ValueError(value)
    return number

def main(args: list[str] = None):
    if args is None:
        args = sys.argv[1:]

    if len(args) == 0:
        print_usage()
        return 1

    verbose = False
    output_dir = None
    scale = 1.0
    width = None
    height = None
    dpi = DEFAULT_DPI
    background = None
    skip_render = False
    svg_files = []

    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ['-v', '--verbose']:
            verbose = True
        elif arg == '--skip-render':
            skip_render = True
        elif arg in ['-o', '--output', '-s', '--scale', '-w', '--width', '-h', '--height',
                     '--dpi', '-b', '--background']:
            if i + 1 >= len(args):
                print(f"Error: {arg} requires a value")
                return 1
            value = args[i + 1]
            i += 1
            try:
                if arg in ['-o', '--output']:
                    output_dir = value
                elif arg in ['-s', '--scale']:
                    scale = parse_positive(value)
                elif arg in ['-w', '--width']:
                    width = parse_positive(value, int)
                elif arg in ['-h', '--height']:
                    height = parse_positive(value, int)
                elif arg == '--dpi':
                    dpi = parse_positive(value)
                else:
                    rgb_parts = value.split(',')
                    if len(rgb_parts) != 3:
                        raise ValueError(value)
                    background = tuple(max(0, min(255, int(part.strip()))) for part in rgb_parts)
            except ValueError:
                print(f"Error: invalid value for {arg}: {value}")
                return 1
        elif arg.startswith('-'):
            print(f"Unknown option: {arg}")
            return 1
        else:
            svg_files.append(arg)
        i += 1

    if len(svg_files) == 0:
        print("Error: No SVG files specified")
        return 1

    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    success_count = 0
    with create_rasterizer() as rasterizer:
        for svg_file in svg_files:
            output_path = None
            if output_dir:
                if os.path.isdir(output_dir):
                    base_name = os.path.splitext(os.path.basename(svg_file))[0]
                    output_path = os.path.join(output_dir, f"{base_name}.png")
                elif len(svg_files) == 1:
                    output_path = output_dir
                else:
                    print("Warning: -o with multiple files requires a directory, not a file")

            if process_svg_file(svg_file, rasterizer, output_path, verbose, scale, width, height,
                                dpi, background, skip_render):
                success_count += 1

    print(f"\nProcessed {success_count}/{len(svg_files)} file(s) successfully")
    return 0 if success_count == len(svg_files) else 1

if __name__ == "__main__":
    sys.exit(main())
