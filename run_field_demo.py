"""Run field analysis on the example loop pair and generate plots."""

from pathlib import Path

from magsim.analysis.magnetics import MagneticsAnalyzer
from magsim.core.config import SimulationSettings
from magsim.exporters.field_plots import generate_field_plots
from magsim.parsers.yaml_loader import load_sources


def main():
    sources_path = Path("examples/loops/sources.yaml")
    settings_path = Path("examples/settings.yaml")
    output_dir = Path("loops_output/field")

    print("[magnetics] Loading sources...")
    sources = load_sources(sources_path)
    settings = SimulationSettings.from_yaml(settings_path)

    print("[magnetics] Computing magnetic fields (Biot-Savart)...")
    analyzer = MagneticsAnalyzer()
    result = analyzer.run(
        sources, settings,
        lat_range=(44.998, 45.002),
        lon_range=(6.997, 7.003),
        altitude=10.0,
    )

    print("[magnetics] Loop sources:")
    for src in result.data.get("sources", []):
        print(
            f"  {src['name']:12s}  N={src['turns']:<5g} I={src['current']:8.3f} A"
            f"  centre = {src['center_field_tesla'] * 1e6:.3f} uT"
        )

    grid = result.data.get("field_grid", {})
    n = grid.get("resolution", 0) + 1
    print(f"[magnetics] B-field grid: {n}x{n} points")
    print(
        f"[magnetics] B-field range: {grid.get('min_b_tesla', 0) * 1e6:.4f} - "
        f"{grid.get('max_b_tesla', 0) * 1e6:.4f} uT"
    )
    for w in result.warnings:
        print(f"[magnetics] Warning: {w}")

    print("[magnetics] Generating plots...")
    plots = generate_field_plots(result.data, output_dir)
    print(f"[magnetics] Generated {len(plots)} images:")
    for p in plots:
        print(f"  {p}")

    print("[magnetics] Done.")


if __name__ == "__main__":
    main()
