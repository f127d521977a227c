# main_cli.py

import logging
from pathlib import Path
from typing import Optional, Tuple

import typer
from rich.console import Console
from rich.panel import Panel
from rich.pretty import pretty_repr
from rich.table import Table

from .config import settings, setup_logging
from .core.common_types import Currency, DFMLevel, DFMStatus, PrintParameters, QuoteRequest, QuoteResult, Rotation
from .core.exceptions import PrintEstimatorError
from .core import geometry, utils
from .advisory import (
    OrientationSuggestion, PrintabilityVerdict, SettingsSuggestion, SupportEstimate,
    parse_advisory, settings_suggestion_to_parameters
)
from .processes.print_3d.processor import Print3DProcessor
from .settings_store import StoreSettings, load_store_settings

# Initialize logging
setup_logging()
logger = logging.getLogger(__name__)

# --- Typer App Initialization ---
app = typer.Typer(help="3D print cost and time estimation CLI tool")
console = Console()

NO_ROTATION = (0.0, 0.0, 0.0)


def _load_store_cli(settings_path: Optional[Path]) -> StoreSettings:
    path = settings_path or settings.settings_file
    try:
        return load_store_settings(path)
    except PrintEstimatorError as e:
        console.print(f"[bold red]Error loading settings store: {e}[/]")
        raise typer.Exit(code=1)


def _read_advisory_file(model, path: Path):
    try:
        return parse_advisory(model, path.read_bytes())
    except (OSError, PrintEstimatorError) as e:
        console.print(f"[bold red]Invalid advisory file {path}: {e}[/]")
        raise typer.Exit(code=1)


def _print_dfm_report(result: QuoteResult):
    dfm_color = "green"
    if result.dfm_report.status == DFMStatus.WARNING: dfm_color = "yellow"
    elif result.dfm_report.status == DFMStatus.FAIL: dfm_color = "red"
    console.print(Panel(f"[bold {dfm_color}]{result.dfm_report.status.value}[/]", title="DFM Status", expand=False))

    if result.dfm_report.issues:
        console.print("\n[bold]DFM Issues Found:[/]")
        for issue in result.dfm_report.issues:
            level_color = "white"
            if issue.level == DFMLevel.CRITICAL: level_color = "bold red"
            elif issue.level == DFMLevel.ERROR: level_color = "red"
            elif issue.level == DFMLevel.WARN: level_color = "yellow"
            elif issue.level == DFMLevel.INFO: level_color = "blue"
            console.print(f"- [{level_color}]{issue.level.value}[/] ({issue.issue_type.value}): {issue.message}")
            if issue.recommendation:
                console.print(f"  [dim]Recommendation:[/dim] {issue.recommendation}")
            if issue.details:
                console.print(f"  [dim]Details:[/dim] {pretty_repr(issue.details)}")


# --- CLI Commands ---

@app.command()
def list_materials(
    settings_path: Optional[Path] = typer.Option(None, "--settings", "-s", help="Settings store JSON file (defaults to the packaged table)."),
    currency: Optional[Currency] = typer.Option(None, "--currency", "-c", case_sensitive=False, help="Currency for prices."),
):
    """Lists the materials in the settings store."""
    store = _load_store_cli(settings_path)
    currency = currency or settings.default_currency

    table = Table(title="Available Materials", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", width=10)
    table.add_column("Name")
    table.add_column("Density (g/cm³)", justify="right")
    table.add_column("Price / kg", justify="right")
    table.add_column("Max Size (mm)", justify="right")
    table.add_column("Speed Mod.", justify="right")
    table.add_column("Max Flow (mm³/s)", justify="right")

    for mat in store.materials:
        size = mat.max_size_mm
        table.add_row(
            mat.id,
            mat.name,
            f"{mat.density_g_cm3:.2f}",
            utils.format_money(mat.price_per_kg.for_currency(currency), currency.value),
            f"{size.x:g} x {size.y:g} x {size.z:g}",
            f"{mat.speed_modifier_percent:+g}%",
            f"{mat.max_flow_rate_mm3_s:g}" if mat.max_flow_rate_mm3_s is not None else "-",
        )

    console.print(table)


@app.command()
def analyze(
    file_path: Path = typer.Argument(..., exists=True, file_okay=True, dir_okay=False, readable=True, help="Path to the mesh file (.stl, .obj, .ply, .off, .3mf)"),
    rotate: Tuple[float, float, float] = typer.Option(NO_ROTATION, "--rotate", "-r", help="Euler rotation in degrees (X Y Z)."),
):
    """Measures volume, bounding dimensions and overhangs of a mesh."""
    rotation = Rotation(x=rotate[0], y=rotate[1], z=rotate[2])
    try:
        mesh = geometry.load_mesh(str(file_path))
        result = geometry.analyze_geometry(mesh, rotation)
        overhangs = int(geometry.classify_overhangs(mesh, rotation).sum())
        overhang_pct = geometry.overhang_area_fraction(mesh, rotation) * 100
    except (FileNotFoundError, PrintEstimatorError) as e:
        logger.error(f"Analysis failed for {file_path.name}: {e}", exc_info=True)
        console.print(f"[bold red]Analysis Failed: {e}[/]")
        raise typer.Exit(code=1)

    dims = result.dimensions_mm
    table = Table(title=f"Geometry: {file_path.name}", show_header=False, box=None, padding=(0, 1))
    table.add_column()
    table.add_column(justify="right")
    table.add_row("Facets:", f"{result.facet_count}")
    table.add_row("Volume:", f"{result.volume_cm3:.3f} cm³")
    table.add_row("Dimensions:", f"{dims.x:.2f} x {dims.y:.2f} x {dims.z:.2f} mm")
    table.add_row("Overhang Facets:", f"{overhangs} ({overhang_pct:.1f}% of area)")
    console.print(table)
    if result.is_degenerate:
        console.print("[yellow]Mesh is degenerate (no facets or no enclosed volume).[/]")


@app.command()
def quote(
    file_path: Path = typer.Argument(..., exists=True, file_okay=True, dir_okay=False, readable=True, help="Path to the mesh file (.stl, .obj, .ply, .off, .3mf)"),
    material_id: Optional[str] = typer.Option(None, "--material", "-m", help="Material ID (use 'list-materials' to see available IDs)"),
    nozzle: float = typer.Option(0.4, "--nozzle", help="Nozzle diameter in mm."),
    layer_height: float = typer.Option(0.2, "--layer-height", help="Layer height in mm."),
    infill: float = typer.Option(15.0, "--infill", help="Infill percent."),
    walls: int = typer.Option(2, "--walls", help="Number of perimeter walls."),
    quantity: int = typer.Option(1, "--quantity", "-q", min=1, help="Number of identical parts."),
    currency: Optional[Currency] = typer.Option(None, "--currency", "-c", case_sensitive=False, help="Quote currency."),
    support: Optional[float] = typer.Option(None, "--support", min=0, max=100, help="Support overhead percent (default: store setting)."),
    support_json: Optional[Path] = typer.Option(None, "--support-json", exists=True, dir_okay=False, help="Support estimate JSON from the advisory classifier."),
    rotate: Tuple[float, float, float] = typer.Option(NO_ROTATION, "--rotate", "-r", help="Euler rotation in degrees (X Y Z)."),
    orientation_json: Optional[Path] = typer.Option(None, "--orientation-json", exists=True, dir_okay=False, help="Orientation suggestion JSON from the advisory classifier."),
    printability_json: Optional[Path] = typer.Option(None, "--printability-json", exists=True, dir_okay=False, help="Printability verdict JSON from the advisory classifier; unprintable models are not quoted."),
    suggestion_json: Optional[Path] = typer.Option(None, "--suggestion-json", exists=True, dir_okay=False, help="Suggested material and settings JSON from the advisory classifier (replaces --material, --nozzle, --layer-height, --infill and --walls)."),
    settings_path: Optional[Path] = typer.Option(None, "--settings", "-s", help="Settings store JSON file (defaults to the packaged table)."),
    output_json: Optional[Path] = typer.Option(None, "--output", "-o", help="Save the full quote result as a JSON file."),
):
    """Analyzes a mesh, runs DFM checks and prints a cost and time quote."""
    if support is not None and support_json is not None:
        console.print("[bold red]Use either --support or --support-json, not both.[/]")
        raise typer.Exit(code=1)
    if orientation_json is not None and tuple(rotate) != NO_ROTATION:
        console.print("[bold red]Use either --rotate or --orientation-json, not both.[/]")
        raise typer.Exit(code=1)
    if (material_id is None) == (suggestion_json is None):
        console.print("[bold red]Give exactly one of --material or --suggestion-json.[/]")
        raise typer.Exit(code=1)

    if printability_json is not None:
        verdict = _read_advisory_file(PrintabilityVerdict, printability_json)
        if not verdict.is_printable:
            console.print(f"[bold red]Model reported as not printable: {file_path.name}[/]")
            for error in verdict.errors:
                console.print(f"- [red]{error}[/]")
            if verdict.is_repairable:
                console.print("[yellow]The model may be repairable; fix it and quote again.[/]")
            raise typer.Exit(code=1)

    if support_json is not None:
        support = _read_advisory_file(SupportEstimate, support_json).support_overhead_percent
    if orientation_json is not None:
        rotation = _read_advisory_file(OrientationSuggestion, orientation_json).rotation_degrees
    else:
        rotation = Rotation(x=rotate[0], y=rotate[1], z=rotate[2])

    currency = currency or settings.default_currency
    store = _load_store_cli(settings_path)

    if suggestion_json is not None:
        suggestion = _read_advisory_file(SettingsSuggestion, suggestion_json)
        try:
            parameters, material = settings_suggestion_to_parameters(suggestion, store)
        except PrintEstimatorError as e:
            console.print(f"[bold red]Suggested settings are not usable: {e}[/]")
            raise typer.Exit(code=1)
        material_id = material.id
        nozzle, layer_height = parameters.nozzle_diameter_mm, parameters.layer_height_mm
        infill, walls = parameters.infill_percent, parameters.wall_count

    console.print(f"Processing: [cyan]{file_path.name}[/]")
    console.print(f"Material: [cyan]{material_id}[/], Nozzle: {nozzle:g}mm, Layer: {layer_height:g}mm, "
                  f"Infill: {infill:g}%, Walls: {walls}, Quantity: {quantity}")

    try:
        request = QuoteRequest(
            material_id=material_id,
            parameters=PrintParameters(nozzle_diameter_mm=nozzle, layer_height_mm=layer_height,
                                       infill_percent=infill, wall_count=walls),
            quantity=quantity,
            currency=currency,
            rotation=rotation,
            support_percent=support,
        )
    except ValueError as e:
        console.print(f"[bold red]Invalid parameters: {e}[/]")
        raise typer.Exit(code=1)

    processor = Print3DProcessor(store)
    result = processor.generate_quote(file_path, request)

    # --- Print Summary ---
    console.print(f"\n--- Quote Result (ID: {result.quote_id}) ---")
    console.print(f"Total Processing Time: {result.processing_time_sec:.3f} seconds")
    _print_dfm_report(result)

    if result.price and result.simulation:
        price = result.price
        sim = result.simulation
        code = currency.value
        console.print("\n[bold]Cost & Time Estimate:[/]")
        cost_table = Table(show_header=False, box=None, padding=(0, 1))
        cost_table.add_column()
        cost_table.add_column(justify="right")
        cost_table.add_row("Material:", f"{result.material.name} ({result.material.id})")
        cost_table.add_row("Model Volume:", f"{result.geometry.volume_cm3:.3f} cm³")
        cost_table.add_row("Material Weight (per part):", f"{sim.material_grams:.2f} g")
        cost_table.add_row("Estimated Print Time (per part):", f"{result.estimated_process_time_str}")
        cost_table.add_row("Speed Scaling:", f"{sim.speed_scaling_factor:.3f}")
        cost_table.add_row("Material Cost:", utils.format_money(price.material_cost_total, code))
        cost_table.add_row("Machine Cost:", utils.format_money(price.machine_cost_total, code))
        cost_table.add_row(f"Discount ({price.discount_percent:g}%):", utils.format_money(price.discount_amount, code))
        cost_table.add_row("Per Part:", utils.format_money(price.per_unit_cost, code))
        cost_table.add_row("[bold green]Total Price:[/]", f"[bold green]{utils.format_money(price.total_cost, code)}[/]")
        console.print(cost_table)
    elif result.dfm_report.status == DFMStatus.FAIL:
        console.print("[red]Cost estimation skipped because DFM check failed.[/]")

    # --- Save JSON Output ---
    if output_json:
        try:
            output_json.parent.mkdir(parents=True, exist_ok=True)
            output_json.write_text(result.model_dump_json(indent=2))
            console.print(f"\n[green]Full quote result saved to: {output_json}[/]")
        except OSError as e:
            console.print(f"\n[bold red]Error saving JSON output to {output_json}: {e}[/]")
            raise typer.Exit(code=1)

    if result.error_message:
        console.print(f"\n[bold red]Quote Generation Failed: {result.error_message}[/]")
        raise typer.Exit(code=1)


# --- Main Execution ---
if __name__ == "__main__":
    app()
