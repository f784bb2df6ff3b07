import argparse
import json
import sys

import questionary
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import settings
from .errors import ExpressionError
from .grid_engine import ClipRange, ComplexGridResult, Domain, sample_grid
from .parse_engine import COMPLEX, MODES, REAL, evaluate_complex, evaluate_real, parse_expression
from .server import serve
from .stats_engine import auto_limits, grid_statistics

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="surface-backend",
        description="Sample z = f(x, y) (or Re/Im of f(z)) over a rectangle and summarize the surface.",
    )
    parser.add_argument("expression", nargs="?", help='e.g. "z = sin(x)cos(y)"; prompted for when omitted')
    parser.add_argument("--mode", choices=MODES, default=REAL)
    parser.add_argument("--latex", action="store_true", help="treat the expression as LaTeX")
    parser.add_argument("--domain", nargs=4, type=float, metavar=("XMIN", "XMAX", "YMIN", "YMAX"),
                        default=list(settings.DEFAULT_DOMAIN))
    parser.add_argument("--resolution", type=int, default=settings.DEFAULT_RESOLUTION)
    parser.add_argument("--clip", nargs=2, type=float, metavar=("MIN", "MAX"))
    parser.add_argument("--percentile", type=float, default=settings.DEFAULT_PERCENTILE)
    parser.add_argument("--point", nargs=2, type=float, metavar=("X", "Y"), help="also evaluate at one point")
    parser.add_argument("--json", action="store_true", help="print the full grid as JSON instead of a summary")
    parser.add_argument("--serve", action="store_true", help="run the JSON-lines bridge on stdin/stdout")
    return parser


def _ask_expression(mode: str) -> str:
    hint = "z = x^2 + y^2" if mode == REAL else "z^2 + 1"
    return questionary.text(
        f"Expression ({mode} mode):",
        default=hint,
        validate=lambda text: bool(text.strip()) or "Enter an expression.",
    ).ask()


def _summary_table(grid, limits, stats) -> Table:
    table = Table(title="Surface summary", show_header=True, header_style="bold magenta")
    table.add_column("Quantity", style="cyan")
    table.add_column("Value", justify="right")

    if isinstance(grid, ComplexGridResult):
        table.add_row("Re range", f"{grid.real_min:.6g} .. {grid.real_max:.6g}")
        table.add_row("Im range", f"{grid.imaginary_min:.6g} .. {grid.imaginary_max:.6g}")
        table.add_row("Re mean / median", f"{stats.mean:.6g} / {stats.median:.6g}")
        table.add_row("Im mean / median", f"{stats.imaginary_mean:.6g} / {stats.imaginary_median:.6g}")
    else:
        table.add_row("z range", f"{grid.z_min:.6g} .. {grid.z_max:.6g}")
        table.add_row("mean / median", f"{stats.mean:.6g} / {stats.median:.6g}")
    table.add_row("auto range", f"{limits[0]:.6g} .. {limits[1]:.6g}")
    table.add_row("valid cells", f"{stats.valid_count} / {stats.total_count}")
    table.add_row("NaN cells", str(stats.nan_count))
    return table


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.serve:
        serve()
        return 0

    expression = args.expression or _ask_expression(args.mode)
    if not expression:
        console.print("[bold yellow]No expression given.[/bold yellow]")
        return 1

    try:
        compiled = parse_expression(expression, args.mode, latex=args.latex)
        domain = Domain(*args.domain)
        clip = ClipRange(*args.clip) if args.clip else None
    except ExpressionError as e:
        console.print(f"[bold red]{e.error_type}:[/bold red] {e}")
        return 2
    except ValueError as e:
        console.print(f"[bold red]Invalid arguments:[/bold red] {e}")
        return 2

    with Progress(SpinnerColumn(), TextColumn("[bold blue]{task.description}"), console=console, transient=True) as progress:
        progress.add_task(description=f"Sampling {args.resolution}x{args.resolution} grid...", total=None)
        try:
            grid = sample_grid(compiled, domain, args.resolution, clip)
        except ValueError as e:
            console.print(f"[bold red]Invalid arguments:[/bold red] {e}")
            return 2

    limits = auto_limits(grid, args.percentile)
    stats = grid_statistics(grid)

    if args.json:
        payload = {"grid": grid.to_dict(), "limits": list(limits), "stats": stats.to_dict()}
        sys.stdout.write(json.dumps(payload) + "\n")
        return 0

    console.print(Panel.fit(
        f"[bold cyan]{compiled.expression}[/bold cyan]\n"
        f"mode: {compiled.mode}   variables: {', '.join(compiled.variables) or '(none)'}",
        border_style="cyan",
    ))
    console.print(_summary_table(grid, limits, stats))

    if args.point:
        x, y = args.point
        if compiled.mode == COMPLEX:
            re_part, im_part = evaluate_complex(compiled, x, y)
            console.print(Panel(f"f({x:g} + {y:g}i) = {re_part:.6g} + {im_part:.6g}i", border_style="green"))
        else:
            console.print(Panel(f"f({x:g}, {y:g}) = {evaluate_real(compiled, x, y):.6g}", border_style="green"))
    return 0


if __name__ == "__main__":
    sys.exit(main())
