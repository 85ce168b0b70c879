"""Command-line interface for the Findr analysis pipeline."""

from __future__ import annotations

import sys
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from findr_analysis import __version__
from findr_analysis.utils.config import (
    COMBINATIONS,
    DAG_METHODS,
    OUTPUT_FORMATS,
    POSTERIOR_METHODS,
    Config,
    load_config,
)
from findr_analysis.utils.logging import setup_logging, get_logger

console = Console()
logger = get_logger(__name__)


def print_banner() -> None:
    """Print application banner."""
    console.print(
        "\n[bold blue]Findr Analysis Pipeline[/bold blue] "
        f"[dim]v{__version__}[/dim]\n"
    )


def _apply_overrides(
    config: Config,
    output_dir: Optional[str] = None,
    output_format: Optional[str] = None,
    method: Optional[str] = None,
    fdr: Optional[float] = None,
    combination: Optional[str] = None,
    no_normalize: bool = False,
) -> Config:
    """Override configuration values with command-line options."""
    if output_dir is not None:
        config.pipeline.output_dir = output_dir
    if output_format is not None:
        config.pipeline.output_format = output_format
    if method is not None:
        config.posterior.method = method
    if fdr is not None:
        config.inference.fdr = fdr
    if combination is not None:
        config.inference.combination = combination
    if no_normalize:
        config.normalization.enabled = False
    return config


def _collect_sources(sources: tuple[str, ...], sources_file: Optional[str]) -> Optional[list[str]]:
    """Merge repeated --source options and a sources file."""
    from findr_analysis.utils.io import read_lines

    names = list(sources)
    if sources_file:
        names.extend(read_lines(sources_file))
    return names or None


def _print_run_stats(runner, output_path) -> None:
    stats = runner.run_stats
    if stats:
        table = Table(title=f"{stats.mode.capitalize()} Summary")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")

        table.add_row("Samples", f"{stats.n_samples:,}")
        table.add_row("Sources", f"{stats.n_sources:,}")
        table.add_row("Targets", f"{stats.n_targets:,}")
        table.add_row("Pairs reported", f"{stats.n_pairs_reported:,}")
        table.add_row("Runtime", f"{stats.runtime_seconds:.1f}s")

        console.print(table)

    console.print(f"\n[green]Results:[/green] {output_path}")


def analysis_options(func):
    """Options shared by the analysis commands."""
    options = [
        click.option(
            "--output-dir", "-o",
            type=click.Path(),
            default=None,
            help="Output directory. Defaults to the configured one.",
        ),
        click.option(
            "--output-format",
            type=click.Choice(OUTPUT_FORMATS),
            default=None,
            help="Output table format.",
        ),
        click.option(
            "--method", "-m",
            type=click.Choice(POSTERIOR_METHODS),
            default=None,
            help="Posterior estimation method.",
        ),
        click.option(
            "--fdr",
            type=click.FloatRange(0, 1, min_open=True),
            default=None,
            help="Report pairs with q-value at or below this threshold.",
        ),
        click.option(
            "--no-normalize",
            is_flag=True,
            help="Expression is already supernormalized.",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.version_option(version=__version__, prog_name="findr-analysis")
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    help="Path to configuration file.",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose output.",
)
@click.option(
    "--quiet", "-q",
    is_flag=True,
    help="Suppress non-error output.",
)
@click.option(
    "--log-file",
    type=click.Path(),
    help="Path to log file.",
)
@click.pass_context
def main(
    ctx: click.Context,
    config: Optional[str],
    verbose: bool,
    quiet: bool,
    log_file: Optional[str],
) -> None:
    """
    Findr Analysis Pipeline.

    Infer gene coexpression, variant-gene association and causal gene
    regulation from expression and genotype data, with posterior
    probabilities and Bayesian FDR control.
    """
    ctx.ensure_object(dict)

    # Set up logging
    log_level = "DEBUG" if verbose else "WARNING" if quiet else "INFO"
    setup_logging(level=log_level, log_file=log_file)

    # Load configuration
    ctx.obj["config"] = load_config(config)
    ctx.obj["verbose"] = verbose

    if not quiet:
        print_banner()


@main.command()
@click.option(
    "--expression", "-e",
    type=click.Path(exists=True),
    help="Expression table (samples x genes).",
)
@click.option(
    "--genotypes", "-g",
    type=click.Path(exists=True),
    help="Genotype table (samples x variants).",
)
@click.option(
    "--output-dir", "-o",
    type=click.Path(),
    default="results/preprocessed",
    help="Output directory.",
)
@click.option(
    "--transpose",
    is_flag=True,
    help="Expression file is genes x samples.",
)
@click.option(
    "--min-variance",
    type=float,
    default=0.0,
    help="Remove genes with variance at or below this value.",
)
@click.pass_context
def normalize(
    ctx: click.Context,
    expression: Optional[str],
    genotypes: Optional[str],
    output_dir: str,
    transpose: bool,
    min_variance: float,
) -> None:
    """
    Supernormalize expression data and encode genotypes.

    Writes analysis-ready tables that can be passed to the analysis commands
    with --no-normalize.
    """
    from findr_analysis.preprocessing import ExpressionPreprocessor, GenotypePreprocessor

    config = ctx.obj["config"]

    if not expression and not genotypes:
        console.print("[red]Error:[/red] Provide --expression and/or --genotypes")
        sys.exit(1)

    try:
        if expression:
            preprocessor = ExpressionPreprocessor(
                min_variance=min_variance,
                rank_offset=config.normalization.rank_offset,
                output_dir=output_dir,
            )
            output_path = preprocessor.preprocess(expression, transpose=transpose)

            stats = preprocessor.qc_stats
            table = Table(title="Expression Summary")
            table.add_column("Metric", style="cyan")
            table.add_column("Value", justify="right")
            table.add_row("Initial genes", f"{stats.total_genes:,}")
            table.add_row("After variance filter", f"{stats.genes_after_variance_filter:,}")
            table.add_row("Samples", f"{stats.final_samples:,}")
            console.print(table)
            console.print(f"[green]Expression:[/green] {output_path}")

        if genotypes:
            preprocessor = GenotypePreprocessor(output_dir=output_dir)
            output_path = preprocessor.preprocess(genotypes)

            stats = preprocessor.qc_stats
            table = Table(title="Genotype Summary")
            table.add_column("Metric", style="cyan")
            table.add_column("Value", justify="right")
            table.add_row("Initial variants", f"{stats.total_variants:,}")
            table.add_row("After missing filter", f"{stats.variants_after_missing:,}")
            table.add_row("After monomorphic filter", f"{stats.variants_after_monomorphic:,}")
            table.add_row("Samples", f"{stats.total_samples:,}")
            console.print(table)
            console.print(f"[green]Genotypes:[/green] {output_path}")

    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


@main.command()
@click.option(
    "--expression", "-e",
    type=click.Path(exists=True),
    required=True,
    help="Expression table (samples x genes).",
)
@click.option(
    "--source", "-s",
    multiple=True,
    help="Source gene (repeatable). All genes if omitted.",
)
@click.option(
    "--sources-file",
    type=click.Path(exists=True),
    help="File with one source gene per line.",
)
@analysis_options
@click.pass_context
def coexpression(
    ctx: click.Context,
    expression: str,
    source: tuple[str, ...],
    sources_file: Optional[str],
    output_dir: Optional[str],
    output_format: Optional[str],
    method: Optional[str],
    fdr: Optional[float],
    no_normalize: bool,
) -> None:
    """
    Infer gene coexpression.

    Computes the posterior probability that each target gene is correlated
    with each source gene.
    """
    from findr_analysis.analysis import FindrRunner

    config = _apply_overrides(
        ctx.obj["config"], output_dir, output_format, method, fdr, no_normalize=no_normalize
    )

    try:
        runner = FindrRunner(config=config)
        output_path = runner.run_coexpression(
            expression, sources=_collect_sources(source, sources_file)
        )
        _print_run_stats(runner, output_path)

    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


@main.command()
@click.option(
    "--expression", "-e",
    type=click.Path(exists=True),
    required=True,
    help="Expression table (samples x genes).",
)
@click.option(
    "--genotypes", "-g",
    type=click.Path(exists=True),
    required=True,
    help="Genotype table (samples x variants).",
)
@click.option(
    "--source", "-s",
    multiple=True,
    help="Variant to test (repeatable). All variants if omitted.",
)
@click.option(
    "--sources-file",
    type=click.Path(exists=True),
    help="File with one variant per line.",
)
@analysis_options
@click.pass_context
def association(
    ctx: click.Context,
    expression: str,
    genotypes: str,
    source: tuple[str, ...],
    sources_file: Optional[str],
    output_dir: Optional[str],
    output_format: Optional[str],
    method: Optional[str],
    fdr: Optional[float],
    no_normalize: bool,
) -> None:
    """
    Infer variant-gene associations.

    Computes the posterior probability that each gene's expression depends on
    each variant.
    """
    from findr_analysis.analysis import FindrRunner

    config = _apply_overrides(
        ctx.obj["config"], output_dir, output_format, method, fdr, no_normalize=no_normalize
    )

    try:
        runner = FindrRunner(config=config)
        output_path = runner.run_association(
            expression, genotypes, sources=_collect_sources(source, sources_file)
        )
        _print_run_stats(runner, output_path)

    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


@main.command()
@click.option(
    "--expression", "-e",
    type=click.Path(exists=True),
    required=True,
    help="Expression table (samples x genes).",
)
@click.option(
    "--genotypes", "-g",
    type=click.Path(exists=True),
    required=True,
    help="Genotype table (samples x variants).",
)
@click.option(
    "--pairs", "-p",
    type=click.Path(exists=True),
    required=True,
    help="eQTL table (variant, gene).",
)
@click.option(
    "--source", "-s",
    multiple=True,
    help="Source gene A (repeatable). All genes with an eQTL if omitted.",
)
@click.option(
    "--sources-file",
    type=click.Path(exists=True),
    help="File with one source gene per line.",
)
@click.option(
    "--combination",
    type=click.Choice(COMBINATIONS),
    default=None,
    help="How the posteriors of tests 2-5 are combined.",
)
@click.option(
    "--dag",
    is_flag=True,
    help="Also mark the edges of a directed acyclic graph.",
)
@analysis_options
@click.pass_context
def causal(
    ctx: click.Context,
    expression: str,
    genotypes: str,
    pairs: str,
    source: tuple[str, ...],
    sources_file: Optional[str],
    combination: Optional[str],
    dag: bool,
    output_dir: Optional[str],
    output_format: Optional[str],
    method: Optional[str],
    fdr: Optional[float],
    no_normalize: bool,
) -> None:
    """
    Infer causal gene regulation.

    Uses the cis-eQTL of each source gene as instrument to compute the
    posterior probability that it regulates each target gene.
    """
    from findr_analysis.analysis import FindrRunner

    config = _apply_overrides(
        ctx.obj["config"],
        output_dir,
        output_format,
        method,
        fdr,
        combination,
        no_normalize=no_normalize,
    )

    try:
        runner = FindrRunner(config=config)
        output_path = runner.run_causal(
            expression,
            genotypes,
            pairs,
            sources=_collect_sources(source, sources_file),
            dag=dag,
        )
        _print_run_stats(runner, output_path)

    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


@main.command()
@click.option(
    "--results", "-r",
    type=click.Path(exists=True),
    required=True,
    help="Causal results file.",
)
@click.option(
    "--method",
    type=click.Choice(DAG_METHODS),
    default=None,
    help="DAG construction method.",
)
@click.option(
    "--output", "-o",
    type=click.Path(),
    default=None,
    help="Output file. Defaults to <results>_dag next to the results.",
)
@click.pass_context
def dag(
    ctx: click.Context,
    results: str,
    method: Optional[str],
    output: Optional[str],
) -> None:
    """
    Build a directed acyclic graph from causal results.

    Adds an inDAG column marking the edges kept in the graph.
    """
    from findr_analysis.analysis import FindrRunner

    config = ctx.obj["config"]
    if method is not None:
        config.inference.dag_method = method

    try:
        runner = FindrRunner(config=config)
        output_path = runner.run_dag(results, output)
        console.print(f"[green]DAG:[/green] {output_path}")

    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


@main.command()
@click.option(
    "--results", "-r",
    type=click.Path(exists=True),
    required=True,
    help="Findr results file.",
)
@click.option(
    "--output-dir", "-o",
    type=click.Path(),
    default="results/summary",
    help="Output directory.",
)
@click.option(
    "--fdr-threshold",
    type=float,
    default=0.05,
    help="FDR threshold for significance.",
)
@click.option(
    "--top",
    type=int,
    default=10,
    help="Number of top targets listed per source.",
)
@click.pass_context
def summarize(
    ctx: click.Context,
    results: str,
    output_dir: str,
    fdr_threshold: float,
    top: int,
) -> None:
    """
    Summarize Findr results.

    Generate summary statistics, a report, and tables of significant pairs
    and top targets.
    """
    from findr_analysis.analysis import FindrResults

    try:
        results_handler = FindrResults(
            results_file=results,
            fdr_threshold=fdr_threshold,
            output_dir=output_dir,
        )

        # Print summary
        if results_handler.summary:
            summary = results_handler.summary
            table = Table(title="Findr Results Summary")
            table.add_column("Metric", style="cyan")
            table.add_column("Value", justify="right")

            table.add_row("Total pairs", f"{summary.total_pairs:,}")
            table.add_row("Significant pairs", f"{summary.significant_pairs:,}")
            table.add_row("Sources tested", f"{summary.sources_tested:,}")
            table.add_row("Targets tested", f"{summary.targets_tested:,}")
            table.add_row("Sources with targets", f"{summary.sources_with_targets:,}")
            table.add_row("FDR threshold", f"{summary.fdr_threshold}")

            console.print(table)

        # Generate report
        report_path = results_handler.generate_report(n_top=top)
        console.print(f"\n[green]Report:[/green] {report_path}")

        # Save significant results and top targets
        sig_path = results_handler.save(significant_only=True)
        console.print(f"[green]Significant results:[/green] {sig_path}")

        top_targets = results_handler.get_top_targets(n=top)
        top_path = results_handler.output_dir / "top_targets.tsv"
        top_targets.to_csv(top_path, sep="\t", index=False)
        console.print(f"[green]Top targets:[/green] {top_path}")

    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


@main.command()
@click.option(
    "--output", "-o",
    type=click.Path(),
    default="config.yaml",
    help="Output configuration file path.",
)
def init_config(output: str) -> None:
    """
    Generate a default configuration file.

    Creates a YAML configuration file with all available options.
    """
    config = Config()
    config.save(output)
    console.print(f"[green]Configuration saved to:[/green] {output}")


@main.command()
@click.option(
    "--expression", "-e",
    type=click.Path(exists=True),
    help="Expression table.",
)
@click.option(
    "--genotypes", "-g",
    type=click.Path(exists=True),
    help="Genotype table.",
)
@click.option(
    "--pairs", "-p",
    type=click.Path(exists=True),
    help="eQTL table.",
)
@click.pass_context
def validate(
    ctx: click.Context,
    expression: Optional[str],
    genotypes: Optional[str],
    pairs: Optional[str],
) -> None:
    """
    Validate input files.

    Check format and integrity of input data files and the configuration.
    """
    from findr_analysis.utils.io import (
        read_eqtl_table,
        read_expression_table,
        read_genotype_table,
    )
    from findr_analysis.utils.validators import (
        validate_eqtl_pairs,
        validate_expression_matrix,
        validate_genotype_matrix,
        validate_sample_consistency,
    )

    all_valid = True
    expr_df = None
    geno_df = None

    errors = ctx.obj["config"].validate()
    if errors:
        console.print(f"\n[yellow]Configuration issues:[/yellow] {errors}")
        all_valid = False

    if expression:
        console.print(f"\n[cyan]Validating expression:[/cyan] {expression}")
        try:
            expr_df = read_expression_table(expression)
            result = validate_expression_matrix(expr_df)
            if result["valid"]:
                console.print("  [green]Valid format[/green]")
                console.print(f"  Samples: {result['n_samples']}")
                console.print(f"  Genes: {result['n_genes']}")
            else:
                console.print(f"  [yellow]Issues:[/yellow] {result['issues']}")
                all_valid = False
        except Exception as e:
            console.print(f"  [red]Error:[/red] {e}")
            all_valid = False

    if genotypes:
        console.print(f"\n[cyan]Validating genotypes:[/cyan] {genotypes}")
        try:
            geno_df = read_genotype_table(genotypes)
            result = validate_genotype_matrix(geno_df)
            if result["valid"]:
                console.print("  [green]Valid format[/green]")
                console.print(f"  Samples: {result['n_samples']}")
                console.print(f"  Variants: {result['n_variants']}")
            else:
                console.print(f"  [yellow]Issues:[/yellow] {result['issues']}")
                all_valid = False
            if result["monomorphic"]:
                console.print(f"  Monomorphic variants: {len(result['monomorphic'])}")
        except Exception as e:
            console.print(f"  [red]Error:[/red] {e}")
            all_valid = False

    if expr_df is not None and geno_df is not None:
        try:
            overlap = validate_sample_consistency(list(geno_df.index), list(expr_df.index))
            console.print(f"\n[cyan]Common samples:[/cyan] {len(overlap['common'])}")
        except Exception as e:
            console.print(f"\n[red]Error:[/red] {e}")
            all_valid = False

    if pairs:
        console.print(f"\n[cyan]Validating eQTL pairs:[/cyan] {pairs}")
        try:
            pairs_df = read_eqtl_table(pairs)
            if expr_df is not None and geno_df is not None:
                result = validate_eqtl_pairs(
                    pairs_df,
                    list(geno_df.columns.astype(str)),
                    list(expr_df.columns.astype(str)),
                )
                console.print(f"  Pairs: {result['n_pairs']}")
                console.print(f"  Usable: {result['n_usable']}")
                if result["issues"]:
                    console.print(f"  [yellow]Issues:[/yellow] {result['issues']}")
                if result["n_usable"] == 0:
                    all_valid = False
            else:
                console.print(f"  Pairs: {len(pairs_df)}")
        except Exception as e:
            console.print(f"  [red]Error:[/red] {e}")
            all_valid = False

    if all_valid:
        console.print("\n[green]All validations passed![/green]")
    else:
        console.print("\n[red]Some validations failed.[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
