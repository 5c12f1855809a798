import logging
from pathlib import Path
from typing import List, Optional

import typer

from enrichment_network.config import (
    DEFAULT_ALGORITHM,
    DEFAULT_METHOD,
    DEFAULT_MIN_SIZE,
    DEFAULT_TEXT_FIELD,
    DEFAULT_THRESHOLD,
    DEFAULT_TOP_N,
    LOG_FORMAT,
    NetworkConfig,
)
from enrichment_network.exceptions import EnrichmentNetworkError
from enrichment_network.gene_set_library import (
    GeneSetLibrary,
    load_enrichment_results,
    merge_libraries,
    rekey_statistics,
)
from enrichment_network.pipeline import EnrichmentNetwork

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Cluster significant gene-sets into a similarity network and label the clusters",
    add_completion=False,
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


def run_network(
    libraries: List[Path],
    results: Path,
    config: NetworkConfig,
    p_threshold: Optional[float],
    output_dir: Path,
) -> EnrichmentNetwork:
    """Load the inputs, run the pipeline and save the result files."""
    logger.info(f"Loading {len(libraries)} gene set libraries")
    gene_set_libraries = [GeneSetLibrary(str(lib_path)) for lib_path in libraries]
    gene_sets = merge_libraries(gene_set_libraries)

    logger.info(f"Loading enrichment results: {results}")
    term_ids, stats = load_enrichment_results(str(results), p_threshold)
    significant = {}
    for library in gene_set_libraries:
        significant.update(library.subset(term_ids))
    logger.info(f"{len(significant)} of {len(term_ids)} significant terms found in the libraries")

    network = EnrichmentNetwork(
        gene_sets,
        significant=list(significant),
        statistics=rekey_statistics(stats, gene_sets),
        config=config,
        name=results.stem,
    )
    network.run()
    network.save_to_results_folder(output_dir)
    return network


@app.command(help="Build, cluster and characterise the gene-set network of an enrichment result")
def main(
    libraries: List[Path] = typer.Option(
        ...,
        "--library",
        "-l",
        exists=True,
        file_okay=True,
        dir_okay=False,
        help="Paths to GMT gene set library files.",
    ),
    results: Path = typer.Option(
        ...,
        "--results",
        "-r",
        exists=True,
        file_okay=True,
        dir_okay=False,
        help="Enrichment result TSV (Term and p-value columns) or a file with one term per line.",
    ),
    method: str = typer.Option(DEFAULT_METHOD, "--method", help="Similarity: 'jaccard' or 'overlap'"),
    threshold: float = typer.Option(DEFAULT_THRESHOLD, "--threshold", "-t", help="Minimum similarity for an edge"),
    algorithm: str = typer.Option(
        DEFAULT_ALGORITHM,
        "--algorithm",
        "-a",
        help="Clustering: louvain, greedy_modularity, label_propagation, connected_components or k_clique",
    ),
    min_size: int = typer.Option(DEFAULT_MIN_SIZE, "--min-size", help="Minimum cluster size"),
    text_field: str = typer.Option(
        DEFAULT_TEXT_FIELD, "--text-field", help="Text used to label clusters: 'name' or 'short_description'"
    ),
    top_n: int = typer.Option(DEFAULT_TOP_N, "--top-n", help="Number of terms per cluster"),
    p_threshold: Optional[float] = typer.Option(
        None, "--p-threshold", "-p", help="Raw p-value threshold applied to the results table"
    ),
    processes: Optional[int] = typer.Option(
        None, "--processes", help="Worker processes for the similarity computation"
    ),
    output_dir: Path = typer.Option(
        Path("network_results"), "--output-dir", "-o", help="Output directory for results"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
):
    """
    Run the enrichment network pipeline from the command line.
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)

    config = NetworkConfig(
        method=method,
        threshold=threshold,
        algorithm=algorithm,
        min_size=min_size,
        text_field=text_field,
        top_n=top_n,
        processes=processes,
    )
    try:
        config.validate()
    except EnrichmentNetworkError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Libraries: {len(libraries)} files")
    typer.echo(f"Results: {results}")
    typer.echo(f"Similarity: {method} >= {threshold}")
    typer.echo(f"Clustering: {algorithm} (min size {min_size})")
    typer.echo(f"Cluster terms: top {top_n} from {text_field}")
    typer.echo(f"Output Directory: {output_dir}")
    typer.echo("")

    try:
        network = run_network(libraries, results, config, p_threshold, output_dir)
    except (EnrichmentNetworkError, FileNotFoundError) as e:
        typer.echo(f"❌ Error during analysis: {e}", err=True)
        raise typer.Exit(code=1)

    for index, cluster in enumerate(network.clusters):
        terms = ", ".join(score.term for score in network.terms[index][:5])
        typer.echo(f"Cluster {index}: {cluster.size} gene-sets - {terms}")
    typer.echo(f"✅ Analysis completed successfully! Results saved to {output_dir}")


if __name__ == "__main__":
    app()
