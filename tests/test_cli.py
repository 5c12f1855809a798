"""
Tests for the command line entry point.
"""

import json

import pytest
from typer.testing import CliRunner

from enrichment_network import text_mining
from enrichment_network.cli import app

runner = CliRunner()

GMT = "\n".join(
    [
        "GOBP_IMMUNE_RESPONSE\tImmune response\tx1\tx2\tx3\tx4",
        "GOBP_INNATE_IMMUNE_RESPONSE\tInnate immune response\tx1\tx2\tx3\tx5",
        "GOBP_IMMUNE_SYSTEM_PROCESS\tImmune system process\tx1\tx2\tx4\tx5",
        "GOBP_DNA_REPAIR\tDNA repair\ty1\ty2\ty3",
        "GOBP_DNA_REPLICATION\tDNA replication\ty1\ty2\ty4",
        "GOBP_AXON_GUIDANCE\tAxon guidance\tz1\tz2",
    ]
)

RESULTS = "\n".join(
    [
        "Library\tRank\tTerm\tp-value",
        "GOBP\t1\tGOBP: IMMUNE RESPONSE\t0.0001",
        "GOBP\t2\tGOBP: INNATE IMMUNE RESPONSE\t0.001",
        "GOBP\t3\tGOBP: IMMUNE SYSTEM PROCESS\t0.002",
        "GOBP\t4\tGOBP: DNA REPAIR\t0.003",
        "GOBP\t5\tGOBP: DNA REPLICATION\t0.004",
        "GOBP\t6\tGOBP: AXON GUIDANCE\t0.2",
    ]
)


@pytest.fixture
def inputs(tmp_path):
    gmt = tmp_path / "GOBP.gmt"
    gmt.write_text(GMT + "\n")
    results = tmp_path / "results.tsv"
    results.write_text(RESULTS + "\n")
    return gmt, results


@pytest.fixture
def offline_text_defaults(monkeypatch):
    """Replace the NLTK stop words and lemmatizer so the CLI needs no corpus download."""
    monkeypatch.setattr(text_mining, "default_stop_words", lambda: {"of", "the", "and"})
    monkeypatch.setattr(text_mining, "default_lemmatizer", lambda: lambda token: token)


def test_cli_writes_results(inputs, tmp_path, offline_text_defaults):
    gmt, results = inputs
    output_dir = tmp_path / "out"
    result = runner.invoke(
        app,
        ["-l", str(gmt), "-r", str(results), "-p", "0.01", "-a", "connected_components", "-o", str(output_dir)],
    )
    assert result.exit_code == 0, result.output
    snapshot = json.loads((output_dir / "snapshot.json").read_text())
    assert snapshot["significant_gene_sets"] == 5
    assert [c["size"] for c in snapshot["clusters"]] == [3, 2]
    assert snapshot["clusters"][0]["terms"][0]["term"] == "immune"
    assert (output_dir / "edges.tsv").exists()


def test_cli_rejects_bad_method(inputs, tmp_path):
    gmt, results = inputs
    result = runner.invoke(app, ["-l", str(gmt), "-r", str(results), "--method", "cosine", "-o", str(tmp_path)])
    assert result.exit_code == 1


def test_cli_reports_pipeline_errors(inputs, tmp_path):
    gmt, results = inputs
    # a threshold of 1 leaves no edges, so clustering has nothing to work on
    result = runner.invoke(app, ["-l", str(gmt), "-r", str(results), "-t", "1.0", "-o", str(tmp_path / "out")])
    assert result.exit_code == 1
