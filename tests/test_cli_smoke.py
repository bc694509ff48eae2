from typer.testing import CliRunner
from gridsync.main import app

runner = CliRunner()

def test_help_shows_commands():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "enrich" in result.stdout
    assert "sort" in result.stdout

def test_enrich_requires_input(tmp_path):
    result = runner.invoke(
        app,
        [
            "--log-dir", str(tmp_path / "logs"),
            "--report-dir", str(tmp_path / "reports"),
            "--latlon-search-url", "https://geo.local/",
            "enrich", "--source", "coordinates",
        ],
    )
    assert result.exit_code == 2

def test_sort_requires_existing_input(tmp_path):
    result = runner.invoke(
        app,
        [
            "--log-dir", str(tmp_path / "logs"),
            "--report-dir", str(tmp_path / "reports"),
            "sort", "--input", str(tmp_path / "missing.json"), "--by", "country",
        ],
    )
    assert result.exit_code == 2
