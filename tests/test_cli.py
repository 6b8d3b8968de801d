import pytest
from typer.testing import CliRunner

from conftest import make_pdf
from skriptor.cli.main import app

runner = CliRunner()

LONG = "Dieser Absatz ist lang genug, damit er als eigener Abschnitt bestehen bleibt."


@pytest.fixture
def pdf_file(tmp_path):
    path = tmp_path / "skript.pdf"
    path.write_bytes(
        make_pdf(
            [
                {"text": f"1. Grundlagen\n{LONG}\n{LONG}", "images": [(80, 60)]},
                {"text": f"2. Vertiefung\n{LONG}\n{LONG}", "images": [(90, 90), (10, 10)]},
            ]
        )
    )
    return path


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.delenv("SKRIPTOR_IMAGE_FORMAT", raising=False)
    monkeypatch.delenv("SKRIPTOR_BLOB_BACKEND", raising=False)


def test_segment_prints_outline(pdf_file):
    result = runner.invoke(app, ["segment", str(pdf_file)])

    assert result.exit_code == 0
    assert "1. Grundlagen" in result.output
    assert "2. Vertiefung" in result.output
    assert "p. 2" in result.output


def test_inspect_reports_pages(pdf_file):
    result = runner.invoke(app, ["inspect", str(pdf_file)])

    assert result.exit_code == 0
    assert "Pages" in result.output


def test_images_written_to_directory(pdf_file, tmp_path):
    out_dir = tmp_path / "out"

    result = runner.invoke(app, ["images", str(pdf_file), str(out_dir), "--format", "jpeg"])

    assert result.exit_code == 0
    assert sorted(p.name for p in out_dir.iterdir()) == ["page-1-img-0.jpeg", "page-2-img-0.jpeg"]


def test_missing_file_fails(tmp_path):
    result = runner.invoke(app, ["segment", str(tmp_path / "nope.pdf")])

    assert result.exit_code == 1


def test_ingest_without_database_is_a_configuration_error(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    result = runner.invoke(app, ["ingest", "doc-1", "user-1/skript.pdf", "--no-ai"])

    assert result.exit_code == 2
