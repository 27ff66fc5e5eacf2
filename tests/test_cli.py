from __future__ import annotations

import json

import pytest

from connectors.url_expander import URLExpander
from service import cli
from tests.fake_http import FakeResponse, FakeSession


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(f"database:\n  path: {tmp_path / 'cli.db'}\n", encoding="utf-8")
    return str(path)


def test_generate_key(capsys, settings_file: str) -> None:
    assert cli.main(["--settings", settings_file, "generate-key"]) == 0
    assert len(capsys.readouterr().out.strip()) >= 32


def test_expand_without_urls(tmp_path, capsys, settings_file: str) -> None:
    source = tmp_path / "urls.txt"
    source.write_text("nothing to see here", encoding="utf-8")
    assert cli.main(["--settings", settings_file, "expand", str(source)]) == 2
    assert "No URLs provided" in capsys.readouterr().err


def test_expand_prints_one_outcome_per_line(tmp_path, capsys, monkeypatch, settings_file: str) -> None:
    session = FakeSession({"https://amzn.to/x": [FakeResponse(url="https://www.amazon.com/dp/B0ABCDEFGH")]})
    monkeypatch.setattr(
        cli,
        "URLExpander",
        lambda settings: URLExpander(settings=settings, session=session),
    )
    source = tmp_path / "urls.txt"
    source.write_text("amzn.to/x\n", encoding="utf-8")

    assert cli.main(["--settings", settings_file, "expand", str(source)]) == 0

    captured = capsys.readouterr()
    lines = captured.out.strip().splitlines()
    assert [json.loads(line)["asin"] for line in lines] == ["B0ABCDEFGH"]
    assert "1 unique ASINs: B0ABCDEFGH" in captured.err


def test_lookup_without_credentials(capsys, settings_file: str) -> None:
    assert cli.main(["--settings", settings_file, "lookup", "B0ABCDEFGH"]) == 1
    assert "PA API credentials not configured" in capsys.readouterr().err


def test_parser_requires_command() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_pairs_prints_mapping(tmp_path, capsys, settings_file: str) -> None:
    source = tmp_path / "tiles.html"
    source.write_text(
        '<div class="product_tile">'
        '<button data-prefix="ASIN" value="B0ABCDEFGH"></button>'
        '<button data-prefix="ID" value="amzn1.x"></button>'
        "</div>",
        encoding="utf-8",
    )
    assert cli.main(["--settings", settings_file, "pairs", str(source)]) == 0
    assert capsys.readouterr().out.strip() == "B0ABCDEFGH: amzn1.x"


def test_pairs_without_buttons(tmp_path, capsys, settings_file: str) -> None:
    source = tmp_path / "empty.html"
    source.write_text("<p></p>", encoding="utf-8")
    assert cli.main(["--settings", settings_file, "pairs", str(source)]) == 1
    assert "No ASIN/ID pairs found" in capsys.readouterr().err
