"""Tests for the xmlatlas command line."""

import json
import logging

import pytest
import yaml
from click.testing import CliRunner

from xmlatlas.cli import main, parse_log_level


@pytest.fixture
def corpus(tmp_path):
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "book1.xml").write_text('<book id="1"><title>A</title></book>')
    (docs / "book2.xml").write_text('<book id="2"><title>B</title></book>')
    (docs / "article.xml").write_text("<article><heading>X</heading></article>")
    (docs / "broken.xml").write_text("<not>closed")
    return docs


def _analyze(tmp_path, *args):
    runner = CliRunner()
    out = tmp_path / "out.json"
    result = runner.invoke(main, [
        "analyze", *args,
        "-o", str(out),
        "-c", str(tmp_path / "no-config.yaml"),
        "--no-progress",
    ])
    return result, out


class TestParseLogLevel:
    def test_known_levels(self):
        assert parse_log_level("trace") == logging.DEBUG
        assert parse_log_level("DEBUG") == logging.DEBUG
        assert parse_log_level("info") == logging.INFO
        assert parse_log_level("WARN") == logging.WARNING
        assert parse_log_level("error") == logging.ERROR

    def test_unknown_defaults_to_info(self):
        assert parse_log_level("invalid") == logging.INFO


class TestAnalyze:
    def test_groups_corpus(self, tmp_path, corpus):
        result, out = _analyze(tmp_path, str(corpus))
        assert result.exit_code == 0, result.output
        data = json.loads(out.read_text())
        assert data["total_files"] == 4
        assert data["processed_files"] == 3
        assert data["failed_files"] == 1
        assert data["unique_structures"] == 2
        assert data["groups"][0]["count"] == 2
        assert "Unique structures found: 2" in result.output
        assert "Results saved to" in result.output

    def test_no_pretty(self, tmp_path, corpus):
        result, out = _analyze(tmp_path, str(corpus), "--no-pretty")
        assert result.exit_code == 0, result.output
        assert "\n" not in out.read_text()

    def test_with_config_file(self, tmp_path, corpus):
        (corpus / "extra.tei").write_text("<TEI/>")
        config = tmp_path / "config.yaml"
        config.write_text(yaml.dump({
            "processing": {"file_extensions": ["xml"]},
            "output": {"include_paths": False},
        }))
        out = tmp_path / "result.json"
        result = CliRunner().invoke(main, [
            "analyze", str(corpus), "-c", str(config), "-o", str(out), "--no-progress",
        ])
        assert result.exit_code == 0, result.output
        data = json.loads(out.read_text())
        assert data["total_files"] == 4
        assert "files" not in data["groups"][0]

    def test_bad_config_exits(self, tmp_path, corpus):
        config = tmp_path / "bad.yaml"
        config.write_text("processing:\n  num_threads: lots\n")
        result = CliRunner().invoke(main, ["analyze", str(corpus), "-c", str(config)])
        assert result.exit_code == 1
        assert "Config error" in result.output

    def test_missing_directory(self, tmp_path):
        result, _ = _analyze(tmp_path, str(tmp_path / "nowhere"))
        assert result.exit_code == 1
        assert "does not exist" in result.output

    def test_no_xml_files(self, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        result, _ = _analyze(tmp_path, str(empty))
        assert result.exit_code == 1
        assert "No XML files found" in result.output

    def test_examples_included(self, tmp_path, corpus):
        result, out = _analyze(tmp_path, str(corpus), "--examples")
        assert result.exit_code == 0, result.output
        data = json.loads(out.read_text())
        assert "example_structure" in data["groups"][0]

    def test_with_progress_bar(self, tmp_path, corpus):
        out = tmp_path / "out.json"
        result = CliRunner().invoke(main, [
            "analyze", str(corpus), "-o", str(out), "-c", str(tmp_path / "none.yaml"),
        ])
        assert result.exit_code == 0, result.output
        assert json.loads(out.read_text())["unique_structures"] == 2


class TestSkeletonCommand:
    def test_yaml_output(self, tmp_path):
        path = tmp_path / "doc.xml"
        path.write_text('<book id="1"><chapter n="1"/><chapter t="x"/></book>')
        result = CliRunner().invoke(main, ["skeleton", str(path)])
        assert result.exit_code == 0, result.output
        data = yaml.safe_load(result.output)
        assert data["root"] == "book"
        assert data["skeleton"]["chapter"]["@attributes"] == ["n", "t"]
        assert len(data["hash"]) == 16

    def test_json_output(self, tmp_path):
        path = tmp_path / "doc.xml"
        path.write_text("<book><chapter/><chapter/></book>")
        result = CliRunner().invoke(main, ["skeleton", str(path), "-f", "json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["skeleton"] == {"chapter": {}}

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "bad.xml"
        path.write_text("<not>closed")
        result = CliRunner().invoke(main, ["skeleton", str(path)])
        assert result.exit_code == 1
        assert "Error reading" in result.output


class TestCheckCommand:
    def test_valid_file(self, tmp_path):
        path = tmp_path / "tei.xml"
        path.write_text("<TEI><text><body><div><head>T</head></div></body></text></TEI>")
        result = CliRunner().invoke(main, ["check", str(path)])
        assert result.exit_code == 0, result.output
        assert "Validation passed" in result.output

    def test_invalid_file_json(self, tmp_path):
        path = tmp_path / "tei.xml"
        path.write_text("<TEI><pb/></TEI>")
        result = CliRunner().invoke(main, ["check", str(path), "-f", "json"])
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data[0]["valid"] is False
        assert len(data[0]["errors"]) == 2

    def test_missing_file(self, tmp_path):
        result = CliRunner().invoke(main, ["check", str(tmp_path / "absent.xml")])
        assert result.exit_code == 1
