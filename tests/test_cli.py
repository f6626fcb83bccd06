import json
import subprocess
import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

import shared.config
from stackeval.cli import cli

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def run(*args: str):
    return CliRunner().invoke(
        cli, [str(a) for a in args], obj={}, env={"COLUMNS": "200"}
    )


@pytest.fixture
def quiet_config(tmp_path: Path) -> Path:
    path = tmp_path / "quiet.toml"
    path.write_text('[global]\nlog_level = "ERROR"\ncolor = false\n')
    return path


def test_dump_listing(elf_path, dump_path):
    result = run("dump", elf_path, dump_path)

    assert result.exit_code == 0, result.output
    assert "Legend:" in result.output
    assert "stk+00ch" in result.output
    assert "main{0x1000 + 0x10 = 0x1010}" in result.output
    assert "helper{0x1100 + 0x4 = 0x1104}" in result.output
    assert "Symbol last ignored at 0x25000: zeroFunc" in result.output


def test_dump_without_legend(elf_path, dump_path):
    result = run("--no-legend", "dump", elf_path, dump_path)

    assert result.exit_code == 0
    assert "Legend:" not in result.output


def test_dump_window(elf_path, dump_path):
    result = run("dump", elf_path, dump_path, "0x80014", "0x80018")

    assert result.exit_code == 0, result.output
    assert "00080010:" in result.output
    assert "00080000:" not in result.output


def test_single_limit_is_usage_error(elf_path, dump_path):
    result = run("dump", elf_path, dump_path, "0x80000")

    assert result.exit_code == 2
    assert "LOWER and UPPER" in result.output


def test_invalid_address(elf_path):
    result = run("lookup", elf_path, "zz")

    assert result.exit_code == 2
    assert "not a valid address" in result.output


def test_trace(elf_path, dump_path):
    result = run("trace", elf_path, dump_path)

    assert result.exit_code == 0, result.output
    assert "Blank stack 0x80010-0x80018 (0x8 bytes)" in result.output
    assert "Frames" in result.output
    assert "zeroFunc" in result.output


def test_lookup(elf_path):
    hit = run("lookup", elf_path, "0x1010")
    miss = run("lookup", elf_path, "0x10")

    assert hit.exit_code == 0
    assert "0x1010 is main+0x10" in hit.output
    assert miss.exit_code == 0
    assert "No symbol contains 0x10" in miss.output


def test_loadonly(elf_path, dump_path):
    result = run("loadonly", elf_path, dump_path)

    assert result.exit_code == 0, result.output
    assert "PowerPC" in result.output
    assert "Decoded 32 bytes at 0x80000" in result.output


def test_symbols(elf_path):
    result = run("symbols", elf_path, "-n", "2")

    assert result.exit_code == 0, result.output
    assert "main" in result.output
    assert "helper" in result.output
    assert "5 symbols loaded" in result.output


def test_legend():
    result = run("legend")

    assert result.exit_code == 0
    assert result.output.count("local pointer") == 1
    assert "Legend:" not in result.output
    assert "local pointer" in result.output
    assert ".text zero-length" in result.output


def test_json_dump(elf_path, dump_path, quiet_config):
    result = run("--config", quiet_config, "--json", "dump", elf_path, dump_path)

    assert result.exit_code == 0, result.output
    report = json.loads(result.output)
    assert report["mode"] == "dump"
    assert report["binary"]["arch"]["machine"] == "PowerPC"
    assert report["dump"]["base_address"] == 0x80000
    assert report["decode"]["data_lines"] == 2
    assert report["result"]["rows"][0]["details"][0] == "main{0x1000 + 0x10 = 0x1010}"


def test_json_trace_reports_frames(elf_path, dump_path, quiet_config):
    result = run("--config", quiet_config, "--json", "trace", elf_path, dump_path)

    report = json.loads(result.output)
    assert [f["caller"]["name"] for f in report["result"]["frames"]] == [
        "main", "table", "zeroFunc", "helper",
    ]
    assert report["anomalies"] == []


def test_json_lookup(elf_path, quiet_config):
    result = run("--config", quiet_config, "--json", "lookup", elf_path, "0x3004")

    data = json.loads(result.output)
    assert data["symbol"]["name"] == "table"
    assert data["offset"] == 4


def test_output_files(elf_path, dump_path, tmp_path):
    json_path = tmp_path / "out" / "run.json"
    html_path = tmp_path / "run.html"

    assert run("--output", json_path, "dump", elf_path, dump_path).exit_code == 0
    assert run("--output", html_path, "trace", elf_path, dump_path).exit_code == 0

    assert json.loads(json_path.read_text())["mode"] == "dump"
    html = html_path.read_text()
    assert "<html" in html.lower()
    assert "zeroFunc" in html


def test_grammar_option(elf_path, tmp_path):
    path = tmp_path / "xxd.txt"
    path.write_text(
        "00080000: 0000 1010 0008 0010 0000 3004 0000 5010  ..........0...P.\n"
    )

    result = run("--grammar", "xxd", "dump", elf_path, path)

    assert result.exit_code == 0, result.output
    assert "main{0x1000 + 0x10 = 0x1010}" in result.output


def test_byte_order_override(elf_path, dump_path, quiet_config):
    result = run(
        "--config", quiet_config, "--json", "--byte-order", "little", "--word-width", "8",
        "loadonly", elf_path, dump_path,
    )

    assert result.exit_code == 0, result.output
    report = json.loads(result.output)
    assert report["dump"]["byte_order"] == "little"
    assert report["dump"]["word_width"] == 8
    assert report["binary"]["arch"]["byte_order"] == "big"


def test_not_an_elf(tmp_path, dump_path):
    binary = tmp_path / "notelf.bin"
    binary.write_bytes(b"\x00" * 64)

    result = run("dump", binary, dump_path)

    assert result.exit_code == 1
    assert "ERROR" in result.output
    assert "magic" in result.output


def test_discontinuous_dump(elf_path, tmp_path):
    path = tmp_path / "gap.txt"
    path.write_text("0x00080000:  00000000\n0x00080010:  00000000\n")

    result = run("dump", elf_path, path)

    assert result.exit_code == 1
    assert "expected 0x80004" in result.output
    assert "line 2" in result.output


def test_default_config_file_is_read(elf_path, tmp_path, monkeypatch):
    default = tmp_path / "stackeval.toml"
    default.write_text('[symbols]\nkinds = ["OBJECT"]\n')
    monkeypatch.setattr(shared.config, "_DEFAULT_CONFIG_PATH", default)

    result = run("symbols", elf_path)

    assert result.exit_code == 0, result.output
    assert "2 symbols loaded" in result.output


@pytest.mark.parametrize("module", ["stackeval.cli", "stackeval.analyzers.classifier",
                                    "stackeval.parsers.dump_decoder"])
def test_module_imports_in_fresh_interpreter(module):
    completed = subprocess.run(
        [sys.executable, "-c", f"import {module}"],
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
    )

    assert completed.returncode == 0, completed.stderr
