"""Tests for argument parsing and command dispatch."""

import json

import pytest

from site_migrator.cli import _ensure_command_prefix, build_config, main, parse_args

BASE = "https://obraabc.org"


def test_command_prefix_defaults_to_full():
    commands = ("crawl", "full")
    assert _ensure_command_prefix([], commands) == ("full",)
    assert _ensure_command_prefix(["--base-url", BASE], commands) == ("full", "--base-url", BASE)
    assert _ensure_command_prefix(["crawl", "--verbose"], commands) == ["crawl", "--verbose"]
    assert _ensure_command_prefix(["--help"], commands) == ["--help"]


def test_build_config_from_arguments(tmp_path):
    args = parse_args(
        [
            "crawl",
            "--base-url", f"{BASE}/",
            "--output", str(tmp_path),
            "--batch-size", "3",
            "--batch-delay", "0.5",
            "--timeout", "10",
            "--wait", "0",
            "--headed",
        ]
    )
    config = build_config(args)

    assert config.base_url == BASE
    assert config.output_root == tmp_path.resolve()
    assert config.batch_size == 3
    assert config.batch_delay == 0.5
    assert config.navigation_timeout == 10
    assert config.settle_delay == 0
    assert not config.headless


def test_base_url_from_environment(monkeypatch):
    monkeypatch.setenv("SITE_MIGRATOR_BASE_URL", BASE)
    args = parse_args(["process"])
    assert args.base_url == BASE
    assert not hasattr(args, "timeout")


def test_base_url_is_required(monkeypatch):
    monkeypatch.delenv("SITE_MIGRATOR_BASE_URL", raising=False)
    with pytest.raises(SystemExit):
        parse_args(["process"])


def test_invalid_batch_size_fails(tmp_path):
    assert main(["process", "--base-url", BASE, "--output", str(tmp_path), "--batch-size", "0"]) == 1


def test_stage_failure_exits_non_zero(tmp_path):
    assert main(["validate", "--base-url", BASE, "--output", str(tmp_path)]) == 1


def test_process_command(tmp_path):
    crawl_dir = tmp_path / "crawled-data"
    crawl_dir.mkdir()
    (crawl_dir / "pages-data.json").write_text(
        json.dumps(
            [
                {
                    "url": f"{BASE}/contato/",
                    "fetched_at": "2024-01-01T00:00:00+00:00",
                    "title": "Contato | Obra ABC",
                    "main_html": "<h1>Contato</h1><p>Fale com a nossa equipe pelo telefone.</p>",
                }
            ]
        ),
        encoding="utf-8",
    )

    assert main(["process", "--base-url", BASE, "--output", str(tmp_path)]) == 0
    assert (tmp_path / "src" / "content" / "pages" / "contato.md").exists()
    assert (tmp_path / "public" / "_redirects").read_text(encoding="utf-8") == "/contato/ /contato 301\n"
