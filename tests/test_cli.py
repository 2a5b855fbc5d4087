"""Tests for the ssigen command line."""

from __future__ import annotations

from ssigen.cli import main


def test_build_command_writes_site(site, monkeypatch, capsys) -> None:
    site.write({"index.html": '<!--#include virtual="/includes/nav.html" -->', "includes/nav.html": "<nav></nav>"})
    monkeypatch.chdir(site.project)

    code = main(["build", "--source", "src", "--output", "dist"])

    assert code == 0
    assert site.out("index.html").read_text(encoding="utf-8") == "<nav></nav>"
    out = capsys.readouterr().out
    assert "Build completed in" in out
    assert "Processed: 1, Copied: 0, Skipped: 1" in out
    assert "Site generated in: dist" in out


def test_build_command_reads_config_defaults(site, monkeypatch) -> None:
    site.write({"index.html": "home"})
    (site.project / "site.toml").write_text('output = "public"\nbase_url = "https://example.com"\n', encoding="utf-8")
    monkeypatch.chdir(site.project)

    assert main(["build"]) == 0
    assert (site.project / "public" / "index.html").exists()
    assert (site.project / "public" / "sitemap.xml").exists()


def test_flags_override_config(site, monkeypatch) -> None:
    site.write({"index.html": "home"})
    (site.project / "site.toml").write_text('output = "public"\n', encoding="utf-8")
    monkeypatch.chdir(site.project)

    assert main(["build", "--output", "dist"]) == 0
    assert site.out("index.html").exists()
    assert not (site.project / "public").exists()


def test_build_failure_exits_nonzero(site, monkeypatch, capsys) -> None:
    site.write({"index.html": '<!--#include file="missing.html" -->'})
    monkeypatch.chdir(site.project)

    assert main(["build"]) == 1
    assert "Include file not found: missing.html" in capsys.readouterr().err


def test_invalid_config_and_workers_exit_nonzero(site, monkeypatch, capsys) -> None:
    monkeypatch.chdir(site.project)
    (site.project / "broken.json").write_text("{", encoding="utf-8")

    assert main(["build", "--config", "broken.json"]) == 1
    assert main(["build", "--workers", "-1"]) == 1
    assert "Invalid --workers value" in capsys.readouterr().err
