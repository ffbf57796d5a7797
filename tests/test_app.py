"""Tests for the command-line bootstrap."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from polysync import app
from polysync.ai.client import OpenAITransformProvider
from polysync.ai.provider import CannedTransformProvider
from polysync.services.settings import Settings


@pytest.fixture
def cli(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    base = [
        "--settings-path",
        str(tmp_path / "settings.json"),
        "--set",
        f"store_path={tmp_path / 'store.json'}",
        "--set",
        "latency_min=0",
        "--set",
        "latency_max=0",
        "--set",
        "save_delay=0",
    ]

    def run(*argv: str) -> tuple[int, str, str]:
        code = app.main([*base, *argv])
        captured = capsys.readouterr()
        return code, captured.out, captured.err

    return run


def test_demo_then_show(cli) -> None:
    code, out, _ = cli("demo")
    document_id = out.strip()

    assert code == 0
    assert document_id.startswith("demo-")
    code, out, _ = cli("show", document_id)
    assert code == 0
    assert "<h1>Employee Remote Work Policy</h1>" in out


def test_transform_persists_result(cli, tmp_path: Path) -> None:
    source = tmp_path / "policy.html"
    source.write_text("<p>Alpha beta gamma</p>", encoding="utf-8")
    _, out, _ = cli("new", "Policy", "--file", str(source))
    document_id = out.strip()

    code, out, _ = cli("transform", document_id, "summarize", "--range", "3:13")

    assert code == 0
    assert out.startswith("<p><p><strong>Summary:</strong>")
    _, shown, _ = cli("show", document_id)
    assert shown.strip() == out.strip()


def test_chat_prints_reply_and_history(cli) -> None:
    _, out, _ = cli("new", "Empty")
    document_id = out.strip()

    code, out, _ = cli("chat", document_id, "Make it better")
    assert code == 0
    assert out.startswith("Here are some suggestions to improve your document")

    _, history, _ = cli("show", document_id, "--chat")
    assert history.splitlines()[0].startswith("[assistant] Hi! I'm your AI assistant.")
    assert "[user] Make it better" in history


def test_save_prints_indicator(cli) -> None:
    _, out, _ = cli("new", "Doc")

    code, out, _ = cli("save", out.strip())

    assert code == 0
    assert out.startswith("Last saved: ")


def test_export_writes_html(cli, tmp_path: Path) -> None:
    _, out, _ = cli("new", "Quarterly Report.docx")

    code, out, _ = cli("export", out.strip(), "--directory", str(tmp_path / "exports"))

    assert code == 0
    assert Path(out.strip()) == tmp_path / "exports" / "Quarterly Report.html"


def test_missing_document_reports_error(cli) -> None:
    code, _, err = cli("show", "does-not-exist")

    assert code == 1
    assert "doesn't exist" in err


def test_invalid_override_exits_with_usage_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = app.main(["--settings-path", str(tmp_path / "s.json"), "--set", "nonsense", "demo"])

    assert code == 2
    assert "Invalid --set override" in capsys.readouterr().err


def test_dump_settings_redacts_api_key(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = app.main(
        ["--settings-path", str(tmp_path / "s.json"), "--set", "api_key=sk-123456", "--dump-settings"]
    )

    payload = json.loads(capsys.readouterr().out)
    assert code == 0
    assert payload["settings"]["api_key"] == "sk*****56"
    assert payload["meta"]["cli_overrides"] == ["api_key"]
    assert payload["meta"]["secret_backend"] == "fernet"


def test_build_provider_selects_implementation() -> None:
    canned = app.build_provider(Settings(latency_min=0.0, latency_max=0.0))
    fallback = app.build_provider(Settings(provider="openai", api_key=""))
    real = app.build_provider(Settings(provider="openai", api_key="sk-test"))

    assert isinstance(canned, CannedTransformProvider)
    assert isinstance(fallback, CannedTransformProvider)
    assert isinstance(real, OpenAITransformProvider)
    assert real.settings.model == "gpt-4o-mini"


def test_coerce_cli_overrides() -> None:
    overrides = app._coerce_cli_overrides(  # noqa: SLF001
        [
            "autosave_interval=15",
            "debug_logging=yes",
            "organization=none",
            "default_headers={\"X-Test\": \"1\"}",
            "max_retries=5",
        ]
    )

    assert overrides == {
        "autosave_interval": 15.0,
        "debug_logging": True,
        "organization": None,
        "default_headers": {"X-Test": "1"},
        "max_retries": 5,
    }
    with pytest.raises(ValueError):
        app._coerce_cli_overrides(["unknown=1"])  # noqa: SLF001
