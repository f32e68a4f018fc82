import json

import pytest

import run_audit
from app.config import Settings
from app.services.npm_audit import NpmAuditor
from conftest import FakeNpm, load_fixture


@pytest.fixture
def manifest(tmp_path):
    path = tmp_path / "package.json"
    path.write_text(json.dumps({"name": "svc", "dependencies": {"lodash": "4.17.15"}}), encoding="utf-8")
    return path


@pytest.fixture
def fake_npm(monkeypatch, tmp_path):
    scratch = tmp_path / "scratch"
    scratch.mkdir()

    def _install(fake):
        monkeypatch.setattr(run_audit, "NpmAuditor", lambda settings: NpmAuditor(Settings(temp_root=str(scratch)), runner=fake))
        return fake

    return _install


def test_exits_1_on_critical_findings(manifest, fake_npm, tmp_path, capsys):
    fake_npm(FakeNpm(audit_stdout=load_fixture("audit_v2_lodash.json")))
    md_path = tmp_path / "report.md"
    pdf_path = tmp_path / "report.pdf"

    code = run_audit.main([str(manifest), "--markdown", str(md_path), "--pdf", str(pdf_path)])

    assert code == 1
    assert "CRITICAL vulnerabilities detected!" in capsys.readouterr().out
    assert md_path.read_text(encoding="utf-8").startswith("# NPM Audit Report")
    assert pdf_path.read_bytes().startswith(b"%PDF")


def test_exits_0_when_clean(manifest, fake_npm, capsys):
    fake_npm(FakeNpm(audit_stdout=load_fixture("audit_v2_clean.json"), audit_exit=0))

    assert run_audit.main([str(manifest)]) == 0
    assert "Total vulnerabilities: 0" in capsys.readouterr().out


def test_exits_2_on_audit_error(manifest, fake_npm, capsys):
    fake_npm(FakeNpm(audit_stdout="garbage"))

    assert run_audit.main([str(manifest)]) == 2
    assert "Failed to parse npm audit output" in capsys.readouterr().err


def test_exits_2_on_missing_manifest(tmp_path):
    assert run_audit.main([str(tmp_path / "missing.json")]) == 2
