import pytest

from researcher import audit


@pytest.fixture(autouse=True)
def _isolated_audit(tmp_path, monkeypatch):
    monkeypatch.setattr(audit, "DB_URL", f"sqlite:///{tmp_path / 'audit.db'}")
    monkeypatch.setattr(audit, "AUDIT_ENABLED", True)
