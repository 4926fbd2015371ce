from __future__ import annotations

import json

import pytest

from scripts.manage_users import main


@pytest.fixture()
def data_dir(tmp_path, settings):
    return tmp_path / "data"


def _run(capsys, *argv):
    code = main(list(argv))
    return code, capsys.readouterr().out


def test_create_admin_then_list(data_dir, capsys):
    code, out = _run(capsys, "--mode", "file", "--data-dir", str(data_dir), "create-admin", "--username", "root", "--password", "Passw0rd!")
    assert code == 0
    assert "root" in out

    code, out = _run(capsys, "--mode", "file", "--data-dir", str(data_dir), "list")
    assert code == 0
    assert out.startswith("root\tadmin\tactive")


def test_create_admin_rejects_weak_password(data_dir):
    with pytest.raises(SystemExit):
        main(["--data-dir", str(data_dir), "create-admin", "--username", "root", "--password", "weak"])


def test_export_import_and_backups(data_dir, tmp_path, capsys):
    main(["--data-dir", str(data_dir), "create-admin", "--username", "root", "--password", "Passw0rd!"])
    target = tmp_path / "dump.json"
    code, _ = _run(capsys, "--data-dir", str(data_dir), "export", "--path", str(target), "--include-hashes")
    assert code == 0
    payload = json.loads(target.read_text(encoding="utf-8"))
    assert [u["username"] for u in payload["users"]] == ["root"]

    code, out = _run(capsys, "--data-dir", str(data_dir), "import", str(target))
    assert code == 0
    assert "root" in out

    code, out = _run(capsys, "--data-dir", str(data_dir), "backups")
    assert code == 0
    assert "\tadd\t0\t" in out


def test_audit_lists_recent_entries(data_dir, capsys):
    main(["--data-dir", str(data_dir), "create-admin", "--username", "root", "--password", "Passw0rd!"])
    capsys.readouterr()
    code, out = _run(capsys, "--data-dir", str(data_dir), "audit", "--limit", "1")
    assert code == 0
    assert len(out.strip().splitlines()) == 1
    assert "\tregister\troot\t" in out


def test_migrate_file_store_to_sql(data_dir, tmp_path, capsys):
    main(["--data-dir", str(data_dir), "create-admin", "--username", "root", "--password", "Passw0rd!"])
    url = f"sqlite:///{tmp_path / 'target.db'}"
    code, out = _run(capsys, "--data-dir", str(data_dir), "migrate-to-sql", "--target-url", url)
    assert code == 0
    assert "1 users added" in out

    code, out = _run(capsys, "--mode", "sql", "--database-url", url, "list")
    assert code == 0
    assert out.startswith("root\tadmin")

    # running it again keeps what is already there
    code, out = _run(capsys, "--data-dir", str(data_dir), "migrate-to-sql", "--target-url", url)
    assert code == 0
    assert "root" in out
