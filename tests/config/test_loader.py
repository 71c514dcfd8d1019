from pathlib import Path
import textwrap

import pytest
from pydantic import ValidationError

from agentkeys.config.loader import load_config
from agentkeys.config.models import DEFAULT_KEYRING, DEFAULT_CURRENT_KEY_NAME


def test_load_config_defaults(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("AGENTKEYS_SECRETS_FILE", raising=False)
    f = tmp_path / "agentkeys.yaml"
    f.write_text("fail_fast: true\n")
    cfg = load_config(f)
    assert cfg.fail_fast is True
    assert cfg.keyring.path == DEFAULT_KEYRING
    assert cfg.keyring.current_key_name == DEFAULT_CURRENT_KEY_NAME
    ids = [r.identifier for r in cfg.keyring.records()]
    assert ids[0] == "CURRENT"
    assert "D75CEA17048B9ACBF186794B32637D44F14F620E" in ids
    assert cfg.hosts == []


def test_load_config_keys_hosts_and_env(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("AGENTKEYS_SECRETS_FILE", raising=False)
    monkeypatch.setenv("KEY_MIRROR", "https://mirror.example.test")
    cfg_text = textwrap.dedent("""
        keyring:
          path: /etc/apt/keyrings/agent.gpg
          current_key_name: LATEST
          keys:
            LATEST: ${KEY_MIRROR}/LATEST.public
            ABC123: ${KEY_MIRROR}/keyring.gpg
        agent:
          version: "7.50.0"
        hosts:
          - hostname: web-1
            address: 10.0.0.11
            username: ubuntu
            become: true
          - hostname: win-1
            address: 10.0.0.20
            os_family: windows
    """)
    f = tmp_path / "agentkeys.yaml"
    f.write_text(cfg_text)
    cfg = load_config(f)

    records = cfg.keyring.records()
    assert [r.identifier for r in records] == ["LATEST", "ABC123"]
    assert records[1].source_url == "https://mirror.example.test/keyring.gpg"
    assert cfg.keyring.current_key_name == "LATEST"
    assert cfg.hosts[0].become is True
    assert cfg.hosts[0].port == 22
    assert cfg.hosts[1].os_family == "windows"


def test_secrets_are_merged_by_hostname(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("AGENTKEYS_SECRETS_FILE", raising=False)
    (tmp_path / "agentkeys.yaml").write_text(textwrap.dedent("""
        hosts:
          - hostname: web-1
            address: 10.0.0.11
          - hostname: web-2
            address: 10.0.0.12
    """))
    (tmp_path / "secrets.yaml").write_text(textwrap.dedent("""
        hosts:
          - hostname: web-2
            password: s3cret
    """))
    cfg = load_config(tmp_path / "agentkeys.yaml")
    assert cfg.hosts[0].password is None
    assert cfg.hosts[1].password == "s3cret"
    assert len(cfg.hosts) == 2


def test_explicit_secrets_file(tmp_path: Path, monkeypatch):
    secrets = tmp_path / "elsewhere.yaml"
    secrets.write_text("keyring:\n  gpg_binary: gpg2\n")
    monkeypatch.setenv("AGENTKEYS_SECRETS_FILE", str(secrets))
    (tmp_path / "agentkeys.yaml").write_text("keyring:\n  path: /tmp/k.gpg\n")
    cfg = load_config(tmp_path / "agentkeys.yaml")
    assert cfg.keyring.gpg_binary == "gpg2"
    assert cfg.keyring.path == "/tmp/k.gpg"


def test_invalid_url_rejected(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("AGENTKEYS_SECRETS_FILE", raising=False)
    f = tmp_path / "agentkeys.yaml"
    f.write_text("keyring:\n  keys:\n    ABC123: not-a-url\n")
    with pytest.raises(ValidationError):
        load_config(f)


def test_missing_config_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")
