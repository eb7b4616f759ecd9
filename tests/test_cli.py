from __future__ import annotations

import pytest

from adapterd import cli


def test_decode_class(capsys) -> None:
    assert cli.main(["decode-class", "0x5a010c"]) == 0
    out = capsys.readouterr().out
    assert "Major: computer" in out
    assert "Minor: laptop" in out
    assert "Services: networking, capturing, object transfer, telephony" in out


def test_decode_class_unsupported_major(capsys) -> None:
    assert cli.main(["decode-class", "0x200404"]) == 0
    out = capsys.readouterr().out
    assert "unsupported major class" in out
    assert "Services: audio" in out


def test_decode_class_bad_value(capsys) -> None:
    assert cli.main(["decode-class", "laptop"]) == 1


def test_introspect(capsys) -> None:
    assert cli.main(["introspect"]) == 0
    assert '<method name="DiscoverDevices"' in capsys.readouterr().out


def test_run_with_missing_config(tmp_path, capsys) -> None:
    assert cli.main(["run", "--config", str(tmp_path / "nope.yaml")]) == 1
    assert "Configuration error" in capsys.readouterr().err


def test_run_settings_from_arguments(tmp_path, monkeypatch) -> None:
    from adapterd.core import config

    monkeypatch.setattr(config, "DEFAULT_CONFIG_FILE", tmp_path / "absent.yaml")
    args = cli.parse_args(["run", "-a", "hci1", "-a", "hci2", "--storage-dir", str(tmp_path), "--session-bus"])
    settings = cli._settings_from_args(args)
    assert settings.adapter_ids() == [1, 2]
    assert settings.storage_dir == tmp_path
    assert settings.bus == "session"


def test_no_mode(capsys) -> None:
    assert cli.main([]) == 1


def test_version(capsys) -> None:
    with pytest.raises(SystemExit):
        cli.main(["--version"])
    assert "adapterd" in capsys.readouterr().out
