import json
import os
import stat
import sys

import pytest

from kubetester import multi
from kubetester.multi import (
    TesterClause,
    expand_env,
    main,
    prepare_testers,
    run_testers,
    split_arguments,
)


def _python_tester(name, code):
    return TesterClause(name=name, path=sys.executable, args=["-c", code])


def _writes_metadata(exit_code=0, marker=None):
    lines = [
        "import json, os",
        "open(os.path.join(os.environ['ARTIFACTS'], 'metadata.json'), 'w')"
        ".write(json.dumps({'tester-version': 'child'}))",
    ]
    if marker:
        lines.append(f"open({marker!r}, 'w').write('ran')")
    lines.append(f"raise SystemExit({exit_code})")
    return "\n".join(lines)


def test_split_arguments_clauses():
    driver, clauses = split_arguments(["--fail-fast", "--", "ginkgo", "--a", "--", "other"])
    assert driver == ["--fail-fast"]
    assert clauses == [["ginkgo", "--a"], ["other"]]


def test_split_arguments_without_separator():
    driver, clauses = split_arguments(["x", "y"])
    assert driver == ["x", "y"]
    assert clauses == []


def test_split_arguments_trailing_separator():
    driver, clauses = split_arguments(["--", "t"])
    assert driver == []
    assert clauses == [["t"]]


def test_expand_env_variables(monkeypatch):
    monkeypatch.setenv("KT_NAME", "alpha")
    monkeypatch.delenv("KT_MISSING", raising=False)
    assert expand_env(["$KT_NAME", "x-${KT_NAME}-y", "$KT_MISSING", "plain"]) == [
        "alpha",
        "x-alpha-y",
        "",
        "plain",
    ]


def test_expand_env_literal_dollar(monkeypatch):
    monkeypatch.setenv("KT_NAME", "alpha")
    assert expand_env(["\\$KT_NAME"]) == ["$KT_NAME"]


def test_prepare_testers_rejects_nesting():
    with pytest.raises(ValueError, match="nesting"):
        prepare_testers([["multi", "a"]])


def test_prepare_testers_missing_binary(monkeypatch, tmp_path):
    monkeypatch.setenv("PATH", str(tmp_path))
    with pytest.raises(FileNotFoundError):
        prepare_testers([["nosuchtester"]])


def test_prepare_testers_finds_binary(monkeypatch, tmp_path):
    binary = tmp_path / "kubetest2-tester-foo"
    binary.write_text("#!/bin/sh\n")
    binary.chmod(binary.stat().st_mode | stat.S_IXUSR)
    monkeypatch.setenv("PATH", str(tmp_path))
    monkeypatch.setenv("KT_VAL", "v")
    testers = prepare_testers([["foo", "--x=$KT_VAL"]])
    assert len(testers) == 1
    assert testers[0].name == "foo"
    assert os.path.basename(testers[0].path) == "kubetest2-tester-foo"
    assert testers[0].args == ["--x=v"]


def test_run_testers_restores_metadata(monkeypatch, tmp_path):
    monkeypatch.setenv("ARTIFACTS", str(tmp_path))
    metadata = tmp_path / "metadata.json"
    metadata.write_text(json.dumps({"tester-version": "driver"}))
    result = run_testers(
        [_python_tester("a", _writes_metadata()), _python_tester("b", _writes_metadata())], False
    )
    assert result is None
    assert json.loads(metadata.read_text()) == {"tester-version": "driver"}
    assert not (tmp_path / "metadata.json.bak").exists()


def test_run_testers_collects_failures(monkeypatch, tmp_path):
    monkeypatch.setenv("ARTIFACTS", str(tmp_path))
    (tmp_path / "metadata.json").write_text("{}")
    marker = tmp_path / "second-ran"
    testers = [
        _python_tester("bad", _writes_metadata(exit_code=1)),
        _python_tester("good", _writes_metadata(marker=str(marker))),
    ]
    with pytest.raises(ExceptionGroup) as info:
        run_testers(testers, False)
    assert len(info.value.exceptions) == 1
    assert marker.exists()
    assert (tmp_path / "metadata.json").read_text() == "{}"


def test_run_testers_fail_fast(monkeypatch, tmp_path):
    monkeypatch.setenv("ARTIFACTS", str(tmp_path))
    (tmp_path / "metadata.json").write_text("{}")
    marker = tmp_path / "second-ran"
    testers = [
        _python_tester("bad", _writes_metadata(exit_code=1)),
        _python_tester("good", _writes_metadata(marker=str(marker))),
    ]
    with pytest.raises(ExceptionGroup):
        run_testers(testers, True)
    assert not marker.exists()
    assert (tmp_path / "metadata.json").read_text() == "{}"


def test_run_testers_missing_tester_metadata(monkeypatch, tmp_path):
    monkeypatch.setenv("ARTIFACTS", str(tmp_path))
    (tmp_path / "metadata.json").write_text("{}")
    with pytest.raises(RuntimeError, match="failed to delete tester metadata"):
        run_testers([_python_tester("quiet", "pass")], False)


def test_main_without_clauses_prints_usage(capsys):
    main([])
    assert capsys.readouterr().out == multi.USAGE


def test_main_help_prints_usage(capsys):
    main(["--help", "--", "anything"])
    assert "TesterName" in capsys.readouterr().out


def test_main_unknown_flag_exits(capsys):
    with pytest.raises(SystemExit):
        main(["--bogus", "--", "anything"])
    assert "TesterName" in capsys.readouterr().out


def test_main_nesting_exits(monkeypatch, tmp_path):
    monkeypatch.setenv("ARTIFACTS", str(tmp_path))
    with pytest.raises(SystemExit) as info:
        main(["--", "multi"])
    assert "nesting" in str(info.value.code)
    assert "tester-version" in json.loads((tmp_path / "metadata.json").read_text())