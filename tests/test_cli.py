import os
import sys
import json
import subprocess
import pytest
from .context import WDLParser
from WDLParser.CLI import create_arg_parser, main

HELLO = """version 1.1
workflow w {
  input {
    Int n = 1
  }
  call t
  scatter (i in [1, 2]) {
    Int j = i + n
  }
}
task t {
  command {}
}
"""


def _write(tmp_path, name, txt):
    p = tmp_path / name
    p.write_text(txt)
    return str(p)


def _main(args):
    with pytest.raises(SystemExit) as exn:
        main(args)
    return exn.value.code


def test_argparser():
    parser = create_arg_parser()
    args = parser.parse_args(["check", "--outline", "--strict", "a.wdl", "b.wdl"])
    assert args.command == "check"
    assert args.uri == ["a.wdl", "b.wdl"]
    assert args.outline and args.strict and not args.json
    args = parser.parse_args(["eval", "1 + x", "x=2", "--cfg", "my.cfg"])
    assert args.command == "eval"
    assert args.expr == "1 + x"
    assert args.bindings == ["x=2"]
    assert args.cfg_file == "my.cfg"


def test_check_outline(tmp_path, capsys):
    fn = _write(tmp_path, "hello.wdl", HELLO)
    assert _main(["check", "--outline", fn]) == 0
    out = capsys.readouterr().out
    assert out.splitlines() == [
        "hello.wdl",
        "    version 1.1",
        "    workflow w",
        "        Int n",
        "        call t",
        "        scatter i",
        "            Int j",
        "    task t",
    ]


def test_check_json(tmp_path, capsys):
    fn = _write(tmp_path, "hello.wdl", HELLO)
    assert _main(["check", "--json", fn]) == 0
    doc = json.loads(capsys.readouterr().out)
    assert doc["kind"] == "document"
    assert doc["version"] == "1.1"
    assert [ch["kind"] for ch in doc["children"]] == ["workflow", "task"]
    wf = doc["children"][0]
    assert wf["name"] == "w"
    assert [ch["kind"] for ch in wf["children"]] == ["input-block", "call", "scatter"]
    decl = wf["children"][0]["children"][0]
    assert decl["identifier"] == "n" and decl["type"] == "Int"
    assert decl["children"][0]["rpn"] == [{"value": 1, "type": "Int"}]


def test_check_errors(tmp_path, capsys):
    fn = _write(tmp_path, "bad.wdl", "version 1.1\nworkflow w { Int x = 1 @ }\n")
    assert _main(["check", fn]) == 1
    err = capsys.readouterr().err
    assert 'line 2:23 "token recognition error at: \'@\'"' in err

    # warnings alone don't fail the check, unless --strict
    fn = _write(tmp_path, "warn.wdl", "version 1.1\nworkflow w {\n  Int x = 1\n  Int x = 2\n}\n")
    assert _main(["check", fn]) == 0
    err = capsys.readouterr().err
    assert "(Ln 4 Col 3) redefinition, x is already defined in this workflow" in err
    assert _main(["check", "--strict", fn]) == 1

    # every document is checked
    good = _write(tmp_path, "hello.wdl", HELLO)
    assert _main(["check", good, str(tmp_path / "bad.wdl"), good]) == 1


def test_check_missing(tmp_path, capsys):
    assert _main(["check", str(tmp_path / "nonexistent.wdl")]) == 2
    assert "nonexistent.wdl" in capsys.readouterr().err


def test_cfg(tmp_path, capsys):
    fn = _write(tmp_path, "bad.wdl", "version 1.1\nworkflow w {\n" + "  Int x = 1 @\n" * 5 + "}\n")
    assert _main(["check", fn]) == 1
    err = capsys.readouterr().err
    assert len([line for line in err.splitlines() if line.startswith("line ")]) == 5

    cfg = _write(tmp_path, "my.cfg", "[parser]\nmax_syntax_errors = 2\n")
    assert _main(["check", "--cfg", cfg, fn]) == 1
    err = capsys.readouterr().err
    assert len([line for line in err.splitlines() if line.startswith("line ")]) == 2

    assert _main(["check", "--cfg", str(tmp_path / "nonexistent.cfg"), fn]) == 2
    assert "--cfg file not found" in capsys.readouterr().err


def test_eval(capsys):
    assert _main(["eval", '"~{greeting}, ~{n + 1}"', 'greeting="hello"', "n=41"]) == 0
    assert json.loads(capsys.readouterr().out) == "hello, 42"
    assert _main(["eval", "3 + 4.0"]) == 0
    assert json.loads(capsys.readouterr().out) == 7.0
    assert _main(["eval", "x == 'world'", "x=world"]) == 0
    assert json.loads(capsys.readouterr().out) is True
    assert _main(["eval", "if defined(x) then x else 0", "x=null"]) == 0
    assert json.loads(capsys.readouterr().out) == 0


def test_eval_errors(capsys):
    for args in (["1 / 0"], ["x + 1"], ["1 +"], ["1", "novalue"], ['"a" - 1']):
        assert _main(["eval"] + args) == 1, args
    err = capsys.readouterr().err
    assert "Unknown identifier x" in err
    assert "invalid binding" in err


def test_module(tmp_path):
    fn = _write(tmp_path, "hello.wdl", HELLO)
    root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    proc = subprocess.run(
        [sys.executable, "-m", "WDLParser", "check", "--debug", "--log-json", fn],
        cwd=root,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        universal_newlines=True,
    )
    assert proc.returncode == 0, proc.stderr
    logs = [json.loads(line) for line in proc.stderr.splitlines() if line.startswith("{")]
    assert logs
    assert all("level" in log and "timestamp" in log for log in logs)
    assert any(log["source"] == "wdlparser.check" and log["message"] == "checked" for log in logs)
    cfg_logs = [log for log in logs if log["message"] == "configuration"]
    assert cfg_logs and cfg_logs[0]["parser"]["wdl_version"] == "1.1"
    assert cfg_logs[0]["eval"] == {"max_depth": "100"}

    proc = subprocess.run(
        [sys.executable, "-m", "WDLParser", "eval", "1 + 1"],
        cwd=root,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        universal_newlines=True,
    )
    assert proc.returncode == 0, proc.stderr
    assert proc.stdout.strip() == "2"
