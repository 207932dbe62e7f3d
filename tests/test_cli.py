import json
import subprocess
import sys
from pathlib import Path

import pytest

from classfile_fixtures import (
    ClassSpec,
    ConstantPoolBuilder,
    MethodSpec,
    build_class,
    invoke,
    write_class,
    write_jar,
)

SCRIPT = Path(__file__).resolve().parents[1] / "classlens_scan.py"


def _write_app(base: Path) -> Path:
    pool = ConstantPoolBuilder()
    exec_ref = pool.method_ref("java/lang/Runtime", "exec", "(Ljava/lang/String;)Ljava/lang/Process;")
    code = b"\x01" + invoke(0xB6, exec_ref) + b"\x57\xb1"
    spec = ClassSpec(
        "demo/App",
        methods=[
            MethodSpec("run", "()V", code),
            MethodSpec("equals", "(Ljava/lang/Object;)Z", b"\x03\xac"),
        ],
        pool=pool,
    )
    return write_class(base / "classes", "demo/App", build_class(spec))


def _run(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, str(SCRIPT), *args],
        capture_output=True,
        text=True,
    )


def test_cli_writes_sarif_report(tmp_path: Path) -> None:
    _write_app(tmp_path)
    output = tmp_path / "report.sarif"
    cfg_out = tmp_path / "cfg.txt"

    result = _run(
        "--input",
        str(tmp_path / "classes"),
        "--output",
        str(output),
        "--cfg-out",
        str(cfg_out),
        "--timing",
    )

    assert result.returncode == 0, result.stderr
    report = json.loads(output.read_text("utf-8"))
    run = report["runs"][0]
    assert report["version"] == "2.1.0"
    assert [entry["ruleId"] for entry in run["results"]] == [
        "INEFFECTIVE_EQUALS",
        "INSECURE_API",
    ]
    assert run["results"][1]["locations"][0]["logicalLocations"][0]["name"] == "demo/App.run()V"
    assert run["invocations"][0]["properties"]["classlens.class_count"] == 1
    assert "roles" not in run["artifacts"][0]
    assert "timing: total_ms=" in result.stderr
    assert "classes=1 artifacts=1" in result.stderr

    cfg_text = cfg_out.read_text("utf-8")
    assert "demo/App.run()V" in cfg_text
    assert "invokevirtual java/lang/Runtime.exec" in cfg_text


def test_cli_prints_to_stdout_by_default(tmp_path: Path) -> None:
    path = _write_app(tmp_path)

    result = _run("--input", str(path), "--quiet", "--timing")

    assert result.returncode == 0, result.stderr
    assert json.loads(result.stdout)["runs"][0]["tool"]["driver"]["name"] == "classlens"
    assert "timing" not in result.stderr


def test_cli_disables_rules_from_config(tmp_path: Path) -> None:
    path = _write_app(tmp_path)
    config = tmp_path / "classlens.json"
    config.write_text(json.dumps({"disabled_rules": ["INSECURE_API"]}), "utf-8")

    result = _run("--input", str(path), "--config", str(config), "--disable-rule", "ineffective_equals")

    assert result.returncode == 0, result.stderr
    run = json.loads(result.stdout)["runs"][0]
    assert run["results"] == []
    assert "INSECURE_API" not in [rule["id"] for rule in run["tool"]["driver"]["rules"]]


def test_cli_resolves_classpath_jar(tmp_path: Path) -> None:
    path = _write_app(tmp_path)
    lib = write_jar(tmp_path / "lib.jar", {"lib/Util": build_class(ClassSpec("lib/Util"))})

    result = _run("--input", str(path), "--classpath", str(lib))

    assert result.returncode == 0, result.stderr
    properties = json.loads(result.stdout)["runs"][0]["invocations"][0]["properties"]
    assert properties["classlens.class_count"] == 2
    assert properties["classlens.classpath_class_count"] == 2
    assert properties["classlens.artifact_count"] == 3


@pytest.mark.parametrize(
    "flag, message",
    [
        ("--input", "missing input"),
        ("--classpath", "classpath entry not found"),
    ],
)
def test_cli_reports_missing_paths(tmp_path: Path, flag: str, message: str) -> None:
    path = _write_app(tmp_path)
    missing = tmp_path / "absent.jar"
    args = ["--input", str(missing)] if flag == "--input" else ["--input", str(path), flag, str(missing)]

    result = _run(*args)

    assert result.returncode != 0
    assert message in result.stderr


def test_cli_reports_malformed_class(tmp_path: Path) -> None:
    bad = tmp_path / "Bad.class"
    bad.write_bytes(b"\x00\x00\x00\x00")

    result = _run("--input", str(bad))

    assert result.returncode != 0
    assert "error: failed to parse" in result.stderr


def test_cli_marks_single_input_file_as_target(tmp_path: Path) -> None:
    path = _write_app(tmp_path)

    result = _run("--input", str(path))

    assert result.returncode == 0, result.stderr
    assert json.loads(result.stdout)["runs"][0]["artifacts"][0]["roles"] == ["analysisTarget"]


def test_cli_reports_unwritable_cfg_output(tmp_path: Path) -> None:
    path = _write_app(tmp_path)
    output = tmp_path / "report.sarif"

    result = _run(
        "--input",
        str(path),
        "--output",
        str(output),
        "--cfg-out",
        str(tmp_path / "nodir" / "cfg.txt"),
    )

    assert result.returncode != 0
    assert "failed to open" in result.stderr
    assert "Traceback" not in result.stderr
    assert not output.exists()


@pytest.mark.parametrize(
    "payload",
    [
        {"disabled_rules": 5},
        {"skip_platform_references": "false"},
    ],
)
def test_cli_rejects_mistyped_config(tmp_path: Path, payload: dict) -> None:
    path = _write_app(tmp_path)
    config = tmp_path / "classlens.json"
    config.write_text(json.dumps(payload), "utf-8")

    result = _run("--input", str(path), "--config", str(config))

    assert result.returncode != 0
    assert "invalid configuration" in result.stderr
    assert "Traceback" not in result.stderr
