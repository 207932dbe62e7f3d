from __future__ import annotations

from pathlib import Path

import pytest

from classfile_fixtures import MethodSpec, simple_class, write_class, write_jar
from classlens.config import AnalysisConfig
from classlens.errors import ClassFormatError, ScanError
from classlens.scan import expand_classpath, parse_manifest_classpath, scan_inputs


def _class(name: str) -> bytes:
    return simple_class(name, MethodSpec("run"))


def test_single_class_file_is_an_analysis_target(tmp_path: Path) -> None:
    path = write_class(tmp_path, "demo/App", _class("demo/App"))

    output = scan_inputs(path)

    assert output.class_count == 1
    assert [cls.name for cls in output.target_classes] == ["demo/App"]
    artifact = output.artifacts[0]
    assert artifact.uri == str(path)
    assert artifact.length == path.stat().st_size
    assert artifact.to_sarif()["roles"] == ["analysisTarget"]
    assert output.classes[0].artifact_index == 0


def test_directories_are_walked_in_sorted_order(tmp_path: Path) -> None:
    root = tmp_path / "classes"
    write_class(root, "b/Second", _class("b/Second"))
    write_class(root, "a/First", _class("a/First"))
    write_class(root, "a/Zed", _class("a/Zed"))
    (root / "README.txt").write_text("ignored", "utf-8")

    output = scan_inputs(root)

    assert [cls.name for cls in output.classes] == ["a/First", "a/Zed", "b/Second"]
    assert [cls.artifact_index for cls in output.classes] == [0, 1, 2]


def test_files_under_an_input_directory_carry_no_role(tmp_path: Path) -> None:
    root = tmp_path / "classes"
    write_class(root, "a/First", _class("a/First"))
    write_class(root, "b/Second", _class("b/Second"))

    output = scan_inputs(root)

    assert [artifact.roles for artifact in output.artifacts] == [(), ()]
    assert all("roles" not in artifact.to_sarif() for artifact in output.artifacts)
    assert [cls.name for cls in output.target_classes] == ["a/First", "b/Second"]


def test_jar_entries_point_at_their_archive(tmp_path: Path) -> None:
    jar = write_jar(
        tmp_path / "app.jar",
        {"demo/B": _class("demo/B"), "demo/A": _class("demo/A")},
        extra={"module-info.class": b"ignored", "demo/notes.txt": b"x"},
    )

    output = scan_inputs(jar)

    uris = [artifact.uri for artifact in output.artifacts]
    assert uris == [str(jar), f"jar:{jar}!/demo/A.class", f"jar:{jar}!/demo/B.class"]
    assert output.artifacts[1].to_sarif()["parentIndex"] == 0
    assert "roles" not in output.artifacts[1].to_sarif()
    assert [cls.name for cls in output.target_classes] == ["demo/A", "demo/B"]
    assert [cls.artifact_index for cls in output.classes] == [1, 2]


def test_classpath_classes_are_not_targets(tmp_path: Path) -> None:
    app = write_class(tmp_path / "app", "demo/App", _class("demo/App"))
    lib = write_jar(tmp_path / "lib" / "lib.jar", {"lib/Util": _class("lib/Util")})

    output = scan_inputs(app, [lib])

    assert [cls.name for cls in output.classes] == ["demo/App", "lib/Util"]
    assert [cls.name for cls in output.target_classes] == ["demo/App"]
    assert output.class_count == 2


def test_manifest_classpath_is_followed_breadth_first(tmp_path: Path) -> None:
    write_jar(tmp_path / "deep.jar", {"deep/D": _class("deep/D")})
    write_jar(tmp_path / "lib" / "b.jar", {"lib/B": _class("lib/B")}, class_path="../deep.jar")
    write_jar(tmp_path / "lib" / "a.jar", {"lib/A": _class("lib/A")})
    app = write_jar(
        tmp_path / "app.jar",
        {"demo/App": _class("demo/App")},
        class_path="lib/b.jar lib/a.jar app.jar",
    )

    output = scan_inputs(app)

    assert [cls.name for cls in output.classes] == ["demo/App", "lib/A", "lib/B", "deep/D"]


def test_manifest_continuation_lines_are_joined(tmp_path: Path) -> None:
    content = "Manifest-Version: 1.0\r\nClass-Path: first.jar sec\r\n ond.jar\r\nMain-Class: x\r\n"
    entries = parse_manifest_classpath(tmp_path / "app.jar", content)

    assert entries == [tmp_path / "first.jar", tmp_path / "second.jar"]


def test_missing_classpath_entry_raises(tmp_path: Path) -> None:
    with pytest.raises(ScanError, match="classpath entry not found"):
        expand_classpath([tmp_path / "missing.jar"])


def test_unsupported_input_raises(tmp_path: Path) -> None:
    path = tmp_path / "notes.txt"
    path.write_text("hello", "utf-8")

    with pytest.raises(ScanError, match="unsupported input file"):
        scan_inputs(path)


def test_corrupt_class_names_its_source(tmp_path: Path) -> None:
    path = tmp_path / "Broken.class"
    path.write_bytes(b"\x00\x01\x02\x03")

    with pytest.raises(ClassFormatError, match="Broken.class"):
        scan_inputs(path)


def test_decode_policy_flows_from_config(tmp_path: Path) -> None:
    data = simple_class(
        "demo/Mixed",
        MethodSpec("bad", "()V", b"\xcb"),
        MethodSpec("good", "()V", b"\xb1"),
    )
    path = write_class(tmp_path, "demo/Mixed", data)

    output = scan_inputs(path, config=AnalysisConfig(on_decode_error="skip-method"))

    assert [method.name for method in output.classes[0].methods] == ["good"]
