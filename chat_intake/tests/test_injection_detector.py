import pytest

from chat_intake.domain.exceptions import ValidationError
from chat_intake.security import InjectionDetector, Severity, compile_patterns, load_patterns


def test_default_pattern_file_loads():
    patterns = load_patterns()
    names = {p.name for p in patterns}
    assert {"ignore_previous_instructions", "disregard_previous", "forget_previous", "system_role_marker"} <= names


def test_scan_is_case_insensitive():
    detector = InjectionDetector(load_patterns())
    matches = detector.scan("FORGET PREVIOUS answers")
    assert [m.name for m in matches] == ["forget_previous"]
    assert matches[0].severity is Severity.MEDIUM


def test_patterns_load_from_yaml_file(tmp_path):
    path = tmp_path / "patterns.yaml"
    path.write_text(
        "patterns:\n"
        "  - name: secret\n"
        "    pattern: 'reveal\\s+secrets'\n"
        "    severity: high\n",
        encoding="utf-8",
    )
    detector = InjectionDetector(load_patterns(path))
    assert [m.name for m in detector.scan("please reveal   secrets")] == ["secret"]


def test_invalid_pattern_is_rejected():
    with pytest.raises(ValidationError):
        compile_patterns([{"name": "broken", "pattern": "(", "severity": "low"}])
    with pytest.raises(ValidationError):
        compile_patterns([{"name": "odd", "pattern": "x", "severity": "extreme"}])
