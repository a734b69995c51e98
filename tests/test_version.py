import platform

from slimrmm import version


def _info(commit: str) -> version.Info:
    return version.Info(
        version="1.2.3",
        git_commit=commit,
        build_date="2024-01-01",
        python_version="3.12.0",
        os="linux",
        arch="amd64",
    )


def test_get_uses_build_constants():
    info = version.get()
    assert info.version == version.VERSION
    assert info.git_commit == version.GIT_COMMIT
    assert info.build_date == version.BUILD_DATE


def test_get_reports_running_interpreter():
    info = version.get()
    assert info.python_version == platform.python_version()
    assert info.os == platform.system().lower()


def test_default_build_values():
    assert version.VERSION == "dev"
    assert version.GIT_COMMIT == "unknown"
    assert version.get().build_date == "unknown"


def test_str_truncates_long_commit():
    text = str(_info("abcdef1234567890"))
    assert text == "SlimRMM Agent 1.2.3 (abcdef12) built 2024-01-01 with 3.12.0"


def test_str_keeps_short_commit():
    text = str(_info("abc"))
    assert "(abc)" in text
    assert text.startswith("SlimRMM Agent 1.2.3 ")


def test_to_dict_round_trip():
    info = _info("abcdef1234567890")
    assert version.Info(**info.to_dict()) == info