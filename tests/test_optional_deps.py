from pyanomcam.utils.optional_deps import optional_import, require


def test_optional_import_missing():
    module, error = optional_import("this_package_does_not_exist_123")
    assert module is None
    assert error is not None


def test_require_raises_importerror():
    try:
        require("this_package_does_not_exist_123", extra="yaml", purpose="unit test")
    except ImportError as exc:
        message = str(exc)
        assert "Optional dependency" in message
        assert "pip install 'pyanomcam[yaml]'" in message
        assert "for unit test" in message
    else:
        raise AssertionError("Expected ImportError to be raised")


def test_require_uses_pip_name_override_in_hint():
    try:
        require("yaml.this_submodule_does_not_exist_123")
    except ImportError as exc:
        assert "pip install 'PyYAML'" in str(exc)
    else:
        raise AssertionError("Expected ImportError to be raised")
