from eraser.pod import get_namespace, shared_security_context


def test_get_namespace_default(monkeypatch):
    monkeypatch.delenv("POD_NAMESPACE", raising=False)
    assert get_namespace() == "eraser-system"


def test_get_namespace_from_environment(monkeypatch):
    monkeypatch.setenv("POD_NAMESPACE", "custom-ns")
    assert get_namespace() == "custom-ns"


def test_get_namespace_empty_value_is_kept(monkeypatch):
    monkeypatch.setenv("POD_NAMESPACE", "")
    assert get_namespace() == ""


def test_shared_security_context_values():
    context = shared_security_context()
    assert context["capabilities"]["drop"] == ["ALL"]
    assert context["readOnlyRootFilesystem"] is True
    assert context["seccompProfile"]["type"] == "RuntimeDefault"


def test_shared_security_context_is_fresh_each_call():
    first = shared_security_context()
    first["capabilities"]["drop"].append("NET_RAW")
    assert shared_security_context()["capabilities"]["drop"] == ["ALL"]