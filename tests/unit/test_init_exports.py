from __future__ import annotations

import pytest

import dynoschema_py as dynoschema


def test_init_exposes_lazy_exports_via_getattr() -> None:
    assert dynoschema._normalize_repo_version("1.2.3") == "1.2.3"
    assert dynoschema._normalize_repo_version("1.2.3-rc.4") == "1.2.3rc4"

    assert callable(dynoschema.TableService)
    assert callable(dynoschema.combine_expressions)
    assert callable(dynoschema.backoff_call)
    assert callable(dynoschema.exponential_delay)
    assert dynoschema.Page(items=[]).count == 0


def test_init_rejects_unknown_attributes() -> None:
    with pytest.raises(AttributeError):
        _ = dynoschema.does_not_exist


def test_all_names_resolve() -> None:
    for name in dynoschema.__all__:
        assert getattr(dynoschema, name) is not None
