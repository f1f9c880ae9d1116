"""Tests for patchbay package exports and metadata."""

import patchbay


class TestPackageMetadata:
    """Package-level exports and metadata."""

    def test_version_string(self) -> None:
        assert isinstance(patchbay.__version__, str)
        assert "0.1.0" in patchbay.__version__

    def test_free_threading_declaration(self) -> None:
        assert patchbay._Py_mod_gil == 0

    def test_all_exports_resolvable(self) -> None:
        for name in patchbay.__all__:
            getattr(patchbay, name)

    def test_lazy_exports_are_the_real_objects(self) -> None:
        from patchbay.app import Workbench
        from patchbay.config import PatchbayConfig

        assert patchbay.Workbench is Workbench
        assert patchbay.PatchbayConfig is PatchbayConfig

    def test_invalid_attribute_raises(self) -> None:
        import pytest

        with pytest.raises(AttributeError, match="no attribute"):
            patchbay.nonexistent_thing  # type: ignore[attr-defined]  # noqa: B018
