"""
test_import_safety.py — import and layering checks.

Verifies that:
  1. Every service and model module imports without circular import failures
     (only the module itself is imported, no DB connection is made).
  2. The pricing core (rounding, engine, state machine, totals) stays free of
     database and web-framework dependencies.
  3. reportlab is imported lazily, inside the render call.

No database, network, or external services are required.
"""

import importlib
import inspect

import pytest

_PURE_MODULES = [
    "offerten.config",
    "offerten.models.pricing",
    "offerten.services.rounding",
    "offerten.services.category_registry",
    "offerten.services.costing_engine",
    "offerten.services.quote_totals",
    "offerten.services.pricing_state",
    "offerten.services.document_payload",
]

_SERVICE_MODULES = [
    "offerten.services.logging_config",
    "offerten.services.middleware",
    "offerten.services.persistence",
    "offerten.services.report_engine",
    "offerten.services.config_store",
    "offerten.services.quote_repository",
    "offerten.services.quote_sessions",
    "offerten.models.orm_models",
    "offerten.models.schemas",
    "offerten.api.deps",
    "offerten.api.settings_routes",
    "offerten.api.quote_routes",
]


class TestModuleImports:

    @pytest.mark.parametrize("module_path", _PURE_MODULES + _SERVICE_MODULES)
    def test_module_imports(self, module_path):
        mod = importlib.import_module(module_path)
        assert mod is not None, f"Module {module_path} is None after import"


class TestPricingCoreIsStandalone:
    """The pricing core must not reach for the database or the web layer."""

    @pytest.mark.parametrize("module_path", _PURE_MODULES)
    def test_no_db_or_web_dependency(self, module_path):
        src = inspect.getsource(importlib.import_module(module_path))
        for forbidden in ("AsyncSession", "get_db", "sqlalchemy", "fastapi"):
            assert forbidden not in src, f"{module_path} must not depend on {forbidden}"

    def test_report_engine_imports_reportlab_lazily(self):
        import offerten.services.report_engine as report
        assert "reportlab" not in vars(report)
        assert "canvas" not in vars(report)
