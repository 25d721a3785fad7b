"""
Import boundaries between the layers.

1. erp_kernel/** never imports erp_config; configuration sits above the
   kernel and hands it a LedgerPolicy.
2. erp_kernel/domain/** is pure: no SQLAlchemy, no models, services or
   selectors.
3. Selectors never import services; reads do not depend on the write side.

These tests read source code via AST; they cannot break anything.
"""

import ast
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
KERNEL = ROOT / "erp_kernel"


def _python_files(root: Path) -> list[Path]:
    return sorted(root.rglob("*.py"))


def _extract_imports(path: Path) -> list[tuple[int, str]]:
    """(line number, module) for every import in a file."""
    tree = ast.parse(path.read_text(), filename=str(path))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _violations(root: Path, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for path in _python_files(root):
        for lineno, module in _extract_imports(path):
            if module.startswith(forbidden):
                found.append(f"{path.relative_to(ROOT)}:{lineno} imports {module}")
    return found


class TestKernelBoundaries:

    def test_kernel_sources_found(self):
        assert len(_python_files(KERNEL)) > 20

    def test_kernel_never_imports_config(self):
        assert _violations(KERNEL, ("erp_config",)) == []

    @pytest.mark.parametrize(
        "forbidden",
        [
            "sqlalchemy",
            "erp_kernel.models",
            "erp_kernel.services",
            "erp_kernel.selectors",
            "erp_kernel.db",
        ],
    )
    def test_domain_is_pure(self, forbidden):
        assert _violations(KERNEL / "domain", (forbidden,)) == []

    def test_selectors_do_not_import_services(self):
        assert _violations(KERNEL / "selectors", ("erp_kernel.services",)) == []
