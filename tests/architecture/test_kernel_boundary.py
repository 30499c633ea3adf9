"""
Package boundaries and the invariants contract.

1. relief_kernel/** may NOT import relief_services or relief_config.
   The kernel never depends upward.

2. relief_config/** depends on nothing else in the project, so settings
   can load before the kernel is wired.

3. relief_services/** reaches persistence only through kernel services
   and selectors, never by importing ORM models.

4. The ledger invariants declaration is complete and non-empty.

These tests read source code via AST; they cannot break anything.
"""

import ast
import glob
from pathlib import Path

from relief_kernel.invariants import (
    ALL_LEDGER_INVARIANTS,
    FORBIDDEN_KERNEL_IMPORTS,
    LedgerInvariant,
)

ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[str]:
    return sorted(glob.glob(f"{ROOT / package}/**/*.py", recursive=True))


def _extract_imports(filepath: str) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    tree = ast.parse(Path(filepath).read_text(), filename=filepath)
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    rel = Path(filepath).relative_to(ROOT)
                    found.append(f"  {rel}:{lineno} imports '{module}'")
    return found


def test_packages_present():
    assert _python_files("relief_kernel")
    assert _python_files("relief_services")
    assert _python_files("relief_config")


def test_kernel_has_no_upward_dependencies():
    violations = _violations("relief_kernel", FORBIDDEN_KERNEL_IMPORTS)
    assert not violations, (
        "Kernel boundary violation: relief_kernel/** must not import "
        "upward packages:\n" + "\n".join(violations)
    )


def test_config_is_standalone():
    violations = _violations("relief_config", ("relief_kernel", "relief_services"))
    assert not violations, "relief_config imports project code:\n" + "\n".join(violations)


def test_services_do_not_touch_models():
    violations = _violations("relief_services", ("relief_kernel.models",))
    assert not violations, (
        "relief_services must go through kernel services and selectors:\n"
        + "\n".join(violations)
    )


def test_invariants_declared():
    assert ALL_LEDGER_INVARIANTS == frozenset(LedgerInvariant)
    assert len(ALL_LEDGER_INVARIANTS) >= 7
    for invariant in LedgerInvariant:
        assert invariant.value == invariant.name.lower()
