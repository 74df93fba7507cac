"""
Import-boundary enforcement for the approval packages.

1. Engine purity      -- records_engines/** may not import DB, ORM, models,
                         selectors, services, config or HTTP layers.
2. Engine no-impure   -- records_engines/** may not read the wall clock or
                         the environment.
3. Kernel direction   -- records_kernel/** may not import engines, config
                         or services.
4. Domain purity      -- records_kernel/domain/** may not import db, models,
                         selectors, services or logging.

All scanning is done via AST -- these tests are read-only.
"""

import ast
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[Path]:
    """Return all .py files under *package*, sorted for deterministic order."""
    return sorted((REPO_ROOT / package).rglob("*.py"))


def _tree(path: Path) -> ast.AST:
    return ast.parse(path.read_text(), filename=str(path))


def _extract_imports(path: Path) -> list[tuple[int, str]]:
    """Return (line_number, module_string) for every import in *path*."""
    results: list[tuple[int, str]] = []
    for node in ast.walk(_tree(path)):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _matches_any(module: str, prefixes: tuple[str, ...]) -> bool:
    """True if *module* equals or is a child of any prefix."""
    return any(module == p or module.startswith(f"{p}.") for p in prefixes)


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    violations = []
    for path in _python_files(package):
        for lineno, module in _extract_imports(path):
            if _matches_any(module, forbidden):
                violations.append(f"  {path.relative_to(REPO_ROOT)}:{lineno} imports '{module}'")
    return violations


class TestEnginePurity:
    FORBIDDEN_PREFIXES = (
        "sqlalchemy",
        "sqlite3",
        "httpx",
        "yaml",
        "records_kernel.db",
        "records_kernel.models",
        "records_kernel.selectors",
        "records_kernel.services",
        "records_services",
        "records_config",
    )

    def test_engine_files_have_no_forbidden_imports(self):
        violations = _violations("records_engines", self.FORBIDDEN_PREFIXES)
        assert not violations, (
            "Engine purity violation:\n" + "\n".join(violations)
        )


class TestEngineNoImpureFunctions:
    IMPURE = {
        "datetime.now",
        "datetime.utcnow",
        "date.today",
        "time.time",
        "os.environ",
        "os.getenv",
    }

    def test_no_wall_clock_or_environment(self):
        violations = []
        for path in _python_files("records_engines"):
            for node in ast.walk(_tree(path)):
                if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name):
                    name = f"{node.value.id}.{node.attr}"
                    if name in self.IMPURE:
                        violations.append(f"  {path.relative_to(REPO_ROOT)}:{node.lineno} {name}")
        assert not violations, "Engines must take time as input:\n" + "\n".join(violations)


class TestKernelDirection:
    def test_kernel_does_not_import_outer_layers(self):
        violations = _violations(
            "records_kernel", ("records_engines", "records_config", "records_services"),
        )
        assert not violations, "Kernel imports an outer layer:\n" + "\n".join(violations)


class TestDomainPurity:
    def test_domain_has_no_infrastructure_imports(self):
        violations = _violations(
            "records_kernel/domain",
            (
                "sqlalchemy",
                "httpx",
                "records_kernel.db",
                "records_kernel.models",
                "records_kernel.selectors",
                "records_kernel.services",
                "records_kernel.logging_config",
            ),
        )
        assert not violations, "Domain purity violation:\n" + "\n".join(violations)
