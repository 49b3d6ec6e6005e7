import ast
import unittest
from pathlib import Path
from typing import Dict, Iterable, List, Tuple


REPO_ROOT = Path(__file__).resolve().parents[1]

# Layering, innermost first:
#   quality_gate/ (domain + io)  <-  tools/ (runners, extractors)  <-  pipeline/  <-  cli/
LAYER_RULES: Dict[str, Tuple[str, ...]] = {
    "quality_gate": ("tools", "pipeline", "cli", "fqge_cli"),
    "tools": ("pipeline", "cli", "fqge_cli"),
    "pipeline": ("cli", "fqge_cli"),
}

# Only the Command Runner talks to processes and the network.
SIDE_EFFECT_MODULES = ("subprocess", "requests")
SIDE_EFFECT_OWNERS = {"tools/core_cmd.py", "tools/http_probe.py"}


def iter_py_files(package_dir: Path) -> Iterable[Path]:
    for p in package_dir.rglob("*.py"):
        if "__pycache__" in p.parts or any(part.startswith(".") for part in p.parts):
            continue
        yield p


def absolute_imports(py_file: Path) -> List[str]:
    """Absolute module names imported by *py_file* (relative imports skipped)."""
    tree = ast.parse(py_file.read_text(encoding="utf-8", errors="ignore"), filename=str(py_file))
    names: List[str] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            names.extend(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
            names.append(node.module)
    return names


def _root(module: str) -> str:
    return module.split(".", 1)[0]


class TestDependencyBoundaries(unittest.TestCase):
    def test_inner_layers_do_not_import_outer_layers(self) -> None:
        problems: List[str] = []
        for pkg, forbidden in LAYER_RULES.items():
            pkg_dir = REPO_ROOT / pkg
            self.assertTrue(pkg_dir.is_dir(), f"missing package dir: {pkg_dir}")
            for py_file in iter_py_files(pkg_dir):
                bad = [m for m in absolute_imports(py_file) if _root(m) in forbidden]
                if bad:
                    problems.append(f"{py_file.relative_to(REPO_ROOT)} imports {bad}")

        if problems:
            self.fail("Layering violations:\n" + "\n".join(problems))

    def test_only_the_command_runner_spawns_processes_or_calls_http(self) -> None:
        problems: List[str] = []
        for pkg in ("quality_gate", "tools", "pipeline", "cli"):
            for py_file in iter_py_files(REPO_ROOT / pkg):
                rel = py_file.relative_to(REPO_ROOT).as_posix()
                if rel in SIDE_EFFECT_OWNERS:
                    continue
                bad = [m for m in absolute_imports(py_file) if _root(m) in SIDE_EFFECT_MODULES]
                if bad:
                    problems.append(f"{rel} imports {bad}")

        if problems:
            self.fail("Process/HTTP access outside the Command Runner:\n" + "\n".join(problems))


if __name__ == "__main__":
    unittest.main()
