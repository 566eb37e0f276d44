import ast
import subprocess
import sys
import textwrap
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]


def _forbidden_imports(source_dir: Path, forbidden_prefixes: tuple[str, ...]) -> list[str]:
    offenders: list[str] = []
    for path in sorted(source_dir.rglob("*.py")):
        tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    if alias.name.startswith(forbidden_prefixes):
                        offenders.append(f"{path}: import {alias.name}")
            elif isinstance(node, ast.ImportFrom):
                if node.module is None:
                    continue
                if node.module.startswith(forbidden_prefixes):
                    offenders.append(f"{path}: from {node.module} import ...")
    return offenders


def test_fluentkit_source_does_not_import_fluentd_config():
    assert _forbidden_imports(REPO_ROOT / "fluentkit", ("fluentd_config",)) == []


def test_foundation_does_not_import_framework_or_adapters():
    forbidden = (
        "fluentd_config.framework",
        "fluentd_config.adapters",
        "fluentd_config.app",
        "fluentd_config.cli",
    )
    assert _forbidden_imports(REPO_ROOT / "fluentd_config" / "foundation", forbidden) == []


def test_framework_does_not_import_adapters_or_app():
    forbidden = ("fluentd_config.adapters", "fluentd_config.app", "fluentd_config.cli")
    assert _forbidden_imports(REPO_ROOT / "fluentd_config" / "framework", forbidden) == []


def test_importing_fluentkit_modules_does_not_pull_in_fluentd_config():
    code = textwrap.dedent(
        """\
        import importlib
        import pkgutil
        import sys

        import fluentkit as pkg

        forbidden = ("fluentd_config",)

        for module in pkgutil.walk_packages(pkg.__path__, pkg.__name__ + "."):
            before = set(sys.modules)
            importlib.import_module(module.name)
            loaded = sorted(name for name in (set(sys.modules) - before) if name.startswith(forbidden))
            if loaded:
                raise SystemExit(f"Importing {module.name} loaded forbidden modules: {loaded}")
        """
    )

    proc = subprocess.run(
        [sys.executable, "-c", code],
        capture_output=True,
        text=True,
        cwd=str(REPO_ROOT),
    )
    assert proc.returncode == 0, proc.stderr or proc.stdout
