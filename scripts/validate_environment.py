#!/usr/bin/env python3
"""Validate local allocation portal environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from portal.repository.document_store import DocumentStore
from portal.repository.resource_repository import ResourceRepository
from portal.services.reconciliation_service import ReconciliationService
from portal.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="portal-env-")

    # CHECK 1: Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_specs = ["fastapi", "uvicorn", "pydantic", "httpx", "pytest"]
    import_errors: list[str] = []
    for module_name in package_specs:
        try:
            importlib.import_module(module_name)
        except ImportError as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "portal_validation.db",
        )
        store = DocumentStore(validation_settings)

        # CHECK 3: Store initialization
        try:
            store.initialize_database()
            ok, line = _print_result("Document store initialization", True)
        except Exception as exc:
            ok, line = _print_result("Document store initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Demo seeding
        try:
            created = store.seed_demo_data_if_empty()
            if created <= 0:
                raise RuntimeError("demo seed created no records")
            ok, line = _print_result("Demo seed", True, f": {created} records")
        except Exception as exc:
            ok, line = _print_result("Demo seed", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Reconciliation reaches a fixed point
        try:
            service = ReconciliationService(
                repository=ResourceRepository(store),
                settings=validation_settings,
            )
            first = service.synchronize()
            second = service.synchronize()
            if (second.allocated, second.rooms_updated, second.tags_updated) != (0, 0, 0):
                raise RuntimeError(f"second pass still changed state: {second.to_dict()}")
            ok, line = _print_result(
                "Reconciliation fixed point",
                True,
                f": allocated={first.allocated} no_rooms={first.no_rooms} no_tags={first.no_tags}",
            )
        except Exception as exc:
            ok, line = _print_result("Reconciliation fixed point", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Allocation Portal Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
