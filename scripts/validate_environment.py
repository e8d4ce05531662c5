#!/usr/bin/env python3
"""Validate local reservation-core environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import date
from decimal import Decimal
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from resort.repository.data_repository import DataRepository
from resort.services.pricing_service import price
from resort.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="resort-env-")

    # CHECK 1 - Python version >= 3.10
    current = sys.version.split()[0]
    ok, line = _result(
        f"Python {current}" if sys.version_info >= (3, 10) else "Python version >= 3.10",
        sys.version_info >= (3, 10),
        "" if sys.version_info >= (3, 10) else f"found {current}",
    )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2 - Required packages importable
    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("requests", "requests"),
        ("httpx", "httpx"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    found_versions: list[str] = []
    for module_name, dist_name in package_specs:
        try:
            importlib.import_module(module_name)
            found_versions.append(f"{dist_name}=={version(dist_name)}")
        except (ImportError, PackageNotFoundError) as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _result("Required packages", True, ": " + ", ".join(found_versions))
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 3 - Resort timezone resolvable
    settings = get_settings()
    try:
        ZoneInfo(settings.timezone)
        ok, line = _result(f"Timezone {settings.timezone}", True)
    except ZoneInfoNotFoundError as exc:
        ok, line = _result("Timezone", False, f"{settings.timezone} not found ({exc})")
    results.append(line)
    all_passed = all_passed and ok

    try:
        repository = DataRepository(
            replace(settings, database_path=Path(temp_dir) / "resort_validation.db")
        )

        # CHECK 4 - Document store initialization
        try:
            repository.initialize_database()
            ok, line = _result("Document store initialization", True)
        except Exception as exc:
            ok, line = _result("Document store initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5 - Demo seeding
        try:
            repository.seed_demo_data()
            houses = repository.list_houses()
            categories = repository.list_menu_categories()
            if not houses or not categories:
                raise RuntimeError("seed produced no houses or no menu categories")
            ok, line = _result(
                "Demo seed",
                True,
                f": {len(houses)} houses, {len(categories)} menu categories",
            )
        except Exception as exc:
            ok, line = _result("Demo seed", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 6 - Pricing smoke test (Friday + Saturday with a Saturday discount)
        try:
            house = repository.get_house("house-1")
            if house is None:
                raise RuntimeError("demo house-1 is missing")
            breakdown = price(house, date(2026, 10, 16), date(2026, 10, 18))
            if breakdown.total_price != Decimal("170"):
                raise RuntimeError(f"expected total 170, got {breakdown.total_price}")
            ok, line = _result("Pricing smoke test", True, f": total={breakdown.total_price}")
        except Exception as exc:
            ok, line = _result("Pricing smoke test", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Resort Reservation Core Environment Validation")
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
