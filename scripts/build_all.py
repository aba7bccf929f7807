#!/usr/bin/env python
"""
Build pipeline - validates the catalog and runs the golden tests.

Usage:
    python scripts/build_all.py
"""
import subprocess
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from quote_engine.config.settings import get_settings
from quote_engine.data.catalog import load_catalog
from quote_engine.data.promotion_compiler import compile_promotions


def main():
    settings = get_settings()

    print("=" * 60)
    print("QUOTE ENGINE BUILD PIPELINE")
    print("=" * 60)
    print()

    print("[1/3] Compiling promotions...")
    success, promotions, errors = compile_promotions(settings.promotions_json, verbose=True)
    if not success:
        print("\n❌ BUILD FAILED")
        sys.exit(1)

    print()
    print("[2/3] Loading catalog...")
    try:
        catalog = load_catalog(settings)
    except (FileNotFoundError, ValueError) as e:
        print(f"\n❌ BUILD FAILED\n  ERROR: {e}")
        sys.exit(1)

    print()
    print("[3/3] Running golden tests...")
    test_result = subprocess.run(
        [sys.executable, '-m', 'pytest', 'tests/test_golden_cases.py', '-v', '--tb=short'],
        cwd=Path(__file__).parent.parent
    )

    if test_result.returncode != 0:
        print("\n❌ TESTS FAILED")
        sys.exit(1)

    print()
    print("=" * 60)
    print("✅ BUILD COMPLETE")
    print("=" * 60)
    print()
    print("Summary:")
    print(f"  Catalog: {catalog.catalog_hash} ({settings.data_dir})")
    print(f"  Plans: {len(catalog.plans)}")
    print(f"  Devices: {len(catalog.device_database.devices)}")
    print(f"  Promotions: {len(promotions)} ({sum(p.is_active for p in promotions)} active)")
    print(f"  Guidance tips: {len(catalog.guidance_items)}")


if __name__ == "__main__":
    main()
