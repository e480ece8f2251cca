"""
Build script for htmlshield with optional mypyc compilation.

Usage:
    # Pure Python build (default)
    pip install .

    # Compiled with mypyc
    HTMLSHIELD_USE_MYPYC=1 pip install .
"""

import os
import sys
from pathlib import Path

from setuptools import find_packages, setup

# Determine if we should use mypyc
USE_MYPYC = os.environ.get("HTMLSHIELD_USE_MYPYC", "0") == "1"

# Parsing hot path. Modules holding slotted dataclasses stay interpreted.
MYPYC_MODULES = [
    "src/htmlshield/tokenizer.py",
    "src/htmlshield/treebuilder.py",
    "src/htmlshield/serialize.py",
    "src/htmlshield/entities.py",
]


def build_with_mypyc() -> list:
    """Build extension modules using mypyc."""
    try:
        from mypyc.build import mypycify
    except ImportError:
        print(
            "ERROR: mypyc is not installed. Install with: pip install mypy",
            file=sys.stderr,
        )
        print("Or install with mypyc support: pip install htmlshield[mypyc]", file=sys.stderr)
        sys.exit(1)

    # Verify all modules exist
    for module_path in MYPYC_MODULES:
        if not Path(module_path).exists():
            print(f"ERROR: Module not found: {module_path}", file=sys.stderr)
            sys.exit(1)

    print("=" * 70)
    print("Building htmlshield with mypyc compilation")
    print("=" * 70)
    print(f"Compiling {len(MYPYC_MODULES)} modules:")
    for module in MYPYC_MODULES:
        print(f"  - {module}")
    print("=" * 70)

    opt_level = os.environ.get("MYPYC_OPT_LEVEL", "3")
    debug_level = os.environ.get("MYPYC_DEBUG_LEVEL", "0")

    mypyc_options = {
        "opt_level": opt_level,
        "debug_level": debug_level,
        "verbose": True,
        "separate": False,
        "multi_file": False,
    }

    return mypycify(MYPYC_MODULES, **mypyc_options)


if __name__ == "__main__":
    ext_modules = []

    if USE_MYPYC:
        ext_modules = build_with_mypyc()

    setup(
        name="htmlshield",
        version="0.4.0",
        description="Policy-driven HTML sanitizer with XSS detection helpers",
        python_requires=">=3.10",
        package_dir={"": "src"},
        packages=find_packages(where="src"),
        install_requires=[
            "loguru>=0.7",
            "PyYAML>=6.0",
        ],
        extras_require={
            "test": ["pytest>=7"],
            "mypyc": ["mypy>=1.8"],
        },
        ext_modules=ext_modules,
    )
