#!/usr/bin/env python3
"""
cacheall test runner

Usage:
    python tests/run_tests.py                  # all tests
    python tests/run_tests.py -k file_store    # only matching tests
    python tests/run_tests.py --engine redis   # only one backend's tests
    python tests/run_tests.py --quiet          # no -v

Quick start:
    cd backend
    pip install -e "..[test]"
    python tests/run_tests.py
"""

import os
import subprocess
import sys
from pathlib import Path

ENGINE_TESTS = {
    "memory": "tests/test_memory_store.py",
    "file": "tests/test_file_store.py",
    "redis": "tests/test_redis_store.py",
}

backend_dir = Path(__file__).parent.parent
os.chdir(backend_dir)


def main():
    args = sys.argv[1:]
    targets = ["tests/"]

    if "--engine" in args:
        index = args.index("--engine")
        engine = args[index + 1] if index + 1 < len(args) else ""
        if engine not in ENGINE_TESTS:
            print(f"Unknown engine {engine!r}, expected one of: {', '.join(ENGINE_TESTS)}")
            sys.exit(2)
        del args[index:index + 2]
        targets = [ENGINE_TESTS[engine]]

    cmd = [sys.executable, "-m", "pytest", *targets]

    if "--quiet" in args:
        args.remove("--quiet")
    elif not any(arg.startswith("-v") for arg in args):
        cmd.append("-v")

    cmd.extend(args)

    print(f"\n{'='*60}")
    print("cacheall tests")
    print(f"{'='*60}")
    print(f"Command: {' '.join(cmd)}")
    print(f"{'='*60}\n")

    result = subprocess.run(cmd)
    sys.exit(result.returncode)


if __name__ == "__main__":
    main()
