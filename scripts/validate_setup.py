"""Validate that the system is properly set up and configured."""

import asyncio
import sys
from pathlib import Path

from orderflow.config import get_settings
from orderflow.state.manager import close_state_manager, get_state_manager


async def check_python_version() -> bool:
    """Check if Python version is 3.11+."""
    print("Checking Python version...")

    version = sys.version_info
    if version.major < 3 or (version.major == 3 and version.minor < 11):
        print(f"  ❌ Python {version.major}.{version.minor} detected")
        print("  → Python 3.11+ required")
        return False

    print(f"  ✓ Python {version.major}.{version.minor} detected")
    return True


async def check_settings() -> bool:
    """Check that settings load and are consistent."""
    print("\nChecking configuration...")

    if not Path(".env").exists():
        print("  ℹ️  No .env file, using environment variables and defaults")

    settings = get_settings()
    print(f"  ✓ Environment: {settings.environment}")
    print(f"  ✓ State backend: {settings.state_backend}")

    if not 0 <= settings.agent_fee_share <= 1:
        print(f"  ❌ AGENT_FEE_SHARE must be between 0 and 1, got {settings.agent_fee_share}")
        return False
    if settings.max_retries < 1:
        print("  ❌ MAX_RETRIES must be at least 1")
        return False
    if settings.state_backend == "memory" and settings.environment == "production":
        print("  ⚠️  In-memory state is not shared between workers")

    return True


async def check_project_structure() -> bool:
    """Check if all required directories and files exist."""
    print("\nChecking project structure...")

    required_paths = [
        "orderflow/config.py",
        "orderflow/errors.py",
        "orderflow/main.py",
        "orderflow/api/routes.py",
        "orderflow/state/manager.py",
        "orderflow/state/repositories.py",
        "orderflow/workflow/engine.py",
        "orderflow/workflow/state_machine.py",
        "orderflow/workflow/inventory.py",
        "orderflow/workflow/assignment.py",
        "orderflow/workflow/earnings.py",
        "pyproject.toml",
    ]

    missing = [path for path in required_paths if not Path(path).exists()]
    if missing:
        print("  ❌ Missing files:")
        for path in missing:
            print(f"     - {path}")
        return False

    print("  ✓ All required files present")
    return True


async def check_state_store() -> bool:
    """Check that the configured store accepts reads and conditional writes."""
    print("\nChecking state store...")

    state_manager = await get_state_manager()
    key = "setup:validation"
    try:
        await state_manager.delete(key)
        if not await state_manager.compare_and_set(key, 0, {"version": 1}):
            print("  ❌ Conditional write was rejected on an empty key")
            return False
        if await state_manager.compare_and_set(key, 0, {"version": 1}):
            print("  ❌ Conditional write accepted a stale version")
            return False
        await state_manager.delete(key)
    finally:
        await close_state_manager()

    print("  ✓ State store reachable and conditional writes work")
    return True


async def check_api() -> bool:
    """Check the health endpoint if the API is running."""
    print("\nChecking API...")

    import httpx

    settings = get_settings()
    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(f"http://localhost:{settings.api_port}/health", timeout=5.0)
    except httpx.HTTPError as e:
        print(f"  ℹ️  API not responding ({e}); start it with: python -m orderflow.main")
        return True

    if response.status_code == 200:
        print("  ✓ API is responding")
    else:
        print(f"  ⚠️  API returned status {response.status_code}")
    return True


async def main() -> None:
    """Run all validation checks."""
    print("\n" + "=" * 60)
    print("  Orderflow - Setup Validation")
    print("=" * 60 + "\n")

    checks = [
        ("Python Version", check_python_version),
        ("Configuration", check_settings),
        ("Project Structure", check_project_structure),
        ("State Store", check_state_store),
        ("API", check_api),
    ]

    results = []
    for name, check in checks:
        try:
            result = await check()
            results.append((name, result))
        except Exception as e:
            print(f"  ❌ Error during {name} check: {e}")
            results.append((name, False))

    print("\n" + "=" * 60)
    print("  Validation Summary")
    print("=" * 60)

    all_passed = True
    for name, passed in results:
        status = "✓" if passed else "❌"
        print(f"  {status} {name}")
        if not passed:
            all_passed = False

    print("=" * 60)

    if all_passed:
        print("\n✅ All checks passed! System is ready.")
        print("\nNext steps:")
        print("  1. Seed data: python scripts/seed_data.py")
        print("  2. Start the API: python -m orderflow.main")
        print("  3. View docs: http://localhost:8000/docs")
    else:
        print("\n❌ Some checks failed. Please fix the issues above.")
        sys.exit(1)

    print()


if __name__ == "__main__":
    asyncio.run(main())
