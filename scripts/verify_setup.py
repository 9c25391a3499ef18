"""Verify that the setup is correct before running the fetcher."""
import os
import sys
from pathlib import Path
from dotenv import load_dotenv
from org_metrics.config import ConfigurationError, load_settings
from org_metrics.domain.legacy_packages import LegacyPackageMap

# Load environment variables from .env or env file
load_dotenv('.env') or load_dotenv('env')


def check_environment_variables():
    """Check required environment variables."""
    print("Checking environment variables...")

    required_vars = ["GRAPHQL_TOKEN", "PEPY_API_KEY"]
    optional_vars = [
        "ORGANIZATION_NAME", "OUTPUT_DIR", "CONDA_CACHE_DIR", "CONDA_START_YEAR",
        "CONTRIBUTOR_STATS_RETRY_DELAY", "CONTRIBUTOR_STATS_MAX_RETRIES", "LEGACY_PACKAGES_DIR",
    ]

    missing = [var for var in required_vars if not os.getenv(var)]
    if missing:
        print(f"❌ Missing required environment variables: {', '.join(missing)}")
        return False

    print("✅ Required environment variables set")

    for var in optional_vars:
        if os.getenv(var):
            print(f"   {var}: {os.getenv(var)}")

    return True


def check_configuration():
    """Check that config.yml and the environment produce valid settings."""
    print("\nChecking configuration...")

    try:
        settings = load_settings()
    except ConfigurationError as e:
        print(f"❌ Invalid configuration: {e}")
        return False

    for org in settings.organizations:
        print(
            f"✅ {org.organization}: includeForks={org.include_forks}, "
            f"includeArchived={org.include_archived}, since={org.since_iso}"
        )
        legacy_path = settings.legacy_packages_path(org.organization)
        try:
            legacy = LegacyPackageMap.from_file(legacy_path)
        except ValueError as e:
            print(f"❌ Invalid legacy package file {legacy_path}: {e}")
            return False
        if len(legacy):
            print(f"   {len(legacy)} legacy package entries from {legacy_path}")
    return True


def check_cache_directory():
    """Check that the Conda snapshot cache directory is writable."""
    print("\nChecking Conda cache directory...")

    cache_dir = Path(os.getenv("CONDA_CACHE_DIR") or Path.home() / ".dashboard").expanduser()
    try:
        cache_dir.mkdir(parents=True, exist_ok=True)
        marker = cache_dir / ".write_test"
        marker.write_text("ok")
        marker.unlink()
    except OSError as e:
        print(f"❌ Cache directory {cache_dir} is not writable: {e}")
        return False

    cached = sorted(cache_dir.glob("*.parquet"))
    print(f"✅ Cache directory {cache_dir} is writable")
    print(f"   Cached snapshot files: {len(cached)}")
    return True


def check_github_token():
    """Verify GitHub token is valid."""
    print("\nChecking GitHub token...")

    token = os.getenv("GRAPHQL_TOKEN")
    if not token:
        print("❌ GRAPHQL_TOKEN not set")
        return False

    # Simple check - token format
    if token.startswith("ghp_") or token.startswith("github_pat_"):
        print("✅ GitHub token format looks valid")
        print(f"   Token prefix: {token[:10]}...")
        return True
    else:
        print("⚠️  Token format may be invalid (expected ghp_* or github_pat_*)")
        return True  # Don't fail, might be old format


def main():
    """Run all verification checks."""
    print("=" * 60)
    print("Organization Metrics Fetcher - Setup Verification")
    print("=" * 60)

    checks = [
        ("Environment Variables", check_environment_variables),
        ("Configuration", check_configuration),
        ("Conda Cache Directory", check_cache_directory),
        ("GitHub Token", check_github_token),
    ]

    results = {}
    for name, check_func in checks:
        try:
            results[name] = check_func()
        except Exception as e:
            print(f"❌ {name} check failed with exception: {e}")
            results[name] = False

    print("\n" + "=" * 60)
    print("Verification Summary")
    print("=" * 60)

    for name, passed in results.items():
        status = "✅ PASS" if passed else "❌ FAIL"
        print(f"{status}: {name}")

    if all(results.values()):
        print("\n✅ All checks passed! Ready to run the fetcher.")
        print("\nNext steps:")
        print("  python fetch_org_metrics.py")
        sys.exit(0)
    else:
        print("\n❌ Some checks failed. Please fix the issues above.")
        print("\nCommon solutions:")
        print("  - Set GRAPHQL_TOKEN: export GRAPHQL_TOKEN=your_token")
        print("  - Set PEPY_API_KEY: export PEPY_API_KEY=your_key")
        print("  - Set `organization` in config.yml or ORGANIZATION_NAME")
        sys.exit(1)


if __name__ == "__main__":
    main()
