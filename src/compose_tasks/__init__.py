from importlib.metadata import PackageNotFoundError, version as _pkg_version

__all__ = ["__version__"]


def _detect_version() -> str:
    try:
        return _pkg_version("compose-tasks")
    except PackageNotFoundError:
        # Source checkout without an install
        return "0.0.0+dev"


__version__ = _detect_version()
