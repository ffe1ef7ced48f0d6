"""
PageLingo - Layout-preserving PDF translation

Translates a PDF page by page through an external translation backend and
rebuilds each page as its rasterized original with the translated text laid
over it.
"""

from pathlib import Path


def _get_version() -> str:
    """
    Read the version from pyproject.toml.

    Keeps a source checkout in sync with the packaging metadata without
    having to bump this module on every release.

    Returns:
        str: Version string (e.g. "0.3.0")
    """
    try:
        import tomllib  # Python 3.11+ standard library

        pyproject_path = Path(__file__).parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            with open(pyproject_path, "rb") as f:
                data = tomllib.load(f)
            return data.get("project", {}).get("version", "0.0.0")
    except (OSError, ValueError):
        pass

    # Fallback for installs without the source tree
    return "0.3.0"


__version__ = _get_version()
__app_name__ = "PageLingo"
