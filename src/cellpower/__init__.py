"""Cell-Power: internal power arcs for Liberty cell libraries"""

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("cellpower")
except (ImportError, PackageNotFoundError):
    __version__ = "0.0.0"
