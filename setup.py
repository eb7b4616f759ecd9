from setuptools import setup, find_packages

# Check if PyGObject (gi) is already available system-wide
# This prevents pip from trying to build PyGObject from source when it's
# already installed via system package manager (apt, pacman, etc.)
_HAS_PYGOBJECT = False
try:
    import gi
    gi.require_version('GLib', '2.0')
    from gi.repository import GLib
    _HAS_PYGOBJECT = True
except (ImportError, ValueError, AttributeError):
    _HAS_PYGOBJECT = False

# Base requirements - always needed
install_requires = [
    "dbus-python>=1.2.0",
    "PyYAML>=6.0",
    "xmltodict>=0.14.2",
]

extras_require = {
    "test": ["pytest>=8.0.0"],
}

# The daemon main loop needs PyGObject; prefer the system package when present
if not _HAS_PYGOBJECT:
    install_requires.append("PyGObject>=3.48.0")
    extras_require["glib"] = []
else:
    extras_require["glib"] = ["PyGObject>=3.48.0"]

setup(
    name="adapterd",
    version="0.3.0",
    description="Bluetooth adapter control daemon",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=install_requires,
    extras_require=extras_require,
    package_data={
        "adapterd.bt_ref": ["company_identifiers.yaml"],
    },
    entry_points={
        'console_scripts': [
            'adapterd=adapterd.cli:main',
        ],
    },
    python_requires='>=3.8',
)
