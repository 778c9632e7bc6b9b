"""
LocalFS - Setup Configuration

Local directories behind stable virtual addresses: mount a directory once,
address its files as localfs://<host>/<path>, and receive change events
keyed by those addresses.

License: Apache-2.0
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Core dependencies (DEFAULT installation)
core_deps = [
    # Models and validation
    "pydantic>=2.11.9",
    # Native change notification
    "watchdog>=4.0.0",
    # CLI / terminal
    "click>=8.1.7",
    "rich>=14.1.0",
    "python-dotenv>=1.0.1",
]

# Development dependencies
dev_deps = [
    # Testing
    "pytest>=8.4.1",
    "pytest-asyncio>=1.0.0",
    "pytest-mock>=3.14.1",
    "pytest-cov>=6.2.1",
    # Code quality
    "black>=25.0.0",
    "flake8>=7.1.0",
    "mypy>=1.13.0",
]

setup(
    name="localfs",
    version="0.1.0",

    # Package description
    description="Local directories behind stable virtual addresses, with file operations and change events",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # Package discovery
    packages=find_packages(where="src"),
    package_dir={"": "src"},

    # Python version requirement
    python_requires=">=3.10",

    # Dependencies
    install_requires=core_deps,

    # Optional dependencies (extras)
    extras_require={
        # Testing only
        "test": dev_deps[:4],

        # Development: testing + code quality
        "dev": dev_deps,
    },

    # PyPI classifiers
    classifiers=[
        # Development status
        "Development Status :: 4 - Beta",

        # Audience
        "Intended Audience :: Developers",

        # License
        "License :: OSI Approved :: Apache Software License",

        # OS
        "Operating System :: OS Independent",
        "Operating System :: POSIX :: Linux",
        "Operating System :: MacOS",

        # Python versions
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Programming Language :: Python :: 3 :: Only",

        # Topics
        "Topic :: System :: Filesystems",
        "Topic :: Software Development :: Libraries :: Python Modules",

        # Framework
        "Framework :: AsyncIO",

        # Natural Language
        "Natural Language :: English",
    ],

    # Keywords for PyPI search
    keywords=[
        "filesystem", "virtual-filesystem", "vfs", "mount",
        "file-watcher", "watchdog", "uri", "asyncio",
    ],

    # License
    license="Apache-2.0",

    # Package data
    include_package_data=True,
    zip_safe=False,

    # Entry points
    entry_points={
        "console_scripts": [
            "localfs=localfs.cli:main",
        ],
    },
)
