"""
TIPs Core - Treatment timer reconciliation core for the TIPs tracking app.

Keeps one authoritative treatment timer per room in sync across local
storage, the shared realtime database, notifications and live activities.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the contents of README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

# Read version from __version__.py
version = {}
with open(this_directory / "tips_core" / "__version__.py") as fp:
    exec(fp.read(), version)

setup(
    name="tips-core",
    version=version["__version__"],
    author="TIPs App",
    author_email="dev@tipsapp.io",
    description="Treatment timer reconciliation core for the TIPs tracking app",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/tips-app/tips-core",
    project_urls={
        "Bug Tracker": "https://github.com/tips-app/tips-core/issues",
        "Source Code": "https://github.com/tips-app/tips-core",
    },
    packages=find_packages(exclude=["tests", "tests.*", "examples", "docs"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
        "Framework :: AsyncIO",
        "Typing :: Typed",
    ],
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0.0,<3.0.0",
        "typing-extensions>=4.0.0",
        "python-dotenv>=1.0.0",
        "structlog>=24.0.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "black>=23.0.0",
            "mypy>=1.0.0",
            "ruff>=0.1.0",
        ],
    },
    include_package_data=True,
    zip_safe=False,
    keywords=[
        "tips",
        "treatment-timer",
        "reconciliation",
        "realtime",
        "notifications",
        "async",
    ],
)
