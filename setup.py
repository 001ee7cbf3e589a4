"""Setup script for PhpStanHub"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
this_directory = Path(__file__).parent
long_description = ""
readme_path = this_directory / "README.md"
if readme_path.exists():
    long_description = readme_path.read_text(encoding="utf-8")

setup(
    name="phpstan-hub",
    version="0.1.0",
    description="Live browser dashboard for PHPStan with file watching",
    long_description=long_description,
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    package_data={"phpstan_hub.server": ["static/build/*", "static/build/**/*"]},
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Quality Assurance",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "rich>=13.0.0",
        "starlette>=0.37.0",
        "typer>=0.9.0",
        "uvicorn>=0.29.0",
        "watchfiles>=0.21.0",
        "websockets>=12.0",
    ],
    extras_require={
        "test": [
            "httpx>=0.24.0",
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "phpstan-hub=phpstan_hub.cli:main",
        ],
    },
    keywords="phpstan static-analysis dashboard websocket live-reload",
)
