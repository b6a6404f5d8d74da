#!/usr/bin/env python3
"""
Setup script for Faultline.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="faultline",
    version="0.1.0",
    description="Fault interception and dispatch pipeline with LIFO handler chains",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Faultline Contributors",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "jinja2>=3.1.0",
        "PyYAML>=6.0",
        "python-dotenv>=1.0.0",
        "sentry-sdk>=1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Libraries",
        "Topic :: System :: Logging",
    ],
    keywords="errors exceptions warnings handlers excepthook sentry",
)
