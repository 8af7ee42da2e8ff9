"""
Setup script for the querybridge package.
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="querybridge",
    version="1.0.0",
    author="querybridge contributors",
    description="Translate filter rule trees to and from SQL, MongoDB, JsonLogic, CEL, SpEL and Qdrant",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["querybridge", "querybridge.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
    python_requires=">=3.8",
    install_requires=[
        "qdrant-client>=1.7.0",
        "lark>=1.1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "aiosqlite>=0.19.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "aiosqlite>=0.19.0",
            "black>=22.0.0",
            "mypy>=1.0.0",
        ],
    }
)
