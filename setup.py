# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Setup configuration for the Chatflow workflow engine
"""

from setuptools import setup, find_packages

setup(
    name="chatflow-engine",
    version="1.0.0",
    description="Trigger/action workflow engine with chat widget and messaging platform nodes",
    author="Jason Cafarelli",
    package_dir={"": "backend"},
    packages=find_packages("backend", exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.110.0",
        "uvicorn>=0.27.0",
        "pydantic>=2.0.0",
        "httpx>=0.25.0",
        "pyyaml>=6.0",
        "aiofiles>=23.0.0",
        "python-dotenv>=1.0.0",
        "anthropic>=0.30.0",
    ],
    entry_points={
        "console_scripts": [
            "chatflow-engine=chatflow.main:run",
        ],
    },
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
)
