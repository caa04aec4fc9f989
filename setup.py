"""Setup file for development installation."""

from setuptools import setup, find_packages

setup(
    name="chat-session",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0",
        "structlog>=23.1",
        "httpx>=0.27",
        "prometheus-client>=0.17",
        "fastapi>=0.110",
        "opentelemetry-instrumentation-fastapi>=0.45b0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
) 
