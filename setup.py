from setuptools import find_packages, setup

setup(
    name="app-start-tracing",
    python_requires=">=3.9",
    version="1.0.0",
    packages=[p for p in find_packages() if "tests" not in p],
    install_requires=[
        "ddtrace>=2.0",
        "json-log-formatter>=0.5",
        "opentelemetry-api>=1.26",
        "opentelemetry-sdk>=1.26",
        "opentelemetry-exporter-otlp-proto-grpc>=1.26",
        "pydantic>=2.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "app-start-tracing=app_start_tracing.cli:entrypoint",
        ],
    },
)
