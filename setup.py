from setuptools import setup, find_packages

setup(
    name="cmdbus",
    version="0.1.0",
    description="Local command bus between a provider and in-process consumers",
    author="cmdbus Team",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    install_requires=[
        "pyzmq>=24.0.0",
        "opentelemetry-api>=1.14.0",
        "opentelemetry-sdk>=1.14.0",
        "opentelemetry-exporter-otlp>=1.14.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-benchmark",
            "pytest-cov",
            "black",
            "isort",
            "pylint",
        ],
    },
    python_requires=">=3.9",
)
