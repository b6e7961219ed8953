from setuptools import setup, find_packages

setup(
    name="tasktimer",
    version="0.1.0",
    description="Tick-driven timer for running many periodic tasks off a single clock",
    python_requires=">=3.10",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "apscheduler>=3.10.0,<4",
        "click>=8.0",
        "python-dotenv>=1.0.0",
        "loguru>=0.7.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "tasktimer=tasktimer.main:main",
        ],
    },
)
