from setuptools import setup, find_packages

setup(
    name="batch-hero",
    version="0.1.0",
    description="Azure Batch hero scenario: provision a pool, run a task, verify and clean up",
    author="Batch Hero Team",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "azure-batch>=14.0.0,<15",
        "azure-identity>=1.12.0",
        "azure-core>=1.26.0",
        "msrest>=0.7.1",
        "prefect>=3.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "batch-hero=batch_hero.hero_scenario:main",
        ],
    },
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
