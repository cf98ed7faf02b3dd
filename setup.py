from setuptools import setup, find_packages

setup(
    name="acmewatch",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pyyaml",
        # Config reload on change
        "watchdog>=3.0",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "acmewatch=acme_watch.cli:main",
        ],
    },
    description="Reformat files saved in acme by replaying the formatter's diff into the window.",
)
