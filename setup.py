import setuptools

setuptools.setup(
    name="groundpass",
    description="Satellite pass prediction and recording scheduler for a single ground station",
    version="1.0.0",
    packages=setuptools.find_packages(include=["groundpass", "groundpass.*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy",
        "pytz",
        "skyfield",
    ],
    entry_points={
        "console_scripts": [
            "groundpass=groundpass.scheduler.cli:main",
        ],
    },
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
)
