from setuptools import setup, find_packages

setup(
    name="truckscale",
    version="0.1.0",
    packages=find_packages(include=["truckscale", "truckscale.*"]),
    include_package_data=True,
    python_requires=">=3.8",
    install_requires=[
        "pyserial",  # serial raw-count backend
    ],
    extras_require={
        "rpi": ["lgpio"],  # HX711 bit-banged over Raspberry Pi GPIO
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "truckscale=truckscale.main:main"
        ]
    },
)
