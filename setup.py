from setuptools import find_packages, setup

setup(
    name="xipcloud",
    version="0.5.0",
    packages=find_packages(include=["xipcloud", "xipcloud.*"]),
    python_requires=">=3.8",
    install_requires=["httpx"],
    extras_require={"test": ["pytest"]},
    description="Client for XIPCloud and other Swift-compatible object storage",
    license="Apache 2.0",
)
