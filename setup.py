import setuptools

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="fireboard2mqtt",
    version="0.1.0",
    author="fireboard2mqtt contributors",
    description="Publishes FireBoard thermometers to an MQTT broker with Home Assistant discovery",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(exclude=["tests"]),
    python_requires=">=3.8",
    install_requires=[
        "paho-mqtt>=2.0",
        "requests>=2.25",
        "icmplib>=3.0",
        "PyYAML>=5.4",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "fireboard2mqtt=fireboard2mqtt.__main__:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
