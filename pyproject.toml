[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kdyflash"
version = "2.0.0"
description = "Serial firmware flasher and bootloader model for the KDY packet protocol"
requires-python = ">=3.10"
keywords = ["bootloader", "firmware", "flasher", "serial", "uart", "crc32", "stm32"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems",
]
dependencies = [
    "pyserial",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
kdyflash = "kdyflash.flasher:main"

[tool.hatch.build.targets.wheel]
packages = ["kdyflash"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
