from setuptools import setup, find_packages

setup(
    name="led-matrix-board",
    version="0.1.0",
    description="Composites TCP applet clients onto a 9x34 LED matrix module",
    author="Garrett Johnson",
    packages=find_packages(include=["matrix_board", "matrix_board.*"]),
    python_requires=">=3.11",
    install_requires=[
        "aioserial>=1.3.0",
        "fastapi>=0.110",
        "numpy>=1.23.0",
        "pydantic>=2.0",
        "pyserial>=3.5",
        "uvicorn>=0.29",
    ],
    extras_require={
        "test": ["pytest", "pytest-asyncio>=0.23", "httpx"],
    },
    entry_points={
        "console_scripts": ["matrix-board=matrix_board.main:main"],
    },
)
